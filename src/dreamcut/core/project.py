"""Unified project understanding: the combination synthesizer's artifact.

The synthesizer reads the validated query and asset analyses and derives a
single project model from them: one authoritative intent, merged constraints,
an asset utilization plan, a gap and contradiction report, a creative
synthesis and production recommendations.

The utilization plan enforces the partition invariant: every analysed asset
id lands in exactly one of the four buckets.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from dreamcut.core.models import ImpactLevel, OutputType, Schema

QualityTarget = Literal["standard", "high", "professional", "cinema"]
PriorityTier = Literal["critical", "high", "medium", "low"]
ComplexityLevel = Literal["simple", "moderate", "complex", "advanced"]
ComplexityClass = Literal["simple", "moderate", "complex", "highly_complex"]
StepComplexity = Literal["easy", "moderate", "complex", "expert"]
OptimizationDimension = Literal["speed", "quality", "cost", "complexity", "automation"]


# =============================================================================
# Intent and Constraints
# =============================================================================


class UnifiedIntent(Schema):
    primary_output_type: OutputType
    secondary_output_types: list[OutputType] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    user_goal: str | None = None
    is_mixed: bool = False
    corroborated_by_assets: bool = False


class OutputSpecifications(Schema):
    image_count: int | None = Field(default=None, gt=0)
    video_duration_seconds: int | None = Field(default=None, gt=0)
    audio_length_seconds: int | None = Field(default=None, gt=0)
    aspect_ratio: str
    resolution: str
    quality_target: QualityTarget
    format_requirements: list[str] = Field(default_factory=list)


class PlatformRequirement(Schema):
    max_duration_seconds: int | None = Field(default=None, gt=0)
    aspect_ratios: list[str] = Field(default_factory=list)
    formats: list[str] = Field(default_factory=list)


class PlatformConstraints(Schema):
    target_platforms: list[str]
    platform_requirements: dict[str, PlatformRequirement] = Field(default_factory=dict)
    distribution_format: str


class CreativeConstraints(Schema):
    required_style: str | None = None
    mood_requirements: list[str] = Field(default_factory=list)
    color_palette: list[str] = Field(default_factory=list)
    brand_requirements: str | None = None
    accessibility: list[str] = Field(default_factory=list)


class ProductionConstraints(Schema):
    budget_tier: Literal["low", "medium", "high"]
    timeline: str
    complexity_level: ComplexityLevel
    automation_level: Literal["full_auto", "semi_auto", "manual_review"]


class UnifiedConstraints(Schema):
    output_specifications: OutputSpecifications
    platform_constraints: PlatformConstraints
    creative_constraints: CreativeConstraints
    production_constraints: ProductionConstraints
    defaults_applied: list[str] = Field(default_factory=list)


# =============================================================================
# Asset Utilization
# =============================================================================


class PrimaryAssetPlan(Schema):
    asset_id: str
    role: Literal["hero", "main_content", "key_element", "supporting"]
    usage_plan: str
    processing_priority: PriorityTier
    enhancement_plan: list[str] = Field(default_factory=list)
    alignment_score: float = Field(ge=0.0, le=1.0)
    rationale: str


class ReferenceAssetPlan(Schema):
    asset_id: str
    reference_type: Literal[
        "style_reference", "mood_reference", "technical_reference", "content_reference"
    ]
    application: str
    extraction_focus: list[str] = Field(default_factory=list)
    alignment_score: float = Field(ge=0.0, le=1.0)
    rationale: str


class SupportingAssetPlan(Schema):
    asset_id: str
    support_role: Literal["audio_layer", "b_roll", "overlay", "texture", "background"]
    integration_method: str
    processing_needs: list[str] = Field(default_factory=list)
    alignment_score: float = Field(ge=0.0, le=1.0)
    rationale: str


class UnusedAsset(Schema):
    asset_id: str
    reason: str
    alternative_usage: str
    alignment_score: float = Field(ge=0.0, le=1.0)


class AssetUtilizationPlan(Schema):
    """Partition of every analysed asset into exactly one bucket."""

    primary_assets: list[PrimaryAssetPlan] = Field(default_factory=list)
    reference_assets: list[ReferenceAssetPlan] = Field(default_factory=list)
    supporting_assets: list[SupportingAssetPlan] = Field(default_factory=list)
    unused_assets: list[UnusedAsset] = Field(default_factory=list)
    utilization_rate: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_partition(self) -> "AssetUtilizationPlan":
        ids = self.all_ids()
        duplicates = sorted({asset_id for asset_id in ids if ids.count(asset_id) > 1})
        if duplicates:
            raise ValueError(f"Assets assigned to more than one bucket: {duplicates}")
        total = len(ids)
        used = total - len(self.unused_assets)
        expected = round(used / total, 4) if total else 0.0
        if abs(self.utilization_rate - expected) > 1e-3:
            raise ValueError(
                f"utilization_rate {self.utilization_rate} does not match {used}/{total}"
            )
        return self

    def all_ids(self) -> list[str]:
        return (
            [a.asset_id for a in self.primary_assets]
            + [a.asset_id for a in self.reference_assets]
            + [a.asset_id for a in self.supporting_assets]
            + [a.asset_id for a in self.unused_assets]
        )

    def bucket_of(self, asset_id: str) -> str | None:
        """Return the bucket name ("primary", "reference", ...) holding an asset."""
        for bucket, entries in (
            ("primary", self.primary_assets),
            ("reference", self.reference_assets),
            ("supporting", self.supporting_assets),
            ("unused", self.unused_assets),
        ):
            if any(entry.asset_id == asset_id for entry in entries):
                return bucket
        return None


# =============================================================================
# Gaps and Contradictions
# =============================================================================


class Gap(Schema):
    gap_type: Literal["content", "style", "technical", "quality"]
    description: str
    impact: ImpactLevel
    suggested_resolution: str
    alternatives: list[str] = Field(default_factory=list)


class Contradiction(Schema):
    contradiction_type: Literal["intent_vs_assets", "asset_vs_asset", "constraint_vs_asset"]
    description: str
    conflicting_elements: list[str] = Field(default_factory=list)
    severity: ImpactLevel
    resolution_strategy: str


class MissingElement(Schema):
    element_type: Literal["specification", "constraint", "asset"]
    description: str
    importance: Literal["essential", "recommended", "optional"]
    handling: Literal["infer", "request", "default"]


class GapAnalysis(Schema):
    identified_gaps: list[Gap] = Field(default_factory=list)
    contradictions: list[Contradiction] = Field(default_factory=list)
    missing_elements: list[MissingElement] = Field(default_factory=list)

    def count_gaps(self, impact: ImpactLevel) -> int:
        return sum(1 for gap in self.identified_gaps if gap.impact == impact)

    def has_critical_gap(self) -> bool:
        return self.count_gaps(ImpactLevel.CRITICAL) > 0


# =============================================================================
# Creative Synthesis and Recommendations
# =============================================================================


class NarrativeSpine(Schema):
    """Intro, core and outro beats of the piece."""

    intro: str
    core: list[str] = Field(min_length=1)
    outro: str
    source: Literal["assets", "profile"]


class CreativeSynthesis(Schema):
    unified_creative_direction: str
    direction_source: Literal["ai", "reframing", "profile"]
    narrative_spine: NarrativeSpine
    style_fusion_strategy: str
    mood_integration_plan: str
    narrative_structure: str | None = None
    visual_hierarchy: list[str] = Field(default_factory=list)
    audio_visual_alignment: str | None = None
    brand_voice: str | None = None


class PipelineStep(Schema):
    step_name: str
    description: str
    input_requirements: list[str] = Field(default_factory=list)
    expected_output: str
    tool_categories: list[str] = Field(default_factory=list)
    estimated_duration: str
    complexity: StepComplexity


class QualityTargets(Schema):
    technical_quality: Literal["acceptable", "good", "professional"]
    creative_impact: Literal["functional", "appealing", "impressive"]
    consistency_level: Literal["good", "high"]
    polish_level: Literal["draft", "refined", "polished"]


class OptimizationSuggestion(Schema):
    dimension: OptimizationDimension
    suggestion: str
    impact: Literal["low", "medium", "high"]
    effort: Literal["minimal", "moderate", "significant"]


class ProductionRecommendations(Schema):
    pipeline_steps: list[PipelineStep] = Field(default_factory=list)
    quality_targets: QualityTargets
    optimization_suggestions: list[OptimizationSuggestion] = Field(default_factory=list)


class CreativeProfileRef(Schema):
    profile_id: str
    name: str
    score: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    matched_keywords: list[str] = Field(default_factory=list)


class SynthesisMetadata(Schema):
    project_id: str
    project_title: str
    synthesis_confidence: float = Field(ge=0.0, le=1.0)
    alignment_score: float = Field(ge=0.0, le=1.0)
    completeness_score: float = Field(ge=0.0, le=1.0)
    complexity_classification: ComplexityClass
    validation_checks_passed: list[str] = Field(default_factory=list)
    recommendations_confidence: float = Field(ge=0.0, le=1.0)
    ai_models_used: list[str] = Field(default_factory=list)
    synthesis_approach: str
    processing_time_ms: int = Field(ge=0)
    creative_profile: CreativeProfileRef
    warnings: list[str] = Field(default_factory=list)


class UnifiedProjectUnderstanding(Schema):
    """Stage 3 output."""

    unified_intent: UnifiedIntent
    unified_constraints: UnifiedConstraints
    asset_utilization: AssetUtilizationPlan
    gap_analysis: GapAnalysis
    creative_synthesis: CreativeSynthesis
    production_recommendations: ProductionRecommendations
    synthesis_metadata: SynthesisMetadata
