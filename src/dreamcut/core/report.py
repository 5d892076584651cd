"""Final analysis document: the externally consumed output.

The document has seven top-level sections:

- analysis_metadata: identity, timing, overall confidence, quality, status
- query_summary: what was asked and what was extracted from it
- assets_analysis: per-asset and aggregate asset findings
- global_understanding: project overview, utilization, challenges, feasibility
- creative_options: primary direction plus alternatives
- pipeline_recommendations: workflow, quality targets, optimizations
- processing_insights: per-stage model usage, confidence breakdown, warnings

All confidences and probabilities are in [0, 1]; quality scores are in [0, 10].
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import Field

from dreamcut.core.models import AnalysisStatus, ImpactLevel, MediaKind, OutputType, Schema
from dreamcut.core.project import (
    ComplexityClass,
    CreativeProfileRef,
    NarrativeSpine,
    OptimizationDimension,
    PlatformRequirement,
)

UtilizationBucket = Literal["primary", "reference", "supporting", "unused"]


class CompletionStatus(str, Enum):
    """Overall outcome recorded in the final document.

    ERROR exists for consumers that persist failed runs; a successful
    pipeline run only ever emits COMPLETE or PARTIAL.
    """

    COMPLETE = "complete"
    PARTIAL = "partial"
    ERROR = "error"


# =============================================================================
# analysis_metadata
# =============================================================================


class AnalysisMetadata(Schema):
    analysis_id: str
    timestamp: datetime
    total_processing_time_ms: int = Field(ge=0)
    pipeline_version: str
    analyzer_confidence: float = Field(ge=0.0, le=1.0)
    completion_status: CompletionStatus
    quality_score: int = Field(ge=0, le=10)
    critical_gap_count: int = Field(default=0, ge=0)


# =============================================================================
# query_summary
# =============================================================================


class ParsedIntent(Schema):
    primary_output: OutputType
    confidence: float = Field(ge=0.0, le=1.0)
    secondary_outputs: list[OutputType] = Field(default_factory=list)
    intent_description: str
    user_goal: str | None = None


class TechnicalRequirements(Schema):
    output_count: int | None = Field(default=None, gt=0)
    duration_seconds: int | None = Field(default=None, gt=0)
    aspect_ratio: str | None = None
    resolution: str | None = None
    format_preferences: list[str] = Field(default_factory=list)
    quality_level: Literal["draft", "standard", "high", "cinema"]


class CreativeRequirements(Schema):
    style: list[str] = Field(default_factory=list)
    mood: list[str] = Field(default_factory=list)
    theme: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    brand_guidelines: str | None = None


class PlatformSummary(Schema):
    target_platforms: list[str] = Field(default_factory=list)
    distribution_format: str
    platform_specific_constraints: dict[str, PlatformRequirement] = Field(default_factory=dict)


class TimelineRequirements(Schema):
    urgency: Literal["low", "medium", "high", "urgent"]
    deadline: str | None = None
    estimated_timeline: str


class ExtractedConstraints(Schema):
    technical: TechnicalRequirements
    creative: CreativeRequirements
    platform: PlatformSummary
    timeline: TimelineRequirements


class QueryGapSummary(Schema):
    gap_type: Literal["content", "technical", "creative", "platform", "audience", "clarification"]
    description: str
    impact: ImpactLevel
    suggestion: str


class QuerySummary(Schema):
    original_prompt: str
    normalized_prompt: str
    parsed_intent: ParsedIntent
    extracted_constraints: ExtractedConstraints
    identified_gaps: list[QueryGapSummary] = Field(default_factory=list)
    prompt_clarity_score: float = Field(ge=0.0, le=1.0)
    suggested_improvements: list[str] = Field(default_factory=list)


# =============================================================================
# assets_analysis
# =============================================================================


class MetadataSummary(Schema):
    file_size: str | None = None
    dimensions: str | None = None
    duration: str | None = None
    format: str | None = None
    quality_score: float = Field(ge=0.0, le=10.0)


class ContentSummary(Schema):
    description: str
    key_elements: list[str] = Field(default_factory=list)
    style: str | None = None
    mood: str | None = None
    technical_quality: Literal["poor", "fair", "good", "excellent", "professional"]


class AlignmentSummary(Schema):
    alignment_score: float = Field(ge=0.0, le=1.0)
    utilization: UtilizationBucket
    contribution: str


class ProcessingRecommendation(Schema):
    priority: Literal["critical", "high", "medium", "low"]
    estimated_processing_time: str
    enhancements: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)


class IndividualAsset(Schema):
    asset_id: str
    kind: MediaKind
    source: str
    status: AnalysisStatus
    metadata_summary: MetadataSummary
    content_summary: ContentSummary
    alignment: AlignmentSummary
    processing_recommendations: ProcessingRecommendation
    model_used: str | None = None
    error: str | None = None


class ProcessingSummary(Schema):
    successful: int = Field(ge=0)
    partial: int = Field(ge=0)
    failed: int = Field(ge=0)
    total_processing_time_ms: int = Field(ge=0)


class AssetQualityOverview(Schema):
    average_quality: float = Field(ge=0.0, le=10.0)
    high_quality_count: int = Field(ge=0)
    unusable_count: int = Field(ge=0)
    quality_distribution: Literal["excellent", "good", "fair", "poor", "none"]


class AssetsAnalysisSection(Schema):
    total_assets: int = Field(ge=0)
    asset_breakdown: dict[str, int] = Field(default_factory=dict)
    processing_summary: ProcessingSummary
    individual_assets: list[IndividualAsset] = Field(default_factory=list)
    asset_quality_overview: AssetQualityOverview


# =============================================================================
# global_understanding
# =============================================================================


class ProjectOverview(Schema):
    title: str
    project_type: Literal["content_creation", "creative_synthesis"]
    complexity: ComplexityClass
    scope: str
    success_probability: float = Field(ge=0.0, le=1.0)


class CreativeDirectionSummary(Schema):
    direction: str
    source: Literal["ai", "reframing", "profile"]
    style_fusion: str
    mood_plan: str
    narrative_structure: str | None = None


class AssetUtilizationSummary(Schema):
    primary: list[str] = Field(default_factory=list)
    reference: list[str] = Field(default_factory=list)
    supporting: list[str] = Field(default_factory=list)
    unused: list[str] = Field(default_factory=list)
    utilization_rate: float = Field(ge=0.0, le=1.0)


class Challenge(Schema):
    challenge_type: Literal["content", "creative", "technical", "quality", "alignment"]
    description: str
    impact: Literal["minimal", "moderate", "significant", "major"]
    resolution: str
    resolution_confidence: float = Field(ge=0.0, le=1.0)


class ProjectFeasibility(Schema):
    technical_feasibility: float = Field(ge=0.0, le=1.0)
    creative_feasibility: float = Field(ge=0.0, le=1.0)
    resource_feasibility: float = Field(ge=0.0, le=1.0)
    overall_feasibility: float = Field(ge=0.0, le=1.0)
    risk_factors: list[str] = Field(default_factory=list)


class GlobalUnderstanding(Schema):
    project_overview: ProjectOverview
    unified_creative_direction: CreativeDirectionSummary
    asset_utilization: AssetUtilizationSummary
    asset_utilization_strategy: str
    identified_challenges: list[Challenge] = Field(default_factory=list)
    project_feasibility: ProjectFeasibility


# =============================================================================
# creative_options
# =============================================================================


class PrimaryCreativeDirection(Schema):
    concept: str
    visual_approach: str
    style_direction: str
    mood_atmosphere: str


class CreativeAlternative(Schema):
    name: str
    description: str
    suitability: float = Field(ge=0.0, le=1.0)


class CreativeEnhancement(Schema):
    name: str
    description: str
    effort: Literal["minimal", "moderate", "significant"]


class StyleVariation(Schema):
    name: str
    description: str


class CreativeOptions(Schema):
    primary_creative_direction: PrimaryCreativeDirection
    alternative_approaches: list[CreativeAlternative] = Field(default_factory=list)
    creative_enhancements: list[CreativeEnhancement] = Field(default_factory=list)
    style_variations: list[StyleVariation] = Field(default_factory=list)
    creative_profile: CreativeProfileRef
    narrative_spine: NarrativeSpine


# =============================================================================
# pipeline_recommendations
# =============================================================================


class ToolRecommendation(Schema):
    name: str
    tool_type: Literal["editor", "enhancer", "converter", "generator", "utility"]
    purpose: str
    alternatives: list[str] = Field(default_factory=list)


class WorkflowStep(Schema):
    step_number: int = Field(ge=1)
    name: str
    category: Literal["preparation", "creation", "integration", "finishing"]
    description: str
    tools: list[ToolRecommendation] = Field(default_factory=list)
    estimated_duration: str
    skill_level: Literal["beginner", "intermediate", "advanced", "expert"]
    success_probability: float = Field(ge=0.0, le=1.0)
    dependencies: list[str] = Field(default_factory=list)


class QualityTargetSummary(Schema):
    output_quality: Literal["acceptable", "excellent", "professional", "cinematic"]
    technical_quality: str
    creative_impact: str
    consistency_level: str
    polish_level: str


class OptimizationRecommendation(Schema):
    dimension: OptimizationDimension
    recommendation: str
    priority: Literal["important", "recommended", "optional"]
    impact: Literal["low", "medium", "high"]
    effort: Literal["minimal", "moderate", "significant"]


class FallbackStrategy(Schema):
    trigger: str
    strategy: str


class PipelineRecommendations(Schema):
    recommended_workflow: list[WorkflowStep] = Field(default_factory=list)
    estimated_total_time: str
    quality_targets: QualityTargetSummary
    optimization_recommendations: list[OptimizationRecommendation] = Field(default_factory=list)
    fallback_strategies: list[FallbackStrategy] = Field(default_factory=list)
    success_metrics: list[str] = Field(default_factory=list)


# =============================================================================
# processing_insights
# =============================================================================


class StageModelUsage(Schema):
    stage: Literal["query_analysis", "asset_analysis", "synthesis", "assembly"]
    models: list[str] = Field(default_factory=list)
    success_rate: float = Field(ge=0.0, le=1.0)
    processing_time_ms: int = Field(ge=0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class ConfidenceBreakdown(Schema):
    query_analysis: float = Field(ge=0.0, le=1.0)
    asset_analysis: float | None = Field(default=None, ge=0.0, le=1.0)
    synthesis: float = Field(ge=0.0, le=1.0)
    overall: float = Field(ge=0.0, le=1.0)


class QualityAssessments(Schema):
    data_completeness: float = Field(ge=0.0, le=1.0)
    analysis_depth: Literal["basic", "detailed", "comprehensive"]
    reliability: Literal["low", "medium", "high"]


class Note(Schema):
    note_type: Literal["warning", "info"]
    severity: Literal["low", "medium", "high"]
    category: Literal["validation", "provider", "asset", "synthesis", "gap"]
    message: str


class ProcessingInsights(Schema):
    model_usage_summary: list[StageModelUsage] = Field(default_factory=list)
    confidence_breakdown: ConfidenceBreakdown
    quality_assessments: QualityAssessments
    warnings_and_notes: list[Note] = Field(default_factory=list)


# =============================================================================
# Document
# =============================================================================


class FinalAnalysisOutput(Schema):
    """Stage 4 output and the pipeline's only product."""

    analysis_metadata: AnalysisMetadata
    query_summary: QuerySummary
    assets_analysis: AssetsAnalysisSection
    global_understanding: GlobalUnderstanding
    creative_options: CreativeOptions
    pipeline_recommendations: PipelineRecommendations
    processing_insights: ProcessingInsights

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize with a stable field order for byte-identical reruns."""
        return self.model_dump_json(indent=indent)
