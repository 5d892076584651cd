"""Output Assembler: stage 4 of the analysis pipeline.

Restates the three earlier stage results in the shape of the final
document. Apart from aggregate scoring, nothing new is derived here:

- overall confidence: mean of the stage confidences (query intent, asset
  quality / 10, synthesis); the asset term is left out when no assets were
  supplied
- quality score: weighted blend of query confidence, asset confidence,
  synthesis confidence and completeness, scaled to 0-10
- completion status: partial when a critical gap exists or the overall
  confidence is strictly below the configured threshold

Validation failure of the assembled document is pipeline-fatal.
"""

from __future__ import annotations

import logging
import math
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from dreamcut import PIPELINE_VERSION
from dreamcut.ai.profiles import get_profile, rank_profiles
from dreamcut.ai.query_analyzer import QueryAnalysisOutcome, modifier_values
from dreamcut.config import GapAnalysisDepth, ScoringConfig
from dreamcut.core.models import (
    AnalysisStatus,
    AssetAnalysis,
    AssetAnalysisResult,
    ImpactLevel,
    OutputType,
    QueryAnalysis,
    first_value,
)
from dreamcut.core.project import UnifiedProjectUnderstanding
from dreamcut.core.report import CompletionStatus, FinalAnalysisOutput
from dreamcut.core.validation import validate_stage

logger = logging.getLogger(__name__)

STAGE = "assembly"

MAX_ALTERNATIVES = 2


# =============================================================================
# Mapping Tables
# =============================================================================


QUERY_GAP_SUMMARIES: dict[str, tuple[str, ImpactLevel, str, str]] = {
    "missing_subject": (
        "content",
        ImpactLevel.HIGH,
        "The request does not name a subject",
        "Describe what the piece should be about",
    ),
    "missing_duration": (
        "technical",
        ImpactLevel.MEDIUM,
        "No target duration was given",
        "State a target length, for example 30 seconds",
    ),
    "missing_aspect_ratio": (
        "technical",
        ImpactLevel.LOW,
        "No aspect ratio was given",
        "Name an aspect ratio such as 16:9 or 9:16",
    ),
    "missing_style": (
        "creative",
        ImpactLevel.LOW,
        "No visual style was given",
        "Name a style, for example cinematic or minimalist",
    ),
    "missing_mood": (
        "creative",
        ImpactLevel.LOW,
        "No mood was given",
        "Describe the feel you want, for example energetic or calm",
    ),
    "missing_platform": (
        "platform",
        ImpactLevel.LOW,
        "No target platform was given",
        "Say where the piece will be published",
    ),
    "missing_target_audience": (
        "audience",
        ImpactLevel.LOW,
        "No target audience was given",
        "Say who the piece is for",
    ),
}

CHALLENGE_TYPES = {
    "content": "content",
    "style": "creative",
    "technical": "technical",
    "quality": "quality",
}

CHALLENGE_IMPACT = {
    ImpactLevel.LOW: "minimal",
    ImpactLevel.MEDIUM: "moderate",
    ImpactLevel.HIGH: "significant",
    ImpactLevel.CRITICAL: "major",
}

RESOLUTION_CONFIDENCE = {
    ImpactLevel.LOW: 0.9,
    ImpactLevel.MEDIUM: 0.7,
    ImpactLevel.HIGH: 0.5,
    ImpactLevel.CRITICAL: 0.3,
}

QUALITY_LEVELS = {
    "standard": "standard",
    "high": "high",
    "professional": "high",
    "cinema": "cinema",
}

OUTPUT_QUALITY = {
    "standard": "acceptable",
    "high": "excellent",
    "professional": "professional",
    "cinema": "cinematic",
}

STEP_CATEGORIES = {
    "Asset Enhancement": "preparation",
    "Content Creation": "creation",
    "Asset Integration": "integration",
    "Final Polish": "finishing",
}

SKILL_LEVELS = {
    "easy": "beginner",
    "moderate": "intermediate",
    "complex": "advanced",
    "expert": "expert",
}

STEP_SUCCESS = {"easy": 0.95, "moderate": 0.85, "complex": 0.75, "expert": 0.65}

# (tool type, alternatives) per tool category; unknown categories are utilities.
TOOL_CATALOG: dict[str, tuple[str, list[str]]] = {
    "video_editor": ("editor", ["DaVinci Resolve", "Premiere Pro"]),
    "image_editor": ("editor", ["Photoshop", "GIMP"]),
    "audio_editor": ("editor", ["Audacity", "Adobe Audition"]),
    "content_creator": ("generator", ["Canva", "CapCut"]),
    "compositing": ("editor", ["After Effects", "Fusion"]),
    "upscaling": ("enhancer", ["Topaz", "Real-ESRGAN"]),
    "enhancement": ("enhancer", ["Topaz", "Lightroom"]),
    "quality_enhancement": ("enhancer", ["Topaz", "Lightroom"]),
    "quality_enhancer": ("enhancer", ["Topaz", "Lightroom"]),
    "color_correction": ("enhancer", ["DaVinci Resolve", "Lightroom"]),
    "style_transfer": ("generator", ["Runway", "Stable Diffusion"]),
    "format_conversion": ("converter", ["FFmpeg", "HandBrake"]),
    "export_optimization": ("converter", ["FFmpeg", "HandBrake"]),
    "mixing": ("editor", ["Reaper", "Logic Pro"]),
    "mastering": ("enhancer", ["iZotope Ozone", "LANDR"]),
}

OPTIMIZATION_PRIORITY = {"high": "important", "medium": "recommended", "low": "optional"}

CLARITY_WORDS = ("style", "color", "mood", "tone", "scene", "action", "character", "setting")

_MINUTES = re.compile(r"(\d+)(?:-(\d+))?\s*minutes?")

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


# =============================================================================
# Formatting Helpers
# =============================================================================


def format_file_size(size_bytes: int) -> str:
    """Human-readable size in 1024-based units.

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
    """
    if size_bytes == 0:
        return "0 Bytes"
    exponent = 0
    while size_bytes >= 1024 ** (exponent + 1) and exponent < len(SIZE_UNITS) - 1:
        exponent += 1
    value = round(size_bytes / 1024**exponent, 2)
    return f"{value:g} {SIZE_UNITS[exponent]}"


def format_duration(seconds: float) -> str:
    """Format seconds as "45s", "2m 5s" or "1h 3m"."""
    if seconds < 60:
        return f"{round(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {round(seconds % 60)}s"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"


def quality_tier(score: float) -> str:
    if score >= 9:
        return "professional"
    if score >= 7:
        return "excellent"
    if score >= 5:
        return "good"
    if score >= 3:
        return "fair"
    return "poor"


def derive_urgency(text: str | None) -> str:
    if not text:
        return "low"
    lowered = text.lower()
    if any(word in lowered for word in ("urgent", "asap", "immediate")):
        return "urgent"
    if any(word in lowered for word in ("soon", "quick", "fast")):
        return "high"
    if any(word in lowered for word in ("standard", "normal")):
        return "medium"
    return "low"


def estimate_timeline(durations: list[str]) -> str:
    """Total of the midpoints of "N-M minutes" ranges, in the largest fitting unit."""
    total = 0.0
    for duration in durations:
        match = _MINUTES.search(duration)
        if match:
            low = int(match.group(1))
            high = int(match.group(2)) if match.group(2) else low
            total += (low + high) / 2
    if total == 0:
        return "Variable"
    if total < 60:
        return f"{round(total)} minutes"
    if total < 1440:
        return f"{round(total / 60)} hours"
    return f"{round(total / 1440)} days"


def prompt_clarity(prompt: str) -> float:
    """Clarity on a 1-10 scale, returned as a fraction in [0.1, 1.0]."""
    lowered = prompt.lower()
    score = 5
    if len(prompt) > 20:
        score += 2
    if len(prompt) > 50:
        score += 1
    score += sum(1 for word in CLARITY_WORDS if word in lowered)
    if len(prompt) < 10:
        score -= 3
    return max(1, min(10, score)) / 10


def prompt_improvements(prompt: str, output_type: OutputType) -> list[str]:
    lowered = prompt.lower()
    improvements = []
    if len(prompt) < 10:
        improvements.append("Add more specific details about what you want to create")
    if not any(word in lowered for word in ("style", "mood", "tone")):
        improvements.append("Specify the style, mood, or tone you prefer")
    if output_type == OutputType.VIDEO and "scene" not in lowered and "action" not in lowered:
        improvements.append("Describe the scenes or actions you want to include")
    if output_type == OutputType.IMAGE and "color" not in lowered and "composition" not in lowered:
        improvements.append("Mention preferred colors or composition style")
    return improvements or ["Prompt is clear and detailed"]


def asset_processing_time(analysis: AssetAnalysis) -> str:
    low_quality = analysis.metadata.quality_score < 5
    minutes = {"image": (5, 2), "video": (15, 8), "audio": (3, 1)}.get(
        analysis.kind.value, (2, 2)
    )
    return f"{minutes[0] if low_quality else minutes[1]} minutes"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


# =============================================================================
# Scoring
# =============================================================================


def completion_status(
    overall_confidence: float, has_critical_gap: bool, threshold: float = 0.5
) -> CompletionStatus:
    """Partial iff a critical gap exists or confidence is strictly below the threshold.

    Example:
        >>> completion_status(0.5, False)
        <CompletionStatus.COMPLETE: 'complete'>
    """
    if has_critical_gap or overall_confidence < threshold:
        return CompletionStatus.PARTIAL
    return CompletionStatus.COMPLETE


def stage_confidences(
    query: QueryAnalysis, assets: AssetAnalysisResult, project: UnifiedProjectUnderstanding
) -> dict[str, float | None]:
    """Per-stage confidences; the asset stage has none in asset-free mode."""
    return {
        "query_analysis": query.intent.confidence,
        "asset_analysis": (
            None if assets.asset_free else round(assets.summary.overall_quality_score / 10, 4)
        ),
        "synthesis": project.synthesis_metadata.synthesis_confidence,
    }


def overall_confidence(confidences: dict[str, float | None]) -> float:
    return round(_mean([value for value in confidences.values() if value is not None]), 4)


def quality_score(
    confidences: dict[str, float | None], completeness: float, scoring: ScoringConfig
) -> int:
    """Weighted blend scaled to 0-10; weights of absent terms are dropped."""
    terms = [
        (scoring.quality_weight_query, confidences["query_analysis"]),
        (scoring.quality_weight_assets, confidences["asset_analysis"]),
        (scoring.quality_weight_synthesis, confidences["synthesis"]),
        (scoring.quality_weight_completeness, completeness),
    ]
    present = [(weight, value) for weight, value in terms if value is not None]
    total_weight = sum(weight for weight, _ in present)
    if total_weight <= 0:
        return 0
    blended = sum(weight * value for weight, value in present) / total_weight
    return max(0, min(10, _round_half_up(blended * 10)))


# =============================================================================
# Assembler
# =============================================================================


class OutputAssembler:
    """Stage 4: build and validate the final document.

    Example:
        >>> assembler = OutputAssembler(ScoringConfig())
        >>> document = assembler.assemble(outcome, asset_result, project, {"query_analysis": 812})
        >>> document.analysis_metadata.completion_status
    """

    def __init__(
        self,
        scoring: ScoringConfig | None = None,
        analysis_depth: GapAnalysisDepth = GapAnalysisDepth.COMPREHENSIVE,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        timer: Callable[[], float] = time.perf_counter,
        pipeline_version: str = PIPELINE_VERSION,
    ) -> None:
        self._scoring = scoring or ScoringConfig()
        self._analysis_depth = analysis_depth
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or (lambda: f"analysis_{uuid.uuid4().hex[:12]}")
        self._timer = timer
        self._pipeline_version = pipeline_version
        self._logger = logging.getLogger(f"{__name__}.OutputAssembler")

    def assemble(
        self,
        query_outcome: QueryAnalysisOutcome,
        asset_result: AssetAnalysisResult,
        project: UnifiedProjectUnderstanding,
        stage_timings: dict[str, int] | None = None,
    ) -> FinalAnalysisOutput:
        """Build the final document from the three earlier stage results.

        Args:
            query_outcome: Stage 1 outcome.
            asset_result: Stage 2 result.
            project: Stage 3 understanding.
            stage_timings: Elapsed milliseconds keyed by stage name.

        Raises:
            SchemaValidationError: If the assembled document is malformed.
        """
        start = self._timer()
        timings = dict(stage_timings or {})
        query = query_outcome.analysis

        confidences = stage_confidences(query, asset_result, project)
        overall = overall_confidence(confidences)
        critical = project.gap_analysis.count_gaps(ImpactLevel.CRITICAL)
        status = completion_status(
            overall, critical > 0, self._scoring.partial_confidence_threshold
        )

        feasibility = self.project_feasibility(asset_result, project)
        sections = {
            "query_summary": self.query_summary(query, project),
            "assets_analysis": self.assets_section(asset_result, project),
            "global_understanding": self.global_understanding(
                asset_result, project, overall, feasibility
            ),
            "creative_options": self.creative_options(query, asset_result, project),
            "pipeline_recommendations": self.pipeline_recommendations(project),
        }

        timings["assembly"] = self._elapsed_ms(start)
        data = {
            "analysis_metadata": {
                "analysis_id": self._id_factory(),
                "timestamp": self._clock(),
                "total_processing_time_ms": sum(timings.values()),
                "pipeline_version": self._pipeline_version,
                "analyzer_confidence": overall,
                "completion_status": status.value,
                "quality_score": quality_score(
                    confidences, project.synthesis_metadata.completeness_score, self._scoring
                ),
                "critical_gap_count": critical,
            },
            **sections,
            "processing_insights": self.processing_insights(
                query_outcome, asset_result, project, confidences, overall, timings
            ),
        }

        document = validate_stage(FinalAnalysisOutput, data, stage=STAGE)
        self._logger.info(
            f"Assembled {status.value} document "
            f"(confidence {overall:.2f}, quality {document.analysis_metadata.quality_score}/10)"
        )
        return document

    # -------------------------------------------------------------------------
    # query_summary
    # -------------------------------------------------------------------------

    def query_summary(
        self, query: QueryAnalysis, project: UnifiedProjectUnderstanding
    ) -> dict[str, Any]:
        intent = query.intent
        constraints = query.constraints
        unified = project.unified_constraints
        specs = unified.output_specifications
        platform = unified.platform_constraints
        creative = unified.creative_constraints
        original = query.processing_metadata.original_query

        duration = first_value(constraints.duration_seconds) or first_value(
            constraints.audio_length_seconds
        )
        urgency_text = " ".join(
            part for part in (constraints.timeline, constraints.deadline, query.normalized_query) if part
        )

        gaps = []
        for flag in query.gaps.flagged():
            gap_type, impact, description, suggestion = QUERY_GAP_SUMMARIES[flag]
            gaps.append(
                {
                    "gap_type": gap_type,
                    "description": description,
                    "impact": impact.value,
                    "suggestion": suggestion,
                }
            )
        for question in query.gaps.clarification_needed:
            gaps.append(
                {
                    "gap_type": "clarification",
                    "description": question,
                    "impact": ImpactLevel.MEDIUM.value,
                    "suggestion": "Answer the question in a follow-up request",
                }
            )

        return {
            "original_prompt": original,
            "normalized_prompt": query.normalized_query,
            "parsed_intent": {
                "primary_output": intent.primary_output_type.value,
                "confidence": intent.confidence,
                "secondary_outputs": [t.value for t in intent.secondary_output_types],
                "intent_description": intent.reasoning
                or f"Request for {intent.primary_output_type.value} output",
                "user_goal": intent.user_goal,
            },
            "extracted_constraints": {
                "technical": {
                    "output_count": first_value(constraints.image_count),
                    "duration_seconds": duration,
                    "aspect_ratio": first_value(constraints.aspect_ratio),
                    "resolution": first_value(constraints.resolution),
                    "format_preferences": list(constraints.format_preferences or []),
                    "quality_level": QUALITY_LEVELS[specs.quality_target],
                },
                "creative": {
                    "style": modifier_values(query.modifiers, "style"),
                    "mood": modifier_values(query.modifiers, "mood"),
                    "theme": modifier_values(query.modifiers, "theme"),
                    "colors": list(creative.color_palette),
                    "brand_guidelines": creative.brand_requirements,
                },
                "platform": {
                    "target_platforms": list(platform.target_platforms),
                    "distribution_format": platform.distribution_format,
                    "platform_specific_constraints": {
                        name: requirement.model_dump(mode="json")
                        for name, requirement in platform.platform_requirements.items()
                    },
                },
                "timeline": {
                    "urgency": derive_urgency(urgency_text),
                    "deadline": constraints.deadline,
                    "estimated_timeline": estimate_timeline(
                        [
                            step.estimated_duration
                            for step in project.production_recommendations.pipeline_steps
                        ]
                    ),
                },
            },
            "identified_gaps": gaps,
            "prompt_clarity_score": prompt_clarity(original),
            "suggested_improvements": prompt_improvements(original, intent.primary_output_type),
        }

    # -------------------------------------------------------------------------
    # assets_analysis
    # -------------------------------------------------------------------------

    def assets_section(
        self, asset_result: AssetAnalysisResult, project: UnifiedProjectUnderstanding
    ) -> dict[str, Any]:
        summary = asset_result.summary
        plan = project.asset_utilization
        priorities = {entry.asset_id: entry.processing_priority for entry in plan.primary_assets}
        usable = [a for a in asset_result.analyses if not a.failed]

        individual = []
        for analysis in asset_result.analyses:
            metadata = analysis.metadata
            bucket = plan.bucket_of(analysis.asset_id) or "unused"
            if analysis.asset_id in priorities:
                priority = priorities[analysis.asset_id]
            elif analysis.needs.needs_enhancement:
                priority = "medium"
            else:
                priority = "low"

            individual.append(
                {
                    "asset_id": analysis.asset_id,
                    "kind": analysis.kind.value,
                    "source": analysis.source,
                    "status": analysis.processing.status.value,
                    "metadata_summary": {
                        "file_size": (
                            format_file_size(metadata.file_size_bytes)
                            if metadata.file_size_bytes is not None
                            else None
                        ),
                        "dimensions": metadata.dimensions,
                        "duration": (
                            format_duration(metadata.duration_seconds)
                            if metadata.duration_seconds is not None
                            else None
                        ),
                        "format": metadata.format,
                        "quality_score": metadata.quality_score,
                    },
                    "content_summary": {
                        "description": analysis.content.description,
                        "key_elements": list(analysis.content.detected_elements),
                        "style": analysis.content.style,
                        "mood": analysis.content.mood,
                        "technical_quality": quality_tier(metadata.quality_score),
                    },
                    "alignment": {
                        "alignment_score": analysis.alignment.alignment_score,
                        "utilization": bucket,
                        "contribution": "; ".join(analysis.alignment.contribution_notes)
                        or _contribution(bucket),
                    },
                    "processing_recommendations": {
                        "priority": priority,
                        "estimated_processing_time": asset_processing_time(analysis),
                        "enhancements": list(analysis.needs.enhancement_types),
                        "tools": list(analysis.needs.recommended_tools),
                    },
                    "model_used": analysis.processing.model_used,
                    "error": analysis.processing.error,
                }
            )

        average = summary.overall_quality_score
        if not usable:
            distribution = "none"
        elif average >= 8:
            distribution = "excellent"
        elif average >= 6:
            distribution = "good"
        elif average >= 4:
            distribution = "fair"
        else:
            distribution = "poor"

        return {
            "total_assets": summary.total_assets,
            "asset_breakdown": dict(summary.by_kind),
            "processing_summary": {
                "successful": summary.successful_analyses,
                "partial": summary.partial_analyses,
                "failed": summary.failed_analyses,
                "total_processing_time_ms": summary.processing_time_ms,
            },
            "individual_assets": individual,
            "asset_quality_overview": {
                "average_quality": average,
                "high_quality_count": sum(1 for a in usable if a.metadata.quality_score >= 8),
                "unusable_count": summary.failed_analyses,
                "quality_distribution": distribution,
            },
        }

    # -------------------------------------------------------------------------
    # global_understanding
    # -------------------------------------------------------------------------

    def project_feasibility(
        self, asset_result: AssetAnalysisResult, project: UnifiedProjectUnderstanding
    ) -> dict[str, Any]:
        gaps = project.gap_analysis
        metadata = project.synthesis_metadata
        by_type = {gap_type: 0 for gap_type in CHALLENGE_TYPES}
        for gap in gaps.identified_gaps:
            by_type[gap.gap_type] += 1
        contradiction_types = [c.contradiction_type for c in gaps.contradictions]

        technical = 1.0 - 0.15 * by_type["technical"] - 0.1 * contradiction_types.count(
            "constraint_vs_asset"
        )
        creative = (
            0.5
            + 0.5 * project.unified_intent.confidence
            - 0.1 * by_type["style"]
            - 0.1 * contradiction_types.count("asset_vs_asset")
        )
        resource = metadata.completeness_score
        scores = [_clamp(technical), _clamp(creative), _clamp(resource)]

        risks = []
        if gaps.has_critical_gap():
            risks.append("Critical gaps may impact project success")
        if metadata.synthesis_confidence < 0.7:
            risks.append("Low synthesis confidence may affect output quality")
        if asset_result.summary.failed_analyses:
            risks.append(f"{asset_result.summary.failed_analyses} asset analysis(es) failed")
        if "intent_vs_assets" in contradiction_types:
            risks.append("Available assets do not match the requested output")

        return {
            "technical_feasibility": scores[0],
            "creative_feasibility": scores[1],
            "resource_feasibility": scores[2],
            "overall_feasibility": round(_mean(scores), 4),
            "risk_factors": risks,
        }

    def global_understanding(
        self,
        asset_result: AssetAnalysisResult,
        project: UnifiedProjectUnderstanding,
        overall: float,
        feasibility: dict[str, Any],
    ) -> dict[str, Any]:
        plan = project.asset_utilization
        synthesis = project.creative_synthesis
        metadata = project.synthesis_metadata

        challenges = [
            {
                "challenge_type": CHALLENGE_TYPES[gap.gap_type],
                "description": gap.description,
                "impact": CHALLENGE_IMPACT[gap.impact],
                "resolution": gap.suggested_resolution,
                "resolution_confidence": RESOLUTION_CONFIDENCE[gap.impact],
            }
            for gap in project.gap_analysis.identified_gaps
        ]
        challenges.extend(
            {
                "challenge_type": "alignment",
                "description": contradiction.description,
                "impact": CHALLENGE_IMPACT[contradiction.severity],
                "resolution": contradiction.resolution_strategy,
                "resolution_confidence": RESOLUTION_CONFIDENCE[contradiction.severity],
            }
            for contradiction in project.gap_analysis.contradictions
        )

        return {
            "project_overview": {
                "title": metadata.project_title,
                "project_type": (
                    "creative_synthesis"
                    if project.unified_intent.primary_output_type == OutputType.MIXED
                    else "content_creation"
                ),
                "complexity": metadata.complexity_classification,
                "scope": _project_scope(
                    metadata.complexity_classification,
                    len(plan.all_ids()) - len(plan.unused_assets),
                ),
                "success_probability": round((overall + feasibility["overall_feasibility"]) / 2, 4),
            },
            "unified_creative_direction": {
                "direction": synthesis.unified_creative_direction,
                "source": synthesis.direction_source,
                "style_fusion": synthesis.style_fusion_strategy,
                "mood_plan": synthesis.mood_integration_plan,
                "narrative_structure": synthesis.narrative_structure,
            },
            "asset_utilization": {
                "primary": [entry.asset_id for entry in plan.primary_assets],
                "reference": [entry.asset_id for entry in plan.reference_assets],
                "supporting": [entry.asset_id for entry in plan.supporting_assets],
                "unused": [entry.asset_id for entry in plan.unused_assets],
                "utilization_rate": plan.utilization_rate,
            },
            "asset_utilization_strategy": _utilization_strategy(project, asset_result),
            "identified_challenges": challenges,
            "project_feasibility": feasibility,
        }

    # -------------------------------------------------------------------------
    # creative_options
    # -------------------------------------------------------------------------

    def creative_options(
        self,
        query: QueryAnalysis,
        asset_result: AssetAnalysisResult,
        project: UnifiedProjectUnderstanding,
    ) -> dict[str, Any]:
        synthesis = project.creative_synthesis
        profile_ref = project.synthesis_metadata.creative_profile
        profile = get_profile(profile_ref.profile_id)
        kinds = []
        for analysis in asset_result.analyses:
            if not analysis.failed and analysis.kind not in kinds:
                kinds.append(analysis.kind)

        runners_up = [
            match
            for match in rank_profiles(
                query.normalized_query,
                project.unified_intent.primary_output_type,
                modifier_values(query.modifiers, "platform"),
                kinds,
            )
            if match.profile.id != profile.id
        ][:MAX_ALTERNATIVES]

        alternatives = [
            {
                "name": f"{match.profile.name} Approach",
                "description": f"{match.profile.goal}: {match.profile.core_concept.lower()}",
                "suitability": match.confidence,
            }
            for match in runners_up
        ]
        alternatives.append(
            {
                "name": "Minimalist Approach",
                "description": "Simplified processing focused on the core requirements",
                "suitability": 0.7,
            }
        )

        enhancements = [
            {
                "name": "Visual Polish",
                "description": "Enhanced visual quality and aesthetic appeal",
                "effort": "moderate",
            }
        ]
        if any(entry.enhancement_plan for entry in project.asset_utilization.primary_assets):
            enhancements.append(
                {
                    "name": "Source Enhancement",
                    "description": "Upgrade the primary assets before composition",
                    "effort": "moderate",
                }
            )
        if synthesis.brand_voice:
            enhancements.append(
                {
                    "name": "Brand Consistency Pass",
                    "description": synthesis.brand_voice,
                    "effort": "minimal",
                }
            )

        variations = [
            {"name": f"{profile.name} Style", "description": profile.style_direction},
        ]
        variations.extend(
            {"name": f"{match.profile.name} Style", "description": match.profile.style_direction}
            for match in runners_up
        )
        variations.append(
            {"name": "Classic Style", "description": "Traditional, timeless aesthetic approach"}
        )

        return {
            "primary_creative_direction": {
                "concept": synthesis.unified_creative_direction,
                "visual_approach": profile.visual_approach,
                "style_direction": synthesis.style_fusion_strategy,
                "mood_atmosphere": synthesis.mood_integration_plan,
            },
            "alternative_approaches": alternatives,
            "creative_enhancements": enhancements,
            "style_variations": variations,
            "creative_profile": profile_ref.model_dump(mode="json"),
            "narrative_spine": synthesis.narrative_spine.model_dump(mode="json"),
        }

    # -------------------------------------------------------------------------
    # pipeline_recommendations
    # -------------------------------------------------------------------------

    def pipeline_recommendations(self, project: UnifiedProjectUnderstanding) -> dict[str, Any]:
        recommendations = project.production_recommendations
        specs = project.unified_constraints.output_specifications
        targets = recommendations.quality_targets

        workflow = []
        previous: str | None = None
        for number, step in enumerate(recommendations.pipeline_steps, start=1):
            workflow.append(
                {
                    "step_number": number,
                    "name": step.step_name,
                    "category": STEP_CATEGORIES.get(step.step_name, "creation"),
                    "description": step.description,
                    "tools": [_tool(category, step.description) for category in step.tool_categories],
                    "estimated_duration": step.estimated_duration,
                    "skill_level": SKILL_LEVELS[step.complexity],
                    "success_probability": STEP_SUCCESS[step.complexity],
                    "dependencies": [previous] if previous else [],
                }
            )
            previous = step.step_name

        fallbacks = []
        if project.asset_utilization.primary_assets:
            fallbacks.append(
                {
                    "trigger": "Primary assets fail processing",
                    "strategy": "Use alternative assets or generate new content",
                }
            )
        else:
            fallbacks.append(
                {
                    "trigger": "No usable source material",
                    "strategy": "Generate the content from the creative brief",
                }
            )
        if project.creative_synthesis.direction_source != "ai":
            fallbacks.append(
                {
                    "trigger": "Templated creative direction is too generic",
                    "strategy": "Rerun with AI synthesis enabled or refine the request",
                }
            )

        return {
            "recommended_workflow": workflow,
            "estimated_total_time": estimate_timeline(
                [step.estimated_duration for step in recommendations.pipeline_steps]
            ),
            "quality_targets": {
                "output_quality": OUTPUT_QUALITY[specs.quality_target],
                "technical_quality": targets.technical_quality,
                "creative_impact": targets.creative_impact,
                "consistency_level": targets.consistency_level,
                "polish_level": targets.polish_level,
            },
            "optimization_recommendations": [
                {
                    "dimension": suggestion.dimension,
                    "recommendation": suggestion.suggestion,
                    "priority": OPTIMIZATION_PRIORITY[suggestion.impact],
                    "impact": suggestion.impact,
                    "effort": suggestion.effort,
                }
                for suggestion in recommendations.optimization_suggestions
            ],
            "fallback_strategies": fallbacks,
            "success_metrics": [
                "All assets processed",
                f"Quality target '{specs.quality_target}' met",
                "Output delivered in the requested format",
            ],
        }

    # -------------------------------------------------------------------------
    # processing_insights
    # -------------------------------------------------------------------------

    def processing_insights(
        self,
        query_outcome: QueryAnalysisOutcome,
        asset_result: AssetAnalysisResult,
        project: UnifiedProjectUnderstanding,
        confidences: dict[str, float | None],
        overall: float,
        timings: dict[str, int],
    ) -> dict[str, Any]:
        summary = asset_result.summary
        attempts = query_outcome.attempts
        query_success = (
            sum(1 for attempt in attempts if attempt.succeeded) / len(attempts) if attempts else 1.0
        )
        asset_success = (
            (summary.successful_analyses + summary.partial_analyses) / summary.total_assets
            if summary.total_assets
            else 1.0
        )

        usage = [
            {
                "stage": "query_analysis",
                "models": [query_outcome.provider],
                "success_rate": round(query_success, 4),
                "processing_time_ms": timings.get("query_analysis", query_outcome.elapsed_ms),
                "confidence": confidences["query_analysis"],
            },
            {
                "stage": "asset_analysis",
                "models": list(summary.models_used),
                "success_rate": round(asset_success, 4),
                "processing_time_ms": timings.get("asset_analysis", summary.processing_time_ms),
                "confidence": confidences["asset_analysis"],
            },
            {
                "stage": "synthesis",
                "models": list(project.synthesis_metadata.ai_models_used),
                "success_rate": 1.0,
                "processing_time_ms": timings.get(
                    "synthesis", project.synthesis_metadata.processing_time_ms
                ),
                "confidence": confidences["synthesis"],
            },
            {
                "stage": "assembly",
                "models": [],
                "success_rate": 1.0,
                "processing_time_ms": timings.get("assembly", 0),
                "confidence": None,
            },
        ]

        if overall >= 0.75:
            reliability = "high"
        elif overall >= self._scoring.partial_confidence_threshold:
            reliability = "medium"
        else:
            reliability = "low"

        return {
            "model_usage_summary": usage,
            "confidence_breakdown": {**confidences, "overall": overall},
            "quality_assessments": {
                "data_completeness": project.synthesis_metadata.completeness_score,
                "analysis_depth": self._analysis_depth.value,
                "reliability": reliability,
            },
            "warnings_and_notes": collect_notes(query_outcome, asset_result, project),
        }

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._timer() - start) * 1000))


# =============================================================================
# Helpers
# =============================================================================


def collect_notes(
    query_outcome: QueryAnalysisOutcome,
    asset_result: AssetAnalysisResult,
    project: UnifiedProjectUnderstanding,
) -> list[dict[str, Any]]:
    """Flatten normalization notes and stage warnings into one list, stage order."""
    notes = [_note("info", "low", "validation", note) for note in query_outcome.notes]

    metadata = query_outcome.analysis.processing_metadata
    if metadata.fallback_used:
        notes.append(
            _note(
                "warning",
                "medium",
                "provider",
                f"Query analysis fell back to '{query_outcome.provider}' after "
                f"{len(metadata.providers_attempted) - 1} failed provider(s)",
            )
        )

    notes.extend(_note("warning", "medium", "asset", w) for w in asset_result.warnings)
    for analysis in asset_result.analyses:
        if analysis.processing.status == AnalysisStatus.PARTIAL:
            notes.append(
                _note(
                    "info",
                    "low",
                    "asset",
                    f"Asset {analysis.asset_id} was analysed from its description only",
                )
            )

    notes.extend(
        _note("warning", "low", "synthesis", w) for w in project.synthesis_metadata.warnings
    )
    for gap in project.gap_analysis.identified_gaps:
        if gap.impact == ImpactLevel.CRITICAL:
            notes.append(_note("warning", "high", "gap", f"Critical gap: {gap.description}"))
    for contradiction in project.gap_analysis.contradictions:
        notes.append(
            _note("warning", "medium", "gap", f"Contradiction: {contradiction.description}")
        )
    return notes


def _note(note_type: str, severity: str, category: str, message: str) -> dict[str, str]:
    return {"note_type": note_type, "severity": severity, "category": category, "message": message}


def _clamp(value: float) -> float:
    return round(max(0.1, min(1.0, value)), 4)


def _contribution(bucket: str) -> str:
    return {
        "primary": "Main content of the piece",
        "reference": "Style and quality reference",
        "supporting": "Complementary element",
        "unused": "Not used in this project",
    }[bucket]


def _project_scope(complexity: str, used_assets: int) -> str:
    if complexity == "highly_complex" or used_assets > 10:
        return "Large-scale project requiring extensive processing"
    if complexity == "complex" or used_assets > 5:
        return "Medium-scale project with moderate complexity"
    return "Small-scale project with straightforward requirements"


def _utilization_strategy(
    project: UnifiedProjectUnderstanding, asset_result: AssetAnalysisResult
) -> str:
    plan = project.asset_utilization
    if asset_result.asset_free:
        return "No assets supplied; all content is created from the brief"

    parts = []
    if plan.primary_assets:
        parts.append(
            f"Use {len(plan.primary_assets)} primary asset(s) as the main content foundation"
        )
    else:
        parts.append("No primary assets identified")
    if plan.reference_assets:
        parts.append(
            f"extract style and aesthetic elements from {len(plan.reference_assets)} reference asset(s)"
        )
    if plan.supporting_assets:
        parts.append(
            f"integrate {len(plan.supporting_assets)} supporting asset(s) as complementary elements"
        )
    if plan.unused_assets:
        parts.append(f"set aside {len(plan.unused_assets)} unused asset(s)")
    return "; ".join(parts)


def _tool(category: str, purpose: str) -> dict[str, Any]:
    tool_type, alternatives = TOOL_CATALOG.get(category, ("utility", []))
    return {
        "name": category.replace("_", " ").title(),
        "tool_type": tool_type,
        "purpose": purpose,
        "alternatives": list(alternatives),
    }
