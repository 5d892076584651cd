"""Combination Synthesizer: stage 3 of the analysis pipeline.

Combines the validated query analysis with the asset-stage result into one
``UnifiedProjectUnderstanding``. The derivation runs in a fixed order:

1. Unify intent (asset corroboration, mixed detection, creative direction)
2. Unify constraints (query values, then asset-derived values, then defaults)
3. Build the asset utilization plan (partition into four buckets)
4. Gap and contradiction analysis
5. Creative synthesis
6. Production recommendations
7. Synthesis metadata

Only the optional creative-direction call reaches a provider, and its
failure is recorded as a warning. The stage is fatal only when the derived
value fails schema validation.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable

from dreamcut.ai.chain import AllProvidersFailedError, FallbackChain
from dreamcut.ai.client import GenerationOptions, MalformedResponseError
from dreamcut.ai.profiles import ProfileMatch, detect_profile
from dreamcut.ai.prompts import build_prompt, get_prompt
from dreamcut.ai.query_analyzer import PLATFORM_DEFAULTS, detect_asset_requirements, modifier_values
from dreamcut.ai.vocabulary import BRAND_WORDS, COLOR_WORDS, STYLE_CONFLICTS, find_words
from dreamcut.config import AUTO, GapAnalysisDepth, OptimizationFocus, ScoringConfig, SynthesisConfig
from dreamcut.core.models import (
    AssetAnalysis,
    AssetAnalysisResult,
    ImpactLevel,
    MediaKind,
    OutputType,
    ProjectRole,
    QueryAnalysis,
    first_value,
)
from dreamcut.core.project import UnifiedProjectUnderstanding
from dreamcut.core.validation import validate_stage

logger = logging.getLogger(__name__)

STAGE = "synthesis"


@dataclass
class SynthesisOptions:
    """Stage 3 options."""

    enable_ai_synthesis: bool = True
    model_preference: str = AUTO
    gap_analysis_depth: GapAnalysisDepth = GapAnalysisDepth.COMPREHENSIVE
    enable_contradiction_resolution: bool = True
    optimization_focus: OptimizationFocus = OptimizationFocus.BALANCED

    @classmethod
    def from_config(cls, config: SynthesisConfig) -> "SynthesisOptions":
        return cls(
            enable_ai_synthesis=config.enable_ai_synthesis,
            model_preference=config.model_preference,
            gap_analysis_depth=config.gap_analysis_depth,
            enable_contradiction_resolution=config.enable_contradiction_resolution,
            optimization_focus=config.optimization_focus,
        )


@dataclass
class CreativeDirection:
    text: str
    source: str
    provider: str | None = None


@dataclass
class _Context:
    """Values shared between the synthesis steps of one run."""

    query: QueryAnalysis
    assets: AssetAnalysisResult
    usable: list[AssetAnalysis]
    profile: ProfileMatch
    warnings: list[str] = field(default_factory=list)

    @property
    def asset_free(self) -> bool:
        return self.assets.asset_free

    def analysis(self, asset_id: str) -> AssetAnalysis:
        for analysis in self.assets.analyses:
            if analysis.asset_id == asset_id:
                return analysis
        raise KeyError(asset_id)


# =============================================================================
# Tables
# =============================================================================


KIND_OUTPUT = {
    MediaKind.IMAGE: OutputType.IMAGE,
    MediaKind.VIDEO: OutputType.VIDEO,
    MediaKind.AUDIO: OutputType.AUDIO,
}

# Asset kinds able to feed each output medium.
SUPPORTING_KINDS = {
    OutputType.VIDEO: {MediaKind.VIDEO, MediaKind.IMAGE},
    OutputType.IMAGE: {MediaKind.IMAGE, MediaKind.VIDEO},
    OutputType.AUDIO: {MediaKind.AUDIO, MediaKind.VIDEO},
    OutputType.MIXED: {MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO},
}

CORROBORATING_KINDS = {
    OutputType.VIDEO: {MediaKind.VIDEO},
    OutputType.IMAGE: {MediaKind.IMAGE},
    OutputType.AUDIO: {MediaKind.AUDIO},
    OutputType.MIXED: {MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO},
}

DEFAULT_ASPECT_RATIO = {
    OutputType.IMAGE: "1:1",
    OutputType.VIDEO: "16:9",
    OutputType.AUDIO: "16:9",
    OutputType.MIXED: "16:9",
}

RESOLUTION_FOR_ASPECT = {
    "16:9": "1920x1080",
    "9:16": "1080x1920",
    "1:1": "1080x1080",
    "4:5": "1080x1350",
    "4:3": "1440x1080",
    "21:9": "2560x1080",
}

DEFAULT_DURATION_SECONDS = 30

FORMATS = {
    OutputType.VIDEO: (["mp4"], ["webm"]),
    OutputType.IMAGE: (["jpg", "png"], ["webp"]),
    OutputType.AUDIO: (["mp3"], ["ogg"]),
    OutputType.MIXED: (["mp4", "jpg"], ["webm", "webp"]),
}

PLATFORM_REQUIREMENTS = {
    "instagram": {"max_duration_seconds": 60, "aspect_ratios": ["1:1", "9:16"], "formats": ["mp4", "jpg"]},
    "youtube": {"max_duration_seconds": 3600, "aspect_ratios": ["16:9"], "formats": ["mp4"]},
    "tiktok": {"max_duration_seconds": 180, "aspect_ratios": ["9:16"], "formats": ["mp4"]},
}

ACCESSIBILITY = {
    OutputType.VIDEO: ["captions", "audio description"],
    OutputType.IMAGE: ["alt text", "sufficient colour contrast"],
    OutputType.AUDIO: ["transcript"],
    OutputType.MIXED: ["captions", "alt text", "transcript"],
}

BRAND_VOICE_WORDS = BRAND_WORDS + ("business", "professional")

CREATION_TOOLS = {
    OutputType.VIDEO: ["video_editor", "compositing", "audio_sync", "transition_effects"],
    OutputType.IMAGE: ["image_editor", "compositing", "color_correction", "style_transfer"],
    OutputType.AUDIO: ["audio_editor", "mixing", "mastering", "effects_processing"],
    OutputType.MIXED: ["content_creator", "asset_manager", "quality_enhancer"],
}

CREATION_BASE_MINUTES = {OutputType.VIDEO: 45, OutputType.AUDIO: 30}

BUDGET_TIERS = ("low", "medium", "high")

# Platforms that raise the technical bar, and those that reward a strong hook.
PROFESSIONAL_PLATFORMS = {"linkedin", "professional", "business"}
SHORT_FORM_PLATFORMS = {"tiktok", "instagram", "twitter"}


def aspect_ratio_for(width: int, height: int) -> str:
    """Name the aspect ratio of a frame, snapping to common ratios."""
    ratio = width / height
    for name, value in (("16:9", 16 / 9), ("1:1", 1.0), ("9:16", 9 / 16)):
        if abs(ratio - value) < 0.1:
            return name
    return f"{width}:{height}"


def quality_target_for(overall_quality: float) -> str:
    if overall_quality >= 9:
        return "cinema"
    if overall_quality >= 7:
        return "professional"
    if overall_quality >= 5:
        return "high"
    return "standard"


def _most_common(values: list[str]) -> str | None:
    if not values:
        return None
    counts = Counter(values)
    best = max(counts.values())
    return next(value for value in values if counts[value] == best)


def _unique(values: list[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


# =============================================================================
# Synthesizer
# =============================================================================


class CombinationSynthesizer:
    """Stage 3: derive the unified project understanding.

    Example:
        >>> synthesizer = CombinationSynthesizer(creative_chain, SynthesisOptions())
        >>> project = asyncio.run(synthesizer.synthesize(query_analysis, asset_result))
        >>> project.asset_utilization.utilization_rate
    """

    def __init__(
        self,
        chain: FallbackChain | None = None,
        options: SynthesisOptions | None = None,
        scoring: ScoringConfig | None = None,
        generation: GenerationOptions | None = None,
        id_factory: Callable[[], str] | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._chain = chain
        self._options = options or SynthesisOptions()
        self._scoring = scoring or ScoringConfig()
        self._generation = generation or GenerationOptions()
        self._id_factory = id_factory or (lambda: f"project_{uuid.uuid4().hex[:12]}")
        self._timer = timer
        self._logger = logging.getLogger(f"{__name__}.CombinationSynthesizer")

    @property
    def options(self) -> SynthesisOptions:
        return self._options

    async def synthesize(
        self, query_analysis: QueryAnalysis, asset_result: AssetAnalysisResult
    ) -> UnifiedProjectUnderstanding:
        """Run all seven derivation steps and validate the result.

        Raises:
            SchemaValidationError: If the derived understanding is malformed.
        """
        start = self._timer()
        usable = [a for a in asset_result.analyses if not a.failed]
        intent = self.unify_intent(query_analysis, asset_result)
        platforms = modifier_values(query_analysis.modifiers, "platform")
        profile = detect_profile(
            query_analysis.normalized_query,
            OutputType(intent["primary_output_type"]),
            platforms,
            _unique([a.kind for a in usable]),
        )
        ctx = _Context(query_analysis, asset_result, usable, profile)

        direction = await self.creative_direction(ctx, intent)
        constraints = self.unify_constraints(ctx, intent)
        utilization = self.build_utilization_plan(ctx, intent)
        gaps = self.analyze_gaps(ctx, intent, constraints, utilization)
        synthesis = self.synthesize_creative(ctx, intent, utilization, direction)
        recommendations = self.recommend_production(ctx, intent, constraints, utilization)
        metadata = self.build_metadata(
            ctx, intent, utilization, gaps, direction, self._elapsed_ms(start)
        )

        data = {
            "unified_intent": intent,
            "unified_constraints": constraints,
            "asset_utilization": utilization,
            "gap_analysis": gaps,
            "creative_synthesis": synthesis,
            "production_recommendations": recommendations,
            "synthesis_metadata": metadata,
        }
        project = validate_stage(UnifiedProjectUnderstanding, data, stage=STAGE)
        self._logger.info(
            f"Synthesized {project.unified_intent.primary_output_type.value} project "
            f"(confidence {project.synthesis_metadata.synthesis_confidence:.2f}, "
            f"{len(project.gap_analysis.identified_gaps)} gap(s))"
        )
        return project

    # -------------------------------------------------------------------------
    # Step 1: intent
    # -------------------------------------------------------------------------

    def unify_intent(
        self, query_analysis: QueryAnalysis, asset_result: AssetAnalysisResult
    ) -> dict[str, Any]:
        """Start from the query's intent and let the usable assets adjust it."""
        declared = query_analysis.intent
        selected = query_analysis.processing_metadata.selected_output_type
        primary = declared.primary_output_type
        confidence = declared.confidence
        reasoning = declared.reasoning
        secondary = list(declared.secondary_output_types)

        kinds = Counter(
            a.kind for a in asset_result.analyses if not a.failed and a.kind in KIND_OUTPUT
        )
        corroborated = any(kinds[k] > 0 for k in CORROBORATING_KINDS[primary])
        if corroborated:
            confidence = min(1.0, confidence + self._scoring.corroboration_boost)
            reasoning = f"{reasoning} Assets corroborate {primary.value} output.".strip()

        is_mixed = False
        ranked = kinds.most_common()
        if len(ranked) > 1:
            is_mixed = ranked[0][1] == ranked[1][1]
            for kind, _ in ranked:
                output = KIND_OUTPUT[kind]
                if output != primary and output not in secondary:
                    secondary.append(output)

        # The declared medium stands when it is one of the tied leading kinds.
        leaders = {KIND_OUTPUT[kind] for kind, count in ranked if count == ranked[0][1]}
        no_leader = is_mixed and primary not in leaders
        image_with_video = primary == OutputType.IMAGE and kinds[MediaKind.VIDEO] > 0
        if selected is None and primary != OutputType.MIXED and (no_leader or image_with_video):
            secondary = [primary] + [s for s in secondary if s != primary]
            for kind, _ in ranked:
                if KIND_OUTPUT[kind] not in secondary:
                    secondary.append(KIND_OUTPUT[kind])
            primary = OutputType.MIXED
            is_mixed = True
            if no_leader:
                note = "No asset kind dominates; treating as mixed media."
            else:
                note = "Video assets alongside an image request; treating as mixed media."
            reasoning = f"{reasoning} {note}".strip()

        return {
            "primary_output_type": primary.value,
            "secondary_output_types": [s.value for s in secondary if s != primary],
            "confidence": round(confidence, 4),
            "reasoning": reasoning or f"Request calls for {primary.value} output",
            "user_goal": declared.user_goal,
            "is_mixed": is_mixed,
            "corroborated_by_assets": corroborated,
        }

    async def creative_direction(self, ctx: _Context, intent: dict[str, Any]) -> CreativeDirection:
        """Pick the creative direction.

        Asset-free runs take the detected profile's narrative. Otherwise the
        AI narrative is tried first, then the query's reframing, then the
        profile narrative.
        """
        if ctx.asset_free:
            self._logger.debug(f"No assets; using the {ctx.profile.profile.id} narrative")
            return CreativeDirection(ctx.profile.profile.default_narrative, "profile")
        if not self._options.enable_ai_synthesis:
            self._logger.debug("AI synthesis disabled")
        elif self._chain is None or not self._chain.providers:
            ctx.warnings.append("No providers configured for creative direction")
        else:
            prompt = build_prompt(
                get_prompt("creative_direction_v1"),
                query=ctx.query.normalized_query,
                output_type=intent["primary_output_type"],
                style=", ".join(modifier_values(ctx.query.modifiers, "style")),
                mood=", ".join(modifier_values(ctx.query.modifiers, "mood")),
                asset_summary=self._asset_summary(ctx),
            )
            try:
                result = await self._chain.run(
                    prompt,
                    self._generation,
                    preference=self._options.model_preference,
                    parser=_parse_direction,
                )
                return CreativeDirection(result.data, "ai", result.provider)
            except AllProvidersFailedError as e:
                self._logger.warning(f"Creative direction unavailable, using fallback: {e}")
                ctx.warnings.append(f"AI creative direction failed: {e}")

        reframing = ctx.query.creative_reframing
        if reframing is not None and reframing.creative_direction:
            return CreativeDirection(reframing.creative_direction, "reframing")
        return CreativeDirection(ctx.profile.profile.default_narrative, "profile")

    @staticmethod
    def _asset_summary(ctx: _Context) -> str:
        lines = []
        for analysis in ctx.usable:
            description = analysis.content.description
            if len(description) > 160:
                description = description[:157] + "..."
            lines.append(f"- {analysis.asset_id} ({analysis.kind.value}): {description}")
        return "\n".join(lines) or "- none"

    # -------------------------------------------------------------------------
    # Step 2: constraints
    # -------------------------------------------------------------------------

    def unify_constraints(self, ctx: _Context, intent: dict[str, Any]) -> dict[str, Any]:
        """Merge query constraints with asset capabilities and default tables.

        Every value that did not come from the query is named in
        ``defaults_applied``.
        """
        query = ctx.query
        stated = query.constraints
        output = OutputType(intent["primary_output_type"])
        platforms = modifier_values(query.modifiers, "platform")
        platform_defaults = _first_platform_defaults(platforms)
        applied: list[str] = []

        frames = [
            (a.metadata.width, a.metadata.height)
            for a in ctx.usable
            if a.metadata.width and a.metadata.height
        ]

        aspect_ratio = first_value(stated.aspect_ratio)
        if aspect_ratio is None and frames:
            aspect_ratio = _most_common([aspect_ratio_for(w, h) for w, h in frames])
            applied.append("aspect_ratio: derived from assets")
        if aspect_ratio is None and "aspect_ratio" in platform_defaults:
            aspect_ratio = platform_defaults["aspect_ratio"]
            applied.append(f"aspect_ratio: {platform_defaults['platform']} default")
        if aspect_ratio is None:
            aspect_ratio = DEFAULT_ASPECT_RATIO[output]
            applied.append(f"aspect_ratio: {output.value} default")

        resolution = first_value(stated.resolution)
        if resolution is None and frames:
            width, height = max(frames, key=lambda f: f[0] * f[1])
            resolution = f"{width}x{height}"
            applied.append("resolution: highest asset resolution")
        if resolution is None:
            resolution = RESOLUTION_FOR_ASPECT.get(aspect_ratio, "1920x1080")
            applied.append(f"resolution: {aspect_ratio} default")

        duration = None
        if output in (OutputType.VIDEO, OutputType.MIXED):
            duration = first_value(stated.duration_seconds)
            if duration is None and "duration_seconds" in platform_defaults:
                duration = platform_defaults["duration_seconds"]
                applied.append(f"video_duration_seconds: {platform_defaults['platform']} default")
            if duration is None:
                duration = DEFAULT_DURATION_SECONDS
                applied.append("video_duration_seconds: default")

        audio_length = None
        if output == OutputType.AUDIO:
            audio_length = first_value(stated.audio_length_seconds) or first_value(
                stated.duration_seconds
            )
            if audio_length is None:
                audio_length = DEFAULT_DURATION_SECONDS
                applied.append("audio_length_seconds: default")

        image_count = first_value(stated.image_count)
        if output == OutputType.IMAGE and image_count is None:
            image_count = 1
            applied.append("image_count: default")

        if ctx.usable:
            quality_target = quality_target_for(ctx.assets.summary.overall_quality_score)
        else:
            quality_target = "high"
            applied.append("quality_target: default")

        formats = list(stated.format_preferences or [])
        if not formats:
            base, web = FORMATS[output]
            formats = base + (web if platforms else [])

        if platforms:
            distribution = "web-optimized-mp4" if output == OutputType.VIDEO else "web-optimized"
        else:
            distribution = "standard"

        enhancement_ratio = _enhancement_ratio(ctx)
        timeline = stated.timeline or stated.deadline
        if timeline is None:
            timeline = "flexible"
            applied.append("timeline: default")

        descriptions = " ".join(a.content.description for a in ctx.usable)
        return {
            "output_specifications": {
                "image_count": image_count,
                "video_duration_seconds": duration,
                "audio_length_seconds": audio_length,
                "aspect_ratio": aspect_ratio,
                "resolution": resolution,
                "quality_target": quality_target,
                "format_requirements": formats,
            },
            "platform_constraints": {
                "target_platforms": platforms,
                "platform_requirements": {
                    p: PLATFORM_REQUIREMENTS[p.lower()]
                    for p in platforms
                    if p.lower() in PLATFORM_REQUIREMENTS
                },
                "distribution_format": distribution,
            },
            "creative_constraints": {
                "required_style": (modifier_values(query.modifiers, "style") or [None])[0],
                "mood_requirements": modifier_values(query.modifiers, "mood"),
                "color_palette": find_words(descriptions, COLOR_WORDS)[:5],
                "brand_requirements": (
                    "Brand consistency and professional presentation required"
                    if find_words(query.normalized_query, BRAND_WORDS)
                    else None
                ),
                "accessibility": ACCESSIBILITY[output],
            },
            "production_constraints": {
                "budget_tier": self._budget_tier(query, enhancement_ratio),
                "timeline": timeline,
                "complexity_level": _complexity_level(ctx, enhancement_ratio),
                "automation_level": _automation_level(enhancement_ratio),
            },
            "defaults_applied": applied,
        }

    def _budget_tier(self, query: QueryAnalysis, enhancement_ratio: float) -> str:
        specs = len(modifier_values(query.modifiers, "technical_specs"))
        if enhancement_ratio > 0.7 or specs > 3:
            tier = 2
        elif enhancement_ratio > 0.3 or specs > 1:
            tier = 1
        else:
            tier = 0
        if self._options.optimization_focus == OptimizationFocus.COST:
            tier -= 1
        elif self._options.optimization_focus == OptimizationFocus.QUALITY:
            tier += 1
        return BUDGET_TIERS[max(0, min(len(BUDGET_TIERS) - 1, tier))]

    # -------------------------------------------------------------------------
    # Step 3: utilization
    # -------------------------------------------------------------------------

    def build_utilization_plan(self, ctx: _Context, intent: dict[str, Any]) -> dict[str, Any]:
        """Place every analysed asset in exactly one bucket."""
        scoring = self._scoring
        output = OutputType(intent["primary_output_type"])
        primary: list[dict[str, Any]] = []
        reference: list[dict[str, Any]] = []
        supporting: list[dict[str, Any]] = []
        unused: list[dict[str, Any]] = []

        for analysis in ctx.assets.analyses:
            score = analysis.alignment.alignment_score
            role = analysis.alignment.project_role
            if analysis.failed:
                unused.append(_unused_entry(analysis, output))
            elif score > scoring.primary_alignment_threshold or role == ProjectRole.PRIMARY_CONTENT:
                primary.append(_primary_entry(analysis, output))
            elif (
                score > scoring.reference_alignment_threshold
                or role == ProjectRole.REFERENCE_MATERIAL
            ):
                reference.append(_reference_entry(analysis, ctx.query))
            elif score > scoring.supporting_alignment_threshold or role in (
                ProjectRole.SUPPORTING_ELEMENT,
                ProjectRole.BACKGROUND,
                ProjectRole.ENHANCEMENT_TARGET,
            ):
                supporting.append(_supporting_entry(analysis, output))
            else:
                unused.append(_unused_entry(analysis, output))

        total = len(ctx.assets.analyses)
        return {
            "primary_assets": primary,
            "reference_assets": reference,
            "supporting_assets": supporting,
            "unused_assets": unused,
            "utilization_rate": round((total - len(unused)) / total, 4) if total else 0.0,
        }

    # -------------------------------------------------------------------------
    # Step 4: gaps and contradictions
    # -------------------------------------------------------------------------

    def analyze_gaps(
        self,
        ctx: _Context,
        intent: dict[str, Any],
        constraints: dict[str, Any],
        utilization: dict[str, Any],
    ) -> dict[str, Any]:
        depth = self._options.gap_analysis_depth
        output = OutputType(intent["primary_output_type"])
        gaps: list[dict[str, Any]] = []

        if not utilization["primary_assets"]:
            gaps.append(
                _gap(
                    "content",
                    "No assets supplied; all primary content must be created"
                    if ctx.asset_free
                    else "No primary content assets identified for the project",
                    ImpactLevel.CRITICAL,
                    "Generate or source primary content assets",
                    ["Use reference assets as a base", "Create content from scratch"],
                )
            )
        if ctx.query.gaps.missing_subject:
            gaps.append(
                _gap(
                    "content",
                    "The request does not name a subject",
                    ImpactLevel.HIGH,
                    "Ask what the piece should be about",
                    ["Infer the subject from the assets"],
                )
            )

        if depth in (GapAnalysisDepth.DETAILED, GapAnalysisDepth.COMPREHENSIVE):
            gaps.extend(self._style_and_technical_gaps(ctx, output, constraints, utilization))

        missing: list[dict[str, Any]] = []
        if depth == GapAnalysisDepth.COMPREHENSIVE:
            low = [
                a.asset_id
                for a in ctx.usable
                if a.metadata.quality_score < self._scoring.low_quality_threshold
            ]
            if low:
                gaps.append(
                    _gap(
                        "quality",
                        f"Asset quality below {self._scoring.low_quality_threshold:g}: {', '.join(low)}",
                        ImpactLevel.MEDIUM,
                        "Apply quality enhancement to the affected assets",
                        ["Selective enhancement", "Use the assets only as reference"],
                    )
                )
            missing = self._missing_elements(ctx, output)

        contradictions: list[dict[str, Any]] = []
        if self._options.enable_contradiction_resolution and ctx.assets.analyses:
            contradictions = self._contradictions(ctx, output, constraints, utilization)

        return {
            "identified_gaps": gaps,
            "contradictions": contradictions,
            "missing_elements": missing,
        }

    def _style_and_technical_gaps(
        self,
        ctx: _Context,
        output: OutputType,
        constraints: dict[str, Any],
        utilization: dict[str, Any],
    ) -> list[dict[str, Any]]:
        gaps = []
        asset_styles = [a.content.style for a in ctx.usable if a.content.style]
        if (
            not modifier_values(ctx.query.modifiers, "style")
            and not utilization["reference_assets"]
            and not asset_styles
        ):
            gaps.append(
                _gap(
                    "style",
                    "No style direction specified and no reference material available",
                    ImpactLevel.MEDIUM,
                    f"Apply the {ctx.profile.profile.name} style: "
                    f"{ctx.profile.profile.style_direction}",
                    ["Use platform-appropriate defaults", "Provide a reference image"],
                )
            )

        applied = _defaults_by_field(constraints["defaults_applied"])
        if output in (OutputType.VIDEO, OutputType.MIXED) and "video_duration_seconds" in applied:
            gaps.append(
                _gap(
                    "technical",
                    "Video duration not specified",
                    ImpactLevel.MEDIUM,
                    f"Use {constraints['output_specifications']['video_duration_seconds']}s",
                    ["30 seconds for social media", "60 seconds for general content"],
                )
            )
        if output == OutputType.AUDIO and "audio_length_seconds" in applied:
            gaps.append(
                _gap(
                    "technical",
                    "Audio length not specified",
                    ImpactLevel.MEDIUM,
                    f"Use {constraints['output_specifications']['audio_length_seconds']}s",
                    ["15 seconds for a jingle", "60 seconds for a music bed"],
                )
            )
        aspect_note = applied.get("aspect_ratio")
        if output != OutputType.AUDIO and aspect_note and aspect_note != "derived from assets":
            gaps.append(
                _gap(
                    "technical",
                    "Aspect ratio not specified",
                    ImpactLevel.LOW,
                    f"Use {constraints['output_specifications']['aspect_ratio']}",
                    ["16:9 for landscape video", "9:16 for vertical social", "1:1 for feeds"],
                )
            )
        return gaps

    def _missing_elements(self, ctx: _Context, output: OutputType) -> list[dict[str, Any]]:
        flags = ctx.query.gaps
        sequential = output in (OutputType.VIDEO, OutputType.AUDIO, OutputType.MIXED)
        candidates = [
            (flags.missing_subject, "specification", "Subject of the piece", "essential", "request"),
            (flags.missing_style, "specification", "Visual or sonic style", "recommended", "infer"),
            (flags.missing_mood, "specification", "Mood or tone", "optional", "infer"),
            (
                flags.missing_duration and sequential,
                "specification",
                "Output duration",
                "recommended",
                "default",
            ),
            (
                flags.missing_aspect_ratio and output != OutputType.AUDIO,
                "specification",
                "Output aspect ratio",
                "recommended",
                "default",
            ),
            (flags.missing_platform, "constraint", "Target platform", "optional", "default"),
            (flags.missing_target_audience, "constraint", "Target audience", "recommended", "infer"),
        ]
        missing = [
            {
                "element_type": element_type,
                "description": f"{description} not specified",
                "importance": importance,
                "handling": handling,
            }
            for present, element_type, description, importance, handling in candidates
            if present
        ]

        requirements = detect_asset_requirements(ctx.query)
        if requirements.needs_assets and not ctx.usable:
            missing.append(
                {
                    "element_type": "asset",
                    "description": f"Source material ({requirements.reason})",
                    "importance": "essential",
                    "handling": "request",
                }
            )
        return missing

    def _contradictions(
        self,
        ctx: _Context,
        output: OutputType,
        constraints: dict[str, Any],
        utilization: dict[str, Any],
    ) -> list[dict[str, Any]]:
        found = []
        declared_kinds = {a.kind for a in ctx.assets.analyses}
        if not declared_kinds & SUPPORTING_KINDS[output]:
            found.append(
                {
                    "contradiction_type": "intent_vs_assets",
                    "description": (
                        f"Request asks for {output.value} but the assets are "
                        f"{', '.join(sorted(k.value for k in declared_kinds))} only"
                    ),
                    "conflicting_elements": ["intent"] + sorted(k.value for k in declared_kinds),
                    "severity": ImpactLevel.HIGH.value,
                    "resolution_strategy": (
                        f"Generate new {output.value} content and use the assets as reference"
                    ),
                }
            )

        styles = {a.asset_id: a.content.style for a in ctx.usable if a.content.style}
        present = set(styles.values())
        for pair in STYLE_CONFLICTS:
            if pair <= present:
                found.append(
                    {
                        "contradiction_type": "asset_vs_asset",
                        "description": f"Assets mix conflicting styles: {' vs '.join(sorted(pair))}",
                        "conflicting_elements": [
                            f"{asset_id}: {style}"
                            for asset_id, style in styles.items()
                            if style in pair
                        ],
                        "severity": ImpactLevel.MEDIUM.value,
                        "resolution_strategy": "Select a dominant style and grade the rest toward it",
                    }
                )

        stated = first_value(ctx.query.constraints.aspect_ratio)
        if stated is not None:
            for entry in utilization["primary_assets"]:
                analysis = ctx.analysis(entry["asset_id"])
                width, height = analysis.metadata.width, analysis.metadata.height
                if width and height and aspect_ratio_for(width, height) != stated:
                    found.append(
                        {
                            "contradiction_type": "constraint_vs_asset",
                            "description": (
                                f"Asset '{analysis.asset_id}' is "
                                f"{aspect_ratio_for(width, height)} but {stated} was requested"
                            ),
                            "conflicting_elements": ["aspect_ratio", analysis.asset_id],
                            "severity": ImpactLevel.LOW.value,
                            "resolution_strategy": f"Reframe or crop the asset to {stated}",
                        }
                    )
        return found

    # -------------------------------------------------------------------------
    # Step 5: creative synthesis
    # -------------------------------------------------------------------------

    def synthesize_creative(
        self,
        ctx: _Context,
        intent: dict[str, Any],
        utilization: dict[str, Any],
        direction: CreativeDirection,
    ) -> dict[str, Any]:
        output = OutputType(intent["primary_output_type"])
        query_styles = modifier_values(ctx.query.modifiers, "style")
        query_moods = modifier_values(ctx.query.modifiers, "mood")
        primary_ids = [entry["asset_id"] for entry in utilization["primary_assets"]]
        primary_styles = _unique(
            [ctx.analysis(i).content.style for i in primary_ids if ctx.analysis(i).content.style]
        )
        mood_counts = Counter(a.content.mood for a in ctx.usable if a.content.mood)
        dominant_moods = [mood for mood, _ in mood_counts.most_common(3)]

        narrative = None
        if output in (OutputType.VIDEO, OutputType.AUDIO, OutputType.MIXED):
            if len(primary_ids) <= 1:
                narrative = "Single focal point with a clear beginning, middle and end"
            elif len(primary_ids) <= 3:
                narrative = "Three-act structure using the assets for setup, development and payoff"
            else:
                narrative = "Multi-segment structure with smooth transitions between asset-driven scenes"

        kinds = {a.kind for a in ctx.usable}
        audio_visual = None
        if MediaKind.AUDIO in kinds and MediaKind.VIDEO in kinds:
            audio_visual = "Synchronize audio with video pacing and visual transitions"
        elif MediaKind.AUDIO in kinds and MediaKind.IMAGE in kinds:
            audio_visual = "Align audio tempo and mood with image transitions"
        elif output in (OutputType.VIDEO, OutputType.MIXED):
            audio_visual = "Keep music and cuts on a shared rhythm throughout"
        elif output == OutputType.AUDIO:
            audio_visual = "Let tempo and dynamics carry the structure"

        return {
            "unified_creative_direction": direction.text,
            "direction_source": direction.source,
            "narrative_spine": _narrative_spine(ctx, utilization),
            "style_fusion_strategy": _style_fusion(primary_styles, query_styles, ctx),
            "mood_integration_plan": _mood_plan(dominant_moods, query_moods, ctx),
            "narrative_structure": narrative,
            "visual_hierarchy": _visual_hierarchy(utilization["primary_assets"], output),
            "audio_visual_alignment": audio_visual,
            "brand_voice": (
                "Keep brand presentation consistent across every visual and copy element"
                if find_words(ctx.query.normalized_query, BRAND_VOICE_WORDS)
                else None
            ),
        }

    # -------------------------------------------------------------------------
    # Step 6: production recommendations
    # -------------------------------------------------------------------------

    def recommend_production(
        self,
        ctx: _Context,
        intent: dict[str, Any],
        constraints: dict[str, Any],
        utilization: dict[str, Any],
    ) -> dict[str, Any]:
        output = OutputType(intent["primary_output_type"])
        primary_ids = [entry["asset_id"] for entry in utilization["primary_assets"]]
        secondary_ids = [e["asset_id"] for e in utilization["supporting_assets"]] + [
            e["asset_id"] for e in utilization["reference_assets"]
        ]
        steps = []

        if any(entry["enhancement_plan"] for entry in utilization["primary_assets"]):
            steps.append(
                {
                    "step_name": "Asset Enhancement",
                    "description": "Enhance and optimize primary assets for production",
                    "input_requirements": primary_ids,
                    "expected_output": "Production-ready assets with improved quality",
                    "tool_categories": ["upscaling", "enhancement", "format_conversion"],
                    "estimated_duration": "15-30 minutes",
                    "complexity": "moderate",
                }
            )

        minutes = CREATION_BASE_MINUTES.get(output, 20) + 10 * len(primary_ids)
        count = len(primary_ids)
        steps.append(
            {
                "step_name": "Content Creation",
                "description": f"Create the {output.value} content"
                + (" from the primary assets" if primary_ids else " from the creative brief"),
                "input_requirements": primary_ids or ["creative brief"],
                "expected_output": f"Draft {output.value} content",
                "tool_categories": CREATION_TOOLS[output],
                "estimated_duration": f"{minutes}-{minutes + 15} minutes",
                "complexity": _creation_complexity(count),
            }
        )

        if secondary_ids:
            steps.append(
                {
                    "step_name": "Asset Integration",
                    "description": "Integrate supporting and reference material and refine composition",
                    "input_requirements": primary_ids + secondary_ids,
                    "expected_output": "Integrated content with every asset in place",
                    "tool_categories": ["compositing", "blending", "transition_effects"],
                    "estimated_duration": "20-45 minutes",
                    "complexity": "moderate",
                }
            )

        steps.append(
            {
                "step_name": "Final Polish",
                "description": "Apply final enhancements and quality assurance",
                "input_requirements": ["composed content"],
                "expected_output": f"Finished {output.value} ready for delivery",
                "tool_categories": ["color_correction", "quality_enhancement", "export_optimization"],
                "estimated_duration": "10-20 minutes",
                "complexity": "easy",
            }
        )

        return {
            "pipeline_steps": steps,
            "quality_targets": _quality_targets(
                constraints["production_constraints"]["complexity_level"],
                constraints["output_specifications"]["quality_target"],
                constraints["platform_constraints"]["target_platforms"],
            ),
            "optimization_suggestions": self._optimization_suggestions(
                ctx, constraints, utilization
            ),
        }

    def _optimization_suggestions(
        self, ctx: _Context, constraints: dict[str, Any], utilization: dict[str, Any]
    ) -> list[dict[str, Any]]:
        focus = self._options.optimization_focus
        suggestions = []
        if focus in (OptimizationFocus.QUALITY, OptimizationFocus.BALANCED):
            suggestions.append(
                {
                    "dimension": "quality",
                    "suggestion": "Prioritize enhancement of the primary assets and a professional finish",
                    "impact": "high",
                    "effort": "moderate",
                }
            )
        if focus in (OptimizationFocus.SPEED, OptimizationFocus.BALANCED):
            suggestions.append(
                {
                    "dimension": "speed",
                    "suggestion": "Batch similar assets and use automated enhancement tools",
                    "impact": "medium",
                    "effort": "minimal",
                }
            )
        if focus in (OptimizationFocus.COST, OptimizationFocus.BALANCED):
            suggestions.append(
                {
                    "dimension": "cost",
                    "suggestion": "Reuse existing assets before generating new content",
                    "impact": "medium",
                    "effort": "minimal",
                }
            )
        if len(utilization["unused_assets"]) > len(utilization["primary_assets"]):
            suggestions.append(
                {
                    "dimension": "complexity",
                    "suggestion": "Narrow the scope to the best-aligned assets",
                    "impact": "medium",
                    "effort": "minimal",
                }
            )
        if ctx.usable and constraints["production_constraints"]["automation_level"] == "full_auto":
            suggestions.append(
                {
                    "dimension": "automation",
                    "suggestion": "Run enhancement and export as an unattended batch",
                    "impact": "low",
                    "effort": "minimal",
                }
            )
        return suggestions

    # -------------------------------------------------------------------------
    # Step 7: metadata
    # -------------------------------------------------------------------------

    def build_metadata(
        self,
        ctx: _Context,
        intent: dict[str, Any],
        utilization: dict[str, Any],
        gaps: dict[str, Any],
        direction: CreativeDirection,
        elapsed_ms: int,
    ) -> dict[str, Any]:
        scoring = self._scoring
        confidence = intent["confidence"]
        if ctx.usable:
            alignment = round(
                sum(a.alignment.alignment_score for a in ctx.usable) / len(ctx.usable), 4
            )
        elif ctx.asset_free:
            alignment = confidence
        else:
            alignment = 0.0

        identified = gaps["identified_gaps"]
        critical = sum(1 for g in identified if g["impact"] == ImpactLevel.CRITICAL.value)
        high = sum(1 for g in identified if g["impact"] == ImpactLevel.HIGH.value)
        essential = sum(1 for m in gaps["missing_elements"] if m["importance"] == "essential")
        completeness = 1.0
        completeness -= critical * scoring.completeness_critical_penalty
        completeness -= high * scoring.completeness_high_penalty
        completeness -= essential * scoring.completeness_missing_penalty
        completeness = round(max(scoring.completeness_floor, min(1.0, completeness)), 4)

        issues = len(identified) + len(gaps["contradictions"])
        checks = []
        if confidence > 0.7:
            checks.append("intent_clarity")
        if utilization["primary_assets"]:
            checks.append("asset_utilization")
        if critical == 0:
            checks.append("no_critical_gaps")
        if issues < 5:
            checks.append("manageable_issue_count")
        if any(
            entry["processing_priority"] in ("critical", "high")
            for entry in utilization["primary_assets"]
        ):
            checks.append("primary_asset_priority")

        recommendations_confidence = 0.8 - 0.05 * issues
        if utilization["primary_assets"]:
            recommendations_confidence += 0.1
        used = len(utilization["primary_assets"]) + len(utilization["supporting_assets"])
        if len(utilization["unused_assets"]) / (used + 1) < 0.3:
            recommendations_confidence += 0.1
        recommendations_confidence = round(max(0.3, min(1.0, recommendations_confidence)), 4)

        profile = ctx.profile
        return {
            "project_id": self._id_factory(),
            "project_title": _project_title(intent, ctx.query),
            "synthesis_confidence": round(min(confidence, alignment), 4),
            "alignment_score": alignment,
            "completeness_score": completeness,
            "complexity_classification": _complexity_class(ctx, gaps),
            "validation_checks_passed": checks,
            "recommendations_confidence": recommendations_confidence,
            "ai_models_used": [direction.provider] if direction.provider else [],
            "synthesis_approach": "ai_enhanced_rule_based" if direction.source == "ai" else "rule_based",
            "processing_time_ms": elapsed_ms,
            "creative_profile": {
                "profile_id": profile.profile.id,
                "name": profile.profile.name,
                "score": profile.score,
                "confidence": profile.confidence,
                "matched_keywords": profile.matched_keywords,
            },
            "warnings": ctx.warnings,
        }

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._timer() - start) * 1000))


# =============================================================================
# Helpers
# =============================================================================


def _parse_direction(text: str, provider_name: str) -> str:
    direction = " ".join(text.split())
    if not direction:
        raise MalformedResponseError(f"{provider_name} returned an empty creative direction")
    return direction


def _defaults_by_field(applied: list[str]) -> dict[str, str]:
    """Map "field: source" notes to {field: source}."""
    return dict(note.split(": ", 1) for note in applied)


def _creation_complexity(asset_count: int) -> str:
    if asset_count >= 5:
        return "expert"
    if asset_count >= 3:
        return "complex"
    if asset_count >= 2:
        return "moderate"
    return "easy"


def _first_platform_defaults(platforms: list[str]) -> dict[str, Any]:
    for platform in platforms:
        defaults = PLATFORM_DEFAULTS.get(platform.lower())
        if defaults:
            return {"platform": platform.lower(), **defaults}
    return {}


def _enhancement_ratio(ctx: _Context) -> float:
    if not ctx.usable:
        return 0.0
    return sum(1 for a in ctx.usable if a.needs.needs_enhancement) / len(ctx.usable)


def _complexity_level(ctx: _Context, enhancement_ratio: float) -> str:
    kinds = len({a.kind for a in ctx.usable})
    flags = len(ctx.query.gaps.flagged())
    if kinds > 2 and enhancement_ratio > 0.5 and flags > 3:
        return "advanced"
    if kinds > 1 and enhancement_ratio > 0.3 and flags > 2:
        return "complex"
    if kinds > 1 or enhancement_ratio > 0.2 or flags > 1:
        return "moderate"
    return "simple"


def _automation_level(enhancement_ratio: float) -> str:
    if enhancement_ratio > 0.7:
        return "manual_review"
    if enhancement_ratio > 0.3:
        return "semi_auto"
    return "full_auto"


def _complexity_class(ctx: _Context, gaps: dict[str, Any]) -> str:
    points = float(len({a.kind for a in ctx.usable}))
    points += _enhancement_ratio(ctx) * 3
    points += len(gaps["identified_gaps"]) * 0.5
    points += len(gaps["contradictions"])
    if len(ctx.query.normalized_query.split()) > 20:
        points += 1
    if points >= 8:
        return "highly_complex"
    if points >= 5:
        return "complex"
    if points >= 2:
        return "moderate"
    return "simple"


def _project_title(intent: dict[str, Any], query: QueryAnalysis) -> str:
    kind = intent["primary_output_type"].capitalize()
    words = [w.strip(".,!?;:") for w in query.normalized_query.split()]
    key_words = " ".join(w for w in words if len(w) > 3)
    key_words = " ".join(key_words.split()[:3])
    if key_words:
        return f"{kind} Project: {key_words}"
    return f"{kind} Content Creation Project"


def _gap(
    gap_type: str, description: str, impact: ImpactLevel, resolution: str, alternatives: list[str]
) -> dict[str, Any]:
    return {
        "gap_type": gap_type,
        "description": description,
        "impact": impact.value,
        "suggested_resolution": resolution,
        "alternatives": alternatives,
    }


def _primary_entry(analysis: AssetAnalysis, output: OutputType) -> dict[str, Any]:
    score = analysis.alignment.alignment_score
    if score > 0.8:
        role = "hero"
    elif score > 0.6:
        role = "main_content"
    elif score > 0.4:
        role = "key_element"
    else:
        role = "supporting"

    combined = (score + analysis.metadata.quality_score / 10) / 2
    if combined > 0.8:
        priority = "critical"
    elif combined > 0.6:
        priority = "high"
    elif combined > 0.4:
        priority = "medium"
    else:
        priority = "low"

    if KIND_OUTPUT.get(analysis.kind) == output:
        usage = f"Use directly as primary {analysis.kind.value} content with quality optimization"
    else:
        usage = f"Adapt the {analysis.kind.value} into {output.value} while keeping its key elements"

    return {
        "asset_id": analysis.asset_id,
        "role": role,
        "usage_plan": usage,
        "processing_priority": priority,
        "enhancement_plan": [t.replace("_", " ") for t in analysis.needs.enhancement_types],
        "alignment_score": score,
        "rationale": f"Alignment {score:.2f} with role hint {analysis.alignment.project_role.value}",
    }


def _reference_entry(analysis: AssetAnalysis, query: QueryAnalysis) -> dict[str, Any]:
    content = analysis.content
    if modifier_values(query.modifiers, "style") and content.style:
        reference_type = "style_reference"
        application = "Extract visual style elements for consistent application"
    elif modifier_values(query.modifiers, "mood") and content.mood:
        reference_type = "mood_reference"
        application = "Use the mood and atmosphere as a guide for tone"
    elif analysis.metadata.quality_score >= 7:
        reference_type = "technical_reference"
        application = "Reference its technical quality as the target standard"
    else:
        reference_type = "content_reference"
        application = "Use as content inspiration and structural reference"

    focus = []
    if content.style:
        focus.append("Visual style elements")
    if content.mood:
        focus.append("Mood and atmosphere")
    if analysis.metadata.quality_score > 7:
        focus.append("Technical quality standards")
    if content.detected_elements:
        focus.append("Content composition elements")

    return {
        "asset_id": analysis.asset_id,
        "reference_type": reference_type,
        "application": application,
        "extraction_focus": focus or ["General reference characteristics"],
        "alignment_score": analysis.alignment.alignment_score,
        "rationale": f"Alignment {analysis.alignment.alignment_score:.2f} suits reference use",
    }


_INTEGRATION_METHODS = {
    "audio_layer": "Layer as background audio or sound effects",
    "b_roll": "Cut in as B-roll with smooth transitions",
    "overlay": "Apply as an overlay with appropriate blending",
    "texture": "Use for texture and depth",
    "background": "Place as a subtle background element",
}


def _supporting_entry(analysis: AssetAnalysis, output: OutputType) -> dict[str, Any]:
    if analysis.kind == MediaKind.AUDIO:
        role = "audio_layer"
    elif analysis.kind == MediaKind.VIDEO and output == OutputType.VIDEO:
        role = "b_roll"
    elif analysis.kind == MediaKind.IMAGE and output == OutputType.VIDEO:
        role = "overlay"
    elif analysis.metadata.quality_score < 6:
        role = "texture"
    else:
        role = "background"

    return {
        "asset_id": analysis.asset_id,
        "support_role": role,
        "integration_method": _INTEGRATION_METHODS[role],
        "processing_needs": list(analysis.needs.enhancement_types),
        "alignment_score": analysis.alignment.alignment_score,
        "rationale": f"Alignment {analysis.alignment.alignment_score:.2f} suits a supporting role",
    }


def _unused_entry(analysis: AssetAnalysis, output: OutputType) -> dict[str, Any]:
    score = analysis.alignment.alignment_score
    if analysis.failed:
        reason = f"Analysis failed: {analysis.processing.error or 'unknown error'}"
    else:
        reason = f"Alignment {score:.2f} is too low for this project"

    if analysis.metadata.quality_score > 7:
        alternative = "High-quality asset suited to other project types"
    elif score > 0.1:
        alternative = f"Consider for future {output.value} projects or alternative directions"
    else:
        alternative = "Archive for future use or experimentation"

    return {
        "asset_id": analysis.asset_id,
        "reason": reason,
        "alternative_usage": alternative,
        "alignment_score": score,
    }


def _style_fusion(primary_styles: list[str], query_styles: list[str], ctx: _Context) -> str:
    if not primary_styles and not query_styles:
        return f"Apply the {ctx.profile.profile.name} default: {ctx.profile.profile.style_direction}"
    if query_styles and primary_styles:
        return (
            f"Blend the requested {', '.join(query_styles)} style with the assets' "
            f"{', '.join(primary_styles)} look"
        )
    if query_styles:
        return f"Apply the requested {', '.join(query_styles)} style throughout"
    if len(primary_styles) == 1:
        return f"Keep the assets' {primary_styles[0]} style consistent throughout"
    return f"Harmonize the {', '.join(primary_styles)} looks into one visual direction"


def _mood_plan(dominant_moods: list[str], query_moods: list[str], ctx: _Context) -> str:
    moods = _unique(query_moods + dominant_moods)
    if not moods:
        return f"Aim for a {ctx.profile.profile.mood_atmosphere.lower()} feel"
    if len(moods) == 1:
        return f"Maintain a consistent {moods[0]} mood throughout"
    return f"Balance {' and '.join(moods[:2])} elements for emotional consistency"


def _visual_hierarchy(primary: list[dict[str, Any]], output: OutputType) -> list[str]:
    roles = {entry["role"] for entry in primary}
    hierarchy = [
        label
        for role, label in (
            ("hero", "Hero asset as the primary focal point"),
            ("main_content", "Main content assets as secondary focus"),
            ("key_element", "Key elements for context"),
            ("supporting", "Supporting elements for depth and texture"),
        )
        if role in roles
    ]
    return hierarchy or [f"Standard {output.value} layout with balanced composition"]


def _short(text: str, limit: int = 80) -> str:
    text = text.strip().rstrip(".")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _narrative_spine(ctx: _Context, utilization: dict[str, Any]) -> dict[str, Any]:
    """Intro, core and outro beats.

    Asset-free runs take the profile's scaffold. Otherwise the beats follow
    the utilization plan: primary assets are featured, supporting and
    reference assets are woven in, and the core is padded to two beats.
    """
    if ctx.asset_free:
        scaffold = ctx.profile.profile.scaffolding
        return {
            "intro": scaffold.intro,
            "core": list(scaffold.core),
            "outro": scaffold.outro,
            "source": "profile",
        }

    primary = [ctx.analysis(e["asset_id"]) for e in utilization["primary_assets"]]
    secondary = [
        ctx.analysis(e["asset_id"])
        for e in utilization["supporting_assets"] + utilization["reference_assets"]
    ]
    lead = primary[0] if primary else (ctx.usable[0] if ctx.usable else None)
    if lead is not None:
        intro = f"Open with the {lead.kind.value} showing {_short(lead.content.description)}"
    else:
        intro = "Create engaging opening that introduces the main concept"

    core = [
        f"Feature the {a.kind.value} as primary content: {_short(a.content.description)}" for a in primary
    ]
    core += [
        f"Use the {a.kind.value} as a supporting element for {_short(a.content.description)}"
        for a in secondary
    ]
    for filler in ("Add complementary visuals to support the narrative", "Include engaging transitions and effects"):
        if len(core) >= 2:
            break
        core.append(filler)

    return {
        "intro": intro,
        "core": core,
        "outro": "Conclude with strong call-to-action or summary that reinforces the main message",
        "source": "assets",
    }


def _quality_targets(
    complexity_level: str, quality_target: str, platforms: list[str] | None = None
) -> dict[str, str]:
    targets = {
        "technical_quality": "good",
        "creative_impact": "appealing",
        "consistency_level": "good",
        "polish_level": "refined",
    }
    if complexity_level == "advanced":
        targets.update(
            technical_quality="professional",
            creative_impact="impressive",
            consistency_level="high",
            polish_level="polished",
        )
    elif complexity_level == "simple":
        targets.update(technical_quality="acceptable", creative_impact="functional", polish_level="draft")
    if quality_target in ("professional", "cinema"):
        targets.update(technical_quality="professional", consistency_level="high")

    names = {p.lower() for p in platforms or []}
    if names & PROFESSIONAL_PLATFORMS:
        targets.update(technical_quality="professional", consistency_level="high")
    if names & SHORT_FORM_PLATFORMS:
        targets["creative_impact"] = "impressive"
    return targets
