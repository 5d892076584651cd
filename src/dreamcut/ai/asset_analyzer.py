"""Asset Analyzer: stage 2 of the analysis pipeline.

Every attached asset is analysed independently and concurrently by the
analyzer for its declared kind. Each per-kind analyzer asks its own provider
chain for a description (optionally led by a JSON metadata object), then
derives content, alignment and processing needs from that description with
keyword heuristics.

Failure semantics:
- A provider answered: status ``success``.
- Every provider failed but the caller supplied a description: the
  heuristics run on that description alone and the status is ``partial``.
- Nothing usable: status ``failed`` with quality 0, alignment 0, role
  ``unclear`` and the error text kept.

Individual failures never cancel other analyses. Only the stage-level
timeout, or a media kind with no providers configured, is fatal.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from dreamcut.ai.chain import AllProvidersFailedError, FallbackChain
from dreamcut.ai.client import GenerationOptions, MalformedResponseError
from dreamcut.ai.parsing import split_leading_json
from dreamcut.ai.prompts import asset_request_type, build_prompt, get_prompt
from dreamcut.ai.vocabulary import (
    MOOD_KEYWORDS,
    NEGATIVE_QUALITY_WORDS,
    OBJECT_WORDS,
    POSITIVE_QUALITY_WORDS,
    STYLE_KEYWORDS,
    contains_phrase,
    content_tokens,
    find_words,
    match_table,
)
from dreamcut.config import AssetsConfig, ScoringConfig
from dreamcut.core.models import (
    AnalysisStatus,
    AssetAnalysis,
    AssetAnalysisResult,
    MediaAsset,
    MediaKind,
    OutputType,
    ProjectRole,
    QueryAnalysis,
)
from dreamcut.core.validation import validate_stage

logger = logging.getLogger(__name__)

STAGE = "asset_analysis"


class AssetStageError(Exception):
    """Fatal asset-stage condition (stage timeout or misconfiguration)."""


# Roles in bucket order; each is paired with the matching utilization threshold.
ROLE_ORDER = (
    ProjectRole.PRIMARY_CONTENT,
    ProjectRole.REFERENCE_MATERIAL,
    ProjectRole.SUPPORTING_ELEMENT,
)


def thresholds_from_scoring(scoring: ScoringConfig) -> tuple[float, float, float]:
    return (
        scoring.primary_alignment_threshold,
        scoring.reference_alignment_threshold,
        scoring.supporting_alignment_threshold,
    )


DEFAULT_ROLE_THRESHOLDS = thresholds_from_scoring(ScoringConfig())

# Alignment weights. A direct-kind match alone clears the default primary threshold.
BASE_ALIGNMENT = 0.2
OVERLAP_WEIGHT = 0.35
DIRECT_KIND_BONUS = 0.45
MIXED_KIND_BONUS = 0.25
SUPPORTING_KIND_BONUS = 0.1


@dataclass
class AssetAnalysisOptions:
    """Stage 2 options.

    Attributes:
        per_asset_timeout_seconds: Timeout for each provider call.
        stage_timeout_seconds: Timeout for the whole stage.
        max_concurrent: Maximum simultaneous analyses.
        primary_candidate_quality: Quality at or above which an asset is a primary candidate.
        primary_candidate_min_description: Minimum description length for a primary candidate.
        low_quality_threshold: Quality below which enhancement is recommended.
        role_thresholds: Primary, reference and supporting alignment thresholds.
    """

    per_asset_timeout_seconds: float = 120.0
    stage_timeout_seconds: float = 600.0
    max_concurrent: int = 5
    primary_candidate_quality: float = 6.0
    primary_candidate_min_description: int = 20
    low_quality_threshold: float = 6.0
    role_thresholds: tuple[float, float, float] = DEFAULT_ROLE_THRESHOLDS

    @classmethod
    def from_config(
        cls,
        config: AssetsConfig,
        low_quality_threshold: float = 6.0,
        scoring: ScoringConfig | None = None,
    ) -> "AssetAnalysisOptions":
        return cls(
            per_asset_timeout_seconds=config.per_asset_timeout_seconds,
            stage_timeout_seconds=config.stage_timeout_seconds,
            max_concurrent=config.max_concurrent,
            primary_candidate_quality=config.primary_candidate_quality,
            primary_candidate_min_description=config.primary_candidate_min_description,
            low_quality_threshold=low_quality_threshold,
            role_thresholds=(
                thresholds_from_scoring(scoring) if scoring is not None else DEFAULT_ROLE_THRESHOLDS
            ),
        )


# =============================================================================
# Heuristics
# =============================================================================


# Asset kinds that can feed each output type directly, and those that can support it.
DIRECT_KINDS = {
    OutputType.IMAGE: {MediaKind.IMAGE},
    OutputType.VIDEO: {MediaKind.VIDEO},
    OutputType.AUDIO: {MediaKind.AUDIO},
    OutputType.MIXED: {MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO},
}
SUPPORTING_KINDS = {
    OutputType.IMAGE: {MediaKind.VIDEO},
    OutputType.VIDEO: {MediaKind.IMAGE, MediaKind.AUDIO},
    OutputType.AUDIO: {MediaKind.VIDEO},
    OutputType.MIXED: {MediaKind.TEXT},
}

ENHANCEMENT_TRIGGERS: dict[MediaKind, tuple[tuple[str, str], ...]] = {
    MediaKind.IMAGE: (
        ("blurry", "sharpen"),
        ("blurred", "sharpen"),
        ("noisy", "denoise"),
        ("grainy", "denoise"),
        ("dark", "exposure_correction"),
        ("underexposed", "exposure_correction"),
        ("overexposed", "exposure_correction"),
        ("low resolution", "upscale"),
        ("pixelated", "upscale"),
    ),
    MediaKind.VIDEO: (
        ("shaky", "stabilization"),
        ("blurry", "sharpen"),
        ("grainy", "denoise"),
        ("noisy", "denoise"),
        ("dark", "exposure_correction"),
        ("underexposed", "exposure_correction"),
        ("low resolution", "upscale"),
        ("pixelated", "upscale"),
    ),
    MediaKind.AUDIO: (
        ("noisy", "noise_reduction"),
        ("muffled", "eq_clarity"),
        ("clipping", "declip"),
        ("distorted", "declip"),
    ),
    MediaKind.TEXT: (),
}

DEFAULT_ENHANCEMENT = {
    MediaKind.IMAGE: "upscale",
    MediaKind.VIDEO: "color_grade",
    MediaKind.AUDIO: "normalize",
    MediaKind.TEXT: "copy_edit",
}

ENHANCEMENT_TOOLS = {
    "sharpen": "Sharpening filter",
    "denoise": "AI denoiser",
    "exposure_correction": "Exposure and colour correction",
    "upscale": "AI upscaler",
    "stabilization": "Video stabilizer",
    "color_grade": "Colour grading suite",
    "noise_reduction": "Audio noise reduction",
    "eq_clarity": "Parametric EQ",
    "declip": "Audio declipper",
    "normalize": "Loudness normalizer",
    "copy_edit": "Copy editor",
}


def detect_elements(text: str) -> list[str]:
    """Known object words present in a description."""
    return find_words(text, OBJECT_WORDS)


def detect_style(text: str) -> str | None:
    styles = match_table(text, STYLE_KEYWORDS)
    return styles[0] if styles else None


def detect_mood(text: str) -> str | None:
    moods = match_table(text, MOOD_KEYWORDS)
    return moods[0] if moods else None


def score_quality(description: str, metadata: dict[str, Any]) -> float:
    """Estimate technical quality on a 0 to 10 scale.

    A richer description starts higher; resolution and quality words adjust
    the score up or down.
    """
    words = len(description.split())
    if words < 8:
        score = 4.0
    elif words < 20:
        score = 5.5
    elif words < 50:
        score = 6.5
    else:
        score = 7.0

    width, height = metadata.get("width"), metadata.get("height")
    if width and height:
        pixels = width * height
        if pixels >= 1920 * 1080:
            score += 1.0
        elif pixels >= 1280 * 720:
            score += 0.5
        elif pixels < 640 * 480:
            score -= 1.5

    score += min(1.5, 0.5 * len(find_words(description, POSITIVE_QUALITY_WORDS)))
    score -= min(3.0, 1.0 * len(find_words(description, NEGATIVE_QUALITY_WORDS)))
    return round(max(0.0, min(10.0, score)), 1)


def kind_bonus(kind: MediaKind, output_type: OutputType) -> float:
    if kind in DIRECT_KINDS[output_type]:
        return MIXED_KIND_BONUS if output_type == OutputType.MIXED else DIRECT_KIND_BONUS
    if kind in SUPPORTING_KINDS[output_type]:
        return SUPPORTING_KIND_BONUS
    return 0.0


def score_alignment(
    text: str, query_tokens: Sequence[str], kind: MediaKind, output_type: OutputType
) -> tuple[float, list[str]]:
    """Alignment of an asset with the request, in [0, 1].

    Returns:
        Tuple of (score, query words found in the asset text).
    """
    asset_tokens = set(content_tokens(text))
    matched = [token for token in query_tokens if token in asset_tokens]
    overlap = len(matched) / len(query_tokens) if query_tokens else 0.0
    score = BASE_ALIGNMENT + OVERLAP_WEIGHT * overlap + kind_bonus(kind, output_type)
    return round(max(0.0, min(1.0, score)), 4), matched


def role_for_alignment(
    alignment: float, thresholds: tuple[float, float, float] = DEFAULT_ROLE_THRESHOLDS
) -> ProjectRole:
    """Role for an alignment score, using the utilization bucket thresholds.

    Example:
        >>> role_for_alignment(0.65)
        <ProjectRole.PRIMARY_CONTENT: 'primary_content'>
    """
    for threshold, role in zip(thresholds, ROLE_ORDER):
        if alignment > threshold:
            return role
    return ProjectRole.UNCLEAR


def recommend_enhancements(
    kind: MediaKind, description: str, quality: float, low_quality_threshold: float
) -> tuple[list[str], list[str]]:
    """Return (enhancement types, recommended tools) for an asset."""
    lowered = description.lower()
    types: list[str] = []
    for word, enhancement in ENHANCEMENT_TRIGGERS[kind]:
        if contains_phrase(lowered, word) and enhancement not in types:
            types.append(enhancement)
    if not types and quality < low_quality_threshold:
        types.append(DEFAULT_ENHANCEMENT[kind])
    tools = [ENHANCEMENT_TOOLS[t] for t in types]
    return types, tools


def clean_metadata(raw: dict[str, Any] | None) -> tuple[dict[str, Any], list[str]]:
    """Keep only well-typed metadata values from a provider's JSON prefix.

    Returns:
        Tuple of (accepted values, names of rejected keys).
    """
    accepted: dict[str, Any] = {}
    rejected: list[str] = []
    for key, value in (raw or {}).items():
        if key in ("width", "height") and type(value) is int and value > 0:
            accepted[key] = value
        elif key == "file_size_bytes" and type(value) is int and value >= 0:
            accepted[key] = value
        elif key == "duration_seconds" and type(value) in (int, float) and value >= 0:
            accepted[key] = float(value)
        elif key == "format" and isinstance(value, str) and value.strip():
            accepted[key] = value.strip().lower()
        else:
            rejected.append(key)
    return accepted, rejected


def _extension(source: str) -> str | None:
    name = source.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    if "." not in name:
        return None
    return name.rsplit(".", 1)[-1].lower() or None


# =============================================================================
# Per-Kind Analyzers
# =============================================================================


class KindAnalyzer:
    """Analyse assets of one media kind through that kind's provider chain."""

    kind: MediaKind = MediaKind.IMAGE
    prompt_id = "asset_image_v1"
    focus = ""

    def __init__(
        self,
        chain: FallbackChain,
        options: AssetAnalysisOptions | None = None,
        generation: GenerationOptions | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._chain = chain
        self._options = options or AssetAnalysisOptions()
        self._generation = generation or GenerationOptions()
        self._timer = timer
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def chain(self) -> FallbackChain:
        return self._chain

    def build_prompt(self, asset: MediaAsset, query: str) -> str:
        user_description = f"User description: {asset.description}" if asset.description else ""
        return build_prompt(
            get_prompt(self.prompt_id),
            query=query,
            asset_id=asset.id,
            source=asset.source,
            request_type=asset_request_type(self.kind.value),
            focus=self.focus,
            user_description=user_description,
        )

    async def analyze(self, asset: MediaAsset, query_analysis: QueryAnalysis) -> AssetAnalysis:
        """Analyse one asset. Provider failures are recorded, never raised."""
        start = self._timer()
        prompt = self.build_prompt(asset, query_analysis.normalized_query)

        def parse(text: str, provider_name: str) -> tuple[dict[str, Any] | None, str]:
            raw_metadata, description = split_leading_json(text)
            if not description:
                raise MalformedResponseError(f"{provider_name} returned metadata without a description")
            return raw_metadata, description

        try:
            result = await self._chain.run(prompt, self._generation, parser=parse)
        except AllProvidersFailedError as e:
            elapsed_ms = self._elapsed_ms(start)
            if asset.description:
                self._logger.warning(
                    f"Asset '{asset.id}': all providers failed; using the user description"
                )
                return self._build(
                    asset,
                    query_analysis,
                    description=asset.description,
                    raw_metadata=None,
                    status=AnalysisStatus.PARTIAL,
                    model_used=None,
                    attempted=[a.provider for a in e.attempts],
                    elapsed_ms=elapsed_ms,
                    error=str(e),
                )
            self._logger.warning(f"Asset '{asset.id}' analysis failed: {e}")
            return failed_analysis(asset, str(e), [a.provider for a in e.attempts], elapsed_ms)

        raw_metadata, description = result.data
        return self._build(
            asset,
            query_analysis,
            description=description,
            raw_metadata=raw_metadata,
            status=AnalysisStatus.SUCCESS,
            model_used=result.provider,
            attempted=result.providers_attempted,
            elapsed_ms=self._elapsed_ms(start),
            error=None,
        )

    def _build(
        self,
        asset: MediaAsset,
        query_analysis: QueryAnalysis,
        description: str,
        raw_metadata: dict[str, Any] | None,
        status: AnalysisStatus,
        model_used: str | None,
        attempted: list[str],
        elapsed_ms: int,
        error: str | None,
    ) -> AssetAnalysis:
        metadata, rejected = clean_metadata(raw_metadata)
        if rejected:
            self._logger.debug(f"Asset '{asset.id}': ignored metadata keys {rejected}")
        metadata.setdefault("format", _extension(asset.source))

        # The user's own description always informs the heuristics.
        text = description
        if asset.description and asset.description not in description:
            text = f"{description} {asset.description}"

        quality = score_quality(text, metadata)
        if status == AnalysisStatus.PARTIAL:
            quality = round(max(0.0, quality - 1.0), 1)

        query_tokens = content_tokens(query_analysis.normalized_query)
        alignment, matched = score_alignment(
            f"{text} {asset.source}",
            query_tokens,
            self.kind,
            query_analysis.intent.primary_output_type,
        )
        elements = detect_elements(text)
        enhancements, tools = recommend_enhancements(
            self.kind, text, quality, self._options.low_quality_threshold
        )

        notes: list[str] = []
        if matched:
            notes.append(f"Matches request terms: {', '.join(matched)}")
        bonus = kind_bonus(self.kind, query_analysis.intent.primary_output_type)
        if bonus > 0:
            notes.append(
                f"{self.kind.value.capitalize()} material fits "
                f"{query_analysis.intent.primary_output_type.value} output"
            )
        if not notes:
            notes.append("No direct overlap with the request")

        if status == AnalysisStatus.SUCCESS:
            confidence = 0.5
            confidence += 0.1 if raw_metadata else 0.0
            confidence += 0.2 * min(1.0, len(description.split()) / 40)
            confidence += 0.1 if elements else 0.0
            confidence = round(min(0.95, confidence), 4)
        else:
            confidence = 0.3

        data = {
            "asset_id": asset.id,
            "kind": self.kind.value,
            "source": asset.source,
            "metadata": {**metadata, "quality_score": quality},
            "content": {
                "description": description,
                "detected_elements": elements,
                "style": detect_style(text),
                "mood": detect_mood(text),
            },
            "alignment": {
                "alignment_score": alignment,
                "project_role": role_for_alignment(alignment, self._options.role_thresholds).value,
                "contribution_notes": notes,
            },
            "needs": {
                "needs_enhancement": bool(enhancements),
                "enhancement_types": enhancements,
                "recommended_tools": tools,
            },
            "processing": {
                "status": status.value,
                "error": error,
                "model_used": model_used,
                "providers_attempted": attempted,
                "processing_time_ms": elapsed_ms,
                "confidence": confidence,
            },
        }
        return validate_stage(AssetAnalysis, data, stage=STAGE)

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._timer() - start) * 1000))


class ImageAnalyzer(KindAnalyzer):
    kind = MediaKind.IMAGE
    prompt_id = "asset_image_v1"
    focus = "Focus on subjects, composition, lighting, colour palette, style and sharpness."


class VideoAnalyzer(KindAnalyzer):
    kind = MediaKind.VIDEO
    prompt_id = "asset_video_v1"
    focus = "Focus on scenes, action, pacing, camera work, style, mood and technical quality."


class AudioAnalyzer(KindAnalyzer):
    kind = MediaKind.AUDIO
    prompt_id = "asset_audio_v1"
    focus = "Focus on content (speech, music, effects), tempo, mood, clarity and noise."


class TextAnalyzer(KindAnalyzer):
    kind = MediaKind.TEXT
    prompt_id = "asset_text_v1"
    focus = "Focus on the message, tone and structure, and how the text could be used."


ANALYZER_CLASSES: dict[MediaKind, type[KindAnalyzer]] = {
    MediaKind.IMAGE: ImageAnalyzer,
    MediaKind.VIDEO: VideoAnalyzer,
    MediaKind.AUDIO: AudioAnalyzer,
    MediaKind.TEXT: TextAnalyzer,
}


def failed_analysis(
    asset: MediaAsset, error: str, attempted: list[str], elapsed_ms: int = 0
) -> AssetAnalysis:
    """The record kept for an asset nothing usable was produced for."""
    data = {
        "asset_id": asset.id,
        "kind": asset.kind.value,
        "source": asset.source,
        "metadata": {"format": _extension(asset.source), "quality_score": 0.0},
        "content": {"description": asset.description or ""},
        "alignment": {
            "alignment_score": 0.0,
            "project_role": ProjectRole.UNCLEAR.value,
            "contribution_notes": [],
        },
        "processing": {
            "status": AnalysisStatus.FAILED.value,
            "error": error,
            "providers_attempted": attempted,
            "processing_time_ms": elapsed_ms,
            "confidence": 0.0,
        },
    }
    return validate_stage(AssetAnalysis, data, stage=STAGE)


# =============================================================================
# Stage
# =============================================================================


class AssetAnalyzer:
    """Stage 2: concurrent per-asset analysis plus the aggregate summary.

    Example:
        >>> analyzer = AssetAnalyzer({MediaKind.VIDEO: video_chain, ...})
        >>> result = asyncio.run(analyzer.analyze(assets, query_analysis))
        >>> result.summary.successful_analyses
    """

    def __init__(
        self,
        chains: dict[MediaKind, FallbackChain],
        options: AssetAnalysisOptions | None = None,
        generation: GenerationOptions | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._options = options or AssetAnalysisOptions()
        self._timer = timer
        self._analyzers = {
            kind: ANALYZER_CLASSES[kind](chain, self._options, generation, timer)
            for kind, chain in chains.items()
        }
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def analyzer_for(self, kind: MediaKind) -> KindAnalyzer:
        """Return the analyzer for a kind.

        Raises:
            AssetStageError: If the kind has no analyzer or no providers.
        """
        analyzer = self._analyzers.get(kind)
        if analyzer is None or not analyzer.chain.providers:
            raise AssetStageError(f"No providers configured for {kind.value} assets")
        return analyzer

    async def analyze(
        self, assets: Sequence[MediaAsset], query_analysis: QueryAnalysis
    ) -> AssetAnalysisResult:
        """Analyse every asset; one result per input asset, in input order.

        Raises:
            AssetStageError: Stage timeout or a kind without providers.
        """
        start = self._timer()
        if not assets:
            self._logger.info("No assets supplied; asset-free mode")
            return self._result([], start)

        for kind in sorted({asset.kind for asset in assets}, key=lambda k: k.value):
            self.analyzer_for(kind)

        try:
            analyses = await asyncio.wait_for(
                self._analyze_all(assets, query_analysis),
                timeout=self._options.stage_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AssetStageError(
                f"Asset analysis exceeded {self._options.stage_timeout_seconds:.0f}s "
                f"for {len(assets)} asset(s)"
            ) from e

        return self._result(analyses, start)

    async def _analyze_all(
        self, assets: Sequence[MediaAsset], query_analysis: QueryAnalysis
    ) -> list[AssetAnalysis]:
        semaphore = asyncio.Semaphore(self._options.max_concurrent)
        slots: list[AssetAnalysis | None] = [None] * len(assets)

        async def run_one(index: int, asset: MediaAsset) -> None:
            async with semaphore:
                analyzer = self.analyzer_for(asset.kind)
                slots[index] = await analyzer.analyze(asset, query_analysis)

        outcomes = await asyncio.gather(
            *(run_one(index, asset) for index, asset in enumerate(assets)),
            return_exceptions=True,
        )

        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                asset = assets[index]
                self._logger.error(
                    f"Asset '{asset.id}' analysis raised {type(outcome).__name__}: {outcome}"
                )
                slots[index] = failed_analysis(
                    asset, f"{type(outcome).__name__}: {outcome}", []
                )

        return [analysis for analysis in slots if analysis is not None]

    def _result(self, analyses: list[AssetAnalysis], start: float) -> AssetAnalysisResult:
        options = self._options
        usable = [a for a in analyses if not a.failed]
        statuses = Counter(a.processing.status for a in analyses)

        primary_candidates: list[str] = []
        reference_candidates: list[str] = []
        for analysis in usable:
            if (
                analysis.metadata.quality_score >= options.primary_candidate_quality
                and len(analysis.content.description) >= options.primary_candidate_min_description
            ):
                primary_candidates.append(analysis.asset_id)
            else:
                reference_candidates.append(analysis.asset_id)

        overall_quality = (
            round(sum(a.metadata.quality_score for a in usable) / len(usable), 2) if usable else 0.0
        )

        warnings: list[str] = []
        for analysis in analyses:
            if analysis.processing.status == AnalysisStatus.PARTIAL:
                warnings.append(
                    f"Asset '{analysis.asset_id}' was analysed from its user description only"
                )
            elif analysis.failed:
                warnings.append(
                    f"Asset '{analysis.asset_id}' analysis failed: {analysis.processing.error}"
                )

        successful = statuses[AnalysisStatus.SUCCESS]
        data = {
            "analyses": [a.model_dump(mode="json") for a in analyses],
            "summary": {
                "total_assets": len(analyses),
                "by_kind": dict(sorted(Counter(a.kind.value for a in analyses).items())),
                "successful_analyses": successful,
                "partial_analyses": statuses[AnalysisStatus.PARTIAL],
                "failed_analyses": statuses[AnalysisStatus.FAILED],
                "overall_quality_score": overall_quality,
                "primary_content_candidates": primary_candidates,
                "reference_material_candidates": reference_candidates,
                "processing_time_ms": max(0, int((self._timer() - start) * 1000)),
                "models_used": sorted(
                    {a.processing.model_used for a in usable if a.processing.model_used}
                ),
            },
            "success": not analyses or successful > 0,
            "warnings": warnings,
        }
        result = validate_stage(AssetAnalysisResult, data, stage=STAGE)
        self._logger.info(
            f"Analysed {len(analyses)} asset(s): {successful} ok, "
            f"{statuses[AnalysisStatus.PARTIAL]} partial, {statuses[AnalysisStatus.FAILED]} failed"
        )
        return result
