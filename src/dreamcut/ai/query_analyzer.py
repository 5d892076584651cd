"""Query Analyzer: stage 1 of the analysis pipeline.

Turns the raw request text into a validated ``QueryAnalysis``:

1. Normalize the text (whitespace, terminal punctuation, trivial grammar)
2. Build one structured-analysis prompt
3. Run it through the stage's fallback chain (named preference first, then
   the fixed order, each provider at most once)
4. Extract the JSON object, repair its shape, fill explicit constraints the
   provider missed, inject authoritative metadata
5. Validate against the schema

A provider whose output cannot be repaired into a valid ``QueryAnalysis``
counts as a failed attempt and the chain moves on. If every provider fails,
``QueryAnalysisError`` names the last provider tried and its cause.

Example:
    >>> analyzer = QueryAnalyzer(chain, QueryAnalysisOptions())
    >>> outcome = asyncio.run(analyzer.analyze("make a 30s product teaser, 16:9"))
    >>> outcome.analysis.intent.primary_output_type
    <OutputType.VIDEO: 'video'>
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from dreamcut.ai.chain import AllProvidersFailedError, FallbackChain, ProviderAttempt
from dreamcut.ai.client import GenerationOptions, MalformedResponseError
from dreamcut.ai.parsing import parse_json_object
from dreamcut.ai.prompts import QUERY_ANALYSIS_PROMPT, build_prompt
from dreamcut.config import AUTO, QueryConfig
from dreamcut.core.models import MediaKind, Modifiers, OutputType, QueryAnalysis
from dreamcut.core.validation import SchemaValidationError, prune_unknown_fields, validate_stage

logger = logging.getLogger(__name__)

STAGE = "query_analysis"


# =============================================================================
# Options and Results
# =============================================================================


@dataclass
class QueryAnalysisOptions:
    """Per-run options for the query analyzer.

    Attributes:
        enable_grammar_correction: Repair capitalization and duplicate words.
        enable_creative_reframing: Keep the provider's creative reframing.
        enable_detailed_modifiers: Ask for the extended modifier set.
        model_preference: "auto" or a provider name tried first.
        fallback_on_failure: Try the remaining providers after the first fails.
        selected_output_type: Medium chosen by the caller; overrides the inferred intent.
        timeout_seconds: Per-call timeout.
    """

    enable_grammar_correction: bool = True
    enable_creative_reframing: bool = True
    enable_detailed_modifiers: bool = True
    model_preference: str = AUTO
    fallback_on_failure: bool = True
    selected_output_type: OutputType | None = None
    timeout_seconds: float = 60.0

    @classmethod
    def from_config(
        cls, config: QueryConfig, selected_output_type: OutputType | None = None
    ) -> "QueryAnalysisOptions":
        return cls(
            enable_grammar_correction=config.enable_grammar_correction,
            enable_creative_reframing=config.enable_creative_reframing,
            enable_detailed_modifiers=config.enable_detailed_modifiers,
            model_preference=config.model_preference,
            fallback_on_failure=config.fallback_on_failure,
            selected_output_type=selected_output_type,
            timeout_seconds=config.timeout_seconds,
        )


@dataclass
class NormalizedQuery:
    """Result of text normalization."""

    text: str
    changed: bool
    grammar_corrected: bool


@dataclass
class ExplicitConstraints:
    """Constraints read directly from the request text."""

    constraints: dict[str, Any] = field(default_factory=dict)
    platforms: list[str] = field(default_factory=list)


@dataclass
class AssetRequirements:
    """Which attachments the request implies."""

    needs_assets: bool
    kinds: list[MediaKind]
    reason: str


@dataclass
class QueryAnalysisOutcome:
    """Validated stage 1 result plus traceability data."""

    analysis: QueryAnalysis
    provider: str
    elapsed_ms: int
    attempts: list[ProviderAttempt] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


class QueryAnalysisError(Exception):
    """Every provider failed to produce a usable query analysis."""

    def __init__(self, message: str, last_provider: str | None, cause: Exception | None) -> None:
        super().__init__(message)
        self.last_provider = last_provider
        self.cause = cause


# =============================================================================
# Normalization
# =============================================================================


_STANDALONE_I = re.compile(r"\bi\b")
_REPEATED_WORD = re.compile(r"\b(\w+)(?:\s+\1\b)+", re.IGNORECASE)


def normalize_query(text: str, grammar_correction: bool = True) -> NormalizedQuery:
    """Collapse whitespace, fix terminal punctuation and trivial grammar.

    Example:
        >>> normalize_query("make  a a teaser").text
        'Make a teaser.'
    """
    collapsed = " ".join(text.split())
    result = collapsed

    if grammar_correction and result:
        result = _STANDALONE_I.sub("I", result)
        result = _REPEATED_WORD.sub(r"\1", result)
        result = result[0].upper() + result[1:]

    if len(result) > 3 and result[-1] not in ".!?":
        result += "."

    return NormalizedQuery(
        text=result,
        changed=result != text,
        grammar_corrected=grammar_correction and _grammar_only(collapsed) != _grammar_only(result),
    )


def _grammar_only(text: str) -> str:
    return text.rstrip(".!?")


# =============================================================================
# Explicit Constraint Extraction
# =============================================================================


KNOWN_ASPECT_RATIOS = ("16:9", "9:16", "1:1", "4:5", "4:3", "21:9")

ASPECT_RATIO_WORDS = {
    "square": "1:1",
    "vertical": "9:16",
    "portrait": "9:16",
    "widescreen": "16:9",
    "landscape": "16:9",
}

KNOWN_PLATFORMS = ("instagram", "tiktok", "youtube", "linkedin", "twitter")

RESOLUTION_ALIASES = {"4k": "3840x2160", "1080p": "1920x1080", "720p": "1280x720"}

_DURATION = re.compile(
    r"\b(\d{1,3}(?:\.\d+)?)\s*-?\s*(seconds?|secs?|s|minutes?|mins?)\b", re.IGNORECASE
)
_ASPECT_RATIO = re.compile(r"\b(\d{1,2})\s*:\s*(\d{1,2})\b")
_IMAGE_COUNT = re.compile(
    r"\b(\d+)\s+(?:\w+\s+)?(images|photos|pictures|posters|thumbnails|variations)\b",
    re.IGNORECASE,
)
_RESOLUTION = re.compile(r"\b(4k|1080p|720p|\d{3,4}x\d{3,4})\b", re.IGNORECASE)


def extract_explicit_constraints(text: str) -> ExplicitConstraints:
    """Read constraints stated literally in the request.

    Only unambiguous forms are recognized; anything else is left to the
    provider.

    Example:
        >>> extract_explicit_constraints("30s teaser, 16:9, for tiktok").constraints
        {'duration_seconds': 30, 'aspect_ratio': '16:9'}
    """
    found: dict[str, Any] = {}

    match = _DURATION.search(text)
    if match:
        value = float(match.group(1))
        unit = match.group(2).lower()
        seconds = value * 60 if unit.startswith("m") else value
        if seconds > 0:
            found["duration_seconds"] = int(round(seconds))

    for ratio_match in _ASPECT_RATIO.finditer(text):
        ratio = f"{int(ratio_match.group(1))}:{int(ratio_match.group(2))}"
        if ratio in KNOWN_ASPECT_RATIOS:
            found["aspect_ratio"] = ratio
            break
    else:
        lowered = text.lower()
        for word, ratio in ASPECT_RATIO_WORDS.items():
            if re.search(rf"\b{word}\b", lowered):
                found["aspect_ratio"] = ratio
                break

    match = _IMAGE_COUNT.search(text)
    if match and int(match.group(1)) > 0:
        found["image_count"] = int(match.group(1))

    match = _RESOLUTION.search(text)
    if match:
        value = match.group(1).lower()
        found["resolution"] = RESOLUTION_ALIASES.get(value, value)

    lowered = text.lower()
    platforms = [p for p in KNOWN_PLATFORMS if re.search(rf"\b{p}\b", lowered)]

    return ExplicitConstraints(constraints=found, platforms=platforms)


# =============================================================================
# Platform Defaults and Asset Requirements
# =============================================================================


PLATFORM_DEFAULTS: dict[str, dict[str, Any]] = {
    "instagram": {"aspect_ratio": "1:1", "duration_seconds": 60},
    "tiktok": {"aspect_ratio": "9:16", "duration_seconds": 60},
    "youtube": {"aspect_ratio": "16:9", "duration_seconds": 120},
    "linkedin": {"aspect_ratio": "1:1", "duration_seconds": 60},
    "twitter": {"aspect_ratio": "16:9", "duration_seconds": 140},
}


def generate_default_constraints(platforms: list[str] | None) -> dict[str, Any]:
    """Defaults for the first recognized platform, or an empty dict.

    The result is reported alongside the analysis and never merged into the
    query's own constraints.
    """
    for platform in platforms or []:
        defaults = PLATFORM_DEFAULTS.get(platform.strip().lower())
        if defaults:
            return {"platform": platform.strip().lower(), **defaults}
    return {}


_ASSET_REFERENCE = re.compile(
    r"\b(this|these|my|our|attached|uploaded|existing|footage|clips?|photos?|recordings?)\b",
    re.IGNORECASE,
)
_EDIT_VERBS = re.compile(r"\b(turn|edit|remix|recut|cut|combine|enhance|restore|use)\b", re.IGNORECASE)

_KINDS_FOR_OUTPUT = {
    OutputType.IMAGE: [MediaKind.IMAGE],
    OutputType.VIDEO: [MediaKind.VIDEO, MediaKind.IMAGE, MediaKind.AUDIO],
    OutputType.AUDIO: [MediaKind.AUDIO],
    OutputType.MIXED: [MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO, MediaKind.TEXT],
}


def detect_asset_requirements(analysis: QueryAnalysis) -> AssetRequirements:
    """Decide whether the request refers to material the caller must supply."""
    text = analysis.normalized_query
    kinds = list(_KINDS_FOR_OUTPUT[analysis.intent.primary_output_type])

    reference = _ASSET_REFERENCE.search(text)
    if reference:
        return AssetRequirements(
            needs_assets=True, kinds=kinds, reason=f"Request refers to '{reference.group(0)}'"
        )
    verb = _EDIT_VERBS.search(text)
    if verb:
        return AssetRequirements(
            needs_assets=True, kinds=kinds, reason=f"Request asks to '{verb.group(0)}' material"
        )
    return AssetRequirements(
        needs_assets=False, kinds=kinds, reason="Request can be produced from scratch"
    )


# =============================================================================
# Payload Repair
# =============================================================================


_OUTPUT_TYPE_ALIASES = {
    "photo": "image",
    "picture": "image",
    "graphic": "image",
    "clip": "video",
    "film": "video",
    "music": "audio",
    "sound": "audio",
    "multi": "mixed",
    "multiple": "mixed",
    "multimedia": "mixed",
}

_GAP_FLAGS_BY_CONSTRAINT = {
    "duration_seconds": "missing_duration",
    "aspect_ratio": "missing_aspect_ratio",
}

_GAP_FLAGS_BY_MODIFIER = {
    "style": "missing_style",
    "mood": "missing_mood",
    "platform": "missing_platform",
    "target_audience": "missing_target_audience",
}


def _repair_output_type(value: Any, location: str, notes: list[str]) -> Any:
    if not isinstance(value, str):
        return value
    lowered = value.strip().lower()
    repaired = _OUTPUT_TYPE_ALIASES.get(lowered, lowered)
    if repaired != value:
        notes.append(f"Normalized {location} '{value}' to '{repaired}'")
    return repaired


def repair_payload(raw: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Bring loosely shaped provider JSON closer to the schema.

    Only shape repairs are made: enum casing, a scalar where a list is
    expected, and unknown keys dropped. Values are never converted between
    types; a string where a number belongs still fails validation.

    Returns:
        Tuple of (repaired copy, normalization notes).
    """
    notes: list[str] = []
    data = {k: v for k, v in raw.items() if k not in ("normalized_query", "processing_metadata")}
    data, pruned = prune_unknown_fields(QueryAnalysis, data)
    notes.extend(pruned)

    intent = data.get("intent")
    if isinstance(intent, dict):
        intent = dict(intent)
        intent["primary_output_type"] = _repair_output_type(
            intent.get("primary_output_type"), "intent.primary_output_type", notes
        )
        secondary = intent.get("secondary_output_types")
        if isinstance(secondary, str):
            secondary = [secondary]
            notes.append("Wrapped intent.secondary_output_types in a list")
        if isinstance(secondary, list):
            intent["secondary_output_types"] = [
                _repair_output_type(item, "intent.secondary_output_types", notes)
                for item in secondary
            ]
        elif secondary is None and "secondary_output_types" in intent:
            del intent["secondary_output_types"]
        data["intent"] = intent

    modifiers = data.get("modifiers")
    if isinstance(modifiers, dict):
        modifiers = dict(modifiers)
        for name, value in list(modifiers.items()):
            if isinstance(value, str):
                modifiers[name] = [value] if value.strip() else None
                notes.append(f"Wrapped modifiers.{name} in a list")
            elif isinstance(value, list) and not value:
                modifiers[name] = None
        data["modifiers"] = modifiers

    for section in ("constraints", "gaps"):
        value = data.get(section)
        if isinstance(value, dict):
            data[section] = {k: v for k, v in value.items() if v is not None}
        elif value is None and section in data:
            del data[section]

    gaps = data.get("gaps")
    if isinstance(gaps, dict) and isinstance(gaps.get("clarification_needed"), str):
        gaps["clarification_needed"] = [gaps["clarification_needed"]]
        notes.append("Wrapped gaps.clarification_needed in a list")

    if data.get("creative_reframing") is None:
        data.pop("creative_reframing", None)

    return data, notes


def _apply_explicit(
    data: dict[str, Any], explicit: ExplicitConstraints, notes: list[str]
) -> None:
    """Fill constraint and platform fields the provider left empty."""
    constraints = data.setdefault("constraints", {})
    if not isinstance(constraints, dict):
        return
    for name, value in explicit.constraints.items():
        if constraints.get(name) is None:
            constraints[name] = value
            notes.append(f"Filled constraints.{name} from request text")

    modifiers = data.setdefault("modifiers", {})
    if isinstance(modifiers, dict) and explicit.platforms and not modifiers.get("platform"):
        modifiers["platform"] = list(explicit.platforms)
        notes.append("Filled modifiers.platform from request text")


def _reconcile_gap_flags(data: dict[str, Any], notes: list[str]) -> None:
    """Clear missing_* flags that contradict values now present."""
    gaps = data.get("gaps")
    if not isinstance(gaps, dict):
        return
    constraints = data.get("constraints") or {}
    modifiers = data.get("modifiers") or {}

    for name, flag in _GAP_FLAGS_BY_CONSTRAINT.items():
        if gaps.get(flag) is True and constraints.get(name) is not None:
            gaps[flag] = False
            notes.append(f"Cleared gaps.{flag}: constraints.{name} is present")
    for name, flag in _GAP_FLAGS_BY_MODIFIER.items():
        if gaps.get(flag) is True and modifiers.get(name):
            gaps[flag] = False
            notes.append(f"Cleared gaps.{flag}: modifiers.{name} is present")


def _apply_selected_output(
    data: dict[str, Any], selected: OutputType | None, notes: list[str]
) -> None:
    if selected is None:
        return
    intent = data.get("intent")
    if not isinstance(intent, dict):
        return
    inferred = intent.get("primary_output_type")
    if inferred != selected.value:
        notes.append(f"Selected output type '{selected.value}' overrides inferred '{inferred}'")
        intent["primary_output_type"] = selected.value
        secondary = [s for s in intent.get("secondary_output_types") or [] if s != selected.value]
        if inferred in {t.value for t in OutputType} and inferred not in secondary:
            secondary.append(inferred)
        intent["secondary_output_types"] = secondary


# =============================================================================
# Analyzer
# =============================================================================


class QueryAnalyzer:
    """Stage 1: structured understanding of the request text."""

    def __init__(
        self,
        chain: FallbackChain,
        options: QueryAnalysisOptions | None = None,
        generation: GenerationOptions | None = None,
        clock: Callable[[], datetime] | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._chain = chain
        self._options = options or QueryAnalysisOptions()
        self._generation = generation or GenerationOptions()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._timer = timer
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def options(self) -> QueryAnalysisOptions:
        return self._options

    def build_prompt(self, normalized: str) -> str:
        options = self._options
        selected = ""
        if options.selected_output_type is not None:
            selected = (
                f"\nThe caller selected output medium '{options.selected_output_type.value}'. "
                "Use it as primary_output_type.\n"
            )
        modifier_instruction = (
            "Fill every modifier category the request supports, including tone, theme, "
            "aesthetic and technical_specs."
            if options.enable_detailed_modifiers
            else "Only fill the style, mood and platform modifiers."
        )
        reframing_instruction = (
            "Include creative_reframing with an enhanced prompt and a one-sentence creative direction."
            if options.enable_creative_reframing
            else "Omit creative_reframing."
        )
        return build_prompt(
            QUERY_ANALYSIS_PROMPT,
            query=normalized,
            selected_output_type=selected,
            modifier_instruction=modifier_instruction,
            reframing_instruction=reframing_instruction,
        )

    async def analyze(self, query: str) -> QueryAnalysisOutcome:
        """Analyze one request.

        Args:
            query: Raw request text (already checked non-empty).

        Returns:
            QueryAnalysisOutcome with the validated analysis.

        Raises:
            QueryAnalysisError: When every provider failed.
            SchemaValidationError: When the final value fails validation.
        """
        start = self._timer()
        options = self._options
        normalized = normalize_query(query, options.enable_grammar_correction)
        explicit = extract_explicit_constraints(normalized.text)
        prompt = self.build_prompt(normalized.text)

        def parse(text: str, provider_name: str) -> tuple[dict[str, Any], list[str]]:
            payload, notes = self._prepare_payload(parse_json_object(text), normalized, explicit)
            # Validate with placeholder metadata so a bad payload fails this attempt.
            candidate = dict(payload)
            candidate["processing_metadata"] = self._metadata(
                query, normalized, provider_name, [provider_name], 0
            )
            try:
                validate_stage(QueryAnalysis, candidate, stage=STAGE)
            except SchemaValidationError as e:
                raise MalformedResponseError(
                    f"{provider_name} output failed validation: {len(e.errors)} error(s)",
                    original_error=e,
                ) from e
            return payload, notes

        try:
            result = await self._chain.run(
                prompt,
                self._generation,
                preference=options.model_preference,
                allow_fallback=options.fallback_on_failure,
                parser=parse,
            )
        except AllProvidersFailedError as e:
            raise QueryAnalysisError(str(e), e.last_provider, e.cause) from e

        payload, notes = result.data
        elapsed_ms = max(0, int((self._timer() - start) * 1000))
        payload["processing_metadata"] = self._metadata(
            query, normalized, result.provider, result.providers_attempted, elapsed_ms
        )
        analysis = validate_stage(QueryAnalysis, payload, stage=STAGE)

        self._logger.info(
            f"Query analyzed by '{result.provider}' as {analysis.intent.primary_output_type.value} "
            f"({analysis.intent.confidence:.2f})"
        )
        return QueryAnalysisOutcome(
            analysis=analysis,
            provider=result.provider,
            elapsed_ms=elapsed_ms,
            attempts=result.attempts,
            notes=notes,
        )

    def _prepare_payload(
        self,
        raw: dict[str, Any],
        normalized: NormalizedQuery,
        explicit: ExplicitConstraints,
    ) -> tuple[dict[str, Any], list[str]]:
        data, notes = repair_payload(raw)
        _apply_explicit(data, explicit, notes)
        _reconcile_gap_flags(data, notes)
        _apply_selected_output(data, self._options.selected_output_type, notes)

        if not self._options.enable_creative_reframing:
            data.pop("creative_reframing", None)

        modifiers = data.get("modifiers")
        if isinstance(modifiers, dict) and not self._options.enable_detailed_modifiers:
            kept = {"style", "mood", "platform"}
            data["modifiers"] = {k: v for k, v in modifiers.items() if k in kept}

        data["normalized_query"] = normalized.text
        return data, notes

    def _metadata(
        self,
        original: str,
        normalized: NormalizedQuery,
        provider: str,
        attempted: list[str],
        elapsed_ms: int,
    ) -> dict[str, Any]:
        selected = self._options.selected_output_type
        return {
            "timestamp": self._clock().isoformat(),
            "processing_time_ms": elapsed_ms,
            "model_used": provider,
            "providers_attempted": list(attempted),
            "fallback_used": len(attempted) > 1,
            "original_query": original,
            "normalization_applied": normalized.changed,
            "grammar_corrected": normalized.grammar_corrected,
            "selected_output_type": selected.value if selected is not None else None,
        }


def modifier_values(modifiers: Modifiers, name: str) -> list[str]:
    """Return a modifier list, empty when absent."""
    return list(getattr(modifiers, name) or [])
