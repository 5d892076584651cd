"""Core data models for DreamCut Analyzer.

This module holds the pipeline's input types and the outputs of the first
two stages. Models follow the pipeline's flow:

1. INPUT (MediaAsset, the raw query string)
2. QUERY UNDERSTANDING (QueryAnalysis and its parts)
3. ASSET UNDERSTANDING (AssetAnalysis, AssetAnalysisSummary, AssetAnalysisResult)

Every stage output is frozen once built; later stages derive new values and
never mutate an earlier artifact.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

T = TypeVar("T")


# =============================================================================
# Base
# =============================================================================


class Schema(BaseModel):
    """Base for every stage artifact: unknown fields rejected, instances frozen."""

    model_config = ConfigDict(extra="forbid", frozen=True, protected_namespaces=())


class InputValidationError(ValueError):
    """Raised for a missing query or malformed asset descriptor.

    Raised before any provider call is made.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


# =============================================================================
# Enums
# =============================================================================


class OutputType(str, Enum):
    """The primary output medium a request asks for."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    MIXED = "mixed"


class MediaKind(str, Enum):
    """Declared kind of an attached asset."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"


class AnalysisStatus(str, Enum):
    """Outcome of one asset analysis.

    SUCCESS means a provider answered; PARTIAL means only the user-supplied
    description was available; FAILED means nothing usable was produced.
    """

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ProjectRole(str, Enum):
    """Role hint an asset analysis assigns to its asset."""

    PRIMARY_CONTENT = "primary_content"
    SUPPORTING_ELEMENT = "supporting_element"
    REFERENCE_MATERIAL = "reference_material"
    BACKGROUND = "background"
    ENHANCEMENT_TARGET = "enhancement_target"
    UNCLEAR = "unclear"


class ImpactLevel(str, Enum):
    """Severity of a gap or contradiction."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# Input
# =============================================================================


class MediaAsset(Schema):
    """A caller-supplied attachment. Read-only to the pipeline.

    Attributes:
        id: Unique identifier within one request.
        source: Locator (URL or path) of the media.
        kind: Declared media kind, used to route analysis.
        description: Optional user-supplied description.
    """

    id: str
    source: str
    kind: MediaKind
    description: str | None = None

    @field_validator("id", "source")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> "MediaAsset":
        """Build an asset from a mapping, raising InputValidationError on bad input.

        Example:
            >>> MediaAsset.from_descriptor({"id": "a1", "source": "clip.mp4", "kind": "video"})
        """
        if isinstance(descriptor, MediaAsset):
            return descriptor
        if not isinstance(descriptor, dict):
            raise InputValidationError(
                f"Asset descriptor must be a mapping, got {type(descriptor).__name__}",
                field="assets",
            )
        try:
            return cls.model_validate(descriptor)
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(part) for part in first["loc"]) or "asset"
            raise InputValidationError(
                f"Malformed asset descriptor ({loc}): {first['msg']}", field=loc
            ) from e


def validate_inputs(query: Any, assets: Sequence[Any] | None) -> tuple[str, list[MediaAsset]]:
    """Check the pipeline inputs before any provider call.

    Args:
        query: Raw user request text.
        assets: Asset descriptors (mappings or MediaAsset instances).

    Returns:
        Tuple of (stripped query, validated assets in input order).

    Raises:
        InputValidationError: Empty query, malformed descriptor, or duplicate ids.
    """
    if not isinstance(query, str) or not query.strip():
        raise InputValidationError("Query must be a non-empty string", field="query")

    validated: list[MediaAsset] = []
    seen: set[str] = set()
    for descriptor in assets or []:
        asset = MediaAsset.from_descriptor(descriptor)
        if asset.id in seen:
            raise InputValidationError(f"Duplicate asset id: {asset.id}", field="assets.id")
        seen.add(asset.id)
        validated.append(asset)

    return query.strip(), validated


# =============================================================================
# Query Analysis
# =============================================================================


class Intent(Schema):
    """The inferred output medium with its confidence."""

    primary_output_type: OutputType
    secondary_output_types: list[OutputType] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    user_goal: str | None = None


class Modifiers(Schema):
    """Stylistic and contextual attributes extracted from the query."""

    style: list[str] | None = None
    mood: list[str] | None = None
    tone: list[str] | None = None
    theme: list[str] | None = None
    aesthetic: list[str] | None = None
    technical_specs: list[str] | None = None
    platform: list[str] | None = None
    target_audience: list[str] | None = None


class Constraints(Schema):
    """Output-shape constraints.

    Each value is either a single value or a list of alternative candidates.
    """

    image_count: int | list[int] | None = None
    duration_seconds: int | list[int] | None = None
    audio_length_seconds: int | list[int] | None = None
    aspect_ratio: str | list[str] | None = None
    resolution: str | list[str] | None = None
    format_preferences: list[str] | None = None
    timeline: str | None = None
    deadline: str | None = None

    @field_validator("image_count", "duration_seconds", "audio_length_seconds")
    @classmethod
    def validate_positive(cls, v: int | list[int] | None) -> int | list[int] | None:
        values = v if isinstance(v, list) else [v] if v is not None else []
        for value in values:
            if value <= 0:
                raise ValueError(f"must be positive, got {value}")
        return v


class QueryGaps(Schema):
    """Flags for information the request did not supply."""

    missing_subject: bool = False
    missing_duration: bool = False
    missing_aspect_ratio: bool = False
    missing_style: bool = False
    missing_mood: bool = False
    missing_platform: bool = False
    missing_target_audience: bool = False
    clarification_needed: list[str] = Field(default_factory=list)

    def flagged(self) -> list[str]:
        """Names of the flags that are set, in declaration order."""
        return [
            name
            for name in type(self).model_fields
            if name.startswith("missing_") and getattr(self, name)
        ]


class CreativeReframing(Schema):
    """Optional reframed creative direction offered by the provider."""

    enhanced_prompt: str | None = None
    creative_direction: str | None = None
    alternative_interpretations: list[str] = Field(default_factory=list)
    suggested_additions: list[str] = Field(default_factory=list)


class QueryProcessingMetadata(Schema):
    """Authoritative metadata injected after the provider call."""

    timestamp: datetime
    processing_time_ms: int = Field(ge=0)
    model_used: str
    providers_attempted: list[str] = Field(default_factory=list)
    fallback_used: bool = False
    original_query: str
    normalization_applied: bool = False
    grammar_corrected: bool = False
    selected_output_type: OutputType | None = None


class QueryAnalysis(Schema):
    """Stage 1 output: the structured understanding of the user's request."""

    normalized_query: str
    intent: Intent
    modifiers: Modifiers = Field(default_factory=Modifiers)
    constraints: Constraints = Field(default_factory=Constraints)
    gaps: QueryGaps = Field(default_factory=QueryGaps)
    creative_reframing: CreativeReframing | None = None
    processing_metadata: QueryProcessingMetadata


# =============================================================================
# Asset Analysis
# =============================================================================


class AssetMetadata(Schema):
    """Technical facts about an asset, best effort."""

    file_size_bytes: int | None = Field(default=None, ge=0)
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    duration_seconds: float | None = Field(default=None, ge=0.0)
    format: str | None = None
    quality_score: float = Field(ge=0.0, le=10.0)

    @property
    def dimensions(self) -> str | None:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None


class AssetContent(Schema):
    """What the asset contains."""

    description: str = ""
    detected_elements: list[str] = Field(default_factory=list)
    style: str | None = None
    mood: str | None = None


class AssetAlignment(Schema):
    """How well the asset fits the request."""

    alignment_score: float = Field(ge=0.0, le=1.0)
    project_role: ProjectRole = ProjectRole.UNCLEAR
    contribution_notes: list[str] = Field(default_factory=list)


class AssetNeeds(Schema):
    """Processing the asset would need before use."""

    needs_enhancement: bool = False
    enhancement_types: list[str] = Field(default_factory=list)
    recommended_tools: list[str] = Field(default_factory=list)


class AssetProcessing(Schema):
    """Outcome of the analysis of one asset."""

    status: AnalysisStatus
    error: str | None = None
    model_used: str | None = None
    providers_attempted: list[str] = Field(default_factory=list)
    processing_time_ms: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AssetAnalysis(Schema):
    """Per-asset structured result. Exactly one per input asset."""

    asset_id: str
    kind: MediaKind
    source: str
    metadata: AssetMetadata
    content: AssetContent
    alignment: AssetAlignment
    needs: AssetNeeds = Field(default_factory=AssetNeeds)
    processing: AssetProcessing

    @property
    def failed(self) -> bool:
        return self.processing.status == AnalysisStatus.FAILED


class AssetAnalysisSummary(Schema):
    """Aggregate over one run of the asset stage."""

    total_assets: int = Field(ge=0)
    by_kind: dict[str, int] = Field(default_factory=dict)
    successful_analyses: int = Field(default=0, ge=0)
    partial_analyses: int = Field(default=0, ge=0)
    failed_analyses: int = Field(default=0, ge=0)
    overall_quality_score: float = Field(default=0.0, ge=0.0, le=10.0)
    primary_content_candidates: list[str] = Field(default_factory=list)
    reference_material_candidates: list[str] = Field(default_factory=list)
    processing_time_ms: int = Field(default=0, ge=0)
    models_used: list[str] = Field(default_factory=list)


class AssetAnalysisResult(Schema):
    """Stage 2 output: every per-asset analysis plus the aggregate."""

    analyses: list[AssetAnalysis] = Field(default_factory=list)
    summary: AssetAnalysisSummary
    success: bool
    warnings: list[str] = Field(default_factory=list)

    @property
    def asset_free(self) -> bool:
        return self.summary.total_assets == 0


# =============================================================================
# Helpers
# =============================================================================


def first_value(value: T | list[T] | None) -> T | None:
    """Collapse a single-or-candidates constraint to its first value."""
    if isinstance(value, list):
        return value[0] if value else None
    return value
