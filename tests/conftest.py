"""Central Pytest Fixtures for DreamCut Analyzer.

This module provides reusable test data, canned providers and deterministic
clocks across all test modules. It keeps stage tests independent of any
network access.

Fixtures included:
- Determinism: fixed_clock, fixed_id, zero_timer
- Providers: stub_provider, static_registry
- Configuration: stub_config
- Pipeline: pipeline (stub providers, fixed clock, id factory and timer)

Helpers included:
- make_query_analysis, make_asset_analysis, make_asset_result
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any

import pytest

from dreamcut.ai.asset_analyzer import role_for_alignment
from dreamcut.ai.client import ProviderRegistry, StaticProvider
from dreamcut.config import (
    AppConfig,
    AssetsConfig,
    ProviderBackend,
    ProviderSpec,
    QueryConfig,
    SynthesisConfig,
    reset_config,
)
from dreamcut.core.models import (
    AnalysisStatus,
    AssetAnalysis,
    AssetAnalysisResult,
    MediaAsset,
    ProjectRole,
    QueryAnalysis,
)
from dreamcut.core.validation import validate_stage
from dreamcut.pipeline import AnalysisPipeline

# =============================================================================
# Canned Provider Responses
# =============================================================================

FIXED_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

TEASER_QUERY = "make a 30s product teaser, 16:9, energetic mood"
TEASER_NORMALIZED = "Make a 30s product teaser, 16:9, energetic mood."

QUERY_PAYLOAD: dict[str, Any] = {
    "intent": {
        "primary_output_type": "video",
        "secondary_output_types": [],
        "confidence": 0.8,
        "reasoning": "Request names a teaser video",
        "user_goal": "Promote the product",
    },
    "modifiers": {"mood": ["energetic"]},
    "constraints": {"duration_seconds": 30, "aspect_ratio": "16:9"},
    "gaps": {
        "missing_style": True,
        "missing_platform": True,
        "missing_target_audience": True,
    },
    "creative_reframing": {
        "enhanced_prompt": "A 30 second energetic product teaser in 16:9.",
        "creative_direction": "A fast, energetic product teaser built on quick cuts.",
    },
}

VIDEO_DESCRIPTION = (
    "A sharp, well lit product video of a bottle on a kitchen table "
    "with an energetic teaser feel."
)
VIDEO_RESPONSE = json.dumps({"width": 1920, "height": 1080, "format": "mp4"}) + "\n" + VIDEO_DESCRIPTION
IMAGE_RESPONSE = "A plain studio backdrop in grey."
CREATIVE_RESPONSE = "Open on the bottle,\n  cut on the beat and close on the logo."

EXTENSIONS = {"image": "png", "video": "mp4", "audio": "mp3", "text": "txt"}


def stub_routes(query_payload: dict[str, Any] | None = None) -> list[tuple[str, str]]:
    """Routes for a StaticProvider that answers every pipeline prompt."""
    return [
        ("Request type: query_analysis", json.dumps(query_payload or QUERY_PAYLOAD)),
        ("Request type: asset_analysis:image", IMAGE_RESPONSE),
        ("Request type: asset_analysis:", VIDEO_RESPONSE),
        ("Request type: creative_direction", CREATIVE_RESPONSE),
    ]


# =============================================================================
# Helper Functions
# =============================================================================


def make_query_analysis(
    normalized_query: str = TEASER_NORMALIZED,
    primary: str = "video",
    confidence: float = 0.8,
    secondary: list[str] | None = None,
    modifiers: dict[str, Any] | None = None,
    constraints: dict[str, Any] | None = None,
    gaps: dict[str, Any] | None = None,
    creative_direction: str | None = "A fast, energetic product teaser built on quick cuts.",
    selected: str | None = None,
) -> QueryAnalysis:
    """Build a validated QueryAnalysis for stage 2-4 tests."""
    data = {
        "normalized_query": normalized_query,
        "intent": {
            "primary_output_type": primary,
            "secondary_output_types": secondary or [],
            "confidence": confidence,
            "reasoning": "Test intent",
        },
        "modifiers": modifiers if modifiers is not None else {"mood": ["energetic"]},
        "constraints": (
            constraints
            if constraints is not None
            else {"duration_seconds": 30, "aspect_ratio": "16:9"}
        ),
        "gaps": gaps or {},
        "creative_reframing": (
            {"creative_direction": creative_direction} if creative_direction else None
        ),
        "processing_metadata": {
            "timestamp": FIXED_TIME.isoformat(),
            "processing_time_ms": 0,
            "model_used": "stub",
            "providers_attempted": ["stub"],
            "original_query": normalized_query,
            "selected_output_type": selected,
        },
    }
    return validate_stage(QueryAnalysis, data, stage="query_analysis")


def make_asset_analysis(
    asset_id: str,
    kind: str = "video",
    alignment: float = 0.5,
    quality: float = 7.0,
    status: str = "success",
    description: str = "A clear product shot.",
    style: str | None = None,
    mood: str | None = None,
    width: int | None = None,
    height: int | None = None,
    enhancements: tuple[str, ...] = (),
    role: ProjectRole | None = None,
) -> AssetAnalysis:
    """Build a validated AssetAnalysis with the role implied by its alignment."""
    failed = status == AnalysisStatus.FAILED.value
    data = {
        "asset_id": asset_id,
        "kind": kind,
        "source": f"{asset_id}.{EXTENSIONS[kind]}",
        "metadata": {"width": width, "height": height, "quality_score": quality},
        "content": {"description": description, "style": style, "mood": mood},
        "alignment": {
            "alignment_score": alignment,
            "project_role": (role or role_for_alignment(alignment)).value,
        },
        "needs": {
            "needs_enhancement": bool(enhancements),
            "enhancement_types": list(enhancements),
        },
        "processing": {
            "status": status,
            "error": "All providers failed" if failed else None,
            "model_used": "stub" if status == AnalysisStatus.SUCCESS.value else None,
            "confidence": 0.0 if failed else 0.7,
        },
    }
    return validate_stage(AssetAnalysis, data, stage="asset_analysis")


def make_asset_result(analyses: list[AssetAnalysis]) -> AssetAnalysisResult:
    """Aggregate analyses into a validated AssetAnalysisResult."""
    usable = [a for a in analyses if not a.failed]
    statuses = Counter(a.processing.status for a in analyses)
    successful = statuses[AnalysisStatus.SUCCESS]
    data = {
        "analyses": [a.model_dump(mode="json") for a in analyses],
        "summary": {
            "total_assets": len(analyses),
            "by_kind": dict(Counter(a.kind.value for a in analyses)),
            "successful_analyses": successful,
            "partial_analyses": statuses[AnalysisStatus.PARTIAL],
            "failed_analyses": statuses[AnalysisStatus.FAILED],
            "overall_quality_score": (
                round(sum(a.metadata.quality_score for a in usable) / len(usable), 2)
                if usable
                else 0.0
            ),
            "models_used": ["stub"] if successful else [],
        },
        "success": not analyses or successful > 0,
    }
    return validate_stage(AssetAnalysisResult, data, stage="asset_analysis")


def make_asset(asset_id: str, kind: str = "video", description: str | None = None) -> MediaAsset:
    return MediaAsset(
        id=asset_id,
        source=f"{asset_id}.{EXTENSIONS[kind]}",
        kind=kind,
        description=description,
    )


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def reset_global_state():
    """Clear the cached config and undo CLI logging setup between tests."""
    reset_config()
    yield
    reset_config()
    package_logger = logging.getLogger("dreamcut")
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# =============================================================================
# Determinism
# =============================================================================


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


@pytest.fixture
def fixed_id():
    return lambda: "fixed_id"


@pytest.fixture
def zero_timer():
    return lambda: 0.0


# =============================================================================
# Providers and Configuration
# =============================================================================


@pytest.fixture
def stub_provider() -> StaticProvider:
    """Static provider answering every prompt type the pipeline sends."""
    return StaticProvider("stub", stub_routes())


@pytest.fixture
def static_registry(stub_provider: StaticProvider) -> ProviderRegistry:
    return ProviderRegistry([stub_provider])


@pytest.fixture
def stub_config() -> AppConfig:
    """Configuration whose every stage order points at the stub provider."""
    return AppConfig(
        providers=[ProviderSpec(name="stub", backend=ProviderBackend.STATIC, model="static")],
        query=QueryConfig(provider_order=["stub"]),
        assets=AssetsConfig(
            image_providers=["stub"],
            video_providers=["stub"],
            audio_providers=["stub"],
            text_providers=["stub"],
        ),
        synthesis=SynthesisConfig(provider_order=["stub"]),
    )


@pytest.fixture
def pipeline(stub_config, static_registry, fixed_clock, fixed_id, zero_timer) -> AnalysisPipeline:
    """Fully deterministic pipeline over the stub provider."""
    return AnalysisPipeline(
        stub_config,
        static_registry,
        clock=fixed_clock,
        id_factory=fixed_id,
        timer=zero_timer,
    )
