"""Tests for the output assembler (stage 4).

Tests cover:
- Formatting helpers (sizes, durations, timelines, tiers)
- Confidence aggregation, quality score and completion status
- Document assembly for asset-free and asset-backed runs
- Note collection
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FIXED_TIME, make_asset_analysis, make_asset_result, make_query_analysis
from dreamcut.ai.assembler import (
    OutputAssembler,
    asset_processing_time,
    collect_notes,
    completion_status,
    derive_urgency,
    estimate_timeline,
    format_duration,
    format_file_size,
    overall_confidence,
    prompt_clarity,
    prompt_improvements,
    quality_score,
    quality_tier,
)
from dreamcut.ai.chain import ProviderAttempt
from dreamcut.ai.query_analyzer import QueryAnalysisOutcome
from dreamcut.ai.synthesizer import CombinationSynthesizer
from dreamcut.config import ScoringConfig
from dreamcut.core.models import OutputType
from dreamcut.core.report import CompletionStatus


def build_document(analyses, query=None, notes=None, timings=None):
    query = query or make_query_analysis()
    asset_result = make_asset_result(analyses)
    synthesizer = CombinationSynthesizer(id_factory=lambda: "project_1", timer=lambda: 0.0)
    project = asyncio.run(synthesizer.synthesize(query, asset_result))
    outcome = QueryAnalysisOutcome(
        analysis=query,
        provider="stub",
        elapsed_ms=5,
        attempts=[ProviderAttempt("stub", True, 5)],
        notes=notes or [],
    )
    assembler = OutputAssembler(
        clock=lambda: FIXED_TIME, id_factory=lambda: "analysis_1", timer=lambda: 0.0
    )
    return assembler.assemble(outcome, asset_result, project, timings)


# =============================================================================
# Formatting Tests
# =============================================================================


class TestFormatting:
    """Tests for display helpers."""

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.5 KB"), (1048576, "1 MB"), (3 * 1024**3, "3 GB")],
    )
    def test_format_file_size(self, size, expected):
        """Test sizes use 1024-based units."""
        assert format_file_size(size) == expected

    @pytest.mark.parametrize(
        "seconds,expected", [(45, "45s"), (125, "2m 5s"), (3780, "1h 3m")]
    )
    def test_format_duration(self, seconds, expected):
        """Test durations pick the largest unit."""
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize(
        "score,expected",
        [(9.0, "professional"), (7.0, "excellent"), (5.0, "good"), (3.0, "fair"), (2.9, "poor")],
    )
    def test_quality_tier(self, score, expected):
        """Test quality tiers."""
        assert quality_tier(score) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            (None, "low"),
            ("Need it ASAP", "urgent"),
            ("a quick turnaround", "high"),
            ("standard delivery", "medium"),
            ("whenever", "low"),
        ],
    )
    def test_derive_urgency(self, text, expected):
        """Test urgency keywords."""
        assert derive_urgency(text) == expected

    def test_estimate_timeline(self):
        """Test range midpoints are summed and scaled."""
        assert estimate_timeline(["10-20 minutes"]) == "15 minutes"
        assert estimate_timeline(["100 minutes"]) == "2 hours"
        assert estimate_timeline(["1500 minutes"]) == "1 days"
        assert estimate_timeline(["later"]) == "Variable"

    def test_prompt_clarity(self):
        """Test clarity rises with length and descriptive words."""
        assert prompt_clarity("hi") == pytest.approx(0.2)
        assert prompt_clarity("A calm mood with a warm color palette at dusk") == pytest.approx(0.9)

    def test_prompt_improvements(self):
        """Test suggestions depend on what the prompt lacks."""
        assert prompt_improvements("make a video", OutputType.VIDEO) == [
            "Specify the style, mood, or tone you prefer",
            "Describe the scenes or actions you want to include",
        ]
        assert prompt_improvements("a calm mood for every scene", OutputType.VIDEO) == [
            "Prompt is clear and detailed"
        ]

    def test_asset_processing_time(self):
        """Test low quality assets take longer."""
        assert asset_processing_time(make_asset_analysis("clip", quality=4.0)) == "15 minutes"
        assert asset_processing_time(make_asset_analysis("clip", quality=7.0)) == "8 minutes"


# =============================================================================
# Scoring Tests
# =============================================================================


class TestScoring:
    """Tests for aggregate scoring."""

    def test_overall_confidence_skips_missing(self):
        """Test absent stage confidences are left out of the mean."""
        assert overall_confidence({"a": 0.8, "b": None, "c": 0.6}) == pytest.approx(0.7)

    def test_overall_confidence_empty(self):
        """Test no confidences gives zero."""
        assert overall_confidence({}) == 0.0

    def test_completion_status_boundary(self):
        """Test the threshold itself counts as complete."""
        assert completion_status(0.5, False) == CompletionStatus.COMPLETE
        assert completion_status(0.4999, False) == CompletionStatus.PARTIAL

    def test_critical_gap_is_partial(self):
        """Test a critical gap forces partial status."""
        assert completion_status(0.9, True) == CompletionStatus.PARTIAL

    def test_quality_score_rounds_half_up(self):
        """Test 2.5 rounds to 3."""
        scoring = ScoringConfig(
            quality_weight_query=1.0,
            quality_weight_assets=0.0,
            quality_weight_synthesis=0.0,
            quality_weight_completeness=0.0,
        )
        confidences = {"query_analysis": 0.25, "asset_analysis": None, "synthesis": 1.0}

        assert quality_score(confidences, 1.0, scoring) == 3

    def test_quality_score_drops_absent_terms(self):
        """Test the asset weight is dropped in asset-free runs."""
        confidences = {"query_analysis": 0.8, "asset_analysis": None, "synthesis": 0.8}

        assert quality_score(confidences, 0.7, ScoringConfig()) == 8


# =============================================================================
# Assembly Tests
# =============================================================================


class TestAssembleAssetFree:
    """Tests for a document built without assets."""

    @pytest.fixture
    def document(self):
        return build_document([], timings={"query_analysis": 5})

    def test_metadata(self, document):
        """Test identity, timing and scores."""
        metadata = document.analysis_metadata
        assert metadata.analysis_id == "analysis_1"
        assert metadata.timestamp == FIXED_TIME
        assert metadata.total_processing_time_ms == 5
        assert metadata.pipeline_version == "2.0.0"
        assert metadata.analyzer_confidence == pytest.approx(0.8)
        assert metadata.quality_score == 8
        assert metadata.critical_gap_count == 1
        assert metadata.completion_status == CompletionStatus.PARTIAL

    def test_confidence_breakdown(self, document):
        """Test the asset stage has no confidence."""
        breakdown = document.processing_insights.confidence_breakdown
        assert breakdown.asset_analysis is None
        assert breakdown.overall == pytest.approx(0.8)

    def test_query_summary(self, document):
        """Test the query summary restates the analysis."""
        summary = document.query_summary
        assert summary.parsed_intent.primary_output == OutputType.VIDEO
        assert summary.extracted_constraints.technical.duration_seconds == 30
        assert summary.extracted_constraints.technical.aspect_ratio == "16:9"
        assert summary.extracted_constraints.technical.quality_level == "high"
        assert summary.extracted_constraints.timeline.urgency == "low"
        assert summary.prompt_clarity_score == pytest.approx(0.8)

    def test_global_understanding(self, document):
        """Test the strategy and feasibility of an asset-free project."""
        understanding = document.global_understanding
        assert (
            understanding.asset_utilization_strategy
            == "No assets supplied; all content is created from the brief"
        )
        assert understanding.project_feasibility.technical_feasibility == pytest.approx(1.0)
        assert understanding.project_feasibility.risk_factors == [
            "Critical gaps may impact project success"
        ]
        assert understanding.unified_creative_direction.source == "profile"

    def test_creative_options(self, document):
        """Test runner-up profiles become alternative approaches."""
        alternatives = [a.name for a in document.creative_options.alternative_approaches]
        assert alternatives == ["Demo/Product Showcase Approach", "Minimalist Approach"]
        assert document.creative_options.creative_profile.profile_id == "ads_commercial"

    def test_narrative_spine(self, document):
        """Test the profile scaffold reaches the creative options."""
        spine = document.creative_options.narrative_spine
        assert spine.source == "profile"
        assert spine.intro == "Attention-grabbing hook"
        assert spine.outro == "Strong call-to-action with clear next steps"

    def test_pipeline_recommendations(self, document):
        """Test workflow steps are numbered and chained."""
        workflow = document.pipeline_recommendations.recommended_workflow
        assert [step.step_number for step in workflow] == [1, 2]
        assert workflow[0].dependencies == []
        assert workflow[1].dependencies == ["Content Creation"]
        assert document.pipeline_recommendations.fallback_strategies[0].trigger == (
            "No usable source material"
        )

    def test_model_usage(self, document):
        """Test every stage reports its usage."""
        usage = document.processing_insights.model_usage_summary
        assert [u.stage for u in usage] == ["query_analysis", "asset_analysis", "synthesis", "assembly"]
        assert usage[0].processing_time_ms == 5
        assert usage[3].confidence is None
        assert document.processing_insights.quality_assessments.reliability == "high"

    def test_critical_gap_note(self, document):
        """Test critical gaps appear in the notes."""
        messages = [n.message for n in document.processing_insights.warnings_and_notes]
        assert "Critical gap: No assets supplied; all primary content must be created" in messages


class TestAssembleWithAssets:
    """Tests for a document built from analysed assets."""

    @pytest.fixture
    def document(self):
        return build_document([make_asset_analysis("clip", alignment=0.9, quality=8.0)])

    def test_complete(self, document):
        """Test a well-supported project is complete."""
        metadata = document.analysis_metadata
        assert metadata.completion_status == CompletionStatus.COMPLETE
        assert metadata.critical_gap_count == 0
        assert document.processing_insights.confidence_breakdown.asset_analysis == pytest.approx(0.8)

    def test_individual_asset(self, document):
        """Test each asset is restated with its bucket."""
        asset = document.assets_analysis.individual_assets[0]
        assert asset.asset_id == "clip"
        assert asset.alignment.utilization == "primary"
        assert asset.alignment.contribution == "Main content of the piece"
        assert asset.processing_recommendations.priority == "critical"
        assert asset.content_summary.technical_quality == "excellent"

    def test_quality_overview(self, document):
        """Test the quality overview counts high quality assets."""
        overview = document.assets_analysis.asset_quality_overview
        assert overview.high_quality_count == 1
        assert overview.quality_distribution == "excellent"

    def test_to_json_is_stable(self, document):
        """Test serialization is byte-identical across calls."""
        assert document.to_json() == document.to_json()


# =============================================================================
# Note Tests
# =============================================================================


class TestCollectNotes:
    """Tests for collect_notes."""

    def test_normalization_notes_first(self):
        """Test validation notes come before stage warnings."""
        document = build_document([], notes=["intent.confidence: clamped to 1.0"])

        notes = document.processing_insights.warnings_and_notes
        assert notes[0].category == "validation"
        assert notes[0].message == "intent.confidence: clamped to 1.0"

    def test_partial_asset_note(self):
        """Test partial analyses are mentioned."""
        query = make_query_analysis()
        asset_result = make_asset_result([make_asset_analysis("voice", kind="audio", status="partial")])
        synthesizer = CombinationSynthesizer(timer=lambda: 0.0)
        project = asyncio.run(synthesizer.synthesize(query, asset_result))
        outcome = QueryAnalysisOutcome(analysis=query, provider="stub", elapsed_ms=0)

        notes = collect_notes(outcome, asset_result, project)

        assert any(
            n["message"] == "Asset voice was analysed from its description only" for n in notes
        )
