"""Tests for the combination synthesizer (stage 3).

Tests cover:
- Intent unification, corroboration and mixed detection
- Constraint merging and defaults_applied notes
- The utilization partition
- Gaps, missing elements and contradictions
- Creative direction fallbacks
- Production recommendations and metadata
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import make_asset_analysis, make_asset_result, make_query_analysis
from dreamcut.ai.asset_analyzer import role_for_alignment
from dreamcut.ai.chain import FallbackChain
from dreamcut.ai.client import StaticProvider
from dreamcut.ai.synthesizer import (
    CombinationSynthesizer,
    SynthesisOptions,
    aspect_ratio_for,
    quality_target_for,
)
from dreamcut.config import GapAnalysisDepth, OptimizationFocus, SynthesisConfig
from dreamcut.core.models import ImpactLevel, OutputType, ProjectRole


@pytest.fixture
def director():
    return StaticProvider("director", "Open on the bottle,\n  cut on the beat.")


@pytest.fixture
def synthesizer(director):
    return CombinationSynthesizer(
        FallbackChain([director]), id_factory=lambda: "project_1", timer=lambda: 0.0
    )


def synthesize(synthesizer, query, analyses):
    return asyncio.run(synthesizer.synthesize(query, make_asset_result(analyses)))


# =============================================================================
# Helper Tests
# =============================================================================


class TestHelpers:
    """Tests for module-level helpers."""

    @pytest.mark.parametrize(
        "width,height,expected",
        [
            (1920, 1080, "16:9"),
            (1080, 1920, "9:16"),
            (1000, 1000, "1:1"),
            (1000, 1050, "1:1"),
            (800, 600, "800:600"),
        ],
    )
    def test_aspect_ratio_for(self, width, height, expected):
        """Test frames snap to common ratios."""
        assert aspect_ratio_for(width, height) == expected

    @pytest.mark.parametrize(
        "quality,expected",
        [(9.0, "cinema"), (7.0, "professional"), (6.9, "high"), (5.0, "high"), (4.9, "standard")],
    )
    def test_quality_target_for(self, quality, expected):
        """Test quality targets follow the asset quality."""
        assert quality_target_for(quality) == expected

    def test_options_from_config(self):
        """Test options copy the stage configuration."""
        options = SynthesisOptions.from_config(
            SynthesisConfig(gap_analysis_depth="basic", optimization_focus="cost")
        )

        assert options.gap_analysis_depth == GapAnalysisDepth.BASIC
        assert options.optimization_focus == OptimizationFocus.COST


# =============================================================================
# Intent Tests
# =============================================================================


class TestUnifyIntent:
    """Tests for intent unification."""

    def test_corroborated_intent(self, synthesizer):
        """Test a matching asset kind raises confidence."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("clip", alignment=0.9)]
        )

        intent = project.unified_intent
        assert intent.primary_output_type == OutputType.VIDEO
        assert intent.corroborated_by_assets is True
        assert intent.confidence == pytest.approx(0.9)
        assert "Assets corroborate video output." in intent.reasoning

    def test_tied_kinds_become_mixed(self, synthesizer):
        """Test tied asset kinds that exclude the declared type become mixed, however confident."""
        project = synthesize(
            synthesizer,
            make_query_analysis(primary="audio", confidence=0.9),
            [make_asset_analysis("clip"), make_asset_analysis("still", kind="image")],
        )

        intent = project.unified_intent
        assert intent.primary_output_type == OutputType.MIXED
        assert intent.secondary_output_types == [OutputType.AUDIO, OutputType.VIDEO, OutputType.IMAGE]
        assert intent.is_mixed is True
        assert intent.confidence == pytest.approx(0.9)
        assert "No asset kind dominates; treating as mixed media." in intent.reasoning

    def test_declared_type_among_tied_kinds_kept(self, synthesizer):
        """Test a declared type that is one of the tied kinds keeps its type, however unsure."""
        project = synthesize(
            synthesizer,
            make_query_analysis(confidence=0.5),
            [make_asset_analysis("clip"), make_asset_analysis("still", kind="image")],
        )

        intent = project.unified_intent
        assert intent.primary_output_type == OutputType.VIDEO
        assert intent.is_mixed is True
        assert intent.secondary_output_types == [OutputType.IMAGE]
        assert intent.confidence == pytest.approx(0.6)

    def test_image_request_with_video_becomes_mixed(self, synthesizer):
        """Test video assets alongside an image request make the project mixed."""
        project = synthesize(
            synthesizer,
            make_query_analysis(primary="image"),
            [
                make_asset_analysis("still", kind="image"),
                make_asset_analysis("poster", kind="image"),
                make_asset_analysis("clip"),
            ],
        )

        intent = project.unified_intent
        assert intent.primary_output_type == OutputType.MIXED
        assert intent.secondary_output_types == [OutputType.IMAGE, OutputType.VIDEO]
        assert intent.corroborated_by_assets is True
        assert "Video assets alongside an image request" in intent.reasoning

    def test_selected_type_not_overridden(self, synthesizer):
        """Test a caller-selected type is never replaced by mixed."""
        project = synthesize(
            synthesizer,
            make_query_analysis(confidence=0.5, selected="video"),
            [make_asset_analysis("clip"), make_asset_analysis("still", kind="image")],
        )

        assert project.unified_intent.primary_output_type == OutputType.VIDEO

    def test_failed_assets_do_not_corroborate(self, synthesizer):
        """Test failed analyses are ignored for corroboration."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [make_asset_analysis("clip", alignment=0.0, quality=0.0, status="failed")],
        )

        assert project.unified_intent.corroborated_by_assets is False
        assert project.unified_intent.confidence == pytest.approx(0.8)


# =============================================================================
# Constraint Tests
# =============================================================================


class TestUnifyConstraints:
    """Tests for constraint merging."""

    def test_stated_values_kept(self, synthesizer):
        """Test values from the query are used without notes."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        specs = project.unified_constraints.output_specifications
        assert specs.aspect_ratio == "16:9"
        assert specs.video_duration_seconds == 30
        assert specs.resolution == "1920x1080"
        assert "aspect_ratio: video default" not in project.unified_constraints.defaults_applied

    def test_asset_derived_values(self, synthesizer):
        """Test missing values are derived from asset frames."""
        project = synthesize(
            synthesizer,
            make_query_analysis(constraints={}),
            [make_asset_analysis("clip", alignment=0.9, width=1920, height=1080)],
        )

        constraints = project.unified_constraints
        assert constraints.output_specifications.aspect_ratio == "16:9"
        assert constraints.output_specifications.resolution == "1920x1080"
        assert constraints.output_specifications.quality_target == "professional"
        assert constraints.defaults_applied == [
            "aspect_ratio: derived from assets",
            "resolution: highest asset resolution",
            "video_duration_seconds: default",
            "timeline: default",
        ]

    def test_platform_defaults(self, synthesizer):
        """Test platform modifiers supply defaults and requirements."""
        project = synthesize(
            synthesizer,
            make_query_analysis(constraints={}, modifiers={"platform": ["TikTok"]}),
            [],
        )

        constraints = project.unified_constraints
        assert constraints.output_specifications.aspect_ratio == "9:16"
        assert "aspect_ratio: tiktok default" in constraints.defaults_applied
        assert constraints.platform_constraints.target_platforms == ["TikTok"]
        assert constraints.platform_constraints.platform_requirements["TikTok"].aspect_ratios == ["9:16"]
        assert constraints.platform_constraints.distribution_format == "web-optimized-mp4"

    def test_asset_free_quality_default(self, synthesizer):
        """Test asset-free runs default the quality target to high."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        assert project.unified_constraints.output_specifications.quality_target == "high"
        assert "quality_target: default" in project.unified_constraints.defaults_applied

    def test_image_output_defaults(self, synthesizer):
        """Test image outputs get an image count and no duration."""
        project = synthesize(
            synthesizer, make_query_analysis(primary="image", constraints={}, modifiers={}), []
        )

        specs = project.unified_constraints.output_specifications
        assert specs.image_count == 1
        assert specs.video_duration_seconds is None
        assert specs.aspect_ratio == "1:1"


# =============================================================================
# Utilization Tests
# =============================================================================


class TestUtilizationPlan:
    """Tests for the four-bucket partition."""

    def test_partition(self, synthesizer):
        """Test every asset lands in exactly one bucket."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [
                make_asset_analysis("hero", alignment=0.9),
                make_asset_analysis("ref", kind="image", alignment=0.5),
                make_asset_analysis("music", kind="audio", alignment=0.2),
                make_asset_analysis("noise", kind="audio", alignment=0.05),
            ],
        )

        plan = project.asset_utilization
        assert [e.asset_id for e in plan.primary_assets] == ["hero"]
        assert [e.asset_id for e in plan.reference_assets] == ["ref"]
        assert [e.asset_id for e in plan.supporting_assets] == ["music"]
        assert [e.asset_id for e in plan.unused_assets] == ["noise"]
        assert plan.utilization_rate == pytest.approx(0.75)
        assert plan.supporting_assets[0].support_role == "audio_layer"

    @pytest.mark.parametrize(
        "alignment,role,bucket",
        [
            (0.65, ProjectRole.PRIMARY_CONTENT, "primary_assets"),
            (0.6, ProjectRole.REFERENCE_MATERIAL, "reference_assets"),
            (0.3, ProjectRole.SUPPORTING_ELEMENT, "supporting_assets"),
            (0.1, ProjectRole.UNCLEAR, "unused_assets"),
        ],
    )
    def test_bucket_matches_role(self, synthesizer, alignment, role, bucket):
        """Test the asset role and the utilization bucket agree at each threshold."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("asset", alignment=alignment)]
        )

        assert role_for_alignment(alignment) == role
        plan = project.asset_utilization.model_dump()
        assert [e["asset_id"] for e in plan[bucket]] == ["asset"]

    def test_failed_asset_unused(self, synthesizer):
        """Test failed analyses are always unused."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [make_asset_analysis("broken", alignment=0.0, quality=0.0, status="failed")],
        )

        unused = project.asset_utilization.unused_assets
        assert [e.asset_id for e in unused] == ["broken"]
        assert unused[0].reason == "Analysis failed: All providers failed"

    def test_primary_entry(self, synthesizer):
        """Test primary entries carry role and priority."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [make_asset_analysis("hero", alignment=0.9, quality=9.0, enhancements=("color_grading",))],
        )

        entry = project.asset_utilization.primary_assets[0]
        assert entry.role == "hero"
        assert entry.processing_priority == "critical"
        assert entry.enhancement_plan == ["color grading"]
        assert entry.usage_plan.startswith("Use directly as primary video content")

    def test_no_assets(self, synthesizer):
        """Test an empty plan has a zero rate."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        assert project.asset_utilization.utilization_rate == 0.0


# =============================================================================
# Gap Tests
# =============================================================================


class TestGapAnalysis:
    """Tests for gaps, missing elements and contradictions."""

    def test_asset_free_critical_gap(self, synthesizer):
        """Test asset-free runs report missing primary content."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        gaps = project.gap_analysis
        critical = [g for g in gaps.identified_gaps if g.impact == ImpactLevel.CRITICAL]
        assert len(critical) == 1
        assert critical[0].description == "No assets supplied; all primary content must be created"
        assert gaps.contradictions == []

    def test_no_primary_gap(self, synthesizer):
        """Test assets without a primary candidate raise a critical gap."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("weak", alignment=0.2)]
        )

        descriptions = [g.description for g in project.gap_analysis.identified_gaps]
        assert "No primary content assets identified for the project" in descriptions

    def test_unspecified_technical_values(self, synthesizer):
        """Test defaulted duration and aspect ratio raise technical gaps."""
        project = synthesize(synthesizer, make_query_analysis(constraints={}), [])

        technical = [g.description for g in project.gap_analysis.identified_gaps if g.gap_type == "technical"]
        assert technical == ["Video duration not specified", "Aspect ratio not specified"]

    def test_low_quality_gap(self, synthesizer):
        """Test low quality assets are listed."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("blurry", alignment=0.9, quality=4.0)]
        )

        quality = [g for g in project.gap_analysis.identified_gaps if g.gap_type == "quality"]
        assert quality[0].description == "Asset quality below 6: blurry"

    def test_missing_elements(self, synthesizer):
        """Test query gap flags become missing elements."""
        query = make_query_analysis(
            gaps={"missing_style": True, "missing_platform": True, "missing_target_audience": True}
        )

        project = synthesize(synthesizer, query, [])

        assert [m.description for m in project.gap_analysis.missing_elements] == [
            "Visual or sonic style not specified",
            "Target platform not specified",
            "Target audience not specified",
        ]

    def test_basic_depth(self):
        """Test basic depth skips style, quality and missing elements."""
        synthesizer = CombinationSynthesizer(
            options=SynthesisOptions(gap_analysis_depth=GapAnalysisDepth.BASIC),
            timer=lambda: 0.0,
        )
        query = make_query_analysis(constraints={}, gaps={"missing_style": True})

        project = synthesize(synthesizer, query, [])

        assert [g.gap_type for g in project.gap_analysis.identified_gaps] == ["content"]
        assert project.gap_analysis.missing_elements == []

    def test_intent_vs_assets(self, synthesizer):
        """Test assets unable to feed the output are flagged."""
        project = synthesize(
            synthesizer,
            make_query_analysis(primary="image"),
            [make_asset_analysis("voice", kind="audio")],
        )

        contradiction = project.gap_analysis.contradictions[0]
        assert contradiction.contradiction_type == "intent_vs_assets"
        assert contradiction.description == "Request asks for image but the assets are audio only"
        assert contradiction.severity == ImpactLevel.HIGH

    def test_conflicting_styles(self, synthesizer):
        """Test conflicting asset styles are flagged."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [
                make_asset_analysis("a", alignment=0.9, style="minimal"),
                make_asset_analysis("b", alignment=0.9, style="bold"),
            ],
        )

        contradictions = project.gap_analysis.contradictions
        assert [c.contradiction_type for c in contradictions] == ["asset_vs_asset"]
        assert contradictions[0].description == "Assets mix conflicting styles: bold vs minimal"
        assert contradictions[0].conflicting_elements == ["a: minimal", "b: bold"]

    def test_aspect_ratio_conflict(self, synthesizer):
        """Test a primary asset framed differently from the request is flagged."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [make_asset_analysis("vertical", alignment=0.9, width=1080, height=1920)],
        )

        contradiction = project.gap_analysis.contradictions[0]
        assert contradiction.contradiction_type == "constraint_vs_asset"
        assert contradiction.description == "Asset 'vertical' is 9:16 but 16:9 was requested"

    def test_contradictions_disabled(self):
        """Test contradiction detection can be switched off."""
        synthesizer = CombinationSynthesizer(
            options=SynthesisOptions(enable_contradiction_resolution=False), timer=lambda: 0.0
        )

        project = synthesize(
            synthesizer,
            make_query_analysis(primary="image"),
            [make_asset_analysis("voice", kind="audio")],
        )

        assert project.gap_analysis.contradictions == []


# =============================================================================
# Creative Direction Tests
# =============================================================================


class TestCreativeDirection:
    """Tests for the creative direction fallbacks."""

    def test_ai_direction(self, synthesizer):
        """Test the provider narrative is used when assets exist."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("clip", alignment=0.9)]
        )

        synthesis = project.creative_synthesis
        assert synthesis.direction_source == "ai"
        assert synthesis.unified_creative_direction == "Open on the bottle, cut on the beat."
        assert project.synthesis_metadata.ai_models_used == ["director"]
        assert project.synthesis_metadata.synthesis_approach == "ai_enhanced_rule_based"

    def test_asset_free_uses_profile_narrative(self, synthesizer, director):
        """Test asset-free runs take the profile narrative over the reframing."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        assert project.creative_synthesis.direction_source == "profile"
        assert project.creative_synthesis.unified_creative_direction == (
            "Drive action with a single, compelling product message. "
            "Bold text overlays, fast cuts and product-focused framing with a clear call to action."
        )
        assert director.calls == []

    def test_provider_failure_warns(self):
        """Test a failed direction call falls back with a warning."""
        synthesizer = CombinationSynthesizer(
            FallbackChain([StaticProvider("blank", "   ")]), timer=lambda: 0.0
        )

        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("clip", alignment=0.9)]
        )

        assert project.creative_synthesis.direction_source == "reframing"
        assert project.synthesis_metadata.warnings[0].startswith("AI creative direction failed:")

    def test_no_providers_uses_profile(self):
        """Test a missing chain and reframing fall back to the profile narrative."""
        synthesizer = CombinationSynthesizer(timer=lambda: 0.0)

        project = synthesize(
            synthesizer,
            make_query_analysis(creative_direction=None),
            [make_asset_analysis("clip", alignment=0.9)],
        )

        assert project.creative_synthesis.direction_source == "profile"
        assert project.synthesis_metadata.warnings == [
            "No providers configured for creative direction"
        ]
        assert project.synthesis_metadata.synthesis_approach == "rule_based"

    def test_ai_synthesis_disabled(self, director):
        """Test disabling AI synthesis skips the call without a warning."""
        synthesizer = CombinationSynthesizer(
            FallbackChain([director]),
            SynthesisOptions(enable_ai_synthesis=False),
            timer=lambda: 0.0,
        )

        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("clip", alignment=0.9)]
        )

        assert director.calls == []
        assert project.synthesis_metadata.warnings == []


class TestNarrativeSpine:
    """Tests for the intro, core and outro beats."""

    def test_asset_free_profile_scaffold(self, synthesizer):
        """Test asset-free runs use the detected profile's scaffold."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        spine = project.creative_synthesis.narrative_spine
        assert spine.source == "profile"
        assert spine.intro == "Attention-grabbing hook"
        assert spine.core == [
            "Product benefits and features",
            "Social proof or testimonials",
            "Clear value proposition",
            "Urgency or scarcity elements",
        ]
        assert spine.outro == "Strong call-to-action with clear next steps"

    def test_general_scaffold_without_profile_signal(self, synthesizer):
        """Test a request with no profile signal gets the general scaffold."""
        project = synthesize(
            synthesizer, make_query_analysis(normalized_query="make something nice"), []
        )

        spine = project.creative_synthesis.narrative_spine
        assert spine.intro == "Create engaging opening that captures attention"
        assert spine.outro == "End with memorable conclusion and call-to-action"

    def test_asset_driven_beats(self, synthesizer):
        """Test primary assets are featured and secondary assets woven in."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [
                make_asset_analysis("hero", alignment=0.9),
                make_asset_analysis("ref", kind="image", alignment=0.5, description="A studio backdrop."),
            ],
        )

        spine = project.creative_synthesis.narrative_spine
        assert spine.source == "assets"
        assert spine.intro == "Open with the video showing A clear product shot"
        assert spine.core == [
            "Feature the video as primary content: A clear product shot",
            "Use the image as a supporting element for A studio backdrop",
        ]
        assert spine.outro.startswith("Conclude with strong call-to-action")

    def test_core_padded_to_two_beats(self, synthesizer):
        """Test a single asset still yields two core beats."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("hero", alignment=0.9)]
        )

        assert project.creative_synthesis.narrative_spine.core == [
            "Feature the video as primary content: A clear product shot",
            "Add complementary visuals to support the narrative",
        ]


# =============================================================================
# Recommendation and Metadata Tests
# =============================================================================


class TestRecommendations:
    """Tests for production recommendations."""

    def test_single_primary_steps(self, synthesizer):
        """Test a single clean primary asset needs creation and polish."""
        project = synthesize(
            synthesizer, make_query_analysis(), [make_asset_analysis("clip", alignment=0.9)]
        )

        steps = project.production_recommendations.pipeline_steps
        assert [s.step_name for s in steps] == ["Content Creation", "Final Polish"]
        assert steps[0].estimated_duration == "55-70 minutes"
        assert steps[0].input_requirements == ["clip"]

    def test_enhancement_and_integration_steps(self, synthesizer):
        """Test enhancement and secondary assets add steps."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [
                make_asset_analysis("clip", alignment=0.9, enhancements=("upscale",)),
                make_asset_analysis("ref", kind="image", alignment=0.5),
            ],
        )

        steps = project.production_recommendations.pipeline_steps
        assert [s.step_name for s in steps] == [
            "Asset Enhancement",
            "Content Creation",
            "Asset Integration",
            "Final Polish",
        ]

    def test_brief_only_creation(self, synthesizer):
        """Test asset-free creation works from the brief."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        creation = project.production_recommendations.pipeline_steps[0]
        assert creation.input_requirements == ["creative brief"]
        assert creation.description == "Create the video content from the creative brief"

    def test_optimization_focus(self):
        """Test a speed focus only suggests speed improvements."""
        synthesizer = CombinationSynthesizer(
            options=SynthesisOptions(optimization_focus=OptimizationFocus.SPEED), timer=lambda: 0.0
        )

        project = synthesize(synthesizer, make_query_analysis(), [])

        dimensions = [s.dimension for s in project.production_recommendations.optimization_suggestions]
        assert dimensions == ["speed"]

    @pytest.mark.parametrize(
        "platforms,technical,impact,consistency",
        [
            ([], "acceptable", "functional", "good"),
            (["LinkedIn"], "professional", "functional", "high"),
            (["TikTok"], "acceptable", "impressive", "good"),
            (["LinkedIn", "Instagram"], "professional", "impressive", "high"),
        ],
    )
    def test_quality_targets_follow_platforms(self, synthesizer, platforms, technical, impact, consistency):
        """Test target platforms adjust the quality targets."""
        project = synthesize(
            synthesizer, make_query_analysis(modifiers={"platform": platforms}), []
        )

        targets = project.production_recommendations.quality_targets
        assert targets.technical_quality == technical
        assert targets.creative_impact == impact
        assert targets.consistency_level == consistency
        assert targets.polish_level == "draft"


class TestMetadata:
    """Tests for synthesis metadata."""

    def test_asset_free_metadata(self, synthesizer):
        """Test asset-free confidence and completeness."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        metadata = project.synthesis_metadata
        assert metadata.project_id == "project_1"
        assert metadata.synthesis_confidence == pytest.approx(0.8)
        assert metadata.alignment_score == pytest.approx(0.8)
        assert metadata.completeness_score == pytest.approx(0.7)
        assert "no_critical_gaps" not in metadata.validation_checks_passed
        assert metadata.processing_time_ms == 0

    def test_all_failed_zero_confidence(self, synthesizer):
        """Test synthesis confidence is zero when every asset failed."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [make_asset_analysis("broken", alignment=0.0, quality=0.0, status="failed")],
        )

        assert project.synthesis_metadata.synthesis_confidence == 0.0

    def test_confidence_bounded_by_alignment(self, synthesizer):
        """Test synthesis confidence never exceeds mean asset alignment."""
        project = synthesize(
            synthesizer,
            make_query_analysis(),
            [make_asset_analysis("a", alignment=0.9), make_asset_analysis("b", alignment=0.5)],
        )

        metadata = project.synthesis_metadata
        assert metadata.alignment_score == pytest.approx(0.7)
        assert metadata.synthesis_confidence == pytest.approx(0.7)

    def test_project_title(self, synthesizer):
        """Test the title uses the first long words of the query."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        assert project.synthesis_metadata.project_title == "Video Project: Make product teaser"

    def test_creative_profile(self, synthesizer):
        """Test the detected profile is recorded."""
        project = synthesize(synthesizer, make_query_analysis(), [])

        profile = project.synthesis_metadata.creative_profile
        assert profile.profile_id == "ads_commercial"
        assert "teaser" in profile.matched_keywords
