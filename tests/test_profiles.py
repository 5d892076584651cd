"""Tests for creative profile detection."""

from __future__ import annotations

import pytest

from dreamcut.ai.profiles import (
    ADS_COMMERCIAL,
    DEFAULT_PROFILE,
    MAX_CONFIDENCE,
    PROFILE_REGISTRY,
    detect_profile,
    get_profile,
    rank_profiles,
    score_profile,
)
from dreamcut.core.models import MediaKind, OutputType


class TestScoreProfile:
    """Tests for per-profile scoring."""

    def test_keyword_and_intent(self):
        """Test keyword and intent points add up."""
        match = score_profile(ADS_COMMERCIAL, "a product teaser", OutputType.VIDEO, [], [])

        assert match.score == 25.0
        assert match.matched_keywords == ["teaser"]
        assert match.confidence == pytest.approx(0.25)

    def test_asset_kinds(self):
        """Test each attached kind the profile uses adds points."""
        match = score_profile(
            ADS_COMMERCIAL, "a teaser", None, [], [MediaKind.VIDEO, MediaKind.TEXT]
        )

        assert match.score == 15.0

    def test_audio_intent_points(self):
        """Test audio requests earn intent points from profiles serving every medium."""
        match = score_profile(ADS_COMMERCIAL, "an audio ad for the sale", OutputType.AUDIO, [], [])

        assert match.score == 35.0
        assert match.matched_keywords == ["ad", "sale"]
        assert detect_profile("an audio ad for the sale", OutputType.AUDIO).profile is ADS_COMMERCIAL

    def test_confidence_capped(self):
        """Test confidence never exceeds the cap."""
        match = score_profile(
            get_profile("educational_explainer"),
            "explain, teach and learn: a tutorial guide for the course lesson",
            OutputType.VIDEO,
            ["YouTube", "LinkedIn"],
            [MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO, MediaKind.TEXT],
        )

        assert match.confidence == MAX_CONFIDENCE
        assert match.matched_platforms == ["YouTube", "LinkedIn"]


class TestDetectProfile:
    """Tests for profile detection."""

    def test_tie_goes_to_registry_order(self):
        """Test equal scores keep registry order."""
        assert detect_profile("make a 30s product teaser", OutputType.VIDEO).profile.id == (
            "ads_commercial"
        )

    def test_documentary(self):
        """Test documentary keywords win for audio."""
        match = detect_profile("a documentary about the journey", OutputType.AUDIO)

        assert match.profile.id == "documentary_storytelling"
        assert match.matched_keywords == ["documentary", "journey"]

    def test_platform_signal(self):
        """Test a platform alone is a direct signal."""
        match = detect_profile("a clip", OutputType.VIDEO, ["TikTok"])

        assert match.profile.id == "ads_commercial"
        assert match.matched_platforms == ["TikTok"]

    def test_no_signal_uses_default(self):
        """Test requests without keyword or platform get the general profile."""
        match = detect_profile("something nice", OutputType.VIDEO)

        assert match.profile is DEFAULT_PROFILE
        assert match.confidence == pytest.approx(0.15)

    def test_rank_excludes_default(self):
        """Test the general profile is never ranked."""
        ranked = rank_profiles("a product teaser", OutputType.VIDEO)

        assert [m.profile.id for m in ranked] == ["ads_commercial", "product_showcase"]


class TestRegistry:
    """Tests for the profile registry."""

    def test_ids_unique(self):
        """Test every profile id is unique."""
        ids = [profile.id for profile in PROFILE_REGISTRY]

        assert len(ids) == len(set(ids))

    def test_get_unknown(self):
        """Test unknown ids raise KeyError."""
        with pytest.raises(KeyError, match="Unknown creative profile"):
            get_profile("nope")

    def test_default_narrative(self):
        """Test the narrative joins concept and visual approach."""
        assert ADS_COMMERCIAL.default_narrative == (
            "Drive action with a single, compelling product message. "
            "Bold text overlays, fast cuts and product-focused framing with a clear call to action."
        )

    def test_every_profile_has_scaffolding(self):
        """Test each profile carries intro, core and outro beats."""
        for profile in PROFILE_REGISTRY:
            scaffold = profile.scaffolding
            assert scaffold.intro and scaffold.outro, profile.id
            assert len(scaffold.core) >= 3, profile.id
