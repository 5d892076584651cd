"""Creative profiles: genre presets detected from the request.

A profile bundles a production goal with a default creative direction and a
narrative scaffold. Asset-free runs take the detected profile's narrative and
scaffold as-is; asset-backed runs fall back to the narrative only when neither
an AI narrative nor the query's own reframing is available. The assembler
offers the runner-up profiles as alternative approaches.

Scoring per profile:
- each keyword found in the request: +10
- the request's output type is one the profile serves: +15
- a target platform the profile serves: +10
- each attached asset kind the profile uses: +5

A profile with neither a keyword nor a platform match cannot win; when no
profile has one, the general profile is returned. Ties go to registry order.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dreamcut.ai.vocabulary import contains_phrase
from dreamcut.core.models import MediaKind, OutputType

KEYWORD_POINTS = 10
INTENT_POINTS = 15
PLATFORM_POINTS = 10
ASSET_KIND_POINTS = 5
MAX_CONFIDENCE = 0.95


@dataclass(frozen=True)
class Scaffolding:
    """Narrative beats a profile follows when no assets shape the story."""

    intro: str
    core: tuple[str, ...]
    outro: str


@dataclass(frozen=True)
class CreativeProfile:
    """A genre preset.

    Attributes:
        id: Stable identifier.
        name: Display name.
        goal: One-line production goal.
        keywords: Request words that point at this profile.
        intents: Output types the profile serves.
        platforms: Platforms the profile is typical for.
        asset_kinds: Asset kinds the profile makes use of.
        core_concept: Default creative concept.
        visual_approach: Default visual approach.
        style_direction: Default style direction.
        mood_atmosphere: Default mood and atmosphere.
        scaffolding: Intro, core and outro beats for asset-free runs.
    """

    id: str
    name: str
    goal: str
    keywords: tuple[str, ...]
    intents: tuple[OutputType, ...]
    platforms: tuple[str, ...]
    asset_kinds: tuple[MediaKind, ...]
    core_concept: str
    visual_approach: str
    style_direction: str
    mood_atmosphere: str
    scaffolding: Scaffolding

    @property
    def default_narrative(self) -> str:
        return f"{self.core_concept}. {self.visual_approach}."


@dataclass
class ProfileMatch:
    """Score of one profile against a request."""

    profile: CreativeProfile
    score: float
    confidence: float
    matched_keywords: list[str] = field(default_factory=list)
    matched_platforms: list[str] = field(default_factory=list)

    @property
    def has_direct_signal(self) -> bool:
        return bool(self.matched_keywords or self.matched_platforms)


_ALL_OUTPUTS = (OutputType.IMAGE, OutputType.VIDEO, OutputType.AUDIO, OutputType.MIXED)
_VISUAL_KINDS = (MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO)

EDUCATIONAL_EXPLAINER = CreativeProfile(
    id="educational_explainer",
    name="Educational Explainer",
    goal="Create clear content that maximizes learning impact",
    keywords=("explain", "explainer", "teach", "learn", "tutorial", "how to", "guide", "course", "lesson"),
    intents=_ALL_OUTPUTS,
    platforms=("youtube", "linkedin"),
    asset_kinds=(MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO, MediaKind.TEXT),
    core_concept="Make the subject easy to understand and remember",
    visual_approach="Clean visuals with clear typography, diagrams and step-by-step overlays",
    style_direction="Minimal and professional with high contrast and readable type",
    mood_atmosphere="Trustworthy, calm and engaging",
    scaffolding=Scaffolding(
        intro="Start with clear title and learning objective",
        core=(
            "Present key concepts with visual aids",
            "Use step-by-step explanations",
            "Include examples and demonstrations",
            "Add interactive elements or questions",
        ),
        outro="Summarize key points and provide next steps",
    ),
)

ADS_COMMERCIAL = CreativeProfile(
    id="ads_commercial",
    name="Ads/Commercial",
    goal="Turn attention into action",
    keywords=("ad", "advert", "commercial", "promo", "sale", "teaser", "brand", "marketing", "campaign"),
    intents=_ALL_OUTPUTS,
    platforms=("instagram", "youtube", "tiktok"),
    asset_kinds=_VISUAL_KINDS,
    core_concept="Drive action with a single, compelling product message",
    visual_approach="Bold text overlays, fast cuts and product-focused framing with a clear call to action",
    style_direction="Bold and energetic with a strong brand presence",
    mood_atmosphere="Exciting, persuasive and urgent",
    scaffolding=Scaffolding(
        intro="Attention-grabbing hook",
        core=(
            "Product benefits and features",
            "Social proof or testimonials",
            "Clear value proposition",
            "Urgency or scarcity elements",
        ),
        outro="Strong call-to-action with clear next steps",
    ),
)

PRODUCT_SHOWCASE = CreativeProfile(
    id="product_showcase",
    name="Demo/Product Showcase",
    goal="Show what a product does and why it matters",
    keywords=("demo", "showcase", "product", "features", "how it works", "app", "software", "launch"),
    intents=_ALL_OUTPUTS,
    platforms=("youtube", "linkedin"),
    asset_kinds=_VISUAL_KINDS,
    core_concept="Demonstrate the product's key features and benefits",
    visual_approach="Clean mockups or close-ups with annotated steps",
    style_direction="Clean, professional and functional",
    mood_atmosphere="Informative and confident",
    scaffolding=Scaffolding(
        intro="Introduce the product and the problem it solves",
        core=(
            "Walk through the key features in use",
            "Highlight details with close-ups and annotations",
            "Show the result or benefit for the user",
        ),
        outro="Close on the product with where to get it",
    ),
)

DOCUMENTARY_STORYTELLING = CreativeProfile(
    id="documentary_storytelling",
    name="Documentary/Storytelling",
    goal="Tell a true story with emotional depth",
    keywords=("story", "documentary", "narrative", "journey", "history", "biography", "memories"),
    intents=(OutputType.VIDEO, OutputType.AUDIO, OutputType.MIXED),
    platforms=("youtube",),
    asset_kinds=_VISUAL_KINDS,
    core_concept="Follow a clear story arc from setup to resolution",
    visual_approach="Observational footage, interviews and archival material with slow, deliberate pacing",
    style_direction="Cinematic and authentic",
    mood_atmosphere="Reflective and emotionally engaging",
    scaffolding=Scaffolding(
        intro="Establish the setting and the people involved",
        core=(
            "Build the story through interviews and observation",
            "Introduce the central conflict or turning point",
            "Let archival material deepen the context",
        ),
        outro="Resolve the arc and leave a lasting reflection",
    ),
)

UGC_INFLUENCER = CreativeProfile(
    id="ugc_influencer",
    name="UGC/Influencer",
    goal="Feel personal, authentic and shareable",
    keywords=("selfie", "vlog", "day in my life", "haul", "review", "influencer", "lifestyle", "unboxing"),
    intents=(OutputType.VIDEO, OutputType.IMAGE),
    platforms=("instagram", "tiktok", "youtube"),
    asset_kinds=(MediaKind.VIDEO, MediaKind.IMAGE),
    core_concept="Speak directly to the viewer as a trusted peer",
    visual_approach="Handheld, face-to-camera framing with quick jump cuts and captions",
    style_direction="Casual, bright and authentic",
    mood_atmosphere="Friendly, upbeat and relatable",
    scaffolding=Scaffolding(
        intro="Personal introduction with authentic feel",
        core=(
            "Day-in-the-life content",
            "Product reviews or recommendations",
            "Behind-the-scenes moments",
            "Interactive Q&A or challenges",
        ),
        outro="Call-to-action for engagement (like, follow, comment)",
    ),
)

SOCIAL_SHORT_FORM = CreativeProfile(
    id="social_short_form",
    name="Social Short-Form",
    goal="Stop the scroll within the first seconds",
    keywords=("highlight", "reel", "short", "shorts", "viral", "trend", "recap", "montage"),
    intents=(OutputType.VIDEO, OutputType.MIXED),
    platforms=("tiktok", "instagram", "twitter"),
    asset_kinds=_VISUAL_KINDS,
    core_concept="Open on the strongest moment and keep momentum to the end",
    visual_approach="Vertical-friendly framing, beat-synced cuts and on-screen text",
    style_direction="Punchy and modern",
    mood_atmosphere="Energetic and fun",
    scaffolding=Scaffolding(
        intro="Open on the strongest moment within the first seconds",
        core=(
            "Cut between highlights on the beat",
            "Reinforce the message with on-screen text",
            "Keep momentum with a visual payoff",
        ),
        outro="End on a loopable moment or quick call to action",
    ),
)

GENERAL_CREATIVE = CreativeProfile(
    id="general_creative",
    name="General Creative",
    goal="Deliver a polished piece that answers the request",
    keywords=(),
    intents=(OutputType.IMAGE, OutputType.VIDEO, OutputType.AUDIO, OutputType.MIXED),
    platforms=(),
    asset_kinds=(MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.AUDIO, MediaKind.TEXT),
    core_concept="Deliver a cohesive piece built around the request's central idea",
    visual_approach="Balanced composition and pacing that keeps the subject in focus",
    style_direction="Clean and contemporary",
    mood_atmosphere="Engaging and clear",
    scaffolding=Scaffolding(
        intro="Create engaging opening that captures attention",
        core=(
            "Present main content with clear structure",
            "Use supporting visuals and effects",
            "Maintain consistent pacing and style",
        ),
        outro="End with memorable conclusion and call-to-action",
    ),
)

PROFILE_REGISTRY: tuple[CreativeProfile, ...] = (
    EDUCATIONAL_EXPLAINER,
    ADS_COMMERCIAL,
    PRODUCT_SHOWCASE,
    DOCUMENTARY_STORYTELLING,
    UGC_INFLUENCER,
    SOCIAL_SHORT_FORM,
    GENERAL_CREATIVE,
)

DEFAULT_PROFILE = GENERAL_CREATIVE


def get_profile(profile_id: str) -> CreativeProfile:
    """Look up a profile by id.

    Raises:
        KeyError: If no profile has that id.
    """
    for profile in PROFILE_REGISTRY:
        if profile.id == profile_id:
            return profile
    raise KeyError(f"Unknown creative profile: {profile_id}")


def score_profile(
    profile: CreativeProfile,
    text: str,
    output_type: OutputType | None,
    platforms: list[str],
    asset_kinds: list[MediaKind],
) -> ProfileMatch:
    lowered = text.lower()
    keywords = [k for k in profile.keywords if contains_phrase(lowered, k)]
    matched_platforms = [p for p in platforms if p.lower() in profile.platforms]

    score = KEYWORD_POINTS * len(keywords) + PLATFORM_POINTS * len(matched_platforms)
    if output_type is not None and output_type in profile.intents:
        score += INTENT_POINTS
    score += ASSET_KIND_POINTS * len({k for k in asset_kinds if k in profile.asset_kinds})

    return ProfileMatch(
        profile=profile,
        score=float(score),
        confidence=round(min(MAX_CONFIDENCE, score / 100), 4),
        matched_keywords=keywords,
        matched_platforms=matched_platforms,
    )


def rank_profiles(
    text: str,
    output_type: OutputType | None = None,
    platforms: list[str] | None = None,
    asset_kinds: list[MediaKind] | None = None,
) -> list[ProfileMatch]:
    """Score every non-default profile with a direct signal, best first.

    The sort is stable, so equal scores keep registry order.
    """
    matches = [
        score_profile(profile, text, output_type, platforms or [], asset_kinds or [])
        for profile in PROFILE_REGISTRY
        if profile is not DEFAULT_PROFILE
    ]
    matches = [m for m in matches if m.has_direct_signal]
    return sorted(matches, key=lambda m: -m.score)


def detect_profile(
    text: str,
    output_type: OutputType | None = None,
    platforms: list[str] | None = None,
    asset_kinds: list[MediaKind] | None = None,
) -> ProfileMatch:
    """Pick the best profile for a request.

    Example:
        >>> detect_profile("make a 30s product teaser", OutputType.VIDEO).profile.id
        'ads_commercial'
    """
    ranked = rank_profiles(text, output_type, platforms, asset_kinds)
    if ranked:
        return ranked[0]
    return score_profile(DEFAULT_PROFILE, text, output_type, [], asset_kinds or [])
