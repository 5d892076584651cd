"""Keyword tables shared by the heuristic parts of the pipeline.

Asset content fields, the offline provider and the synthesizer's colour and
brand detection all read from these tables, so a word classified here is
classified the same way everywhere.
"""

from __future__ import annotations

import re

from dreamcut.core.models import OutputType

OUTPUT_KEYWORDS: dict[OutputType, tuple[str, ...]] = {
    OutputType.VIDEO: (
        "video", "reel", "teaser", "trailer", "clip", "film", "movie", "animation",
        "montage", "vlog", "commercial", "ad spot",
    ),
    OutputType.IMAGE: (
        "image", "photo", "picture", "poster", "thumbnail", "logo", "banner",
        "illustration", "graphic", "artwork", "flyer", "cover",
    ),
    OutputType.AUDIO: (
        "audio", "song", "podcast", "voiceover", "voice over", "music", "jingle",
        "soundtrack", "narration", "beat",
    ),
}

STYLE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "cinematic": ("cinematic", "film-like", "filmic", "epic", "dramatic lighting"),
    "minimal": ("minimal", "minimalist", "clean", "simple", "sleek"),
    "vintage": ("vintage", "retro", "nostalgic", "film grain", "old-school"),
    "modern": ("modern", "contemporary", "fresh"),
    "futuristic": ("futuristic", "sci-fi", "neon", "cyberpunk"),
    "bold": ("bold", "vibrant", "punchy", "saturated", "loud"),
    "professional": ("professional", "corporate", "polished", "studio"),
    "casual": ("casual", "handheld", "candid", "amateur", "selfie"),
    "documentary": ("documentary", "observational", "interview"),
    "artistic": ("artistic", "abstract", "painterly", "surreal"),
}

MOOD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "energetic": ("energetic", "upbeat", "exciting", "dynamic", "fast-paced", "hype"),
    "calm": ("calm", "peaceful", "serene", "relaxing", "quiet", "gentle"),
    "joyful": ("joyful", "happy", "cheerful", "fun", "playful", "bright"),
    "dramatic": ("dramatic", "intense", "powerful", "tense"),
    "melancholic": ("melancholic", "sad", "somber", "moody", "nostalgic"),
    "inspiring": ("inspiring", "uplifting", "motivational", "hopeful"),
    "mysterious": ("mysterious", "dark", "eerie", "suspenseful"),
    "romantic": ("romantic", "warm", "intimate", "tender"),
}

STYLE_CONFLICTS: tuple[frozenset[str], ...] = (
    frozenset({"minimal", "bold"}),
    frozenset({"vintage", "futuristic"}),
    frozenset({"vintage", "modern"}),
    frozenset({"professional", "casual"}),
)

OBJECT_WORDS: tuple[str, ...] = (
    "person", "people", "face", "crowd", "team", "player", "product", "bottle",
    "car", "phone", "laptop", "logo", "text", "sky", "sunset", "beach", "ocean",
    "mountain", "city", "street", "building", "room", "office", "kitchen", "food",
    "dog", "cat", "tree", "forest", "stage", "field", "ball", "music", "voice",
    "speech", "guitar", "drums", "chart", "slide",
)

COLOR_WORDS: tuple[str, ...] = (
    "red", "orange", "yellow", "green", "blue", "purple", "pink", "black", "white",
    "grey", "gray", "gold", "silver", "teal", "navy", "beige", "pastel", "neon",
)

POSITIVE_QUALITY_WORDS: tuple[str, ...] = (
    "sharp", "crisp", "high resolution", "high-resolution", "4k", "hd", "well lit",
    "well-lit", "clear", "professional", "detailed", "stable", "clean audio",
)

NEGATIVE_QUALITY_WORDS: tuple[str, ...] = (
    "blurry", "blurred", "grainy", "noisy", "low resolution", "low-resolution",
    "pixelated", "dark", "underexposed", "overexposed", "shaky", "distorted",
    "compressed", "muffled", "clipping",
)

BRAND_WORDS: tuple[str, ...] = ("brand", "logo", "company", "corporate", "product", "campaign")

PLATFORM_WORDS: tuple[str, ...] = ("instagram", "tiktok", "youtube", "linkedin", "twitter")

STOPWORDS: frozenset[str] = frozenset(
    {
        "make", "this", "that", "these", "those", "into", "with", "turn", "from",
        "some", "what", "have", "please", "create", "want", "need", "using", "about",
        "their", "there", "would", "could", "should", "just", "also", "they", "them",
        "your", "mine", "which", "will", "been", "than", "then", "very", "more",
    }
)

_WORD = re.compile(r"[a-z0-9][a-z0-9'-]*")


def contains_phrase(text: str, phrase: str) -> bool:
    """Whole-word (or whole-phrase) match on lowercased text."""
    return re.search(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])", text) is not None


def match_table(text: str, table: dict[str, tuple[str, ...]]) -> list[str]:
    """Return every label in a table whose keywords occur in the text.

    Labels keep table order so results are deterministic.
    """
    lowered = text.lower()
    return [
        label
        for label, keywords in table.items()
        if any(contains_phrase(lowered, keyword) for keyword in keywords)
    ]


def find_words(text: str, words: tuple[str, ...]) -> list[str]:
    """Return the listed words that occur in the text, in list order."""
    lowered = text.lower()
    return [word for word in words if contains_phrase(lowered, word)]


def content_tokens(text: str) -> list[str]:
    """Significant words of a text: lowercase, longer than three letters, no stopwords.

    Order of first occurrence is kept and duplicates removed.
    """
    seen: list[str] = []
    for token in _WORD.findall(text.lower()):
        token = token.strip("'-")
        if len(token) > 3 and token not in STOPWORDS and token not in seen:
            seen.append(token)
    return seen


def infer_output_type(text: str) -> tuple[OutputType | None, list[OutputType]]:
    """Guess the requested medium from keywords.

    Returns:
        Tuple of (best medium or None, every medium mentioned in order of
        appearance). Video outranks image, which outranks audio.
    """
    lowered = text.lower()
    hits: list[tuple[int, OutputType]] = []
    for output_type, keywords in OUTPUT_KEYWORDS.items():
        positions = [
            m.start()
            for keyword in keywords
            for m in re.finditer(rf"(?<![a-z0-9]){re.escape(keyword)}s?(?![a-z0-9])", lowered)
        ]
        if positions:
            hits.append((min(positions), output_type))
    if not hits:
        return None, []
    mentioned = [output_type for _, output_type in sorted(hits, key=lambda h: h[0])]
    ordered = [t for t in OUTPUT_KEYWORDS if t in mentioned]
    return ordered[0], mentioned
