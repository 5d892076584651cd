"""Deterministic, rule-based provider for runs without network access.

``OfflineProvider`` answers every prompt the pipeline sends by reading the
``Request type:`` line and applying keyword rules. It is what
``dreamcut analyze --offline`` uses; the output is plausible rather than
insightful, and identical for identical prompts.
"""

from __future__ import annotations

import json
import re

from dreamcut.ai.client import AIBadRequestError, GenerationOptions, ReasoningProvider
from dreamcut.ai.prompts import REQUEST_TYPE_CREATIVE, REQUEST_TYPE_QUERY
from dreamcut.ai.query_analyzer import extract_explicit_constraints
from dreamcut.ai.vocabulary import (
    MOOD_KEYWORDS,
    PLATFORM_WORDS,
    STYLE_KEYWORDS,
    content_tokens,
    find_words,
    infer_output_type,
    match_table,
)
from dreamcut.core.models import OutputType

_REQUEST_TYPE = re.compile(r"^Request type: (\S+)\s*$", re.MULTILINE)
_QUOTED = re.compile(r'"""(.*?)"""', re.DOTALL)
_SELECTED = re.compile(r"selected output medium '(\w+)'")
_LINE = r"^{label}: (.*)$"

_AUDIENCE_WORDS = {
    "kids": "children",
    "children": "children",
    "students": "students",
    "teens": "teenagers",
    "customers": "customers",
    "developers": "developers",
    "investors": "investors",
    "fans": "fans",
}


def _line_value(prompt: str, label: str) -> str | None:
    match = re.search(_LINE.format(label=re.escape(label)), prompt, re.MULTILINE)
    return match.group(1).strip() if match else None


class OfflineProvider(ReasoningProvider):
    """Keyword-rule stand-in for a hosted model."""

    def __init__(self, name: str = "offline") -> None:
        super().__init__(name, model="offline-rules", timeout_seconds=0)

    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        match = _REQUEST_TYPE.search(prompt)
        if match is None:
            raise AIBadRequestError(f"{self.name} cannot route a prompt without a request type")
        request_type = match.group(1)

        if request_type == REQUEST_TYPE_QUERY:
            return self._query_analysis(prompt)
        if request_type.startswith("asset_analysis:"):
            return self._asset_description(prompt, request_type.split(":", 1)[1])
        if request_type == REQUEST_TYPE_CREATIVE:
            return self._creative_direction(prompt)
        raise AIBadRequestError(f"{self.name} does not handle request type '{request_type}'")

    # -------------------------------------------------------------------------
    # Query analysis
    # -------------------------------------------------------------------------

    def _query_analysis(self, prompt: str) -> str:
        quoted = _QUOTED.search(prompt)
        query = quoted.group(1).strip() if quoted else ""
        lowered = query.lower()

        selected = _SELECTED.search(prompt)
        inferred, mentioned = infer_output_type(query)
        if selected:
            primary = selected.group(1)
            confidence = 0.9
            reasoning = f"Caller selected {primary} output"
        elif inferred is not None:
            primary = inferred.value
            confidence = 0.8 if len(mentioned) == 1 else 0.65
            reasoning = f"Request names {inferred.value} output"
        else:
            primary = OutputType.IMAGE.value
            confidence = 0.4
            reasoning = "No medium named; defaulting to a still image"

        styles = match_table(query, STYLE_KEYWORDS)
        moods = match_table(query, MOOD_KEYWORDS)
        platforms = find_words(query, PLATFORM_WORDS)
        audience = sorted({label for word, label in _AUDIENCE_WORDS.items() if word in lowered})
        explicit = extract_explicit_constraints(query).constraints
        subject_tokens = [
            t for t in content_tokens(query) if t not in {"teaser", "video", "image", "reel"}
        ]

        payload = {
            "intent": {
                "primary_output_type": primary,
                "secondary_output_types": [
                    t.value for t in mentioned if t.value != primary
                ],
                "confidence": confidence,
                "reasoning": reasoning,
                "user_goal": query.rstrip(".!?") or None,
            },
            "modifiers": {
                "style": styles or None,
                "mood": moods or None,
                "platform": platforms or None,
                "target_audience": audience or None,
            },
            "constraints": explicit,
            "gaps": {
                "missing_subject": not subject_tokens,
                "missing_duration": primary in ("video", "audio") and "duration_seconds" not in explicit,
                "missing_aspect_ratio": primary in ("video", "image") and "aspect_ratio" not in explicit,
                "missing_style": not styles,
                "missing_mood": not moods,
                "missing_platform": not platforms,
                "missing_target_audience": not audience,
                "clarification_needed": (
                    [] if subject_tokens else ["What should the piece be about?"]
                ),
            },
            "creative_reframing": {
                "enhanced_prompt": self._enhanced_prompt(query, primary, styles, moods),
                "creative_direction": (
                    f"A {(moods or ['focused'])[0]} {primary} piece built around "
                    f"{', '.join(subject_tokens[:3]) or 'the core message'}."
                ),
                "alternative_interpretations": [],
                "suggested_additions": [] if styles else ["Name a visual style"],
            },
        }
        return json.dumps(payload)

    @staticmethod
    def _enhanced_prompt(query: str, primary: str, styles: list[str], moods: list[str]) -> str:
        parts = [query.rstrip(".!?")]
        if styles:
            parts.append(f"in a {styles[0]} style")
        if moods:
            parts.append(f"with a {moods[0]} feel")
        parts.append(f"delivered as {primary}")
        return ", ".join(parts) + "."

    # -------------------------------------------------------------------------
    # Asset description
    # -------------------------------------------------------------------------

    def _asset_description(self, prompt: str, kind: str) -> str:
        asset_id = _line_value(prompt, "Asset id") or "asset"
        source = _line_value(prompt, "Asset location") or ""
        user_description = _line_value(prompt, "User description")

        filename = source.rstrip("/").rsplit("/", 1)[-1]
        stem, _, extension = filename.partition(".")
        words = " ".join(re.split(r"[_\-\s]+", stem)).strip() or asset_id

        metadata = {"format": extension.lower()} if extension else {}
        lead = json.dumps(metadata) + "\n" if metadata else ""

        if user_description:
            body = f"A {kind} asset showing {user_description.rstrip('.')}."
        else:
            body = f"A {kind} asset named {words}."
        return f"{lead}{body} Clear and usable as provided."

    # -------------------------------------------------------------------------
    # Creative direction
    # -------------------------------------------------------------------------

    def _creative_direction(self, prompt: str) -> str:
        quoted = _QUOTED.search(prompt)
        query = quoted.group(1).strip().rstrip(".!?") if quoted else "the request"
        output_type = _line_value(prompt, "Output medium") or "piece"
        style = _line_value(prompt, "Requested style") or ""
        mood = _line_value(prompt, "Requested mood") or ""

        tone = " and ".join(part for part in (style, mood) if part) or "clear"
        return (
            f"Build a {tone} {output_type} that delivers on '{query}'. "
            "Lead with the strongest material, keep pacing tight and let the supporting "
            "assets reinforce a single message."
        )
