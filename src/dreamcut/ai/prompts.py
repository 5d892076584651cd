"""Centralized Prompt Template System for DreamCut Analyzer.

This module is the single source of every prompt sent to a reasoning
provider. Each template pairs a system instruction with a user prompt using
``string.Template`` placeholders (``$query``), plus metadata for versioning.

Every user prompt opens with a ``Request type: <kind>`` line. Offline and
canned providers route on that line, so it must stay stable across versions.

Example:
    >>> from dreamcut.ai.prompts import get_prompt, build_prompt
    >>> template = get_prompt("query_analysis_v1")
    >>> prompt = build_prompt(template, query="make a 30s teaser", ...)
"""

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass, field
from enum import Enum
from string import Template
from typing import Any

# =============================================================================
# Enums
# =============================================================================


class PromptCategory(str, Enum):
    """Categories of prompts, one per pipeline concern."""

    QUERY_ANALYSIS = "query_analysis"
    ASSET_ANALYSIS = "asset_analysis"
    CREATIVE_DIRECTION = "creative_direction"


REQUEST_TYPE_QUERY = "query_analysis"
REQUEST_TYPE_CREATIVE = "creative_direction"


def asset_request_type(kind: str) -> str:
    return f"asset_analysis:{kind}"


# =============================================================================
# Template
# =============================================================================


@dataclass
class PromptTemplate:
    """Metadata and content for a prompt template.

    Attributes:
        id: Unique identifier (e.g., "query_analysis_v1").
        category: Type of prompt for filtering.
        version: Semantic version string for tracking changes.
        system_instruction: Role and behavior instructions for the provider.
        user_prompt_template: User prompt with $placeholder variables.
        output_schema: Expected JSON shape for structured outputs.
        required_variables: Variables that MUST be provided.
        optional_variables: Variables that CAN be provided.
        estimated_output_tokens: Estimated tokens in response for planning.
        description: Human-readable description of the prompt's purpose.
    """

    id: str
    category: PromptCategory
    version: str
    system_instruction: str
    user_prompt_template: str
    output_schema: dict[str, Any] | None = None
    required_variables: set[str] = field(default_factory=set)
    optional_variables: set[str] = field(default_factory=set)
    estimated_output_tokens: int = 1000
    description: str = ""

    def render(self, **variables: Any) -> tuple[str, str]:
        """Render the template with provided variables.

        Returns:
            Tuple of (system_instruction, rendered_user_prompt).

        Raises:
            ValueError: If required variables are missing.
        """
        missing = self.validate_variables(variables)
        if missing:
            raise ValueError(f"Missing required variables for prompt '{self.id}': {missing}")

        if self.output_schema and "output_schema" not in variables:
            variables["output_schema"] = render_output_schema(self.output_schema)

        for name in self.optional_variables:
            variables.setdefault(name, "")

        rendered = Template(self.user_prompt_template).safe_substitute(variables)
        return self.system_instruction, rendered

    def validate_variables(self, variables: dict[str, Any]) -> list[str]:
        """Return the sorted names of missing required variables."""
        return sorted(self.required_variables - set(variables))


def build_prompt(template: PromptTemplate, **variables: Any) -> str:
    """Render a template into the single text block providers receive."""
    system, user = template.render(**variables)
    return f"{system}\n\n{user}"


def render_output_schema(schema: dict[str, Any]) -> str:
    """Render a schema dict as indented JSON for inclusion in a prompt."""
    return json.dumps(schema, indent=2)


# =============================================================================
# System Instructions
# =============================================================================


QUERY_ANALYST_SYSTEM = textwrap.dedent(
    """
    You are a senior creative producer who turns short, informal requests into
    precise production briefs. You read a request once, decide what medium the
    person wants (image, video, audio or a mix), and extract every explicit
    constraint they gave. You never invent constraints they did not state;
    anything missing is reported as a gap instead.

    Mentions of a medium inside the request ("a video of a photographer") are
    descriptive content, not a change of output medium. When the caller has
    selected an output medium, that selection is authoritative.

    Respond with exactly one JSON object and nothing else.
    """
).strip()

ASSET_ANALYST_SYSTEM = textwrap.dedent(
    """
    You are a media analyst preparing assets for a production team. Describe
    what an asset shows or contains in plain, concrete language: subjects,
    setting, composition, style, mood and technical quality. Mention how it
    could serve the request. Be specific and avoid marketing language.
    """
).strip()

CREATIVE_DIRECTOR_SYSTEM = textwrap.dedent(
    """
    You are a creative director. Given a request and a summary of the
    available material, write one short paragraph (2-4 sentences) describing
    the unified creative direction for the piece. Plain prose only, no lists
    and no JSON.
    """
).strip()


# =============================================================================
# Output Schemas
# =============================================================================


QUERY_ANALYSIS_SCHEMA: dict[str, Any] = {
    "intent": {
        "primary_output_type": "image | video | audio | mixed",
        "secondary_output_types": ["image | video | audio"],
        "confidence": "number between 0 and 1",
        "reasoning": "one sentence",
        "user_goal": "what the person is trying to achieve",
    },
    "modifiers": {
        "style": ["string"],
        "mood": ["string"],
        "tone": ["string"],
        "theme": ["string"],
        "aesthetic": ["string"],
        "technical_specs": ["string"],
        "platform": ["string"],
        "target_audience": ["string"],
    },
    "constraints": {
        "image_count": "integer or list of integers",
        "duration_seconds": "integer or list of integers",
        "audio_length_seconds": "integer or list of integers",
        "aspect_ratio": "string like 16:9, or list of strings",
        "resolution": "string like 1920x1080",
        "format_preferences": ["string"],
        "timeline": "string",
        "deadline": "string",
    },
    "gaps": {
        "missing_subject": "boolean",
        "missing_duration": "boolean",
        "missing_aspect_ratio": "boolean",
        "missing_style": "boolean",
        "missing_mood": "boolean",
        "missing_platform": "boolean",
        "missing_target_audience": "boolean",
        "clarification_needed": ["question to ask the user"],
    },
    "creative_reframing": {
        "enhanced_prompt": "string",
        "creative_direction": "string",
        "alternative_interpretations": ["string"],
        "suggested_additions": ["string"],
    },
}


# =============================================================================
# Prompt Templates
# =============================================================================


QUERY_ANALYSIS_PROMPT = PromptTemplate(
    id="query_analysis_v1",
    category=PromptCategory.QUERY_ANALYSIS,
    version="1.0.0",
    system_instruction=QUERY_ANALYST_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Request type: query_analysis

        User request:
        \"\"\"$query\"\"\"
        $selected_output_type
        Extract the intent, modifiers, constraints and gaps of this request.
        Omit modifier and constraint fields the request does not mention.
        Use null only where the schema allows it; never use strings for numbers.
        $modifier_instruction
        $reframing_instruction

        Return JSON matching this shape:
        $output_schema
        """
    ).strip(),
    output_schema=QUERY_ANALYSIS_SCHEMA,
    required_variables={"query"},
    optional_variables={"selected_output_type", "modifier_instruction", "reframing_instruction"},
    estimated_output_tokens=900,
    description="Structured understanding of one creative request",
)

_ASSET_USER_TEMPLATE = textwrap.dedent(
    """
    Request type: $request_type

    The project request is:
    \"\"\"$query\"\"\"

    Asset id: $asset_id
    Asset location: $source
    $user_description
    $focus

    If you can determine technical details, start your answer with one JSON
    object such as {"width": 1920, "height": 1080, "duration_seconds": 12.5,
    "format": "mp4", "file_size_bytes": 2048000}, then write the description
    as plain prose.
    """
).strip()

IMAGE_ANALYSIS_PROMPT = PromptTemplate(
    id="asset_image_v1",
    category=PromptCategory.ASSET_ANALYSIS,
    version="1.0.0",
    system_instruction=ASSET_ANALYST_SYSTEM,
    user_prompt_template=_ASSET_USER_TEMPLATE,
    required_variables={"query", "asset_id", "source", "request_type", "focus"},
    optional_variables={"user_description"},
    estimated_output_tokens=400,
    description="Describe an image asset against the request",
)

VIDEO_ANALYSIS_PROMPT = PromptTemplate(
    id="asset_video_v1",
    category=PromptCategory.ASSET_ANALYSIS,
    version="1.0.0",
    system_instruction=ASSET_ANALYST_SYSTEM,
    user_prompt_template=_ASSET_USER_TEMPLATE,
    required_variables={"query", "asset_id", "source", "request_type", "focus"},
    optional_variables={"user_description"},
    estimated_output_tokens=500,
    description="Describe a video asset against the request",
)

AUDIO_ANALYSIS_PROMPT = PromptTemplate(
    id="asset_audio_v1",
    category=PromptCategory.ASSET_ANALYSIS,
    version="1.0.0",
    system_instruction=ASSET_ANALYST_SYSTEM,
    user_prompt_template=_ASSET_USER_TEMPLATE,
    required_variables={"query", "asset_id", "source", "request_type", "focus"},
    optional_variables={"user_description"},
    estimated_output_tokens=400,
    description="Describe an audio asset against the request",
)

TEXT_ANALYSIS_PROMPT = PromptTemplate(
    id="asset_text_v1",
    category=PromptCategory.ASSET_ANALYSIS,
    version="1.0.0",
    system_instruction=ASSET_ANALYST_SYSTEM,
    user_prompt_template=_ASSET_USER_TEMPLATE,
    required_variables={"query", "asset_id", "source", "request_type", "focus"},
    optional_variables={"user_description"},
    estimated_output_tokens=400,
    description="Summarize a text asset against the request",
)

CREATIVE_DIRECTION_PROMPT = PromptTemplate(
    id="creative_direction_v1",
    category=PromptCategory.CREATIVE_DIRECTION,
    version="1.0.0",
    system_instruction=CREATIVE_DIRECTOR_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Request type: creative_direction

        Request:
        \"\"\"$query\"\"\"

        Output medium: $output_type
        Requested style: $style
        Requested mood: $mood

        Available material:
        $asset_summary

        Write the creative direction paragraph now.
        """
    ).strip(),
    required_variables={"query", "output_type", "asset_summary"},
    optional_variables={"style", "mood"},
    estimated_output_tokens=250,
    description="One-paragraph creative direction across request and assets",
)


# =============================================================================
# Prompt Registry
# =============================================================================


PROMPT_REGISTRY: dict[str, PromptTemplate] = {}


def register_prompt(template: PromptTemplate) -> None:
    """Register a prompt template in the global registry.

    Raises:
        ValueError: If a prompt with the same ID is already registered.
    """
    if template.id in PROMPT_REGISTRY:
        raise ValueError(f"Prompt '{template.id}' is already registered")
    PROMPT_REGISTRY[template.id] = template


def get_prompt(prompt_id: str) -> PromptTemplate:
    """Retrieve a prompt template by ID.

    Raises:
        KeyError: If no prompt with the given ID exists.
    """
    if prompt_id not in PROMPT_REGISTRY:
        available = ", ".join(sorted(PROMPT_REGISTRY.keys()))
        raise KeyError(f"Prompt '{prompt_id}' not found. Available prompts: {available}")
    return PROMPT_REGISTRY[prompt_id]


def list_prompts(category: PromptCategory | None = None) -> list[PromptTemplate]:
    """List available prompts, optionally filtered by category."""
    templates = list(PROMPT_REGISTRY.values())
    if category is not None:
        templates = [t for t in templates if t.category == category]
    return sorted(templates, key=lambda t: t.id)


def _register_builtin_prompts() -> None:
    for template in [
        QUERY_ANALYSIS_PROMPT,
        IMAGE_ANALYSIS_PROMPT,
        VIDEO_ANALYSIS_PROMPT,
        AUDIO_ANALYSIS_PROMPT,
        TEXT_ANALYSIS_PROMPT,
        CREATIVE_DIRECTION_PROMPT,
    ]:
        register_prompt(template)


_register_builtin_prompts()
