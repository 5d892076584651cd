"""Pull structured JSON out of free-form provider responses.

Providers often wrap the requested JSON object in prose or code fences.
``extract_json_object`` finds the first balanced ``{...}`` span, skipping
braces inside string literals, so text like ``Sure! {"a": "}"} Done.``
yields ``{"a": "}"}``.
"""

from __future__ import annotations

import json
from typing import Any

from dreamcut.ai.client import MalformedResponseError


def extract_json_object(text: str) -> str | None:
    """Return the first balanced JSON object substring, or None.

    The scan tracks string literals and escapes, so braces inside strings
    never affect nesting depth. An opening brace that never closes is skipped
    and scanning resumes at the next candidate.

    Example:
        >>> extract_json_object('Here you go: {"intent": {"type": "video"}} hope it helps')
        '{"intent": {"type": "video"}}'
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: str) -> dict[str, Any]:
    """Extract and decode the first JSON object in a response.

    Tries the whole text first, then the first balanced object. When a
    balanced span fails to decode, later candidates are tried in order.

    Raises:
        MalformedResponseError: If no decodable JSON object is present.
    """
    stripped = text.strip()
    try:
        value = json.loads(stripped)
        if isinstance(value, dict):
            return value
    except json.JSONDecodeError:
        pass

    offset = 0
    while True:
        candidate = extract_json_object(stripped[offset:])
        if candidate is None:
            break
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            offset = stripped.index(candidate, offset) + 1
            continue
        if isinstance(value, dict):
            return value
        offset = stripped.index(candidate, offset) + 1

    raise MalformedResponseError(
        f"Response does not contain a JSON object ({len(text)} chars)"
    )


def split_leading_json(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split an optional leading JSON object from the prose that follows it.

    Used for asset descriptions where a provider may prefix its free-text
    answer with a metadata object.

    Returns:
        Tuple of (metadata dict or None, remaining text stripped).
    """
    stripped = text.strip()
    if not stripped.startswith("{"):
        return None, stripped
    candidate = extract_json_object(stripped)
    if candidate is None:
        return None, stripped
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None, stripped
    if not isinstance(value, dict):
        return None, stripped
    return value, stripped[len(candidate) :].strip()
