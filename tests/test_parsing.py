"""Tests for JSON extraction from provider responses.

Tests cover:
- Balanced object extraction with strings and escapes
- Decoding whole-text and embedded objects
- Leading metadata objects before prose
"""

from __future__ import annotations

import pytest

from dreamcut.ai.client import MalformedResponseError
from dreamcut.ai.parsing import extract_json_object, parse_json_object, split_leading_json


class TestExtractJsonObject:
    """Tests for extract_json_object."""

    def test_object_in_prose(self):
        """Test an object surrounded by prose is found."""
        text = 'Here you go: {"intent": {"type": "video"}} hope it helps'

        assert extract_json_object(text) == '{"intent": {"type": "video"}}'

    def test_braces_inside_strings(self):
        """Test braces inside string literals do not affect depth."""
        assert extract_json_object('Sure! {"a": "}"} Done.') == '{"a": "}"}'

    def test_escaped_quotes(self):
        """Test escaped quotes keep the string open."""
        text = '{"a": "say \\"}\\" now"} tail'

        assert extract_json_object(text) == '{"a": "say \\"}\\" now"}'

    def test_unclosed_then_valid(self):
        """Test an unclosed brace is skipped for a later candidate."""
        assert extract_json_object('{ broken {"ok": true}') == '{"ok": true}'

    def test_no_object(self):
        """Test text without braces gives None."""
        assert extract_json_object("no json at all") is None


class TestParseJsonObject:
    """Tests for parse_json_object."""

    def test_whole_text(self):
        """Test plain JSON decodes directly."""
        assert parse_json_object('  {"a": 1}  ') == {"a": 1}

    def test_code_fence(self):
        """Test fenced JSON is extracted."""
        assert parse_json_object('```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_skips_undecodable_candidate(self):
        """Test a balanced but invalid span is skipped."""
        assert parse_json_object("{not: json} then {\"b\": 2}") == {"b": 2}

    def test_top_level_list_rejected(self):
        """Test a JSON list is not an object."""
        with pytest.raises(MalformedResponseError):
            parse_json_object("[1, 2, 3]")

    def test_no_json(self):
        """Test prose raises MalformedResponseError."""
        with pytest.raises(MalformedResponseError, match="does not contain a JSON object"):
            parse_json_object("I cannot help with that.")


class TestSplitLeadingJson:
    """Tests for split_leading_json."""

    def test_metadata_then_prose(self):
        """Test a leading object is split from the description."""
        metadata, text = split_leading_json('{"width": 640, "height": 480}\nA small image.')

        assert metadata == {"width": 640, "height": 480}
        assert text == "A small image."

    def test_prose_only(self):
        """Test prose without an object is returned stripped."""
        assert split_leading_json("  Just words. ") == (None, "Just words.")

    def test_object_not_leading(self):
        """Test objects after prose are left in the text."""
        text = 'A picture {"width": 1}'

        assert split_leading_json(text) == (None, text)

    def test_invalid_leading_object(self):
        """Test an undecodable leading object is kept as text."""
        assert split_leading_json("{width: 1} A picture") == (None, "{width: 1} A picture")
