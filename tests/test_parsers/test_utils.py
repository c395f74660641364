"""
Tests for parser utility functions.
"""

from datetime import datetime, timedelta, timezone

import pytest

from agentlog.parsers.utils import (
    as_utc,
    extract_text_content,
    parse_iso_timestamp,
    parse_optional_timestamp,
    preview,
    safe_get_nested,
    truncate,
)


class TestParseIsoTimestamp:
    """Tests for parse_iso_timestamp function."""

    def test_parse_valid_iso_timestamp(self):
        """Test parsing valid ISO 8601 timestamp."""
        result = parse_iso_timestamp("2025-10-16T19:12:28.024Z")

        assert isinstance(result, datetime)
        assert result.year == 2025
        assert result.month == 10
        assert result.day == 16
        assert result.tzinfo is not None

    def test_parse_timestamp_with_timezone_offset_normalized_to_utc(self):
        """Offsets are converted so stored values compare consistently."""
        result = parse_iso_timestamp("2025-10-16T19:12:28+05:30")

        assert result.utcoffset() == timedelta(0)
        assert result.hour == 13
        assert result.minute == 42

    def test_naive_timestamp_taken_as_utc(self):
        result = parse_iso_timestamp("2025-10-16T19:12:28")

        assert result.tzinfo is not None
        assert result.hour == 19

    def test_parse_invalid_timestamp_raises_error(self):
        with pytest.raises(ValueError):
            parse_iso_timestamp("not a timestamp")

    def test_parse_empty_string_raises_error(self):
        with pytest.raises(ValueError):
            parse_iso_timestamp("")


class TestParseOptionalTimestamp:
    """Missing or bad timestamps mean "unknown", never "now"."""

    @pytest.mark.parametrize("value", [None, "", "garbage", 12345, {"t": 1}])
    def test_unusable_values_return_none(self, value):
        assert parse_optional_timestamp(value) is None

    def test_valid_value_parsed(self):
        assert parse_optional_timestamp("2025-01-01T00:00:00Z") == datetime(
            2025, 1, 1, tzinfo=timezone.utc
        )


class TestAsUtc:
    def test_none(self):
        assert as_utc(None) is None

    def test_naive_value_gets_utc(self):
        assert as_utc(datetime(2025, 1, 1)).tzinfo == timezone.utc

    def test_aware_value_converted(self):
        value = datetime(2025, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        assert as_utc(value).hour == 10


class TestExtractTextContent:
    """Tests for extract_text_content function."""

    def test_extract_from_string(self):
        assert extract_text_content("Hello, world!") == "Hello, world!"

    def test_text_parts_joined_without_separator(self):
        content = [
            {"type": "text", "text": "First part"},
            {"type": "tool_use", "name": "Read"},
            {"type": "text", "text": "second part"},
        ]

        assert extract_text_content(content) == "First partsecond part"

    def test_custom_separator(self):
        content = [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]

        assert extract_text_content(content, separator="\n") == "a\nb"

    def test_no_text_parts(self):
        assert extract_text_content([{"type": "tool_result", "content": "x"}]) == ""

    def test_unexpected_shapes(self):
        assert extract_text_content(None) == ""
        assert extract_text_content({"text": "no"}) == ""
        assert extract_text_content([{"type": "text", "text": 5}, "loose"]) == ""


class TestSafeGetNested:
    """Tests for safe_get_nested function."""

    def test_get_nested_value(self):
        data = {"message": {"content": [{"type": "text"}]}}

        assert safe_get_nested(data, "message", "content", 0, "type") == "text"

    def test_missing_key_returns_default(self):
        data = {"message": {}}

        assert safe_get_nested(data, "message", "missing", "key", default="N/A") == "N/A"

    def test_index_out_of_range(self):
        assert safe_get_nested({"items": []}, "items", 3) is None


class TestPreview:
    def test_truncate_short_text_untouched(self):
        assert truncate("abc", 5) == "abc"

    def test_truncate_adds_marker(self):
        assert truncate("abcdef", 3) == "abc..."

    def test_preview_keeps_strings(self):
        assert preview("plain", 10) == "plain"

    def test_preview_serializes_other_values(self):
        assert preview({"a": 1}, 100) == '{"a": 1}'

    def test_preview_truncates(self):
        assert preview("x" * 250, 200) == "x" * 200 + "..."
