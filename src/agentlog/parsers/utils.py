"""
Utility functions for parsing session logs.

This module provides common utilities used by the decoder, the classifier and
the transcript renderer, including timestamp parsing, content extraction and
payload previews.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser


def parse_iso_timestamp(timestamp_str: str) -> datetime:
    """
    Parse an ISO 8601 timestamp string to a datetime object.

    Args:
        timestamp_str: ISO 8601 formatted timestamp (e.g., "2025-10-16T19:12:28.024Z")

    Returns:
        Timezone-aware datetime in UTC (naive input is taken as UTC)

    Raises:
        ValueError: If the timestamp string is invalid
    """
    try:
        parsed = date_parser.isoparse(timestamp_str)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid timestamp format: {timestamp_str}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_optional_timestamp(value: Any) -> Optional[datetime]:
    """Lenient variant: returns None for missing or unparseable values."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return parse_iso_timestamp(value)
    except ValueError:
        return None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns;
    those are treated as UTC so watermark comparisons stay consistent.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def extract_text_content(content: Any, separator: str = "") -> str:
    """
    Extract text content from a message's content field.

    Content can be:
    - A string (simple message), returned verbatim
    - An array of content items; ``text`` parts are concatenated in order

    Args:
        content: The message content (string or array)
        separator: String placed between consecutive text parts

    Returns:
        Extracted text content, or empty string if none found
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                text = item.get("text")
                if isinstance(text, str):
                    text_parts.append(text)
        return separator.join(text_parts)

    return ""


def safe_get_nested(data: Any, *keys: Any, default: Any = None) -> Optional[Any]:
    """
    Safely get a nested dictionary value.

    Args:
        data: The dictionary to search
        *keys: Sequence of keys to traverse
        default: Default value if path doesn't exist

    Returns:
        The value at the nested path, or default if not found

    Example:
        >>> data = {"message": {"content": [{"type": "text"}]}}
        >>> safe_get_nested(data, "message", "content", 0, "type")
        'text'
        >>> safe_get_nested(data, "message", "missing", "key", default="N/A")
        'N/A'
    """
    current = data
    for key in keys:
        if isinstance(current, dict):
            current = current.get(key, default)
        elif isinstance(current, list) and isinstance(key, int):
            try:
                current = current[key]
            except (IndexError, TypeError):
                return default
        else:
            return default

        if current is None:
            return default

    return current


def truncate(text: str, limit: int, marker: str = "...") -> str:
    """Cut ``text`` to ``limit`` characters, appending ``marker`` when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + marker


def preview(value: Any, limit: int) -> str:
    """
    Short one-line preview of an opaque payload.

    Strings are used as-is; anything else is JSON-encoded first.
    """
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = repr(value)
    return truncate(text, limit)
