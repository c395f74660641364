"""
Session log parsing: line-oriented JSON decoding, event classification and
schema discovery.
"""

from agentlog.parsers.classifier import (
    ClassifiedEvent,
    classify,
    extract_tool_uses,
    first_model,
)
from agentlog.parsers.decoder import (
    DecodedLine,
    LineDecoder,
    decode_stream,
    iter_jsonl,
)
from agentlog.parsers.discovery import SchemaDiscovery
from agentlog.parsers.types import ParseIssue, ParseIssueKind, ParseIssueSeverity

__all__ = [
    "ClassifiedEvent",
    "DecodedLine",
    "LineDecoder",
    "ParseIssue",
    "ParseIssueKind",
    "ParseIssueSeverity",
    "SchemaDiscovery",
    "classify",
    "decode_stream",
    "extract_tool_uses",
    "first_model",
    "iter_jsonl",
]
