"""
Shared parser result types.

Per-line and per-part problems are recorded as data (ParseIssue) rather than
raised, so a single bad line never aborts a source.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# Maximum characters of offending content kept on an issue
CONTEXT_MAX_CHARS = 200


class ParseIssueSeverity(Enum):
    """Severity level for parse issues."""

    WARNING = "warning"  # Non-fatal: some data skipped but source processed
    ERROR = "error"  # Fatal for the source


class ParseIssueKind(str, Enum):
    """What went wrong."""

    LINE_PARSE_ERROR = "line_parse_error"
    SCHEMA_MISMATCH = "schema_mismatch"
    SOURCE_UNREADABLE = "source_unreadable"
    STORE_WRITE_FAILURE = "store_write_failure"


@dataclass
class ParseIssue:
    """
    Structured issue for tracking warnings and errors.

    Attributes:
        kind: Category of the issue
        message: Human-readable description
        severity: WARNING (non-fatal) or ERROR (fatal)
        line_number: Optional 1-based line number where issue occurred
        field: Optional field name that had the issue
        context: Optional raw content, truncated
        source: Optional source identifier (session id or file name)
    """

    kind: ParseIssueKind
    message: str
    severity: ParseIssueSeverity = ParseIssueSeverity.WARNING
    line_number: Optional[int] = None
    field: Optional[str] = None
    context: Optional[str] = None
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.context is not None and len(self.context) > CONTEXT_MAX_CHARS:
            self.context = self.context[:CONTEXT_MAX_CHARS]

    def with_source(self, source: str) -> "ParseIssue":
        self.source = source
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.source:
            result["source"] = self.source
        if self.line_number is not None:
            result["line_number"] = self.line_number
        if self.field:
            result["field"] = self.field
        if self.context:
            result["context"] = self.context
        return result

    def __str__(self) -> str:
        where = self.source or ""
        if self.line_number is not None:
            where = f"{where}:{self.line_number}"
        return f"{where} - {self.message}" if where else self.message
