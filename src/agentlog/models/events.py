"""
Normalized event data models.

These are intermediate Python dataclasses representing classified log events
before they are stored in the database or rendered to a live transcript.
Each known ``type`` discriminator has its own variant; anything else becomes
an UnknownEvent carrying the raw payload.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class EventKind(str, enum.Enum):
    """Normalized event kind taken from the raw ``type`` field."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"
    RESULT = "result"
    UNKNOWN = "unknown"

    @classmethod
    def from_type(cls, value: Any) -> "EventKind":
        """Map a raw ``type`` value to a kind; unrecognized values are UNKNOWN."""
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        return cls.UNKNOWN


@dataclass
class ToolUseRecord:
    """Tool invocation extracted from a message content part."""

    tool_name: str
    tool_call_id: Optional[str]
    input: Any = None
    event_uuid: Optional[str] = None  # Owning event; required for persistence
    timestamp: Optional[datetime] = None


@dataclass
class NormalizedEvent:
    """Fields common to every classified event."""

    session_id: str
    kind: EventKind
    raw: Any
    uuid: Optional[str] = None
    parent_uuid: Optional[str] = None
    subtype: Optional[str] = None
    timestamp: Optional[datetime] = None  # None means unknown, never "now"
    is_sidechain: bool = False
    agent_id: Optional[str] = None
    cwd: Optional[str] = None
    git_branch: Optional[str] = None
    request_id: Optional[str] = None
    message: Optional[dict] = None
    line_number: Optional[int] = None

    @property
    def type_name(self) -> str:
        """The raw ``type`` discriminator as it appeared in the log."""
        if isinstance(self.raw, dict):
            value = self.raw.get("type")
            if isinstance(value, str):
                return value
        return self.kind.value

    @property
    def reported_session_id(self) -> Optional[str]:
        """Session id announced by the event itself (live stream events)."""
        return None


@dataclass
class MessageEvent(NormalizedEvent):
    """User or assistant turn with extracted text and tool invocations."""

    text: str = ""
    tool_uses: list[ToolUseRecord] = field(default_factory=list)
    tool_result_count: int = 0
    model: Optional[str] = None
    stop_reason: Optional[str] = None


@dataclass
class SystemEvent(NormalizedEvent):
    """System notice; subtype ``init`` carries the working directory."""

    session_ref: Optional[str] = None

    @property
    def reported_session_id(self) -> Optional[str]:
        return self.session_ref


@dataclass
class ToolEvent(NormalizedEvent):
    """Standalone tool execution record from the live stream."""

    tool_name: str = "unknown"
    tool_call_id: Optional[str] = None
    input: Any = None
    output: Any = None
    status: Optional[str] = None


@dataclass
class ResultEvent(NormalizedEvent):
    """Final result of one invocation with cost/duration counters."""

    session_ref: Optional[str] = None
    total_cost_usd: Optional[float] = None
    duration_ms: Optional[int] = None
    duration_api_ms: Optional[int] = None
    num_turns: Optional[int] = None
    is_error: bool = False
    error: Optional[str] = None
    result: Optional[str] = None

    @property
    def reported_session_id(self) -> Optional[str]:
        return self.session_ref


@dataclass
class UnknownEvent(NormalizedEvent):
    """Catch-all for unrecognized shapes; the raw payload is kept intact."""

    pass
