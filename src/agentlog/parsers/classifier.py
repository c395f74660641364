"""
Event classifier and extractor.

Maps raw JSON shapes from a session log (or the live stream) to normalized
events, extracting message text and tool invocations. Classification is a
pure function: no I/O, never rejects an event. Problems with sub-parts are
returned as ParseIssue records alongside the event.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from agentlog.models.events import (
    EventKind,
    MessageEvent,
    NormalizedEvent,
    ResultEvent,
    SystemEvent,
    ToolEvent,
    ToolUseRecord,
    UnknownEvent,
)
from agentlog.parsers.types import ParseIssue, ParseIssueKind
from agentlog.parsers.utils import extract_text_content, parse_optional_timestamp

logger = logging.getLogger(__name__)


@dataclass
class ClassifiedEvent:
    """A normalized event plus any sub-part issues found while extracting it."""

    event: NormalizedEvent
    issues: list[ParseIssue] = field(default_factory=list)


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return str(value)


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _common_fields(raw: dict[str, Any], session_id: str, kind: EventKind) -> dict[str, Any]:
    message = raw.get("message")
    return {
        "session_id": session_id,
        "kind": kind,
        "raw": raw,
        "uuid": _str_or_none(raw.get("uuid")),
        "parent_uuid": _str_or_none(raw.get("parentUuid")),
        "subtype": _str_or_none(raw.get("subtype")),
        "timestamp": parse_optional_timestamp(raw.get("timestamp")),
        "is_sidechain": raw.get("isSidechain") is True,
        "agent_id": _str_or_none(raw.get("agentId")),
        "cwd": _str_or_none(raw.get("cwd")),
        "git_branch": _str_or_none(raw.get("gitBranch")),
        "request_id": _str_or_none(raw.get("requestId")),
        "message": message if isinstance(message, dict) else None,
    }


def extract_tool_uses(
    content: Any,
    event_uuid: Optional[str] = None,
    line_number: Optional[int] = None,
) -> tuple[list[ToolUseRecord], list[ParseIssue]]:
    """
    Collect ``tool_use`` parts from a message's content.

    A part without a ``name`` cannot be attributed to a tool and is dropped
    with a schema-mismatch issue; the call id and input pass through as-is.

    Returns:
        Tuple of (tool use records, issues for dropped parts)
    """
    records: list[ToolUseRecord] = []
    issues: list[ParseIssue] = []

    if not isinstance(content, list):
        return records, issues

    for index, part in enumerate(content):
        if not isinstance(part, dict) or part.get("type") != "tool_use":
            continue

        name = part.get("name")
        if not isinstance(name, str) or not name:
            issues.append(
                ParseIssue(
                    kind=ParseIssueKind.SCHEMA_MISMATCH,
                    message=f"tool_use part {index} has no name; dropped",
                    line_number=line_number,
                    field="message.content.name",
                    context=str(part),
                )
            )
            continue

        records.append(
            ToolUseRecord(
                tool_name=name,
                tool_call_id=_str_or_none(part.get("id")),
                input=part.get("input"),
                event_uuid=event_uuid,
            )
        )

    return records, issues


def _count_tool_results(content: Any) -> int:
    if not isinstance(content, list):
        return 0
    return sum(
        1
        for part in content
        if isinstance(part, dict)
        and (part.get("type") == "tool_result" or "tool_use_id" in part)
    )


def _classify_message(
    common: dict[str, Any], raw: dict[str, Any], line_number: Optional[int]
) -> ClassifiedEvent:
    message = common["message"] or {}
    content = message.get("content")
    text = extract_text_content(content)

    tool_uses, issues = extract_tool_uses(content, common["uuid"], line_number)
    for record in tool_uses:
        record.timestamp = common["timestamp"]

    event = MessageEvent(
        **common,
        text=text,
        tool_uses=tool_uses,
        tool_result_count=_count_tool_results(content),
        model=_str_or_none(message.get("model")),
        stop_reason=_str_or_none(message.get("stop_reason")),
    )
    return ClassifiedEvent(event=event, issues=issues)


def _classify_tool(common: dict[str, Any], raw: dict[str, Any]) -> ClassifiedEvent:
    event = ToolEvent(
        **common,
        tool_name=_str_or_none(raw.get("tool_name") or raw.get("name")) or "unknown",
        tool_call_id=_str_or_none(raw.get("tool_call_id") or raw.get("id")),
        input=raw.get("input"),
        output=raw.get("output"),
        status=_str_or_none(raw.get("status")),
    )
    return ClassifiedEvent(event=event)


def _classify_result(common: dict[str, Any], raw: dict[str, Any]) -> ClassifiedEvent:
    event = ResultEvent(
        **common,
        session_ref=_str_or_none(raw.get("session_id")),
        total_cost_usd=_number_or_none(raw.get("total_cost_usd")),
        duration_ms=_number_or_none(raw.get("duration_ms")),
        duration_api_ms=_number_or_none(raw.get("duration_api_ms")),
        num_turns=_number_or_none(raw.get("num_turns")),
        is_error=bool(raw.get("is_error", False)),
        error=_str_or_none(raw.get("error")),
        result=raw.get("result") if isinstance(raw.get("result"), str) else None,
    )
    return ClassifiedEvent(event=event)


def classify(
    raw: Any,
    session_id: Optional[str] = None,
    line_number: Optional[int] = None,
) -> ClassifiedEvent:
    """
    Classify one raw JSON value into a normalized event.

    Args:
        raw: Value decoded from one log line (normally a JSON object)
        session_id: Owning session; defaults to the event's own
            ``sessionId`` / ``session_id`` field
        line_number: Source line, carried for diagnostics

    Returns:
        ClassifiedEvent with the normalized event and any sub-part issues
    """
    if not isinstance(raw, dict):
        # Arrays and scalars are legal JSON lines but carry no known shape
        event = UnknownEvent(
            session_id=session_id or "",
            kind=EventKind.UNKNOWN,
            raw=raw,
            line_number=line_number,
        )
        return ClassifiedEvent(event=event)

    kind = EventKind.from_type(raw.get("type"))
    resolved_session = (
        session_id
        or _str_or_none(raw.get("sessionId"))
        or _str_or_none(raw.get("session_id"))
        or ""
    )
    common = _common_fields(raw, resolved_session, kind)
    common["line_number"] = line_number

    if kind in (EventKind.USER, EventKind.ASSISTANT):
        return _classify_message(common, raw, line_number)
    if kind == EventKind.SYSTEM:
        return ClassifiedEvent(
            event=SystemEvent(**common, session_ref=_str_or_none(raw.get("session_id")))
        )
    if kind == EventKind.TOOL:
        return _classify_tool(common, raw)
    if kind == EventKind.RESULT:
        return _classify_result(common, raw)

    logger.debug(f"Unrecognized event type {raw.get('type')!r} kept as unknown")
    return ClassifiedEvent(event=UnknownEvent(**common))


def first_model(events: Iterable[NormalizedEvent]) -> Optional[str]:
    """
    Model of the session: the first ``model`` seen on an assistant event.

    Later differing values are ignored, even if the session spans a model
    change.
    """
    for event in events:
        if (
            isinstance(event, MessageEvent)
            and event.kind == EventKind.ASSISTANT
            and event.model
        ):
            return event.model
    return None
