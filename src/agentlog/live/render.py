"""
Transcript rendering for the live stream.

Every classified event becomes zero or more styled ``rich.text.Text`` lines.
Content coming from the agent is never interpreted as markup.
"""

import json
from typing import Any

from rich.text import Text

from agentlog.exceptions import ProcessRuntimeError
from agentlog.models.events import (
    EventKind,
    MessageEvent,
    NormalizedEvent,
    ResultEvent,
    SystemEvent,
    ToolEvent,
)
from agentlog.parsers.utils import preview, safe_get_nested, truncate

TOOL_ID_PREVIEW = 20
ASSISTANT_INPUT_PREVIEW = 150
TOOL_IO_PREVIEW = 200
UNKNOWN_PREVIEW = 100

DETAIL = "bright_black"


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


class TranscriptRenderer:
    """Turns events and stream diagnostics into transcript lines."""

    def render(self, event: NormalizedEvent) -> list[Text]:
        """Render one classified event."""
        if isinstance(event, SystemEvent):
            return self._system(event)
        if isinstance(event, MessageEvent) and event.kind == EventKind.USER:
            return self._user(event)
        if isinstance(event, MessageEvent):
            return self._assistant(event)
        if isinstance(event, ToolEvent):
            return self._tool(event)
        if isinstance(event, ResultEvent):
            return self._result(event)
        return self._unknown(event)

    def session_changed(self, session_id: str) -> list[Text]:
        return [Text(f"[Session ID: {session_id}]", style="cyan")]

    def raw(self, line: str) -> list[Text]:
        """A stdout line that was not valid JSON, shown as-is."""
        return [Text(f"[Raw] {line}", style=DETAIL)]

    def stderr(self, data: bytes) -> list[Text]:
        """stderr output, forwarded verbatim (minus the line terminator)."""
        text = data.decode("utf-8", errors="replace").rstrip("\r\n")
        return [Text(text, style="red")]

    def process_error(self, error: ProcessRuntimeError) -> list[Text]:
        return [Text.assemble(("[Error]", "bold red"), f" {error}")]

    def _system(self, event: SystemEvent) -> list[Text]:
        if event.subtype == "init":
            return [
                Text.assemble(
                    ("[System: Initializing]", "magenta"),
                    " Working directory: ",
                    (event.cwd or "unknown", DETAIL),
                )
            ]
        return [Text(f"[System: {event.subtype or 'message'}]", style="magenta")]

    def _user(self, event: MessageEvent) -> list[Text]:
        lines = []
        if event.text:
            lines.append(Text.assemble(("[User]", "blue"), f" {event.text}"))
        if event.tool_result_count:
            lines.append(Text(f"[Tool Results: {event.tool_result_count}]", style="yellow"))
        return lines

    def _assistant(self, event: MessageEvent) -> list[Text]:
        lines = []
        content = safe_get_nested(event.message, "content")
        # Rendered from the raw parts so nameless calls still show up
        parts = [
            part
            for part in (content if isinstance(content, list) else [])
            if isinstance(part, dict) and part.get("type") == "tool_use"
        ]

        if parts:
            lines.append(Text(f"[Assistant: Using {len(parts)} tool(s)]", style="yellow"))
            for index, part in enumerate(parts):
                name = part.get("name") or "unknown"
                tool_id = str(part.get("id") or f"tool_{index}")
                lines.append(
                    Text.assemble(
                        ("  → Tool: ", "yellow"),
                        (str(name), "bright_yellow"),
                        (f" (ID: {tool_id[:TOOL_ID_PREVIEW]}...)", "yellow"),
                    )
                )
                if part.get("input"):
                    input_text = truncate(_compact_json(part["input"]), ASSISTANT_INPUT_PREVIEW)
                    lines.append(Text(f"    Input: {input_text}", style=DETAIL))

        if event.text:
            lines.append(Text(event.text))
        return lines

    def _tool(self, event: ToolEvent) -> list[Text]:
        lines = [
            Text.assemble(
                ("[Tool Execution: ", "yellow"),
                (event.tool_name, "bright_yellow"),
                ("]", "yellow"),
            ),
            Text(f"  Call ID: {event.tool_call_id or 'unknown'}", style=DETAIL),
        ]
        if event.input:
            lines.append(Text(f"  Input: {preview(event.input, TOOL_IO_PREVIEW)}", style=DETAIL))
        if event.output:
            lines.append(Text(f"  Output: {preview(event.output, TOOL_IO_PREVIEW)}", style=DETAIL))
        if event.status:
            style = "green" if event.status == "success" else "red"
            lines.append(Text.assemble("  ", (f"Status: {event.status}", style)))
        return lines

    def _result(self, event: ResultEvent) -> list[Text]:
        line = Text("[Result]", style="cyan")
        if event.total_cost_usd:
            line.append(f" Cost: ${event.total_cost_usd:.4f}", style=DETAIL)
        if event.duration_ms:
            api = event.duration_api_ms if event.duration_api_ms else "N/A"
            line.append(f" Duration: {event.duration_ms}ms (API: {api}ms)", style=DETAIL)
        if event.num_turns:
            line.append(f" Turns: {event.num_turns}", style=DETAIL)

        lines = [line]
        if event.error:
            lines.append(Text.assemble(("[Error]", "red"), f" {event.error}"))
        lines.append(Text(""))
        return lines

    def _unknown(self, event: NormalizedEvent) -> list[Text]:
        payload = _compact_json(event.raw)[:UNKNOWN_PREVIEW]
        return [Text.assemble((f"[Unknown: {event.type_name}]", DETAIL), f" {payload}...")]
