"""
Schema discovery over the classified event stream.

A read-only observer: it records which event types, fields, content part
types, tool names, models and stop reasons show up in the logs. It never
influences what gets ingested; its output is for diagnostics and export.
"""

import json
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from agentlog.models.events import MessageEvent, NormalizedEvent
from agentlog.parsers.types import ParseIssue

SCHEMA_VERSION = "1.0"


class SchemaDiscovery:
    """Accumulates schema facts about observed events."""

    def __init__(self) -> None:
        self.event_types: set[str] = set()
        self.fields_by_type: dict[str, set[str]] = defaultdict(set)
        self.content_types: set[str] = set()
        self.tool_names: set[str] = set()
        self.models: set[str] = set()
        self.stop_reasons: set[str] = set()

        self.total_files = 0
        self.total_events = 0
        self.errors: list[ParseIssue] = []

    def observe(self, event: NormalizedEvent) -> None:
        """Record the facts carried by one classified event."""
        self.total_events += 1

        type_name = event.type_name
        self.event_types.add(type_name)

        raw = event.raw
        if isinstance(raw, dict):
            self.fields_by_type[type_name].update(raw.keys())

        message = event.message or {}
        content = message.get("content")
        if isinstance(content, str):
            self.content_types.add("string")
        elif isinstance(content, list):
            for part in content:
                if isinstance(part, dict) and isinstance(part.get("type"), str):
                    self.content_types.add(part["type"])

        model = message.get("model")
        if isinstance(model, str) and model:
            self.models.add(model)

        stop_reason = message.get("stop_reason")
        if isinstance(stop_reason, str) and stop_reason:
            self.stop_reasons.add(stop_reason)

        if isinstance(event, MessageEvent):
            for tool_use in event.tool_uses:
                self.tool_names.add(tool_use.tool_name)

    def record_issue(self, issue: ParseIssue) -> None:
        self.errors.append(issue)

    def record_file(self) -> None:
        self.total_files += 1

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self, generated_at: Optional[datetime] = None) -> dict[str, Any]:
        """Export the accumulated schema with sorted, JSON-friendly values."""
        stamp = generated_at or datetime.now(timezone.utc)
        return {
            "version": SCHEMA_VERSION,
            "generated_at": stamp.isoformat(),
            "statistics": {
                "total_files": self.total_files,
                "total_events": self.total_events,
                "error_count": self.error_count,
            },
            "schema": {
                "event_types": sorted(self.event_types),
                "fields_by_type": {
                    type_name: sorted(fields)
                    for type_name, fields in sorted(self.fields_by_type.items())
                },
                "message_content_types": sorted(self.content_types),
                "tool_names": sorted(self.tool_names),
                "models": sorted(self.models),
                "stop_reasons": sorted(self.stop_reasons),
            },
        }

    def export(self, output_path: Path) -> Path:
        """Write the schema as pretty-printed JSON."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return output_path
