"""
Tool use repository.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from agentlog.db.repositories.base import BaseRepository
from agentlog.models.db import EventRecord, ToolUse
from agentlog.models.events import ToolUseRecord


class ToolUseRepository(BaseRepository[ToolUse]):
    """Repository for ToolUse model."""

    def __init__(self, session: Session):
        super().__init__(ToolUse, session)

    def exists(self, tool_use_id: str) -> bool:
        """Check whether a tool call id has already been stored."""
        return (
            self.session.query(ToolUse.id)
            .filter(ToolUse.tool_use_id == tool_use_id)
            .first()
            is not None
        )

    def add_if_absent(self, record: ToolUseRecord) -> Optional[ToolUse]:
        """
        Store a tool use unless its call id is already present.

        Records without a call id are always stored.

        Args:
            record: Tool use extracted from an assistant message

        Returns:
            Created ToolUse, or None when skipped as a duplicate
        """
        if record.tool_call_id and self.exists(record.tool_call_id):
            return None

        return self.create(
            event_uuid=record.event_uuid,
            tool_name=record.tool_name,
            tool_use_id=record.tool_call_id,
            input=record.input,
            timestamp=record.timestamp,
        )

    def count_by_session(self, session_id: str) -> int:
        """Number of tool uses attached to a session's events."""
        return (
            self.session.query(ToolUse)
            .join(EventRecord, ToolUse.event_uuid == EventRecord.uuid)
            .filter(EventRecord.session_id == session_id)
            .count()
        )

    def top_tools(
        self, limit: int = 10, session_id: Optional[str] = None
    ) -> List[Tuple[str, int]]:
        """
        Most frequently used tools.

        Args:
            limit: Maximum number of rows
            session_id: Restrict to one session when given

        Returns:
            List of (tool_name, count) rows
        """
        query = self.session.query(ToolUse.tool_name, func.count(ToolUse.id))
        if session_id:
            query = query.join(EventRecord, ToolUse.event_uuid == EventRecord.uuid).filter(
                EventRecord.session_id == session_id
            )
        rows = (
            query.group_by(ToolUse.tool_name)
            .order_by(func.count(ToolUse.id).desc())
            .limit(limit)
            .all()
        )
        return [(row[0], row[1]) for row in rows]
