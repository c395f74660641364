"""
Event repository.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agentlog.db.repositories.base import BaseRepository
from agentlog.models.db import EventRecord, ToolUse
from agentlog.models.events import NormalizedEvent


def _event_columns(event: NormalizedEvent) -> dict:
    return {
        "session_id": event.session_id,
        "parent_uuid": event.parent_uuid,
        "type": event.type_name,
        "subtype": event.subtype,
        "timestamp": event.timestamp,
        "cwd": event.cwd,
        "git_branch": event.git_branch,
        "is_sidechain": event.is_sidechain,
        "agent_id": event.agent_id,
        "request_id": event.request_id,
        "message": event.message,
        "raw_data": event.raw,
    }


class EventRepository(BaseRepository[EventRecord]):
    """Repository for EventRecord model."""

    def __init__(self, session: Session):
        super().__init__(EventRecord, session)

    def get_by_uuid(self, uuid: str) -> Optional[EventRecord]:
        """
        Get event by its log uuid.

        Args:
            uuid: Event uuid from the log line

        Returns:
            EventRecord instance or None
        """
        return self.session.query(EventRecord).filter(EventRecord.uuid == uuid).first()

    def upsert(self, event: NormalizedEvent) -> Tuple[EventRecord, Optional[str]]:
        """
        Insert an event, or overwrite the stored row with the same uuid in place.

        An overwritten row is re-parented to ``event.session_id`` and loses
        its previously extracted tool uses (they are re-derived by the caller).

        Args:
            event: Normalized event to store

        Returns:
            Tuple of (stored record, previous owning session id if the row
            already existed under another session, else None)
        """
        columns = _event_columns(event)

        existing = self.get_by_uuid(event.uuid) if event.uuid else None
        if existing is None:
            return self.create(uuid=event.uuid, **columns), None

        previous_session = existing.session_id
        self.session.query(ToolUse).filter(ToolUse.event_uuid == existing.uuid).delete(
            synchronize_session=False
        )
        for key, value in columns.items():
            setattr(existing, key, value)
        self.session.flush()

        if previous_session != event.session_id:
            return existing, previous_session
        return existing, None

    def delete_by_session(self, session_id: str) -> int:
        """
        Delete every event of a session together with its tool uses.

        Args:
            session_id: Owning session identifier

        Returns:
            Number of events deleted
        """
        event_uuids = select(EventRecord.uuid).where(
            EventRecord.session_id == session_id, EventRecord.uuid.isnot(None)
        )
        self.session.query(ToolUse).filter(ToolUse.event_uuid.in_(event_uuids)).delete(
            synchronize_session=False
        )

        deleted = (
            self.session.query(EventRecord)
            .filter(EventRecord.session_id == session_id)
            .delete(synchronize_session=False)
        )
        self.session.flush()
        return deleted

    def count_by_session(self, session_id: str) -> int:
        """Number of events currently stored for a session."""
        return (
            self.session.query(EventRecord)
            .filter(EventRecord.session_id == session_id)
            .count()
        )

    def get_by_session(
        self, session_id: str, limit: Optional[int] = None
    ) -> List[EventRecord]:
        """
        Events of a session, newest first.

        Args:
            session_id: Owning session identifier
            limit: Maximum number of records to return

        Returns:
            List of events
        """
        query = (
            self.session.query(EventRecord)
            .filter(EventRecord.session_id == session_id)
            .order_by(EventRecord.timestamp.desc(), EventRecord.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def type_counts(self, session_id: str) -> List[Tuple[str, int]]:
        """
        Event counts per type for one session.

        Returns:
            List of (type, count) rows, most frequent first
        """
        rows = (
            self.session.query(EventRecord.type, func.count(EventRecord.id))
            .filter(EventRecord.session_id == session_id)
            .group_by(EventRecord.type)
            .order_by(func.count(EventRecord.id).desc())
            .all()
        )
        return [(row[0], row[1]) for row in rows]

    def timeline(self, session_id: str) -> Tuple[Optional[datetime], Optional[datetime]]:
        """
        First and last event timestamps of a session.

        Returns:
            Tuple of (start, end); both None when no event has a timestamp
        """
        row = (
            self.session.query(
                func.min(EventRecord.timestamp), func.max(EventRecord.timestamp)
            )
            .filter(EventRecord.session_id == session_id)
            .one()
        )
        return row[0], row[1]
