"""
Session repository.
"""

from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from agentlog.db.repositories.base import BaseRepository
from agentlog.models.db import SessionRecord


class SessionRepository(BaseRepository[SessionRecord]):
    """Repository for SessionRecord model."""

    def __init__(self, session: Session):
        super().__init__(SessionRecord, session)

    def get_by_session_id(self, session_id: str) -> Optional[SessionRecord]:
        """
        Get session by its identifier.

        Args:
            session_id: Session identifier (log file stem)

        Returns:
            SessionRecord instance or None
        """
        return self.get(session_id)

    def upsert(self, session_id: str, **fields: Any) -> Tuple[SessionRecord, bool]:
        """
        Insert a new session or update an existing one in place.

        Args:
            session_id: Session identifier
            **fields: Column values to set

        Returns:
            Tuple of (session record, created flag)
        """
        record = self.get(session_id)
        if record is None:
            return self.create(session_id=session_id, **fields), True

        for key, value in fields.items():
            setattr(record, key, value)
        self.session.flush()
        return record, False

    def adjust_event_count(self, session_id: str, delta: int) -> None:
        """Shift a session's event counter (used when events change owner)."""
        record = self.get(session_id)
        if record is not None:
            record.event_count = max(0, (record.event_count or 0) + delta)
            self.session.flush()

    def get_recent(self, limit: int = 10) -> List[SessionRecord]:
        """
        Most recently active sessions first.

        Args:
            limit: Maximum number of records to return

        Returns:
            List of sessions
        """
        return (
            self.session.query(SessionRecord)
            .order_by(SessionRecord.last_active.desc())
            .limit(limit)
            .all()
        )

    def get_by_project(self, project_path: str) -> List[SessionRecord]:
        """All sessions imported from one project directory."""
        return (
            self.session.query(SessionRecord)
            .filter(SessionRecord.project_path == project_path)
            .order_by(SessionRecord.last_active.desc())
            .all()
        )

    def project_summary(
        self, limit: int = 10
    ) -> List[Tuple[Optional[str], int, Optional[datetime]]]:
        """
        Sessions grouped by project.

        Returns:
            List of (project_path, session_count, last_active) rows, largest first
        """
        rows = (
            self.session.query(
                SessionRecord.project_path,
                func.count(SessionRecord.session_id).label("session_count"),
                func.max(SessionRecord.last_active).label("last_active"),
            )
            .group_by(SessionRecord.project_path)
            .order_by(func.count(SessionRecord.session_id).desc())
            .limit(limit)
            .all()
        )
        return [(row[0], row[1], row[2]) for row in rows]

    def model_summary(self) -> List[Tuple[str, int]]:
        """
        Sessions grouped by model.

        Returns:
            List of (model, session_count) rows, most used first
        """
        rows = (
            self.session.query(
                SessionRecord.model,
                func.count(SessionRecord.session_id),
            )
            .filter(SessionRecord.model.isnot(None))
            .group_by(SessionRecord.model)
            .order_by(func.count(SessionRecord.session_id).desc())
            .all()
        )
        return [(row[0], row[1]) for row in rows]
