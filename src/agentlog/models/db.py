"""
SQLAlchemy database models for agentlog.

These models represent the store schema for imported sessions, their events
and the tool invocations extracted from those events.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class SessionRecord(Base):
    """One imported log stream (a session file)."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    project_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_agent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    agent_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Timestamps of the first and last event (null when the log has none)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_active: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    event_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    source_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Synchronization watermark, advanced only after a successful import
    last_imported_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    events: Mapped[list["EventRecord"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_sessions_project", "project_path"),
        Index("idx_sessions_active", "last_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<SessionRecord(session_id={self.session_id!r}, "
            f"event_count={self.event_count})>"
        )


class EventRecord(Base):
    """One normalized event from a session log."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("sessions.session_id", ondelete="CASCADE"),
        nullable=False,
    )
    uuid: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)
    parent_uuid: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    subtype: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    cwd: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    git_branch: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_sidechain: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    agent_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    message: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    # Full original JSON for forward compatibility with unknown fields
    raw_data: Mapped[Any] = mapped_column(JSONB, nullable=True)

    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    session: Mapped["SessionRecord"] = relationship(back_populates="events")
    tool_uses: Mapped[list["ToolUse"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_events_session", "session_id"),
        Index("idx_events_type", "type"),
        Index("idx_events_timestamp", "timestamp"),
        Index("idx_events_parent", "parent_uuid"),
    )

    def __repr__(self) -> str:
        return f"<EventRecord(uuid={self.uuid!r}, type={self.type!r})>"


class ToolUse(Base):
    """Tool invocation extracted from an event's message content."""

    __tablename__ = "tool_uses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_uuid: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("events.uuid", ondelete="CASCADE"),
        nullable=False,
    )
    tool_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tool_use_id: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, unique=True
    )
    input: Mapped[Any] = mapped_column(JSONB, nullable=True)
    timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    event: Mapped["EventRecord"] = relationship(back_populates="tool_uses")

    __table_args__ = (Index("idx_tool_uses_name", "tool_name"),)

    def __repr__(self) -> str:
        return f"<ToolUse(tool_name={self.tool_name!r}, tool_use_id={self.tool_use_id!r})>"
