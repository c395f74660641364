"""
Tests for SQLAlchemy database models.
"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agentlog.models.db import EventRecord, SessionRecord, ToolUse


class TestModelRepr:
    """Test string representations of models."""

    def test_session_repr(self, sample_session: SessionRecord):
        assert repr(sample_session) == "<SessionRecord(session_id='sess-1', event_count=0)>"

    def test_event_repr(self):
        assert repr(EventRecord(uuid="u1", type="user")) == "<EventRecord(uuid='u1', type='user')>"

    def test_tool_use_repr(self):
        tool = ToolUse(tool_name="Bash", tool_use_id="t1")

        assert repr(tool) == "<ToolUse(tool_name='Bash', tool_use_id='t1')>"


class TestSessionRecord:
    def test_defaults(self, db_session: Session):
        record = SessionRecord(session_id="defaults")
        db_session.add(record)
        db_session.flush()

        assert record.is_agent is False
        assert record.event_count == 0
        assert record.last_imported_at is None

    def test_events_relationship(self, db_session: Session, sample_session: SessionRecord):
        db_session.add(EventRecord(session_id="sess-1", uuid="u1", type="user"))
        db_session.flush()
        db_session.refresh(sample_session)

        assert [e.uuid for e in sample_session.events] == ["u1"]


class TestEventRecord:
    def test_json_columns(self, db_session: Session, sample_session: SessionRecord):
        raw = {"type": "user", "nested": {"list": [1, 2]}}
        event = EventRecord(
            session_id="sess-1", uuid="u1", type="user", message={"content": "hi"}, raw_data=raw
        )
        db_session.add(event)
        db_session.flush()
        db_session.expire(event)

        assert event.raw_data == raw
        assert event.message == {"content": "hi"}
        assert event.imported_at is not None

    def test_requires_existing_session(self, db_session: Session):
        db_session.add(EventRecord(session_id="missing", uuid="u1", type="user"))

        with pytest.raises(IntegrityError):
            db_session.flush()

    def test_tool_uses_relationship(self, db_session: Session, sample_session: SessionRecord):
        event = EventRecord(session_id="sess-1", uuid="a1", type="assistant")
        event.tool_uses.append(ToolUse(tool_name="Read", tool_use_id="t1", input={"path": "x"}))
        db_session.add(event)
        db_session.flush()

        tool = db_session.query(ToolUse).one()
        assert tool.event_uuid == "a1"
        assert tool.event is event


class TestToolUse:
    def test_tool_use_id_unique(self, db_session: Session, sample_session: SessionRecord):
        db_session.add(EventRecord(session_id="sess-1", uuid="a1", type="assistant"))
        db_session.flush()
        db_session.add(ToolUse(event_uuid="a1", tool_name="Bash", tool_use_id="dup"))
        db_session.add(ToolUse(event_uuid="a1", tool_name="Bash", tool_use_id="dup"))

        with pytest.raises(IntegrityError):
            db_session.flush()

    def test_null_tool_use_ids_allowed(self, db_session: Session, sample_session: SessionRecord):
        db_session.add(EventRecord(session_id="sess-1", uuid="a1", type="assistant"))
        db_session.flush()
        db_session.add(ToolUse(event_uuid="a1", tool_name="Bash"))
        db_session.add(ToolUse(event_uuid="a1", tool_name="Bash"))
        db_session.flush()

        assert db_session.query(ToolUse).count() == 2
