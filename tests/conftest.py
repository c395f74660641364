"""
Pytest configuration and fixtures for agentlog tests.

This module provides shared fixtures for testing database models, repositories,
the sync pipeline and the live adapter.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Generator, Iterable

import pytest
from sqlalchemy.orm import Session, sessionmaker

# Importing the connection module registers the JSONB -> JSON hook for SQLite
from agentlog.db import connection
from agentlog.db.connection import create_db_engine
from agentlog.models.db import Base


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection_ = test_engine.connect()
    transaction = connection_.begin()
    session = sessionmaker(bind=connection_, autoflush=False)()

    yield session

    session.close()
    transaction.rollback()
    connection_.close()


@pytest.fixture
def file_engine(tmp_path):
    """
    File-backed SQLite engine.

    The synchronizer commits per source, so sync tests need a real database
    rather than the rolled-back in-memory session.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'sessions.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine) -> Callable[[], Session]:
    """Session factory bound to the file-backed engine."""
    return sessionmaker(bind=file_engine, autocommit=False, autoflush=False)


@pytest.fixture
def projects_dir(tmp_path) -> Path:
    """Empty projects directory laid out like the agent tool's."""
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def write_log(projects_dir) -> Callable[..., Path]:
    """
    Write a JSONL session log under the projects directory.

    Events may be dicts (serialized as JSON) or raw strings (written as-is,
    useful for malformed lines).
    """

    def _write(
        session_id: str,
        events: Iterable[Any],
        project: str = "-home-dev-project",
    ) -> Path:
        project_dir = projects_dir / project
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / f"{session_id}.jsonl"
        lines = [e if isinstance(e, str) else json.dumps(e) for e in events]
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def cli_env(tmp_path, monkeypatch, clean_logger):
    """
    Point settings at temporary locations for CLI tests.

    Resets the lazily created engine so the CLI builds one against the
    temporary database.
    """
    from agentlog.config import settings

    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "log_console_enabled", False)
    monkeypatch.setattr(settings, "sessions_file", str(tmp_path / "sessions.txt"))
    monkeypatch.setattr(settings, "projects_dir", str(tmp_path / "projects"))
    monkeypatch.setattr(connection, "_engine", None)
    yield settings
    if connection._engine is not None:
        connection._engine.dispose()


@pytest.fixture
def clean_logger():
    """
    Restore the ``agentlog`` logger after a test configures it.

    setup_logging() disables propagation, which would hide records from
    caplog in later tests.
    """
    logger = logging.getLogger("agentlog")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def user_event(
    uuid: str,
    content: Any = "Hello",
    timestamp: str = "2025-01-01T10:00:00Z",
    parent: Any = None,
    **extra: Any,
) -> dict:
    """Minimal user line as written by the agent tool."""
    event = {
        "type": "user",
        "uuid": uuid,
        "parentUuid": parent,
        "timestamp": timestamp,
        "sessionId": "ignored-in-favour-of-file-stem",
        "message": {"role": "user", "content": content},
    }
    event.update(extra)
    return event


def assistant_event(
    uuid: str,
    content: Any = None,
    timestamp: str = "2025-01-01T10:00:05Z",
    model: str = "claude-sonnet-4-5",
    parent: Any = None,
    **extra: Any,
) -> dict:
    """Minimal assistant line with optional tool_use parts."""
    event = {
        "type": "assistant",
        "uuid": uuid,
        "parentUuid": parent,
        "timestamp": timestamp,
        "message": {
            "role": "assistant",
            "model": model,
            "content": content if content is not None else [{"type": "text", "text": "Hi"}],
            "stop_reason": "end_turn",
        },
    }
    event.update(extra)
    return event


def tool_use_part(tool_id: str, name: str = "Bash", input: Any = None) -> dict:
    return {
        "type": "tool_use",
        "id": tool_id,
        "name": name,
        "input": input if input is not None else {"command": "ls"},
    }


class LogEvents:
    """Builders for raw log lines, exposed through the ``log_events`` fixture."""

    user = staticmethod(user_event)
    assistant = staticmethod(assistant_event)
    tool_use = staticmethod(tool_use_part)


@pytest.fixture
def log_events() -> LogEvents:
    return LogEvents()


@pytest.fixture
def sample_session(db_session: Session):
    """A stored session with no events."""
    from datetime import datetime, timezone

    from agentlog.models.db import SessionRecord

    record = SessionRecord(
        session_id="sess-1",
        project_path="-home-dev-project",
        is_agent=False,
        created_at=datetime(2025, 1, 1, 10, tzinfo=timezone.utc),
        last_active=datetime(2025, 1, 1, 11, tzinfo=timezone.utc),
        event_count=0,
        model="claude-sonnet-4-5",
    )
    db_session.add(record)
    db_session.flush()
    return record
