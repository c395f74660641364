"""
Database connection management for agentlog.

Provides database session management, connection handling, and transaction support.
The engine is created lazily from settings so importing this module never
touches the filesystem or the network.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import JSON, create_engine, event, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from agentlog.config import settings
from agentlog.models.db import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None

# Session factory; bound to the engine on first use
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


# Replace JSONB with JSON for SQLite compatibility
@event.listens_for(Base.metadata, "before_create")
def _set_json_type(target, connection, **kw):  # pragma: no cover - compat hook
    if connection.dialect.name != "sqlite":
        return
    for table in target.tables.values():
        for column in table.columns:
            if isinstance(column.type, postgresql.JSONB):
                column.type = JSON()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    SQLite file databases get their parent directory created and foreign
    keys switched on so cascading deletes behave as on PostgreSQL.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(settings.database_url, echo=settings.database_echo)
        SessionLocal.configure(bind=_engine)
        logger.debug(f"Database engine created for {_engine.url.render_as_string()}")
    return _engine


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        Session: A new SQLAlchemy session

    Example:
        >>> session = get_session()
        >>> try:
        >>>     # Use session
        >>>     session.commit()
        >>> except Exception:
        >>>     session.rollback()
        >>> finally:
        >>>     session.close()
    """
    get_engine()
    return SessionLocal()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     record = db.get(SessionRecord, "abc")
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction(session: Session) -> Generator[Session, None, None]:
    """
    Run a block inside one explicit transaction on an existing session.

    Commits on success and rolls back everything on any exception, so a
    failure partway through a multi-statement write leaves no trace.

    Example:
        >>> with transaction(session):
        >>>     session.add(SessionRecord(session_id="abc"))
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine or get_engine())


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
