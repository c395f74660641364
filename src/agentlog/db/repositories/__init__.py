"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from agentlog.db.repositories.base import BaseRepository
from agentlog.db.repositories.event import EventRepository
from agentlog.db.repositories.session import SessionRepository
from agentlog.db.repositories.tool_use import ToolUseRepository

__all__ = [
    "BaseRepository",
    "EventRepository",
    "SessionRepository",
    "ToolUseRepository",
]
