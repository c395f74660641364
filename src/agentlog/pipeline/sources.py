"""
Discovery of session log files on disk.

The agent tool stores one JSONL file per session under
``<projects_dir>/<encoded-project>/<session-id>.jsonl``. Sub-agent logs live
next to them as ``agent-<id>.jsonl``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

AGENT_PREFIX = "agent-"


@dataclass(frozen=True)
class SessionSource:
    """One log file plus the identity derived from its location."""

    path: Path
    session_id: str
    project_path: Optional[str]
    is_agent: bool = False

    @property
    def agent_id(self) -> Optional[str]:
        """Sub-agent id (file stem without the ``agent-`` prefix)."""
        if not self.is_agent:
            return None
        return self.session_id[len(AGENT_PREFIX):] or None

    @classmethod
    def from_path(cls, path: Path) -> "SessionSource":
        """
        Derive session identity from a log file path.

        Args:
            path: Path to a ``.jsonl`` file

        Returns:
            SessionSource with session id = file stem and project = parent dir name
        """
        session_id = path.stem
        return cls(
            path=path,
            session_id=session_id,
            project_path=path.parent.name or None,
            is_agent=session_id.startswith(AGENT_PREFIX),
        )


def discover_sources(projects_dir: Path) -> list[SessionSource]:
    """
    Find every session log under a projects directory.

    A single ``.jsonl`` file may be passed instead of a directory.

    Args:
        projects_dir: Root directory (or one log file)

    Returns:
        Sources sorted by path; empty if the directory does not exist
    """
    if projects_dir.is_file():
        return [SessionSource.from_path(projects_dir)]

    if not projects_dir.is_dir():
        logger.warning(f"Projects directory not found: {projects_dir}")
        return []

    sources = [
        SessionSource.from_path(path)
        for path in sorted(projects_dir.rglob("*.jsonl"))
        if path.is_file()
    ]
    logger.info(f"Found {len(sources)} session log(s) under {projects_dir}")
    return sources
