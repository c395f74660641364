"""
Durable record of session ids used by the live adapter.

A plain UTF-8 text file with one id per line, appended in the order the ids
became current. The last non-blank line is the current id. Writing the id
that is already current is a no-op; writing an older id appends it again so
that it is the one recovered after a restart.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SessionIdStore:
    """Append-only session id file whose last line is the current id."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def load_all(self) -> list[str]:
        """All recorded ids, oldest first; empty if the file does not exist."""
        if not self.path.exists():
            return []
        content = self.path.read_text(encoding="utf-8")
        return [line.strip() for line in content.splitlines() if line.strip()]

    def load_last(self) -> Optional[str]:
        """
        Most recently recorded session id.

        Returns:
            The last non-blank line, or None when nothing was recorded yet
            or the file cannot be read
        """
        try:
            ids = self.load_all()
        except OSError as e:
            logger.error(f"Could not read session ids from {self.path}: {e}")
            return None

        if not ids:
            logger.debug(f"No recorded session ids in {self.path}")
            return None

        logger.info(f"Loaded last session id {ids[-1]}")
        return ids[-1]

    def save(self, session_id: str) -> bool:
        """
        Record a session id as the current one.

        Args:
            session_id: Id reported by the agent tool or chosen by the user

        Returns:
            True if the id was appended, False if it already was the
            current id

        Raises:
            OSError: If the file cannot be written
        """
        session_id = session_id.strip()
        if not session_id:
            return False

        content = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
        recorded = [line.strip() for line in content.splitlines() if line.strip()]
        if recorded and recorded[-1] == session_id:
            logger.debug(f"Session id {session_id} is already current")
            return False

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            # Hand-edited files may lack the final newline
            if content and not content.endswith("\n"):
                handle.write("\n")
            handle.write(session_id + "\n")
        logger.info(f"Recorded session id {session_id} in {self.path}")
        return True
