"""Custom exceptions for agentlog."""

from typing import Optional


class AgentLogError(Exception):
    """Base exception for all agentlog errors."""

    pass


class SourceUnreadableError(AgentLogError):
    """Raised when a log file or process stream cannot be opened or read."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot read source {source}: {reason}")


class StoreWriteError(AgentLogError):
    """Raised when the store rejects an upsert/insert for a source."""

    def __init__(self, session_id: str, reason: str, event_uuid: Optional[str] = None):
        self.session_id = session_id
        self.reason = reason
        self.event_uuid = event_uuid
        message = f"Store write failed for session {session_id}"
        if event_uuid:
            message += f" (event {event_uuid})"
        super().__init__(f"{message}: {reason}")


class ProcessSpawnError(AgentLogError):
    """Raised when the external agent tool could not be launched."""

    def __init__(self, command: list[str], reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to launch {command[0] if command else '?'}: {reason}")


class ProcessRuntimeError(AgentLogError):
    """Raised when the external process exits non-zero after output has begun."""

    def __init__(self, returncode: int, stderr_tail: str = ""):
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        super().__init__(f"Agent process exited with code {returncode}")


class SessionBusyError(AgentLogError):
    """Raised when a live adapter receives a submission while one is running."""

    def __init__(self, message: str = "A submission is already running"):
        super().__init__(message)
