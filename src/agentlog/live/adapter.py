"""
Live session adapter.

Owns the session context for one user of the agent tool: launches a process
per prompt (continuing the current session when one is known), streams the
decoded transcript back to the caller and records every session id the tool
reports.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterator, Optional, Sequence, Union

from rich.text import Text

from agentlog.config import settings
from agentlog.exceptions import ProcessRuntimeError, ProcessSpawnError, SessionBusyError
from agentlog.live.process import STDERR, AgentProcess, build_command
from agentlog.live.render import TranscriptRenderer
from agentlog.live.session_store import SessionIdStore
from agentlog.parsers import LineDecoder, ParseIssue, classify
from agentlog.parsers.decoder import DecodedLine

logger = logging.getLogger(__name__)


class AdapterState(str, Enum):
    """Lifecycle of a live adapter."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionContext:
    """Snapshot of the adapter's session state."""

    state: AdapterState = AdapterState.IDLE
    current_session_id: Optional[str] = None
    started_at: Optional[datetime] = None
    pid: Optional[int] = None
    last_returncode: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self.state == AdapterState.RUNNING


class Transcript:
    """
    Rendered output of one submission.

    Iterating yields lines as the process writes them. Closing the
    transcript, whether or not any line was read, releases the process and
    returns the adapter to idle.
    """

    def __init__(self, lines: Iterator[Text], on_close: Callable[[], None]):
        self._lines = lines
        self._on_close = on_close

    def __iter__(self) -> "Transcript":
        return self

    def __next__(self) -> Text:
        return next(self._lines)

    def close(self) -> None:
        self._lines.close()
        self._on_close()


class LiveSessionAdapter:
    """
    Streams agent tool invocations and carries session continuity.

    One adapter runs at most one process at a time. Session state is only
    touched under the adapter's lock, so :meth:`cancel` and the session
    commands are safe to call from another thread while a transcript is
    being consumed.

    Args:
        store: Where reported session ids are recorded; the last one is
            restored at construction
        command: Executable plus leading args (defaults to the configured
            agent command)
        extra_args: Flags placed before the prompt
        output_args: Flags selecting streaming JSON output
        renderer: Transcript renderer
        queue_size: Capacity of the chunk queue between readers and consumer
        terminate_timeout: Grace period before a cancelled process is killed
        cwd: Working directory for the agent process
    """

    def __init__(
        self,
        store: Optional[SessionIdStore] = None,
        command: Optional[Sequence[str]] = None,
        extra_args: Optional[Sequence[str]] = None,
        output_args: Optional[Sequence[str]] = None,
        renderer: Optional[TranscriptRenderer] = None,
        queue_size: Optional[int] = None,
        terminate_timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ):
        self.store = store or SessionIdStore(settings.sessions_path)
        self.command = list(command) if command is not None else [settings.agent_command]
        self.extra_args = extra_args
        self.output_args = output_args
        self.renderer = renderer or TranscriptRenderer()
        self.queue_size = queue_size
        self.terminate_timeout = terminate_timeout
        self.cwd = cwd

        self._lock = threading.Lock()
        self._process: Optional[AgentProcess] = None
        self._cancelled = False
        self._streaming = False
        self._context = SessionContext(current_session_id=self.store.load_last())

    @property
    def context(self) -> SessionContext:
        """Current session state (an immutable snapshot)."""
        with self._lock:
            return self._context

    @property
    def current_session_id(self) -> Optional[str]:
        return self.context.current_session_id

    def submit(self, prompt: str) -> Transcript:
        """
        Run the agent tool for one prompt.

        The process is launched before this method returns; the returned
        iterator yields transcript lines as output arrives and ends when
        the process exits. The adapter returns to idle once the transcript
        is consumed to the end or closed.

        Args:
            prompt: User prompt

        Returns:
            Transcript of rendered lines

        Raises:
            ValueError: If the prompt is empty or whitespace only
            SessionBusyError: If a previous submission is still running
            ProcessSpawnError: If the agent tool cannot be launched
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Prompt is empty")

        with self._lock:
            if self._context.is_running:
                raise SessionBusyError()

            continuation = self._context.current_session_id is not None
            command = build_command(
                prompt,
                continuation,
                base=self.command,
                extra_args=self.extra_args,
                output_args=self.output_args,
            )
            if continuation:
                logger.info(f"Continuing session {self._context.current_session_id}")
            else:
                logger.info("Starting new session")

            process = AgentProcess(
                command,
                queue_size=self.queue_size,
                terminate_timeout=self.terminate_timeout,
                cwd=self.cwd,
            )
            try:
                process.start()
            except ProcessSpawnError as e:
                logger.error(str(e))
                self._context = replace(self._context, state=AdapterState.IDLE, pid=None)
                raise

            self._process = process
            self._cancelled = False
            self._streaming = False
            self._context = replace(
                self._context,
                state=AdapterState.RUNNING,
                started_at=datetime.now(timezone.utc),
                pid=process.pid,
                last_returncode=None,
            )

        return Transcript(self._stream(process), lambda: self._finish(process))

    def _stream(self, process: AgentProcess) -> Iterator[Text]:
        with self._lock:
            # Already released by cancel or close before the first read
            if self._process is not process:
                return
            self._streaming = True

        decoder = LineDecoder(source="stdout")
        returncode: Optional[int] = None
        stderr_tail = ""
        try:
            for chunk in process.chunks():
                if chunk.stream == STDERR:
                    stderr_tail = chunk.data.decode("utf-8", errors="replace")
                    logger.debug(f"stderr: {stderr_tail[:100]}")
                    yield from self.renderer.stderr(chunk.data)
                    continue
                for item in decoder.feed(chunk.data):
                    yield from self._handle(item)

            for item in decoder.finish():
                yield from self._handle(item)

            returncode = process.wait()
            logger.info(f"Agent process exited with code {returncode}")
            if returncode != 0 and not self._cancelled:
                error = ProcessRuntimeError(returncode, stderr_tail.strip())
                logger.warning(str(error))
                yield from self.renderer.process_error(error)
        finally:
            self._finish(process, returncode)

    def _finish(self, process: AgentProcess, returncode: Optional[int] = None) -> None:
        with self._lock:
            if self._process is not process:
                return
            self._process = None
        self._release(process, returncode)

    def _release(self, process: AgentProcess, returncode: Optional[int]) -> None:
        process.close()
        with self._lock:
            self._context = replace(
                self._context,
                state=AdapterState.COMPLETED,
                pid=None,
                last_returncode=returncode if returncode is not None else process.returncode,
            )

    def _handle(self, item: Union[DecodedLine, ParseIssue]) -> Iterator[Text]:
        if isinstance(item, ParseIssue):
            yield from self.renderer.raw(item.context or "")
            return

        classified = classify(item.value, line_number=item.line_number)
        event = classified.event

        reported = event.reported_session_id
        if reported and self._record_session(reported):
            yield from self.renderer.session_changed(reported)

        yield from self.renderer.render(event)

    def _record_session(self, session_id: str) -> bool:
        with self._lock:
            if self._context.current_session_id == session_id:
                return False
            self._context = replace(self._context, current_session_id=session_id)

        logger.info(f"Session id is now {session_id}")
        try:
            self.store.save(session_id)
        except OSError as e:
            logger.error(f"Could not record session id {session_id}: {e}")
        return True

    def reset_session(self) -> None:
        """
        Forget the current session so the next prompt starts a new one.

        Raises:
            SessionBusyError: If a submission is running
        """
        with self._lock:
            if self._context.is_running:
                raise SessionBusyError("Cannot reset the session while a submission is running")
            self._context = replace(self._context, current_session_id=None)
        logger.info("Session reset")

    def switch_session(self, session_id: str) -> None:
        """
        Continue a specific session on the next prompt.

        Raises:
            ValueError: If session_id is empty
            SessionBusyError: If a submission is running
        """
        session_id = (session_id or "").strip()
        if not session_id:
            raise ValueError("session_id required")

        with self._lock:
            if self._context.is_running:
                raise SessionBusyError("Cannot switch sessions while a submission is running")
            self._context = replace(self._context, current_session_id=session_id)

        self.store.save(session_id)
        logger.info(f"Switched to session {session_id}")

    def cancel(self) -> bool:
        """
        Stop the running process, if any.

        A transcript being read finishes once the process's pipes close; one
        that was never read is released immediately.

        Returns:
            True if a running process was asked to stop
        """
        with self._lock:
            process = self._process
            if process is None:
                return False
            self._cancelled = True
            unread = not self._streaming
            if unread:
                self._process = None

        logger.info("Cancelling running submission")
        process.terminate()
        if unread:
            self._release(process, None)
        return True
