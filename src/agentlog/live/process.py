"""
External agent process launcher.

Runs the agent tool with piped stdout/stderr. Two daemon reader threads copy
the pipes into one bounded queue; a slow consumer makes the readers block,
which in turn blocks the child on its pipe writes.
"""

import logging
import queue
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, Callable, Iterator, Optional, Sequence

from agentlog.config import settings
from agentlog.exceptions import ProcessSpawnError

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"


@dataclass
class StreamChunk:
    """A piece of output from one of the child's pipes."""

    stream: str
    data: Optional[bytes]  # None marks end of that stream

    @property
    def is_eof(self) -> bool:
        return self.data is None


def build_command(
    prompt: str,
    continuation: bool,
    base: Optional[Sequence[str]] = None,
    extra_args: Optional[Sequence[str]] = None,
    output_args: Optional[Sequence[str]] = None,
) -> list[str]:
    """
    Assemble the agent tool command line.

    Args:
        prompt: User prompt, passed as a single argument
        continuation: Continue the most recent session instead of starting one
        base: Executable (and any leading args); defaults to the configured command
        extra_args: Flags placed before the prompt
        output_args: Flags selecting the streaming JSON output

    Returns:
        Argument list suitable for subprocess without a shell

    Example:
        >>> build_command("hi", False, base=["claude"], extra_args=[], output_args=[])
        ['claude', '-p', 'hi']
    """
    command = list(base) if base is not None else [settings.agent_command]
    command.extend(extra_args if extra_args is not None else settings.agent_extra_args)
    command.extend(["--continue", prompt] if continuation else ["-p", prompt])
    command.extend(output_args if output_args is not None else settings.agent_output_args)
    return command


class AgentProcess:
    """
    One invocation of the agent tool.

    Call :meth:`start`, consume :meth:`chunks` until it ends, then
    :meth:`wait` for the exit code. :meth:`close` always releases the
    process and its reader threads.
    """

    def __init__(
        self,
        command: Sequence[str],
        queue_size: Optional[int] = None,
        chunk_size: Optional[int] = None,
        terminate_timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ):
        self.command = list(command)
        self.chunk_size = chunk_size or settings.read_chunk_size
        self.terminate_timeout = (
            terminate_timeout
            if terminate_timeout is not None
            else settings.process_terminate_timeout
        )
        self.cwd = cwd
        self._queue: "queue.Queue[StreamChunk]" = queue.Queue(
            maxsize=queue_size or settings.live_queue_size
        )
        self._process: Optional[subprocess.Popen] = None
        self._readers: list[threading.Thread] = []

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        """
        Launch the process and its reader threads.

        Raises:
            ProcessSpawnError: If the executable cannot be started
        """
        logger.info(f"Spawning {self.command[0]} with {len(self.command) - 1} argument(s)")
        try:
            self._process = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                cwd=self.cwd,
            )
        except (OSError, ValueError) as e:
            raise ProcessSpawnError(self.command, str(e)) from e

        logger.debug(f"Process started, pid {self._process.pid}")
        stdout, stderr = self._process.stdout, self._process.stderr
        self._readers = [
            threading.Thread(
                target=self._pump,
                args=(STDOUT, stdout, lambda: stdout.read(self.chunk_size)),
                name=f"agent-{self._process.pid}-stdout",
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(STDERR, stderr, stderr.readline),
                name=f"agent-{self._process.pid}-stderr",
                daemon=True,
            ),
        ]
        for reader in self._readers:
            reader.start()

    def _pump(self, name: str, stream: IO[bytes], read: Callable[[], bytes]) -> None:
        try:
            while True:
                data = read()
                if not data:
                    break
                self._queue.put(StreamChunk(name, data))
        except (OSError, ValueError) as e:
            # Pipe closed underneath us by close()/terminate()
            logger.debug(f"{name} reader stopped: {e}")
        finally:
            self._queue.put(StreamChunk(name, None))

    def chunks(self) -> Iterator[StreamChunk]:
        """
        Yield output chunks in arrival order until both pipes reach EOF.

        The end-of-stream sentinels themselves are not yielded.
        """
        open_streams = {STDOUT, STDERR}
        while open_streams:
            chunk = self._queue.get()
            if chunk.is_eof:
                open_streams.discard(chunk.stream)
                continue
            yield chunk

    def wait(self, timeout: Optional[float] = None) -> int:
        """Wait for the process to exit and return its exit code."""
        if self._process is None:
            raise RuntimeError("Process not started")
        return self._process.wait(timeout=timeout)

    def terminate(self) -> None:
        """Ask the process to stop; kill it if it outlives the grace period."""
        if not self.running:
            return

        logger.info(f"Terminating agent process {self.pid}")
        self._process.terminate()
        try:
            self._process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Agent process {self.pid} ignored terminate after "
                f"{self.terminate_timeout}s; killing"
            )
            self._process.kill()
            self._process.wait()

    def close(self) -> None:
        """Stop the process if needed, drain the queue and release the pipes."""
        if self._process is None:
            return

        self.terminate()

        # Readers may be blocked on a full queue; keep draining until they exit
        for reader in self._readers:
            while reader.is_alive():
                try:
                    self._queue.get(timeout=0.05)
                except queue.Empty:
                    pass
                reader.join(timeout=0.05)

        for stream in (self._process.stdout, self._process.stderr):
            if stream is not None:
                stream.close()
