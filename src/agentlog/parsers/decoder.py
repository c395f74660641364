"""
Line-oriented JSON decoder.

Turns a byte or text stream (a finite log file or an unbounded subprocess
pipe) into a lazy sequence of parsed JSON values, one per newline-delimited
line. Input may arrive in arbitrary chunks: the incomplete trailing segment
is buffered until its newline shows up. A malformed line is reported as a
ParseIssue and decoding continues with the next line.
"""

import codecs
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from agentlog.exceptions import SourceUnreadableError
from agentlog.parsers.types import ParseIssue, ParseIssueKind

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65_536

Chunk = Union[bytes, str]


@dataclass
class DecodedLine:
    """One successfully parsed line."""

    line_number: int
    value: Any


DecodeItem = Union[DecodedLine, ParseIssue]


class LineDecoder:
    """
    Incremental JSONL decoder.

    Feed it chunks with :meth:`feed`; each call returns the items completed
    by that chunk. Call :meth:`finish` once at end of input to attempt a
    final parse of any unterminated trailing line.

    Example:
        >>> decoder = LineDecoder()
        >>> decoder.feed(b'{"type": "us')
        []
        >>> [item.value for item in decoder.feed(b'er"}\\n')]
        [{'type': 'user'}]
    """

    def __init__(self, source: Optional[str] = None):
        self.source = source
        self._buffer = ""
        self._line_number = 0
        self._closed = False
        # Keeps multi-byte UTF-8 sequences intact across chunk boundaries
        self._bytes_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a newline."""
        return self._buffer

    @property
    def line_number(self) -> int:
        """Number of lines consumed so far (including blank ones)."""
        return self._line_number

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: Chunk) -> list[DecodeItem]:
        """
        Consume a chunk and return the items it completed.

        Args:
            chunk: Raw bytes (UTF-8) or already-decoded text

        Returns:
            DecodedLine / ParseIssue items in line order

        Raises:
            ValueError: If called after :meth:`finish`
        """
        if self._closed:
            raise ValueError("Decoder already finished")

        if isinstance(chunk, bytes):
            text = self._bytes_decoder.decode(chunk)
        else:
            text = chunk

        if not text:
            return []

        self._buffer += text
        if "\n" not in text:
            return []

        *complete, self._buffer = self._buffer.split("\n")
        items = []
        for line in complete:
            item = self._decode_line(line)
            if item is not None:
                items.append(item)
        return items

    def finish(self) -> list[DecodeItem]:
        """
        Signal end of input.

        Any pending partial line gets one final parse attempt. The decoder
        cannot be fed afterwards.
        """
        if self._closed:
            return []
        self._closed = True

        self._buffer += self._bytes_decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        if not remainder:
            return []

        item = self._decode_line(remainder)
        return [item] if item is not None else []

    def _decode_line(self, line: str) -> Optional[DecodeItem]:
        self._line_number += 1
        stripped = line.strip()
        if not stripped:
            return None

        try:
            return DecodedLine(line_number=self._line_number, value=json.loads(stripped))
        except json.JSONDecodeError as e:
            where = f"{self.source}:" if self.source else "line "
            logger.warning(f"Skipping invalid JSON at {where}{self._line_number}: {e}")
            return ParseIssue(
                kind=ParseIssueKind.LINE_PARSE_ERROR,
                message=f"Parse error: {e.msg} (column {e.colno})",
                line_number=self._line_number,
                context=stripped,
                source=self.source,
            )


def decode_stream(chunks: Iterable[Chunk], source: Optional[str] = None) -> Iterator[DecodeItem]:
    """
    Lazily decode an iterable of chunks.

    The iterable is consumed on demand; the final partial line is parsed
    once the iterable is exhausted.
    """
    decoder = LineDecoder(source=source)
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.finish()


def _read_chunks(handle, chunk_size: int) -> Iterator[bytes]:
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            return
        yield chunk


def iter_jsonl(
    file_path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[DecodeItem]:
    """
    Lazily decode a JSONL file.

    Args:
        file_path: Path to the .jsonl file
        chunk_size: Bytes per read

    Yields:
        DecodedLine for each parsed line, ParseIssue for each malformed line

    Raises:
        SourceUnreadableError: If the file cannot be opened or read
    """
    try:
        handle = file_path.open("rb")
    except OSError as e:
        raise SourceUnreadableError(str(file_path), str(e)) from e

    with handle:
        try:
            yield from decode_stream(_read_chunks(handle, chunk_size), source=file_path.name)
        except OSError as e:
            raise SourceUnreadableError(str(file_path), str(e)) from e
