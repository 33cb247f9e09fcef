"""Incremental parser for Server-Sent Events."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class SSEEvent:
    """One Server-Sent Event.

    ``data`` holds the ``data:`` lines joined with newlines. ``comment`` is
    set only when a comment line comes before any other field or data line.
    """

    event: str = ""
    data: bytes = b""
    id: str = ""
    retry: str = ""
    comment: str = ""


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class SSEReader:
    """Reads SSE events from an iterable of byte or text chunks.

    The chunks may be split anywhere; binary file objects, text file objects
    and the byte iterators of HTTP responses all work. An event that is cut
    off by the end of the stream is dropped.
    """

    def __init__(self, stream: Iterable[Union[bytes, str]]) -> None:
        self._chunks = iter(stream)
        self._buffer = bytearray()
        self._exhausted = False

    def _read_line(self) -> Optional[bytes]:
        while True:
            end = self._buffer.find(b"\n")
            if end >= 0:
                line = bytes(self._buffer[: end + 1])
                del self._buffer[: end + 1]
                return line
            if self._exhausted:
                return None
            chunk = next(self._chunks, None)
            if chunk is None:
                self._exhausted = True
                self._buffer.clear()
                return None
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            self._buffer += chunk

    def read_event(self) -> Optional[SSEEvent]:
        """Return the next complete event, or ``None`` at the end of the stream."""
        event = SSEEvent()
        data = bytearray()
        has_data = False
        has_fields = False
        has_lines = False

        while True:
            raw = self._read_line()
            if raw is None:
                return None
            line = raw.rstrip(b"\r\n")

            if not line:
                if not has_lines:
                    continue
                break
            has_lines = True

            if line.startswith(b":"):
                if not has_fields and not has_data:
                    event.comment = _text(line[1:]).strip()
                continue

            name, sep, value = line.partition(b":")
            if sep and value.startswith(b" "):
                value = value[1:]

            if name == b"event":
                event.event = _text(value)
                has_fields = True
            elif name == b"data":
                if data:
                    data += b"\n"
                data += value
                has_data = True
            elif name == b"id":
                event.id = _text(value)
                has_fields = True
            elif name == b"retry":
                event.retry = _text(value)
                has_fields = True

        if has_data:
            event.data = bytes(data)
        return event

    def __iter__(self) -> Iterator[SSEEvent]:
        while (event := self.read_event()) is not None:
            yield event