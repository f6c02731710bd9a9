"""FIFO byte buffer with a read position and a bounded size."""

from __future__ import annotations

import logging

MAX_BUFFER_SIZE = 65535
ENCODING = "utf-8"
_ERRORS = "surrogateescape"

log = logging.getLogger(__name__)


class Buffer:
    """Byte queue holding at most ``MAX_BUFFER_SIZE`` readable bytes."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray()
        self._start = 0
        if data:
            self.write(data)

    def __len__(self) -> int:
        return len(self._data) - self._start

    def __bytes__(self) -> bytes:
        return bytes(self._data[self._start:])

    def __repr__(self) -> str:
        return f"Buffer({bytes(self)!r})"

    def readable_size(self) -> int:
        """Number of bytes waiting to be read."""
        return len(self)

    def _clamp(self, count: int | None) -> int:
        if count is None:
            return len(self)
        if count < 0:
            raise ValueError("count must not be negative")
        return min(count, len(self))

    def peek(self, count: int | None = None) -> bytes:
        """Return up to ``count`` readable bytes without consuming them."""
        count = self._clamp(count)
        return bytes(self._data[self._start:self._start + count])

    def consume(self, count: int) -> None:
        """Discard up to ``count`` readable bytes."""
        self._start += self._clamp(count)
        if self._start == len(self._data):
            self._data.clear()
            self._start = 0

    def read(self, count: int | None = None) -> bytes:
        """Return and consume up to ``count`` bytes (all when omitted)."""
        data = self.peek(count)
        self.consume(len(data))
        return data

    def write(self, data: bytes) -> None:
        """Append bytes; raises ``BufferError`` when the buffer would overflow."""
        if len(self) + len(data) > MAX_BUFFER_SIZE:
            log.debug("Not enough space in buffer")
            raise BufferError(
                f"buffer limit of {MAX_BUFFER_SIZE} bytes exceeded"
            )
        if self._start and self._start > len(self._data) // 2:
            del self._data[:self._start]
            self._start = 0
        self._data.extend(data)

    def write_string(self, text: str) -> None:
        """Append the encoded form of ``text``."""
        self.write(text.encode(ENCODING, _ERRORS))

    def read_string(self, length: int) -> str:
        """Consume up to ``length`` bytes and return them decoded."""
        return self.read(length).decode(ENCODING, _ERRORS)

    def write_buffer(self, other: Buffer) -> None:
        """Move every readable byte of ``other`` into this buffer."""
        data = other.peek()
        self.write(data)
        other.consume(len(data))

    def read_line(self) -> str:
        """Consume one line including its newline, or return "" if none is complete."""
        end = self._data.find(b"\n", self._start)
        if end == -1:
            return ""
        return self.read_string(end - self._start + 1)

    def clear(self) -> None:
        """Drop all content."""
        self._data.clear()
        self._start = 0