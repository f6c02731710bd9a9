"""Incremental HTTP/1.x request parser fed from a connection buffer."""

from __future__ import annotations

import enum
import logging
import re

from .buffer import Buffer
from .httputil import decode_url, split_string
from .message import HttpRequest

MAX_LINE = 1024
ENCODING = "utf-8"
_ERRORS = "surrogateescape"

_REQUEST_LINE = re.compile(
    r"(GET|POST|PUT|DELETE) ([^\s?]+)(?:\?(\S+))? (HTTP/\d\.\d)\r?\n"
)

log = logging.getLogger(__name__)


class RecvStatus(enum.Enum):
    """Stage the parser has reached."""

    ERROR = enum.auto()
    LINE = enum.auto()
    HEADER = enum.auto()
    BODY = enum.auto()
    OVER = enum.auto()


class HttpContext:
    """Parses one request at a time, keeping state between partial reads."""

    def __init__(self) -> None:
        self.recv_status = RecvStatus.LINE
        self.status_code = 200
        self.request = HttpRequest()

    def __repr__(self) -> str:
        return (
            f"HttpContext(recv_status={self.recv_status.name}, "
            f"status_code={self.status_code})"
        )

    def _fail(self, code: int) -> None:
        self.status_code = code
        self.recv_status = RecvStatus.ERROR

    def parse_request_line(self, line: str) -> None:
        """Fill method, path, query parameters and version from a request line.

        Raises ``ValueError`` when the line is malformed.
        """
        match = _REQUEST_LINE.fullmatch(line)
        if match is None:
            log.error("Request line does not match: %r", line)
            raise ValueError(f"malformed request line {line!r}")
        method, path, query, version = match.groups()
        params = []
        for pair in split_string(query or "", "&"):
            parts = split_string(pair, "=")
            key = decode_url(parts[0], True)
            value = decode_url(parts[1], True) if len(parts) > 1 else ""
            params.append((key, value))
        self.request.method = method
        self.request.path = path
        self.request.version = version
        for key, value in params:
            self.request.insert_param(key, value)

    def recv_line(self, buffer: Buffer) -> None:
        """Consume the request line once it is complete."""
        if self.recv_status is not RecvStatus.LINE:
            return
        line = buffer.read_line()
        if not line:
            if len(buffer) > MAX_LINE:
                self._fail(414)
            return
        if len(line) > MAX_LINE:
            self._fail(414)
            return
        try:
            self.parse_request_line(line)
        except ValueError:
            self._fail(400)
            return
        self.recv_status = RecvStatus.HEADER

    def parse_header(self, line: str) -> None:
        """Add one ``key:value`` header line; raises ``ValueError`` if malformed."""
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        parts = split_string(line, ":")
        if len(parts) < 2:
            raise ValueError(f"malformed header {line!r}")
        self.request.insert_header(parts[0], parts[1])

    def recv_header(self, buffer: Buffer) -> None:
        """Consume complete header lines up to the blank line."""
        if self.recv_status is not RecvStatus.HEADER:
            return
        while True:
            line = buffer.read_line()
            if not line:
                if len(buffer) > MAX_LINE:
                    self._fail(400)
                return
            if line in ("\r\n", "\n"):
                break
            if len(line) > MAX_LINE:
                self._fail(400)
                return
            try:
                self.parse_header(line)
            except ValueError:
                self._fail(400)
                return
        self.status_code = 200
        self.recv_status = RecvStatus.BODY

    def recv_body(self, buffer: Buffer) -> None:
        """Consume body bytes until Content-Length is reached."""
        if self.recv_status is not RecvStatus.BODY:
            return
        if self.request.has_header("Content-Length"):
            try:
                length = self.request.content_length()
            except ValueError:
                self._fail(400)
                return
            if length < 0:
                self._fail(400)
                return
        else:
            length = 0
        have = len(self.request.body.encode(ENCODING, _ERRORS))
        need = length - have
        if need > len(buffer):
            self.request.body += buffer.read_string(len(buffer))
            return
        self.request.body += buffer.read_string(need)
        self.status_code = 200
        self.recv_status = RecvStatus.OVER

    def reset(self) -> None:
        """Prepare for the next request on the same connection."""
        self.status_code = 200
        self.recv_status = RecvStatus.LINE
        self.request.reset()

    def recv(self, buffer: Buffer) -> None:
        """Advance through as many stages as the buffered data allows."""
        self.recv_line(buffer)
        self.recv_header(buffer)
        self.recv_body(buffer)