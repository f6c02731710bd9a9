"""String, file and URL helpers used by the HTTP layer."""

from __future__ import annotations

import itertools
import logging
import os
import string
from pathlib import Path

ENCODING = "utf-8"
_ERRORS = "surrogateescape"
DEFAULT_MIME = "application/octet-stream"
UNKNOWN_STATUS = "Unknown"

STATUS_MESSAGES: dict[int, str] = {
    100: "Continue",
    101: "Switching Protocol",
    102: "Processing",
    103: "Early Hints",
    200: "OK",
    201: "Created",
    202: "Accepted",
    203: "Non-Authoritative Information",
}

MIME_TYPES: dict[str, str] = {
    ".aac": "audio/aac",
    ".abw": "application/x-abiword",
    ".txt": "application/txt",
}

_UNRESERVED = frozenset(string.ascii_letters + string.digits + ".-_~")

log = logging.getLogger(__name__)


def split_string(text: str, sep: str) -> list[str]:
    """Split ``text`` on ``sep``, dropping empty pieces."""
    if not sep:
        raise ValueError("separator must not be empty")
    return [piece for piece in text.split(sep) if piece]


def read_file(path: str | os.PathLike) -> bytes:
    """Return the whole content of a file."""
    try:
        return Path(path).read_bytes()
    except OSError:
        log.error("Read file %s error", path)
        raise


def write_file(path: str | os.PathLike, data: bytes | str) -> None:
    """Replace the content of a file with ``data``."""
    if isinstance(data, str):
        data = data.encode(ENCODING, _ERRORS)
    try:
        Path(path).write_bytes(data)
    except OSError:
        log.error("Write file %s error", path)
        raise


def status_message(code: int) -> str:
    """Reason phrase for an HTTP status code."""
    return STATUS_MESSAGES.get(code, UNKNOWN_STATUS)


def mime_type(path: str) -> str:
    """Content type for a path, chosen by its extension."""
    pos = path.rfind(".")
    if pos == -1:
        log.warning("No extension in file path %s", path)
        return DEFAULT_MIME
    extension = path[pos:]
    try:
        return MIME_TYPES[extension]
    except KeyError:
        log.warning("No MIME type for %s", extension)
        return DEFAULT_MIME


def is_directory(path: str | os.PathLike) -> bool:
    return os.path.isdir(path)


def is_regular_file(path: str | os.PathLike) -> bool:
    return os.path.isfile(path)


def encode_url(raw: str | bytes, is_query: bool = False) -> str:
    """Percent-encode everything but letters, digits and ``.-_~``.

    In query mode a space becomes ``+``.
    """
    data = raw.encode(ENCODING, _ERRORS) if isinstance(raw, str) else bytes(raw)
    parts = []
    for byte in data:
        ch = chr(byte)
        if ch in _UNRESERVED:
            parts.append(ch)
        elif ch == " " and is_query:
            parts.append("+")
        else:
            parts.append(f"%{byte:02X}")
    return "".join(parts)


def hex_to_int(ch: str) -> int:
    """Value of a single hexadecimal digit."""
    if len(ch) != 1 or ch not in string.hexdigits:
        raise ValueError(f"invalid hex digit {ch!r}")
    return int(ch, 16)


def decode_url(url: str, is_query: bool = False) -> str:
    """Reverse ``encode_url``; raises ``ValueError`` on characters it never emits."""
    out = bytearray()
    chars = iter(url)
    for ch in chars:
        if ch in _UNRESERVED:
            out += ch.encode("ascii")
        elif ch == "+" and is_query:
            out.append(0x20)
        elif ch == "%":
            pair = "".join(itertools.islice(chars, 2))
            if len(pair) != 2:
                raise ValueError(f"truncated escape in {url!r}")
            out.append(hex_to_int(pair[0]) << 4 | hex_to_int(pair[1]))
        else:
            raise ValueError(f"invalid character {ch!r} in url")
    return out.decode(ENCODING, _ERRORS)


def valid_path(path: str) -> bool:
    """True unless ``..`` components climb above the root."""
    level = 0
    for index, part in enumerate(split_string(path, "/")):
        if index == 0 and part == ".":
            continue
        if part == "..":
            level -= 1
            if level < 0:
                return False
        else:
            level += 1
    return True