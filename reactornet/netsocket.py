"""Thin TCP socket wrapper that raises ``SocketError`` on failure."""

from __future__ import annotations

import logging
import socket

LISTEN_BACKLOG = 1024
DEFAULT_CLIENT_ADDRESS = "127.0.0.1"
DEFAULT_SERVER_ADDRESS = "0.0.0.0"
DEFAULT_PORT = 8500

log = logging.getLogger(__name__)


class SocketError(OSError):
    """Raised when a socket operation fails or the peer has gone away."""


class Socket:
    """IPv4 TCP socket with server and client helpers."""

    def __init__(self, sock: socket.socket | None = None) -> None:
        self._sock = sock

    def __enter__(self) -> Socket:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _require(self) -> socket.socket:
        if self._sock is None:
            raise SocketError("socket is not open")
        return self._sock

    @property
    def sockname(self) -> tuple[str, int]:
        """Local address and port the socket is bound to."""
        return self._require().getsockname()

    def create(self) -> None:
        try:
            self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            raise SocketError(f"socket create failed: {exc}") from exc
        log.debug("Socket create success")

    def bind(self, address: str, port: int) -> None:
        try:
            self._require().bind((address, port))
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"bind to {address}:{port} failed: {exc}") from exc
        log.debug("Bind address success")

    def listen(self, backlog: int = LISTEN_BACKLOG) -> None:
        try:
            self._require().listen(backlog)
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"listen failed: {exc}") from exc
        log.debug("Listen success")

    def accept(self) -> Socket:
        """Accept a pending connection and return it as a new ``Socket``."""
        try:
            conn, (ip, port) = self._require().accept()
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"accept failed: {exc}") from exc
        log.debug("Accept success client IP: %s port: %d", ip, port)
        return Socket(conn)

    def connect(self, address: str, port: int) -> None:
        try:
            self._require().connect((address, port))
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"connect to {address}:{port} failed: {exc}") from exc
        log.debug("Connect success")

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def _set_option(self, name: str) -> None:
        option = getattr(socket, name, None)
        if option is None:
            raise SocketError(f"{name} is not supported on this platform")
        try:
            self._require().setsockopt(socket.SOL_SOCKET, option, 1)
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"setting {name} failed: {exc}") from exc
        log.debug("Set %s success", name)

    def reuse_address(self) -> None:
        self._set_option("SO_REUSEADDR")

    def reuse_port(self) -> None:
        self._set_option("SO_REUSEPORT")

    def set_nonblocking(self) -> None:
        try:
            self._require().setblocking(False)
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"setting non-blocking mode failed: {exc}") from exc

    def fileno(self) -> int:
        """Descriptor number, or -1 once closed."""
        return -1 if self._sock is None else self._sock.fileno()

    def create_server(
        self, port: int, address: str = DEFAULT_SERVER_ADDRESS, block: bool = False
    ) -> Socket:
        """Create, configure, bind and listen; returns ``self``."""
        self.create()
        if not block:
            self.set_nonblocking()
        self.reuse_address()
        self.reuse_port()
        self.bind(address, port)
        self.listen()
        return self

    def create_client(
        self, address: str = DEFAULT_CLIENT_ADDRESS, port: int = DEFAULT_PORT
    ) -> Socket:
        """Create and connect; returns ``self``."""
        self.create()
        self.connect(address, port)
        return self

    def recv(self, size: int, flags: int = 0) -> bytes:
        """Receive up to ``size`` bytes.

        Returns b"" when nothing is available yet (retry later) and raises
        ``SocketError`` when the peer closed the connection or on error.
        """
        if size <= 0:
            return b""
        try:
            data = self._require().recv(size, flags)
        except (BlockingIOError, InterruptedError):
            return b""
        except SocketError:
            raise
        except OSError as exc:
            raise SocketError(f"recv failed: {exc}") from exc
        if not data:
            raise SocketError("connection closed by peer")
        return data

    def send(self, data: bytes, flags: int = 0) -> int:
        """Send bytes; returns the count sent, 0 when the call should be retried."""
        if not data:
            return 0
        try:
            return self._require().send(data, flags)
        except (BlockingIOError, InterruptedError):
            return 0
        except SocketError:
            raise
        except OSError as exc:
            log.error("Socket send error: %s", exc)
            raise SocketError(f"send failed: {exc}") from exc

    def nonblocking_recv(self, size: int) -> bytes:
        return self.recv(size, getattr(socket, "MSG_DONTWAIT", 0))

    def nonblocking_send(self, data: bytes) -> int:
        return self.send(data, getattr(socket, "MSG_DONTWAIT", 0))