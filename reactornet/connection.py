"""A TCP connection driven by an event loop, with buffered I/O."""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable

from .buffer import Buffer
from .eventloop import Channel, EventLoop
from .netsocket import Socket, SocketError
from .timerwheel import TimerTask

RECV_CHUNK = 65535

log = logging.getLogger(__name__)

MessageCallback = Callable[["Connection", Buffer], object]
ConnectionCallback = Callable[["Connection"], object]


class ConnectionStatus(enum.Enum):
    DISCONNECTED = enum.auto()
    DISCONNECTING = enum.auto()
    CONNECTING = enum.auto()
    CONNECTED = enum.auto()


class Connection:
    """Owns a socket, its channel and its input and output buffers."""

    def __init__(self, loop: EventLoop, conn_id: int, sock: Socket) -> None:
        self.loop = loop
        self.conn_id = conn_id
        self.socket = sock
        self._fd = sock.fileno()
        self.status = ConnectionStatus.CONNECTING
        self.context: Any = None
        self.in_buffer = Buffer()
        self.out_buffer = Buffer()
        self.inactive_release_enabled = False
        self._release_timer: TimerTask | None = None
        self.on_message: MessageCallback | None = None
        self.on_connected: ConnectionCallback | None = None
        self.on_closed: ConnectionCallback | None = None
        self.on_any_event: ConnectionCallback | None = None
        self.on_server_closed: ConnectionCallback | None = None
        self.channel = Channel(loop, self._fd, "Connection")
        self.channel.on_read = self._handle_read
        self.channel.on_write = self._handle_write
        self.channel.on_close = self._handle_close
        self.channel.on_error = self._handle_error
        self.channel.on_event = self._handle_any_event

    def __repr__(self) -> str:
        return f"Connection(id={self.conn_id}, fd={self._fd}, status={self.status.name})"

    def fileno(self) -> int:
        return self._fd

    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def _deliver(self) -> None:
        if len(self.in_buffer) and self.on_message is not None:
            self.on_message(self, self.in_buffer)

    def _handle_read(self) -> None:
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        try:
            data = self.socket.nonblocking_recv(RECV_CHUNK)
        except SocketError as exc:
            log.debug("Handle read error: %s", exc)
            self._shutdown_in_loop()
            return
        try:
            self.in_buffer.write(data)
        except BufferError as exc:
            log.error("Input buffer full: %s", exc)
            self._shutdown_in_loop()
            return
        self._deliver()

    def _handle_write(self) -> None:
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        try:
            sent = self.socket.nonblocking_send(self.out_buffer.peek())
        except SocketError:
            self._deliver()
            self.release()
            return
        self.out_buffer.consume(sent)
        if not len(self.out_buffer):
            self.channel.disable_write()
            if self.status is ConnectionStatus.DISCONNECTING:
                self.release()

    def _handle_close(self) -> None:
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        self._deliver()
        self.release()

    def _handle_error(self) -> None:
        self._handle_close()

    def _handle_any_event(self) -> None:
        timer = self._release_timer
        if (
            self.inactive_release_enabled
            and timer is not None
            and not timer.fired
            and not timer.cancelled
        ):
            self.loop.delay_timer_task(self.conn_id)
        if self.on_any_event is not None:
            self.on_any_event(self)

    def _shutdown_in_loop(self) -> None:
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        self.status = ConnectionStatus.DISCONNECTING
        self._deliver()
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        if len(self.out_buffer):
            if not self.channel.writable():
                self.channel.enable_write()
        else:
            self.release()

    def _release_in_loop(self) -> None:
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        log.debug("Release connection %s", self.conn_id)
        self.status = ConnectionStatus.DISCONNECTED
        self.channel.remove()
        self.socket.close()
        if self._release_timer is not None:
            self._release_timer.cancel()
            self._release_timer = None
        if self.on_closed is not None:
            self.on_closed(self)
        if self.on_server_closed is not None:
            self.on_server_closed(self)

    def _established_in_loop(self) -> None:
        if self.status is not ConnectionStatus.CONNECTING:
            raise RuntimeError(f"connection {self.conn_id} is not connecting")
        self.status = ConnectionStatus.CONNECTED
        self.channel.enable_read()
        if self.on_connected is not None:
            self.on_connected(self)

    def _send_in_loop(self, data: bytes) -> None:
        if self.status is ConnectionStatus.DISCONNECTED:
            return
        try:
            self.out_buffer.write(data)
        except BufferError as exc:
            log.error("Output buffer full, data dropped: %s", exc)
            return
        if not self.channel.writable():
            self.channel.enable_write()

    def _enable_inactive_release_in_loop(self, seconds: int) -> None:
        self.inactive_release_enabled = True
        timer = self._release_timer
        if (
            timer is not None
            and not timer.fired
            and not timer.cancelled
            and self.loop.has_timer(self.conn_id)
        ):
            self.loop.delay_timer_task(self.conn_id)
            return
        self._release_timer = self.loop.add_timer_task(
            self.conn_id, seconds, self.release
        )

    def _cancel_inactive_release_in_loop(self) -> None:
        self.inactive_release_enabled = False
        if self._release_timer is not None:
            self._release_timer.cancel()
            self._release_timer = None

    def _upgrade_in_loop(self, context, on_message, on_closed, on_any_event, on_connected):
        self.context = context
        self.on_message = on_message
        self.on_closed = on_closed
        self.on_any_event = on_any_event
        self.on_connected = on_connected

    def established(self) -> None:
        """Mark the connection connected and start watching for input."""
        self.loop.run_in_loop(self._established_in_loop)

    def send(self, data: bytes | bytearray | memoryview | str) -> None:
        """Queue data for sending."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self.loop.run_in_loop(lambda: self._send_in_loop(payload))

    def shutdown(self) -> None:
        """Close once pending output has been sent."""
        self.loop.run_in_loop(self._shutdown_in_loop)

    def release(self) -> None:
        """Close immediately and notify the closed callbacks."""
        self.loop.run_in_loop(self._release_in_loop)

    def enable_inactive_release(self, seconds: int) -> None:
        """Release the connection after ``seconds`` ticks without activity."""
        self.loop.run_in_loop(lambda: self._enable_inactive_release_in_loop(seconds))

    def cancel_inactive_release(self) -> None:
        self.loop.run_in_loop(self._cancel_inactive_release_in_loop)

    def upgrade(self, context, on_message, on_closed, on_any_event, on_connected) -> None:
        """Swap the context and callbacks; must be called in the loop's thread."""
        self.loop.assert_in_loop()
        self.loop.run_in_loop(
            lambda: self._upgrade_in_loop(
                context, on_message, on_closed, on_any_event, on_connected
            )
        )