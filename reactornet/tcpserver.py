"""Multi-loop TCP server: an acceptor on the base loop, connections on a pool."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .connection import Connection, ConnectionCallback, MessageCallback
from .eventloop import Channel, EventLoop, LoopThreadPool
from .netsocket import DEFAULT_SERVER_ADDRESS, Socket, SocketError
from .timerwheel import WHEEL_CAPACITY

log = logging.getLogger(__name__)

AcceptCallback = Callable[[Socket], object]


class Acceptor:
    """Listening socket whose readiness hands new connections to a callback."""

    def __init__(
        self, loop: EventLoop, port: int, address: str = DEFAULT_SERVER_ADDRESS
    ) -> None:
        self.loop = loop
        self.socket = Socket().create_server(port, address)
        self.on_accept: AcceptCallback | None = None
        self.channel = Channel(loop, self.socket.fileno(), "Acceptor")
        self.channel.on_read = self.handle_read

    @property
    def port(self) -> int:
        """Port the listening socket is bound to."""
        return self.socket.sockname[1]

    def listen(self) -> None:
        """Start watching for incoming connections; set ``on_accept`` first."""
        self.channel.enable_read()

    def handle_read(self) -> None:
        try:
            conn = self.socket.accept()
        except SocketError as exc:
            log.debug("Accept failed: %s", exc)
            return
        conn.set_nonblocking()
        if self.on_accept is None:
            conn.close()
            return
        self.on_accept(conn)

    def close(self) -> None:
        self.socket.close()


class TcpServer:
    """Accepts connections and spreads them over a pool of event loops."""

    def __init__(
        self,
        port: int,
        address: str = DEFAULT_SERVER_ADDRESS,
        tick_interval: float = 1.0,
    ) -> None:
        self._next_id = 0
        self.timeout = 0
        self.inactive_release_enabled = False
        self.base_loop = EventLoop(tick_interval)
        self.acceptor = Acceptor(self.base_loop, port, address)
        self.pool = LoopThreadPool(self.base_loop)
        self.connections: dict[int, Connection] = {}
        self.on_connected: ConnectionCallback | None = None
        self.on_message: MessageCallback | None = None
        self.on_closed: ConnectionCallback | None = None
        self.on_any_event: ConnectionCallback | None = None
        self.acceptor.on_accept = self._new_connection
        self.acceptor.listen()

    @property
    def port(self) -> int:
        return self.acceptor.port

    def _new_connection(self, sock: Socket) -> None:
        self._next_id += 1
        conn = Connection(self.pool.next_loop(), self._next_id, sock)
        conn.on_message = self.on_message
        conn.on_closed = self.on_closed
        conn.on_connected = self.on_connected
        conn.on_any_event = self.on_any_event
        conn.on_server_closed = self._remove_connection
        self.connections[conn.conn_id] = conn
        if self.inactive_release_enabled:
            conn.enable_inactive_release(self.timeout)
        conn.established()

    def _remove_connection(self, conn: Connection) -> None:
        self.base_loop.run_in_loop(
            lambda: self.connections.pop(conn.conn_id, None)
        )

    def set_thread_count(self, count: int) -> None:
        self.pool.set_thread_count(count)

    def enable_inactive_release(self, timeout: int) -> None:
        """Release connections idle for ``timeout`` ticks."""
        if not 0 <= timeout < WHEEL_CAPACITY:
            raise ValueError(
                f"timeout must be in [0, {WHEEL_CAPACITY}), got {timeout}"
            )
        self.timeout = timeout
        self.inactive_release_enabled = True

    def _run_after_in_loop(self, task: Callable[[], object], delay: int) -> None:
        self._next_id += 1
        self.base_loop.add_timer_task(self._next_id, delay, task)

    def run_after(self, task: Callable[[], object], delay: int) -> None:
        """Run ``task`` once after ``delay`` ticks of the base loop."""
        self.base_loop.run_in_loop(lambda: self._run_after_in_loop(task, delay))

    def start(self) -> None:
        """Start the pool and run the base loop in the calling thread."""
        self.base_loop.thread_id = threading.get_ident()
        self.pool.create()
        try:
            with self.base_loop:
                self.base_loop.start()
        finally:
            self.acceptor.close()

    def _stop_in_loop(self) -> None:
        for conn in list(self.connections.values()):
            conn.release()
        for loop in self.pool.loops:
            loop.queue_in_loop(loop.stop)
        self.base_loop.stop()

    def stop(self) -> None:
        """Release every connection and stop all loops; safe from any thread."""
        self.base_loop.queue_in_loop(self._stop_in_loop)