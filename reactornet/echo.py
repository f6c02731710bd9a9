"""Echo server: sends every message back and then closes the connection."""

from __future__ import annotations

import argparse
import logging

from .buffer import Buffer
from .connection import Connection
from .netsocket import DEFAULT_PORT, DEFAULT_SERVER_ADDRESS
from .tcpserver import TcpServer

log = logging.getLogger(__name__)


class EchoServer:
    """TCP server that echoes each received chunk and shuts the connection down."""

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        address: str = DEFAULT_SERVER_ADDRESS,
        thread_count: int = 1,
        tick_interval: float = 1.0,
    ) -> None:
        self.server = TcpServer(port, address, tick_interval)
        self.server.set_thread_count(thread_count)
        self.server.on_closed = self.on_closed
        self.server.on_connected = self.on_connected
        self.server.on_message = self.on_message

    @property
    def port(self) -> int:
        """Port the server listens on."""
        return self.server.port

    def on_connected(self, conn: Connection) -> None:
        log.debug("New connection: %r", conn)

    def on_closed(self, conn: Connection) -> None:
        log.debug("Close connection: %r", conn)

    def on_message(self, conn: Connection, buffer: Buffer) -> None:
        """Send back everything readable, then close once it is delivered."""
        log.debug("Message on %r", conn)
        conn.send(buffer.read())
        conn.shutdown()

    def start(self) -> None:
        """Serve in the calling thread until ``stop`` is called."""
        self.server.start()

    def stop(self) -> None:
        self.server.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run a TCP echo server.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--address", default=DEFAULT_SERVER_ADDRESS)
    parser.add_argument("--threads", type=int, default=1)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    server = EchoServer(args.port, args.address, args.threads)
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    return 0