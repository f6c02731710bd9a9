"""Minimal blocking client and server exchanging one message."""

from __future__ import annotations

from .netsocket import (
    DEFAULT_CLIENT_ADDRESS,
    DEFAULT_PORT,
    DEFAULT_SERVER_ADDRESS,
    Socket,
)

BUFFER_SIZE = 128
DEFAULT_MESSAGE = "Hello Server!"


def run_client(
    address: str = DEFAULT_CLIENT_ADDRESS,
    port: int = DEFAULT_PORT,
    message: str = DEFAULT_MESSAGE,
) -> int:
    """Send ``message`` NUL-terminated to the server; return the bytes sent."""
    payload = message.encode("utf-8") + b"\0"
    with Socket() as client:
        client.create_client(address, port)
        view = memoryview(payload)
        while view:
            sent = client.send(bytes(view))
            view = view[sent:]
    print(f"Write Content: {message}")
    return len(payload)


def run_server(
    port: int = DEFAULT_PORT, address: str = DEFAULT_SERVER_ADDRESS
) -> str:
    """Accept one client, read one message and return it."""
    with Socket() as server:
        server.create_server(port, address, block=True)
        with server.accept() as conn:
            data = conn.recv(BUFFER_SIZE)
    text = data.split(b"\0", 1)[0].decode("utf-8", "replace")
    print(f"Read Content: {text}")
    return text