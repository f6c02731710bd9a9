import socket
import threading
import time

import pytest

from reactornet.connection import Connection, ConnectionStatus
from reactornet.eventloop import EventLoop
from reactornet.netsocket import Socket


@pytest.fixture
def loop():
    with EventLoop(tick_interval=0.01) as lp:
        yield lp


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    a.setblocking(False)
    b.settimeout(2.0)
    yield a, b
    a.close()
    b.close()


@pytest.fixture
def conn(loop, pair):
    return Connection(loop, 1, Socket(pair[0]))


def _pump(loop, condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        loop.poller.poll(0.05)
        loop.run_tasks()
    return condition()


def _run(loop, seconds=5.0):
    safety = threading.Timer(seconds, loop.stop)
    safety.daemon = True
    safety.start()
    loop.start()
    safety.cancel()


def test_established_sets_connected_and_calls_callback(conn, loop):
    seen = []
    conn.on_connected = seen.append
    assert conn.status is ConnectionStatus.CONNECTING
    conn.established()
    assert conn.connected()
    assert seen == [conn]
    assert conn.channel.readable()
    assert loop.poller.has_channel(conn.channel)


def test_established_twice_raises(conn):
    conn.established()
    with pytest.raises(RuntimeError):
        conn.established()


def test_incoming_data_reaches_message_callback(conn, loop, pair):
    got = []
    conn.on_message = lambda c, buf: got.append(buf.read())
    conn.established()
    pair[1].sendall(b"hello")
    assert _pump(loop, lambda: got)
    assert got == [b"hello"]
    assert len(conn.in_buffer) == 0


def test_send_delivers_bytes(conn, loop, pair):
    conn.established()
    conn.send(b"abc")
    assert conn.channel.writable()
    assert _pump(loop, lambda: not conn.channel.writable())
    assert pair[1].recv(16) == b"abc"
    assert len(conn.out_buffer) == 0


def test_send_accepts_text(conn, loop, pair):
    conn.established()
    conn.send("hi")
    assert len(conn.out_buffer) == 2
    assert conn.channel.writable() is True
    assert _pump(loop, lambda: not conn.channel.writable())
    assert pair[1].recv(16) == b"hi"
    assert len(conn.out_buffer) == 0
    assert conn.connected() is True


def test_shutdown_without_pending_output_releases(conn, loop):
    closed, server_closed = [], []
    conn.on_closed = closed.append
    conn.on_server_closed = server_closed.append
    conn.established()
    conn.shutdown()
    assert closed == [conn]
    assert server_closed == [conn]
    assert not conn.connected()
    assert conn.status is ConnectionStatus.DISCONNECTED
    assert not loop.poller.has_channel(conn.channel)


def test_shutdown_flushes_pending_output_first(conn, loop, pair):
    closed = []
    conn.on_closed = closed.append
    conn.established()
    conn.send(b"data")
    conn.shutdown()
    assert conn.status is ConnectionStatus.DISCONNECTING
    assert closed == []
    assert _pump(loop, lambda: conn.status is ConnectionStatus.DISCONNECTED)
    assert pair[1].recv(16) == b"data"
    assert closed == [conn]


def test_peer_close_releases_connection(conn, loop, pair):
    closed = []
    conn.on_closed = closed.append
    conn.established()
    pair[1].close()
    assert _pump(loop, lambda: conn.status is ConnectionStatus.DISCONNECTED)
    assert closed == [conn]


def test_send_after_release_is_ignored(conn):
    conn.established()
    conn.release()
    conn.send(b"late")
    assert len(conn.out_buffer) == 0


def test_release_is_idempotent(conn):
    closed = []
    conn.on_closed = closed.append
    conn.established()
    conn.release()
    conn.release()
    assert closed == [conn]


def test_inactive_release_closes_idle_connection(conn, loop):
    closed = []

    def on_closed(c):
        closed.append(c)
        loop.stop()

    conn.on_closed = on_closed
    conn.established()
    conn.enable_inactive_release(1)
    assert loop.has_timer(conn.conn_id)
    assert conn.inactive_release_enabled
    _run(loop)
    assert closed == [conn]
    assert conn.status is ConnectionStatus.DISCONNECTED


def test_cancel_inactive_release_keeps_connection(conn, loop):
    conn.established()
    conn.enable_inactive_release(1)
    conn.cancel_inactive_release()
    assert not conn.inactive_release_enabled
    loop.add_timer_task(99, 5, loop.stop)
    _run(loop)
    assert conn.connected()


def test_upgrade_replaces_context_and_callbacks(conn, loop, pair):
    old, new, events = [], [], []
    conn.on_message = lambda c, buf: old.append(buf.read())
    conn.established()
    conn.upgrade(
        {"stage": "upgraded"},
        lambda c, buf: new.append(buf.read()),
        None,
        events.append,
        None,
    )
    assert conn.context == {"stage": "upgraded"}
    pair[1].sendall(b"ping")
    assert _pump(loop, lambda: new)
    assert new == [b"ping"]
    assert old == []
    assert events == [conn]


def test_upgrade_from_other_thread_raises(conn):
    errors = []

    def worker():
        try:
            conn.upgrade({"stage": "other"}, None, None, None, None)
        except RuntimeError as exc:
            errors.append(exc)

    t = threading.Thread(target=worker)
    t.start()
    t.join(2)
    assert len(errors) == 1
    assert conn.context != {"stage": "other"}
    assert conn.status is ConnectionStatus.CONNECTING
    assert conn.connected() is False


def test_any_event_callback_runs_on_activity(conn, loop, pair):
    events = []
    conn.on_any_event = events.append
    conn.on_message = lambda c, buf: buf.read()
    conn.established()
    pair[1].sendall(b"x")
    assert _pump(loop, lambda: events)
    assert events[0] is conn


def test_fileno_matches_socket_until_closed(conn, pair):
    assert conn.fileno() == pair[0].fileno()
    conn.established()
    fd = conn.fileno()
    conn.release()
    assert conn.fileno() == fd
    assert conn.socket.fileno() == -1