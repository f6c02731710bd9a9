import pytest

from reactornet.netsocket import Socket, SocketError


@pytest.fixture
def pair():
    server = Socket().create_server(0, "127.0.0.1", block=True)
    port = server.sockname[1]
    client = Socket().create_client("127.0.0.1", port)
    accepted = server.accept()
    yield server, client, accepted
    for sock in (client, accepted, server):
        sock.close()


def test_send_and_recv_round_trip(pair):
    _, client, accepted = pair
    sent = client.send(b"Hello Server!")
    assert sent == len(b"Hello Server!")
    assert accepted.recv(sent) == b"Hello Server!"


def test_reply_direction(pair):
    _, client, accepted = pair
    accepted.send(b"pong")
    assert client.recv(4) == b"pong"


def test_nonblocking_recv_without_data_returns_empty(pair):
    _, client, _ = pair
    assert client.nonblocking_recv(16) == b""


def test_nonblocking_send_and_recv(pair):
    _, client, accepted = pair
    assert client.nonblocking_send(b"abc") == 3
    assert accepted.recv(3) == b"abc"


def test_recv_after_peer_close_raises(pair):
    _, client, accepted = pair
    client.close()
    with pytest.raises(SocketError):
        accepted.recv(10)


def test_fileno_after_close_is_minus_one(pair):
    _, client, _ = pair
    assert client.fileno() >= 0
    client.close()
    assert client.fileno() == -1
    client.close()
    assert client.fileno() == -1


def test_nonblocking_accept_without_pending_raises():
    with Socket().create_server(0, "127.0.0.1") as server:
        with pytest.raises(SocketError):
            server.accept()


def test_connect_to_closed_port_raises():
    server = Socket().create_server(0, "127.0.0.1", block=True)
    port = server.sockname[1]
    server.close()
    client = Socket()
    with pytest.raises(SocketError):
        client.create_client("127.0.0.1", port)
    client.close()


def test_operations_on_unopened_socket_raise():
    sock = Socket()
    with pytest.raises(SocketError):
        sock.bind("127.0.0.1", 0)
    with pytest.raises(SocketError):
        sock.send(b"x")


def test_bind_invalid_address_raises():
    sock = Socket()
    sock.create()
    with pytest.raises(SocketError):
        sock.bind("999.1.1.1", 0)
    sock.close()


def test_socket_error_is_oserror():
    with pytest.raises(OSError):
        Socket().listen()