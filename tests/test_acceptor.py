import errno
import socket

import pytest

from flute import socket_ops
from flute.acceptor import Acceptor
from flute.event_loop import EventLoop
from flute.inet_address import InetAddress


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


@pytest.fixture
def loop():
    with EventLoop() as event_loop:
        yield event_loop


def test_defaults(loop):
    acceptor = Acceptor(loop)
    assert acceptor.listening is False
    assert acceptor.reuse_port is True
    assert acceptor.reuse_address is True


def test_options_can_be_changed_before_bind(loop):
    acceptor = Acceptor(loop)
    acceptor.reuse_port = False
    acceptor.reuse_address = False
    assert acceptor.reuse_port is False
    assert acceptor.reuse_address is False


def test_listen_before_bind_raises(loop):
    with pytest.raises(RuntimeError):
        Acceptor(loop).listen()


@pytest.mark.timeout(10)
def test_accepts_connection_and_calls_back(loop):
    port = _free_port()
    acceptor = Acceptor(loop)
    accepted = []

    def on_accept(conn):
        accepted.append(conn)
        loop.quit()

    acceptor.accept_callback = on_accept
    acceptor.bind(InetAddress.from_ip("127.0.0.1", port))
    acceptor.listen()
    assert acceptor.listening is True
    client = socket.create_connection(("127.0.0.1", port))
    loop.schedule(loop.quit, 5000, 1)
    loop.dispatch()
    try:
        assert len(accepted) == 1
        remote = socket_ops.get_remote_addr(accepted[0])
        assert remote.port == client.getsockname()[1]
    finally:
        for conn in accepted:
            conn.close()
        client.close()
        acceptor.close()


@pytest.mark.timeout(10)
def test_connection_closed_without_callback(loop):
    port = _free_port()
    acceptor = Acceptor(loop)
    acceptor.bind(InetAddress.from_ip("127.0.0.1", port))
    acceptor.listen()
    client = socket.create_connection(("127.0.0.1", port))
    loop.schedule(loop.quit, 200, 1)
    loop.dispatch()
    client.settimeout(2)
    try:
        assert client.recv(1) == b""
    finally:
        client.close()
        acceptor.close()


def test_close_stops_listening(loop):
    port = _free_port()
    acceptor = Acceptor(loop)
    acceptor.bind(InetAddress.from_ip("127.0.0.1", port))
    acceptor.listen()
    acceptor.close()
    assert acceptor.listening is False
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as client:
        assert client.connect_ex(("127.0.0.1", port)) == errno.ECONNREFUSED