import socket

import pytest

from flute.event_loop_group import EventLoopGroup
from flute.inet_address import InetAddress
from flute.ring_buffer import RingBuffer
from flute.udp_server import UdpServer


def _free_udp_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


@pytest.fixture
def group():
    with EventLoopGroup(0) as loop_group:
        yield loop_group


@pytest.fixture
def client():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(3)
    yield sock
    sock.close()


@pytest.mark.timeout(10)
def test_echo_server(group, client):
    port = _free_udp_port()
    server = UdpServer(group)
    seen = []

    def handle_message(srv, address, buffer):
        data = buffer.read(4096)
        seen.append((srv, address, data))
        srv.send(address, data)
        group.master_event_loop().quit()

    server.bind(InetAddress.from_ip("127.0.0.1", port))
    server.message_callback = handle_message
    client.sendto(b"hello", ("127.0.0.1", port))
    group.master_event_loop().schedule(group.master_event_loop().quit, 5000, 1)
    group.dispatch()
    try:
        reply, _ = client.recvfrom(4096)
        assert reply == b"hello"
        assert len(seen) == 1
        srv, address, data = seen[0]
        assert srv is server
        assert data == b"hello"
        assert address.port == client.getsockname()[1]
    finally:
        server.close()


def test_send_bytes_and_text(group, client):
    server = UdpServer(group)
    server.bind(InetAddress.from_ip("127.0.0.1", _free_udp_port()))
    target = InetAddress.from_ip("127.0.0.1", client.getsockname()[1])
    try:
        assert server.send(target, b"ping") == 4
        assert client.recv(64) == b"ping"
        assert server.send(target, "pong") == 4
        assert client.recv(64) == b"pong"
    finally:
        server.close()


def test_send_ring_buffer_drains_it(group, client):
    server = UdpServer(group)
    server.bind(InetAddress.from_ip("127.0.0.1", _free_udp_port()))
    target = InetAddress.from_ip("127.0.0.1", client.getsockname()[1])
    buffer = RingBuffer(16)
    buffer.append(b"abc")
    try:
        assert server.send(target, buffer) == 3
        assert buffer.readable_bytes() == 0
        assert client.recv(64) == b"abc"
    finally:
        server.close()


def test_send_before_bind_raises(group):
    server = UdpServer(group)
    with pytest.raises(RuntimeError):
        server.send(InetAddress.from_ip("127.0.0.1", 9999), b"x")


def test_send_after_close_raises(group):
    server = UdpServer(group)
    server.bind(InetAddress.from_ip("127.0.0.1", _free_udp_port()))
    server.close()
    server.close()
    with pytest.raises(RuntimeError):
        server.send(InetAddress.from_ip("127.0.0.1", 9999), b"x")