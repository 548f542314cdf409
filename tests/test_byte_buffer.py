import math
import select
import socket

import pytest

from flute.byte_buffer import DEFAULT_BUFFER_SIZE, ByteBuffer


def test_new_buffer_is_empty():
    buf = ByteBuffer()
    assert buf.readable_bytes() == 0
    assert buf.capacity() == DEFAULT_BUFFER_SIZE
    assert buf.writeable_bytes() == DEFAULT_BUFFER_SIZE


@pytest.mark.parametrize(
    "writer, reader, value",
    [
        ("append_int8", "read_int8", -128),
        ("append_int8", "read_int8", 127),
        ("append_int16", "read_int16", -32768),
        ("append_int16", "read_int16", 32767),
        ("append_int32", "read_int32", -(2**31)),
        ("append_int32", "read_int32", 2**31 - 1),
        ("append_int64", "read_int64", -(2**63)),
        ("append_int64", "read_int64", 2**63 - 1),
        ("append_float", "read_float", 1.5),
        ("append_double", "read_double", math.pi),
    ],
)
def test_typed_round_trip(writer, reader, value):
    buf = ByteBuffer()
    getattr(buf, writer)(value)
    assert getattr(buf, reader)() == value
    assert buf.readable_bytes() == 0


def test_peek_does_not_consume():
    buf = ByteBuffer()
    buf.append_int32(12345)
    buf.append_double(2.25)
    assert buf.peek_int32() == 12345
    assert buf.read_int32() == 12345
    assert buf.peek_double() == 2.25
    assert buf.readable_bytes() == 8


def test_read_clamps_to_available():
    buf = ByteBuffer()
    buf.append(b"abc")
    assert buf.read(10) == b"abc"
    assert buf.read(10) == b""


def test_append_with_length():
    buf = ByteBuffer()
    buf.append(b"hello", 3)
    assert buf.read(5) == b"hel"


def test_append_length_too_large():
    buf = ByteBuffer()
    with pytest.raises(ValueError):
        buf.append(b"ab", 3)


def test_append_from_buffer_empties_source():
    source = ByteBuffer()
    source.append(b"payload")
    target = ByteBuffer()
    target.append(b">")
    target.append(source)
    assert source.readable_bytes() == 0
    assert target.read(100) == b">payload"


def test_append_partial_from_buffer():
    source = ByteBuffer()
    source.append(b"payload")
    target = ByteBuffer()
    target.append(source, 3)
    assert target.read(100) == b"pay"
    assert source.readable_bytes() == 0


def test_growth_keeps_data_and_power_of_two_capacity():
    buf = ByteBuffer()
    buf.append(b"x" * 10)
    buf.read(4)
    payload = bytes(range(256)) * 8
    buf.append(payload)
    assert buf.capacity() >= len(payload) + 6
    assert buf.capacity() & (buf.capacity() - 1) == 0
    assert buf.read(6) == b"x" * 6
    assert buf.read(len(payload)) == payload


def test_partial_value_reads_available_bytes_only():
    buf = ByteBuffer()
    assert buf.read_int32() == 0
    assert buf.readable_bytes() == 0
    buf.append_int8(7)
    assert buf.read_int8() == 7


def test_swap():
    a = ByteBuffer()
    b = ByteBuffer()
    a.append(b"first")
    b.append(b"second")
    a.swap(b)
    assert a.read(10) == b"second"
    assert b.read(10) == b"first"


def test_clear():
    buf = ByteBuffer()
    buf.append(b"data")
    buf.clear()
    assert buf.readable_bytes() == 0
    assert buf.writeable_bytes() == buf.capacity()


def test_len_matches_readable():
    buf = ByteBuffer()
    buf.append(b"abcd")
    buf.read(1)
    assert len(buf) == buf.readable_bytes()


@pytest.mark.timeout(10)
def test_stream_socket_round_trip():
    left, right = socket.socketpair()
    try:
        out = ByteBuffer()
        out.append(b"ping")
        assert out.send_to_socket(left) == 4
        assert out.readable_bytes() == 0
        select.select([right], [], [], 5)
        incoming = ByteBuffer()
        assert incoming.read_from_socket(right) == 4
        assert incoming.read(4) == b"ping"
    finally:
        left.close()
        right.close()


@pytest.mark.timeout(10)
def test_datagram_round_trip():
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.bind(("127.0.0.1", 0))
        receiver.bind(("127.0.0.1", 0))
        out = ByteBuffer()
        out.append(b"hello")
        assert out.send_to(sender, receiver.getsockname()) == 5
        select.select([receiver], [], [], 5)
        incoming = ByteBuffer()
        count, address = incoming.receive_from(receiver)
        assert count == 5
        assert address == sender.getsockname()
        assert incoming.read(5) == b"hello"
    finally:
        sender.close()
        receiver.close()