"""Byte queue with power-of-two capacity, typed accessors and socket I/O."""

from __future__ import annotations

import socket
import struct
from typing import Any, Optional, Tuple, Union

from flute.byte_buffer import ByteBuffer

try:
    import fcntl
    import termios
except ImportError:  # pragma: no cover - non-POSIX platforms
    fcntl = None
    termios = None

DEFAULT_BUFFER_SIZE = 1024
MAX_READ_DEFAULT = 4096

_INT8 = struct.Struct("=b")
_INT16 = struct.Struct("=h")
_INT32 = struct.Struct("=i")
_INT64 = struct.Struct("=q")
_FLOAT = struct.Struct("=f")
_DOUBLE = struct.Struct("=d")
_FIONREAD_ARG = struct.Struct("i")

BytesLike = Union[bytes, bytearray, memoryview]


def _grown_capacity(length: int, capacity: int) -> int:
    result = capacity or 1
    while result < length + capacity:
        result <<= 1
    return result


def _pending_bytes(sock: socket.socket) -> int:
    if fcntl is None or termios is None:
        return MAX_READ_DEFAULT
    raw = fcntl.ioctl(sock.fileno(), termios.FIONREAD, bytes(_FIONREAD_ARG.size))
    return _FIONREAD_ARG.unpack(raw)[0]


def _target(address: Any) -> Any:
    to_sockaddr = getattr(address, "sockaddr", None)
    return to_sockaddr() if callable(to_sockaddr) else address


class RingBuffer:
    """A FIFO byte queue whose capacity grows in powers of two.

    Values are stored in native byte order. Reading a fixed-size value when
    fewer bytes are readable yields the available bytes padded with zeros
    and consumes them.
    """

    def __init__(self, size: int = DEFAULT_BUFFER_SIZE) -> None:
        if size < 0:
            raise ValueError(f"buffer size must not be negative, got {size}")
        self._data = bytearray()
        self._capacity = size

    def __len__(self) -> int:
        return self.readable_bytes()

    def swap(self, other: "RingBuffer") -> None:
        """Exchange contents with another ring buffer."""
        self._data, other._data = other._data, self._data
        self._capacity, other._capacity = other._capacity, self._capacity

    def readable_bytes(self) -> int:
        return len(self._data)

    def writeable_bytes(self) -> int:
        return self._capacity - len(self._data)

    def capacity(self) -> int:
        return self._capacity

    def peek(self, length: int) -> bytes:
        """Return up to ``length`` readable bytes without consuming them."""
        length = max(0, min(length, len(self._data)))
        return bytes(self._data[:length])

    def _peek_value(self, layout: struct.Struct) -> Any:
        raw = self.peek(layout.size)
        return layout.unpack(raw.ljust(layout.size, b"\0"))[0]

    def _consume(self, count: int) -> None:
        del self._data[:max(0, count)]

    def _read_value(self, layout: struct.Struct) -> Any:
        value = self._peek_value(layout)
        self._consume(layout.size)
        return value

    def peek_int8(self) -> int:
        return self._peek_value(_INT8)

    def peek_int16(self) -> int:
        return self._peek_value(_INT16)

    def peek_int32(self) -> int:
        return self._peek_value(_INT32)

    def peek_int64(self) -> int:
        return self._peek_value(_INT64)

    def peek_float(self) -> float:
        return self._peek_value(_FLOAT)

    def peek_double(self) -> float:
        return self._peek_value(_DOUBLE)

    def read_int8(self) -> int:
        return self._read_value(_INT8)

    def read_int16(self) -> int:
        return self._read_value(_INT16)

    def read_int32(self) -> int:
        return self._read_value(_INT32)

    def read_int64(self) -> int:
        return self._read_value(_INT64)

    def read_float(self) -> float:
        return self._read_value(_FLOAT)

    def read_double(self) -> float:
        return self._read_value(_DOUBLE)

    def read(self, length: int) -> bytes:
        """Consume and return up to ``length`` bytes."""
        data = self.peek(length)
        self._consume(len(data))
        return data

    def read_into(self, buffer: ByteBuffer, length: int) -> int:
        """Move up to ``length`` bytes into a ByteBuffer; return the count moved."""
        data = self.read(length)
        buffer.append(data)
        return len(data)

    def append(
        self,
        data: Union[BytesLike, "RingBuffer", ByteBuffer],
        length: Optional[int] = None,
    ) -> None:
        """Append bytes, or the readable bytes of another buffer.

        Appending from a RingBuffer or ByteBuffer takes ``length`` bytes
        (all by default) and then empties the source buffer.
        """
        if isinstance(data, (RingBuffer, ByteBuffer)):
            available = data.readable_bytes()
            count = available if length is None else length
            if not 0 <= count <= available:
                raise ValueError(f"cannot append {count} bytes from a buffer holding {available}")
            chunk = data.peek(count)
            data.clear()
        else:
            raw = bytes(data)
            if length is None:
                chunk = raw
            elif 0 <= length <= len(raw):
                chunk = raw[:length]
            else:
                raise ValueError(f"cannot append {length} bytes from {len(raw)} bytes of data")
        self._write(chunk)

    def append_int8(self, value: int) -> None:
        self._write(_INT8.pack(value))

    def append_int16(self, value: int) -> None:
        self._write(_INT16.pack(value))

    def append_int32(self, value: int) -> None:
        self._write(_INT32.pack(value))

    def append_int64(self, value: int) -> None:
        self._write(_INT64.pack(value))

    def append_float(self, value: float) -> None:
        self._write(_FLOAT.pack(value))

    def append_double(self, value: float) -> None:
        self._write(_DOUBLE.pack(value))

    def _make_room(self, sock: socket.socket) -> None:
        available = _pending_bytes(sock)
        if available >= self.writeable_bytes():
            self._expand(max(available, 1))

    def read_from_socket(self, sock: socket.socket) -> int:
        """Read what is pending on a stream socket; return the byte count (0 at end of stream)."""
        self._make_room(sock)
        data = sock.recv(self.writeable_bytes())
        self._data += data
        return len(data)

    def send_to_socket(self, sock: socket.socket) -> int:
        """Send readable bytes on a connected socket; return the count sent."""
        count = sock.send(bytes(self._data))
        self._consume(count)
        return count

    def receive_from(self, sock: socket.socket) -> Tuple[int, Any]:
        """Receive one datagram; return the byte count and sender address."""
        self._make_room(sock)
        data, address = sock.recvfrom(self.writeable_bytes())
        self._data += data
        return len(data), address

    def send_to(self, sock: socket.socket, address: Any) -> int:
        """Send readable bytes as a datagram to ``address``; return the count sent."""
        count = sock.sendto(bytes(self._data), _target(address))
        self._consume(count)
        return count

    def clear(self) -> None:
        """Drop all contents."""
        self._data.clear()

    def _write(self, chunk: bytes) -> None:
        if len(chunk) > self.writeable_bytes():
            self._expand(len(chunk))
        self._data += chunk

    def _expand(self, length: int) -> None:
        self._capacity = _grown_capacity(length, self._capacity)