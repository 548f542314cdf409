"""Growable linear byte buffer with typed accessors and socket I/O."""

from __future__ import annotations

import socket
import struct
from typing import Any, Optional, Tuple, Union

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


def _grown_capacity(length: int, capacity: int) -> int:
    result = capacity or 1
    while result < length + capacity:
        result <<= 1
    return result


def _bytes_available(sock: socket.socket) -> int:
    if fcntl is None or termios is None:
        return MAX_READ_DEFAULT
    raw = fcntl.ioctl(sock.fileno(), termios.FIONREAD, bytes(_FIONREAD_ARG.size))
    return _FIONREAD_ARG.unpack(raw)[0]


def _target(address: Any) -> Any:
    to_sockaddr = getattr(address, "sockaddr", None)
    return to_sockaddr() if callable(to_sockaddr) else address


class ByteBuffer:
    """A byte buffer read from the front and written at the back.

    Values are stored in native byte order. Reading a fixed-size value when
    fewer bytes are readable yields the available bytes padded with zeros.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._read = 0
        self._capacity = DEFAULT_BUFFER_SIZE

    def __len__(self) -> int:
        return self.readable_bytes()

    def swap(self, other: "ByteBuffer") -> None:
        """Exchange contents with another buffer."""
        self._data, other._data = other._data, self._data
        self._read, other._read = other._read, self._read
        self._capacity, other._capacity = other._capacity, self._capacity

    def readable_bytes(self) -> int:
        return len(self._data) - self._read

    def writeable_bytes(self) -> int:
        return self._capacity - len(self._data)

    def capacity(self) -> int:
        return self._capacity

    def peek(self, length: int) -> bytes:
        """Return up to ``length`` readable bytes without consuming them."""
        length = max(0, min(length, self.readable_bytes()))
        return bytes(self._data[self._read:self._read + length])

    def _peek_value(self, layout: struct.Struct) -> Any:
        raw = self.peek(layout.size)
        return layout.unpack(raw.ljust(layout.size, b"\0"))[0]

    def _consume(self, count: int) -> None:
        self._read += max(0, min(count, self.readable_bytes()))

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

    def append(self, data: Union[bytes, bytearray, memoryview, "ByteBuffer"], length: Optional[int] = None) -> None:
        """Append bytes, or the readable bytes of another ByteBuffer.

        Appending from a ByteBuffer takes ``length`` bytes (all by default)
        and then empties the source buffer.
        """
        if isinstance(data, ByteBuffer):
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

    def read_from_socket(self, sock: socket.socket) -> int:
        """Read what is pending on a stream socket; return the byte count."""
        available = _bytes_available(sock)
        if available >= self.writeable_bytes():
            self._expand(available)
        data = sock.recv(available)
        self._data += data
        return len(data)

    def send_to_socket(self, sock: socket.socket) -> int:
        """Send readable bytes on a connected socket; return the count sent."""
        count = sock.send(self._data[self._read:])
        self._consume(count)
        return count

    def receive_from(self, sock: socket.socket) -> Tuple[int, Any]:
        """Receive one datagram; return the byte count and sender address."""
        available = _bytes_available(sock)
        if available >= self.writeable_bytes():
            self._expand(available)
        data, address = sock.recvfrom(available)
        self._data += data
        return len(data), address

    def send_to(self, sock: socket.socket, address: Any) -> int:
        """Send readable bytes as a datagram to ``address``; return the count sent."""
        count = sock.sendto(self._data[self._read:], _target(address))
        self._consume(count)
        return count

    def clear(self) -> None:
        """Drop all contents."""
        self._data.clear()
        self._read = 0

    def _write(self, chunk: bytes) -> None:
        if len(chunk) > self.writeable_bytes():
            self._expand(len(chunk))
        self._data += chunk

    def _expand(self, length: int) -> None:
        self._capacity = _grown_capacity(length, self._capacity)
        del self._data[:self._read]
        self._read = 0