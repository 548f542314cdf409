"""One established TCP connection driven by an event loop."""

from __future__ import annotations

import enum
import errno
import functools
import socket
from typing import Any, Callable, Optional, Union

from flute import logger, socket_ops
from flute.channel import Channel
from flute.inet_address import InetAddress
from flute.ring_buffer import RingBuffer
from flute.socket_handle import Socket

ConnectionCallback = Callable[["TcpConnection"], Any]
MessageCallback = Callable[["TcpConnection", RingBuffer], Any]
HighWaterMarkCallback = Callable[["TcpConnection", int], Any]

_BUFFER_SIZE = 1024
_FATAL_SEND_ERRORS = {errno.EPIPE, errno.ECONNRESET}


class ConnectionState(enum.Enum):
    """Lifecycle of a connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class TcpConnection:
    """Buffers input and output for one socket and reports events to callbacks.

    Callbacks are plain attributes:
    ``message_callback(conn, buffer)``, ``close_callback(conn)``,
    ``write_complete_callback(conn)``, ``high_water_mark_callback(conn, size)``,
    ``connection_established_callback(conn)`` and
    ``connection_destroy_callback(conn)``.
    """

    def __init__(
        self,
        sock: socket.socket,
        loop: Any,
        local_address: InetAddress,
        remote_address: InetAddress,
    ) -> None:
        self._loop = loop
        self._state = ConnectionState.DISCONNECTED
        self._socket = Socket(sock)
        self._channel = Channel(
            sock, loop, read_callback=self._handle_read, write_callback=self._handle_write
        )
        self._local_address = local_address
        self._remote_address = remote_address
        self._input_buffer = RingBuffer(_BUFFER_SIZE)
        self._output_buffer = RingBuffer(_BUFFER_SIZE)
        self._close_notified = False
        self.high_water_mark = 0
        self.message_callback: Optional[MessageCallback] = None
        self.close_callback: Optional[ConnectionCallback] = None
        self.write_complete_callback: Optional[ConnectionCallback] = None
        self.high_water_mark_callback: Optional[HighWaterMarkCallback] = None
        self.connection_established_callback: Optional[ConnectionCallback] = None
        self.connection_destroy_callback: Optional[ConnectionCallback] = None
        for enable in (self._socket.set_tcp_no_delay, self._socket.set_keep_alive):
            try:
                enable(True)
            except OSError:
                pass

    def descriptor(self) -> socket.socket:
        return self._socket.descriptor()

    def event_loop(self) -> Any:
        return self._loop

    def local_address(self) -> InetAddress:
        return self._local_address

    def remote_address(self) -> InetAddress:
        return self._remote_address

    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def shutdown(self) -> None:
        """Close the sending side once pending output has been written."""
        if self._state is ConnectionState.CONNECTED:
            self._loop.run_in_loop(self._shutdown_in_loop)

    def send(self, data: Union[bytes, bytearray, memoryview, str]) -> None:
        """Send ``data``; anything the socket cannot take now is buffered."""
        if self._state is not ConnectionState.CONNECTED:
            return
        payload = data.encode() if isinstance(data, str) else bytes(data)
        if self._loop.is_in_loop_thread():
            self._send_in_loop(payload)
        else:
            self._loop.run_in_loop(functools.partial(self._send_in_loop, payload))

    def handle_connection_established(self) -> None:
        """Mark the connection live, start reading and notify the callback."""
        self._loop.run_in_loop(self._established_in_loop)

    def handle_connection_destroy(self) -> None:
        """Release the socket of a closing connection and notify the callback."""
        self._loop.run_in_loop(self._destroy_in_loop)

    def start_read(self) -> None:
        self._loop.run_in_loop(self._channel.enable_read)

    def stop_read(self) -> None:
        self._loop.run_in_loop(self._channel.disable_read)

    def start_write(self) -> None:
        self._loop.run_in_loop(self._channel.enable_write)

    def stop_write(self) -> None:
        self._loop.run_in_loop(self._channel.disable_write)

    def force_close(self) -> None:
        """Close the connection without waiting for pending output."""
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            self._state = ConnectionState.DISCONNECTING
            self._loop.queue_in_loop(self._force_close_in_loop)

    def _handle_read(self) -> None:
        self._loop.assert_in_loop_thread()
        try:
            count = self._input_buffer.read_from_socket(self.descriptor())
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            self._handle_error(exc)
            return
        if count > 0:
            if self.message_callback is not None:
                self.message_callback(self, self._input_buffer)
        else:
            self._handle_close()

    def _handle_write(self) -> None:
        self._loop.assert_in_loop_thread()
        if not self._channel.is_writeable():
            logger.error(f"TcpConnection descriptor {self.descriptor().fileno()} is down.")
            return
        try:
            self._output_buffer.send_to_socket(self.descriptor())
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            code = exc.errno or 0
            logger.error(
                f"TcpConnection.handle_write with error {code}:{socket_ops.format_error_string(code)}."
            )
            return
        if self._output_buffer.readable_bytes() == 0:
            self._channel.disable_write()
            if self.write_complete_callback is not None:
                self._loop.queue_in_loop(functools.partial(self.write_complete_callback, self))
            if self._state is ConnectionState.DISCONNECTING:
                self._shutdown_in_loop()

    def _handle_close(self) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        self._state = ConnectionState.DISCONNECTING
        self._channel.disable_all()
        if self.close_callback is not None:
            self.close_callback(self)

    def _handle_error(self, exc: OSError) -> None:
        code = exc.errno or self._socket.socket_error()
        logger.error(
            f"TcpConnection.handle_error {self.descriptor().fileno()} - SO_ERROR = {code} "
            f"{socket_ops.format_error_string(code)}"
        )
        if code == errno.ECONNRESET:
            self._handle_close()

    def _shutdown_in_loop(self) -> None:
        self._loop.assert_in_loop_thread()
        self._state = ConnectionState.DISCONNECTING
        if self._channel.is_writeable():
            return
        try:
            self._socket.shutdown_write()
        except OSError:
            pass

    def _send_in_loop(self, data: bytes) -> None:
        self._loop.assert_in_loop_thread()
        if self._state is ConnectionState.DISCONNECTED:
            logger.warn("write bytes to a disconnected connection.")
            return
        failed = False
        count = 0
        remain = len(data)
        if not self._channel.is_writeable() and self._output_buffer.readable_bytes() == 0:
            try:
                count = self.descriptor().send(data)
            except (BlockingIOError, InterruptedError):
                count = 0
            except OSError as exc:
                code = exc.errno or 0
                logger.error(f"TcpConnection.send_in_loop {code}:{socket_ops.format_error_string(code)}")
                failed = code in _FATAL_SEND_ERRORS
            else:
                remain = len(data) - count
                if remain <= 0 and self.write_complete_callback is not None:
                    self._loop.queue_in_loop(functools.partial(self.write_complete_callback, self))
        if failed or remain <= 0:
            return
        pending = self._output_buffer.readable_bytes()
        if (
            pending + remain >= self.high_water_mark
            and pending < self.high_water_mark
            and self.high_water_mark_callback is not None
        ):
            self._loop.queue_in_loop(
                functools.partial(self.high_water_mark_callback, self, pending + remain)
            )
        self._output_buffer.append(data[count:])
        if not self._channel.is_writeable():
            self._channel.enable_write()

    def _established_in_loop(self) -> None:
        self._loop.assert_in_loop_thread()
        if self._state not in (ConnectionState.CONNECTING, ConnectionState.DISCONNECTED):
            raise RuntimeError(f"cannot establish a connection in state {self._state.value}")
        self._state = ConnectionState.CONNECTED
        self._channel.enable_read()
        if self.connection_established_callback is not None:
            self.connection_established_callback(self)

    def _destroy_in_loop(self) -> None:
        self._loop.assert_in_loop_thread()
        if self._state is not ConnectionState.DISCONNECTING:
            return
        self._state = ConnectionState.DISCONNECTED
        self._channel.disable_all()
        self._socket.close()
        if self.connection_destroy_callback is not None:
            self.connection_destroy_callback(self)

    def _force_close_in_loop(self) -> None:
        self._loop.assert_in_loop_thread()
        if self._state in (ConnectionState.CONNECTED, ConnectionState.DISCONNECTING):
            self._handle_close()