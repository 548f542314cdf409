"""Owner of one socket with helpers for binding, listening and options."""

from __future__ import annotations

import socket
from types import TracebackType
from typing import Optional, Tuple, Type

from flute import logger, socket_ops
from flute.inet_address import InetAddress


class Socket:
    """Wraps a socket object; failures are logged and raised as OSError."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def __enter__(self) -> "Socket":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def descriptor(self) -> socket.socket:
        """Return the wrapped socket object."""
        return self._sock

    def socket_error(self) -> int:
        """Return and clear the pending error on the socket (0 if none)."""
        return socket_ops.get_socket_error(self._sock)

    def _log_failure(self, action: str, exc: OSError) -> None:
        code = exc.errno or 0
        logger.error(
            f"Socket.{action}({self._sock.fileno()}) error {code}:{socket_ops.format_error_string(code)}"
        )

    def bind(self, address: InetAddress) -> None:
        """Bind to ``address``."""
        try:
            socket_ops.bind(self._sock, address)
        except OSError as exc:
            self._log_failure("bind", exc)
            raise

    def listen(self) -> None:
        """Start listening for connections."""
        try:
            socket_ops.listen(self._sock)
        except OSError as exc:
            self._log_failure("listen", exc)
            raise

    def accept(self) -> Tuple[socket.socket, InetAddress]:
        """Accept one pending connection; raise BlockingIOError if there is none."""
        return socket_ops.accept(self._sock)

    def set_tcp_no_delay(self, on: bool) -> None:
        self._sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1 if on else 0)

    def set_reuse_address(self, on: bool) -> None:
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1 if on else 0)

    def set_reuse_port(self, on: bool) -> None:
        """Set SO_REUSEPORT where the platform has it; log when it cannot be enabled."""
        option = getattr(socket, "SO_REUSEPORT", None)
        if option is None:
            if on:
                logger.error("socket reuse port is not supported.")
            return
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, option, 1 if on else 0)
        except OSError:
            if on:
                logger.error("set socket reuse port failed.")

    def set_keep_alive(self, on: bool) -> None:
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1 if on else 0)

    def shutdown_write(self) -> None:
        """Close the sending half of the connection."""
        self._shutdown(socket.SHUT_WR, "write")

    def shutdown_read(self) -> None:
        """Close the receiving half of the connection."""
        self._shutdown(socket.SHUT_RD, "read")

    def _shutdown(self, how: int, half: str) -> None:
        try:
            self._sock.shutdown(how)
        except OSError as exc:
            code = exc.errno or 0
            logger.error(
                f"shutdown socket {self._sock.fileno()} {half} with error "
                f"{code}:{socket_ops.format_error_string(code)}"
            )
            raise

    def close(self) -> None:
        """Close the socket."""
        socket_ops.close_socket(self._sock)