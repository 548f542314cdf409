"""Listening socket that hands accepted connections to a callback."""

from __future__ import annotations

import socket
from typing import Any, Callable, Optional

from flute import logger, socket_ops
from flute.channel import Channel
from flute.inet_address import InetAddress
from flute.socket_handle import Socket
from flute.socket_ops import SocketType

AcceptCallback = Callable[[socket.socket], Any]


class Acceptor:
    """Accepts TCP connections on an event loop.

    Each accepted socket goes to ``accept_callback``; without one it is closed.
    """

    def __init__(self, loop: Any) -> None:
        self._loop = loop
        self._listening = False
        self._reuse_address = True
        self._reuse_port = True
        self._socket: Optional[Socket] = None
        self._channel: Optional[Channel] = None
        self.accept_callback: Optional[AcceptCallback] = None

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def reuse_port(self) -> bool:
        return self._reuse_port

    @reuse_port.setter
    def reuse_port(self, on: bool) -> None:
        if self._socket is not None:
            self._socket.set_reuse_port(on)
        self._reuse_port = on

    @property
    def reuse_address(self) -> bool:
        return self._reuse_address

    @reuse_address.setter
    def reuse_address(self, on: bool) -> None:
        if self._socket is not None:
            self._socket.set_reuse_address(on)
        self._reuse_address = on

    def bind(self, address: InetAddress) -> None:
        """Create the listening socket and bind it to ``address``."""
        if self._socket is not None:
            raise RuntimeError("acceptor is already bound")
        handle = Socket(socket_ops.create_nonblocking_socket(address.family(), SocketType.STREAM))
        try:
            handle.set_reuse_address(self._reuse_address)
            handle.set_reuse_port(self._reuse_port)
            handle.bind(address)
        except OSError:
            handle.close()
            raise
        self._socket = handle
        self._channel = Channel(handle.descriptor(), self._loop, read_callback=self._handle_read)

    def listen(self) -> None:
        """Start listening and watching for incoming connections."""
        if self._socket is None or self._channel is None:
            raise RuntimeError("acceptor must be bound before listening")
        self._listening = True
        self._socket.listen()
        self._channel.enable_read()

    def close(self) -> None:
        """Stop watching and close the listening socket."""
        if self._socket is None or self._channel is None:
            return
        self._channel.disable_all()
        self._socket.close()
        self._channel = None
        self._socket = None
        self._listening = False

    def _handle_read(self) -> None:
        if self._socket is None:
            return
        try:
            conn, _ = self._socket.accept()
        except OSError as exc:
            code = exc.errno or 0
            logger.error(f"accept error {code}:{socket_ops.format_error_string(code)}")
            return
        if self.accept_callback is not None:
            self.accept_callback(conn)
        else:
            socket_ops.close_socket(conn)