"""Datagram server that delivers each packet to a callback on the master loop."""

from __future__ import annotations

import socket
from typing import Any, Callable, Optional, Union

from flute import logger, socket_ops
from flute.channel import Channel
from flute.event_loop_group import EventLoopGroup
from flute.inet_address import InetAddress
from flute.ring_buffer import RingBuffer
from flute.socket_handle import Socket
from flute.socket_ops import SocketType

UdpMessageCallback = Callable[["UdpServer", InetAddress, RingBuffer], Any]

_PACKET_BUFFER_SIZE = 1024


class UdpServer:
    """Receives datagrams on the group's master loop and sends replies.

    ``message_callback(server, sender, buffer)`` is called for every packet.
    """

    def __init__(self, event_loop_group: EventLoopGroup) -> None:
        self._group = event_loop_group
        self._channel: Optional[Channel] = None
        self._socket: Optional[Socket] = None
        self.message_callback: Optional[UdpMessageCallback] = None

    def bind(self, address: InetAddress) -> None:
        """Create the datagram socket, bind it and start receiving."""
        if self._socket is not None:
            raise RuntimeError("udp server is already bound")
        handle = Socket(socket_ops.create_nonblocking_socket(address.family(), SocketType.DGRAM))
        try:
            handle.set_reuse_address(True)
            handle.set_reuse_port(True)
            handle.bind(address)
        except OSError:
            handle.close()
            raise
        self._socket = handle
        self._channel = Channel(
            handle.descriptor(), self._group.master_event_loop(), read_callback=self._handle_read
        )
        self._channel.enable_read()

    def _descriptor(self) -> socket.socket:
        if self._socket is None:
            raise RuntimeError("udp server is not bound")
        return self._socket.descriptor()

    def send(self, address: InetAddress, data: Union[bytes, bytearray, memoryview, str, RingBuffer]) -> int:
        """Send ``data`` as one datagram to ``address``; return the byte count sent.

        A RingBuffer is drained by the amount sent.
        """
        sock = self._descriptor()
        if isinstance(data, RingBuffer):
            return data.send_to(sock, address)
        if isinstance(data, str):
            data = data.encode()
        return socket_ops.sendmsg(sock, [data], address)

    def close(self) -> None:
        """Stop receiving and close the socket."""
        if self._channel is not None:
            self._channel.disable_all()
            self._channel = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def _handle_read(self) -> None:
        sock = self._descriptor()
        buffer = RingBuffer(_PACKET_BUFFER_SIZE)
        try:
            _, sender = buffer.receive_from(sock)
        except OSError as exc:
            code = exc.errno or socket_ops.get_socket_error(sock)
            logger.error(f"read dgram packet error {code}:{socket_ops.format_error_string(code)}")
            return
        if self.message_callback is not None:
            self.message_callback(self, InetAddress.from_sockaddr(sock.family, sender), buffer)