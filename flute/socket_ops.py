"""Socket operations that raise OSError and speak in InetAddress terms."""

from __future__ import annotations

import enum
import errno
import os
import signal
import socket
import struct
import threading
from typing import Any, Iterable, List, Optional, Tuple, Union

from flute import logger
from flute.inet_address import InetAddress

try:
    import fcntl
    import termios
except ImportError:  # pragma: no cover - non-POSIX platforms
    fcntl = None
    termios = None

MAX_READ_DEFAULT = 4096

_FIONREAD_ARG = struct.Struct("i")

Address = Union[InetAddress, Tuple[Any, ...]]
Buffers = Iterable[Union[bytes, bytearray, memoryview]]

_CONNECTED = {0, errno.EISCONN}
_IN_PROGRESS = {
    code
    for code in (
        errno.EINPROGRESS,
        errno.EINTR,
        errno.EWOULDBLOCK,
        errno.EAGAIN,
        getattr(errno, "WSAEWOULDBLOCK", None),
    )
    if code is not None
}


class SocketType(enum.Enum):
    """Kind of socket to create."""

    STREAM = "stream"
    DGRAM = "dgram"


class _SignalState:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.saved: bool = False
        self.previous: Any = None


_signal_state = _SignalState()


def _sockaddr(address: Address) -> Tuple[Any, ...]:
    if isinstance(address, InetAddress):
        return address.sockaddr()
    return tuple(address)


def initialize() -> None:
    """Prepare the process for socket I/O: writes to closed peers must not kill it."""
    sigpipe = getattr(signal, "SIGPIPE", None)
    if sigpipe is None:
        return
    with _signal_state.lock:
        try:
            previous = signal.signal(sigpipe, signal.SIG_IGN)
        except ValueError:
            logger.warn("SIGPIPE can only be ignored from the main thread")
            return
        if not _signal_state.saved:
            _signal_state.previous = previous
            _signal_state.saved = True


def deinitialize() -> None:
    """Undo :func:`initialize`, restoring the previous SIGPIPE disposition."""
    sigpipe = getattr(signal, "SIGPIPE", None)
    if sigpipe is None:
        return
    with _signal_state.lock:
        if not _signal_state.saved:
            return
        try:
            signal.signal(sigpipe, _signal_state.previous)
        except ValueError:
            logger.warn("SIGPIPE can only be restored from the main thread")
            return
        _signal_state.saved = False
        _signal_state.previous = None


def set_close_on_exec(sock: socket.socket) -> None:
    """Make the descriptor close when the process executes another program."""
    sock.set_inheritable(False)


def set_nonblocking(sock: socket.socket) -> None:
    """Put the socket into non-blocking mode."""
    sock.setblocking(False)


def create_nonblocking_socket(family: int, socket_type: SocketType) -> socket.socket:
    """Create a non-blocking, close-on-exec TCP or UDP socket of ``family``."""
    if socket_type is SocketType.DGRAM:
        kind, protocol = socket.SOCK_DGRAM, socket.IPPROTO_UDP
    else:
        kind, protocol = socket.SOCK_STREAM, socket.IPPROTO_TCP
    try:
        sock = socket.socket(family, kind, protocol)
    except OSError as exc:
        logger.error(
            f"flute.create_nonblocking_socket({family}) failed {exc.errno}:{format_error_string(exc.errno or 0)}"
        )
        raise
    set_nonblocking(sock)
    set_close_on_exec(sock)
    return sock


def bind(sock: socket.socket, address: Address) -> None:
    """Bind the socket to ``address``."""
    sock.bind(_sockaddr(address))


def connect(sock: socket.socket, address: Address) -> bool:
    """Start connecting to ``address``.

    Return True if the connection is already established and False if it is
    still in progress (the normal case for a non-blocking socket). Any other
    failure raises OSError.
    """
    code = sock.connect_ex(_sockaddr(address))
    if code in _CONNECTED:
        return True
    if code in _IN_PROGRESS:
        return False
    raise OSError(code, format_error_string(code))


def listen(sock: socket.socket) -> None:
    """Start listening with the system's maximum backlog."""
    sock.listen(socket.SOMAXCONN)


def accept(sock: socket.socket) -> Tuple[socket.socket, InetAddress]:
    """Accept one pending connection as a non-blocking, close-on-exec socket.

    Raise BlockingIOError when no connection is pending.
    """
    conn, peer = sock.accept()
    set_nonblocking(conn)
    set_close_on_exec(conn)
    return conn, InetAddress.from_sockaddr(conn.family, peer)


def readv(sock: socket.socket, buffers: Buffers) -> int:
    """Scatter received bytes into ``buffers``; return the count (0 at end of stream)."""
    targets: List[Any] = list(buffers)
    recvmsg_into = getattr(sock, "recvmsg_into", None)
    if recvmsg_into is not None:
        return recvmsg_into(targets)[0]
    total = 0
    for target in targets:
        view = memoryview(target)
        try:
            count = sock.recv_into(view)
        except BlockingIOError:
            if total:
                break
            raise
        total += count
        if count < len(view):
            break
    return total


def writev(sock: socket.socket, buffers: Buffers) -> int:
    """Gather ``buffers`` into one send on a connected socket; return the count sent."""
    sources: List[Any] = list(buffers)
    sendmsg_method = getattr(sock, "sendmsg", None)
    if sendmsg_method is not None:
        return sendmsg_method(sources)
    return sock.send(b"".join(bytes(source) for source in sources))


def bytes_available(sock: socket.socket) -> int:
    """Return how many bytes can be read from the socket without blocking."""
    if fcntl is None or termios is None:
        return MAX_READ_DEFAULT
    raw = fcntl.ioctl(sock.fileno(), termios.FIONREAD, bytes(_FIONREAD_ARG.size))
    return _FIONREAD_ARG.unpack(raw)[0]


def close_socket(sock: socket.socket) -> None:
    """Close the socket."""
    sock.close()


def get_local_addr(sock: socket.socket) -> InetAddress:
    """Return the address the socket is bound to."""
    try:
        name = sock.getsockname()
    except OSError:
        logger.error(f"getsockname({sock.fileno()}) failed.")
        raise
    return InetAddress.from_sockaddr(sock.family, name)


def get_remote_addr(sock: socket.socket) -> InetAddress:
    """Return the address of the connected peer."""
    try:
        name = sock.getpeername()
    except OSError:
        logger.error(f"getpeername({sock.fileno()}) failed.")
        raise
    return InetAddress.from_sockaddr(sock.family, name)


def is_self_connect(sock: socket.socket) -> bool:
    """Tell whether a TCP socket ended up connected to itself."""
    if sock.family not in (socket.AF_INET, socket.AF_INET6):
        return False
    local = get_local_addr(sock)
    remote = get_remote_addr(sock)
    return local.port == remote.port and local.host == remote.host


def get_socket_error(sock: socket.socket) -> int:
    """Return and clear the pending error on the socket (0 if none)."""
    try:
        return sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError as exc:
        return exc.errno or 0


def format_error_string(error: int) -> str:
    """Return the system's description of an error number."""
    return os.strerror(error)


def sendmsg(sock: socket.socket, buffers: Buffers, address: Address) -> int:
    """Send ``buffers`` as one datagram to ``address``; return the count sent."""
    sources: List[Any] = list(buffers)
    target = _sockaddr(address)
    sendmsg_method = getattr(sock, "sendmsg", None)
    if sendmsg_method is not None:
        return sendmsg_method(sources, (), 0, target)
    return sock.sendto(b"".join(bytes(source) for source in sources), target)


def recvmsg(sock: socket.socket, buffers: Buffers) -> Tuple[int, InetAddress]:
    """Receive one datagram into ``buffers``; return the count and the sender."""
    targets: List[Any] = list(buffers)
    recvmsg_into = getattr(sock, "recvmsg_into", None)
    if recvmsg_into is not None:
        count, _, _, sender = recvmsg_into(targets)
    else:
        views = [memoryview(target).cast("B") for target in targets]
        data, sender = sock.recvfrom(sum(len(view) for view in views))
        count = len(data)
        offset = 0
        for view in views:
            chunk = data[offset:offset + len(view)]
            view[:len(chunk)] = chunk
            offset += len(chunk)
    return count, InetAddress.from_sockaddr(sock.family, sender)


def socketpair() -> Tuple[socket.socket, socket.socket]:
    """Return a connected pair of non-blocking, close-on-exec stream sockets."""
    first, second = socket.socketpair()
    for sock in (first, second):
        set_nonblocking(sock)
        set_close_on_exec(sock)
    return first, second