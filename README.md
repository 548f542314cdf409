# flute

A small reactor-style networking library: one event loop per thread, a group
of loops sharing work, timers, growable byte buffers, TCP connection handling
and a UDP server built on top of them. It uses only the standard library and
targets POSIX systems.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Pieces

- `flute.event_loop.EventLoop` waits for socket readiness, runs queued tasks
  (`run_in_loop`, `queue_in_loop`) and fires timers:
  `schedule(callback, delay, loop_count)` takes the delay in milliseconds and a
  `loop_count` of `-1` to repeat forever, and returns an id for `cancel`.
  `quit()` makes `dispatch()` return; `close()` releases its resources.
- `flute.event_loop_group.EventLoopGroup` holds one master loop, run by
  `dispatch()` on the calling thread, and a number of child loops, each running
  on its own worker thread. `choose_slave_event_loop(hash_value)` picks a child
  (or the master when there are none); `shutdown()` stops them.
- `flute.acceptor.Acceptor` owns a listening socket on a loop and hands each
  accepted socket to its `accept_callback` (closing it when there is none).
- `flute.tcp_connection.TcpConnection` buffers input and output for one
  connected socket and reports to callback attributes: `message_callback`,
  `close_callback`, `write_complete_callback`, `high_water_mark_callback`,
  `connection_established_callback` and `connection_destroy_callback`.
- `flute.udp_server.UdpServer` receives datagrams on the master loop and
  replies with `send(address, data)`.
- `flute.ring_buffer.RingBuffer` and `flute.byte_buffer.ByteBuffer` hold bytes
  and native-order typed values (`append_int32`, `read_int32`, `peek_double`,
  ...) and read from or write to sockets.
- `flute.inet_address.InetAddress` wraps IPv4 and IPv6 endpoints:
  `InetAddress(port)`, `InetAddress.from_ip(ip, port)`,
  `InetAddress.resolve(host, port)`.
- `flute.socket_ops` has socket helpers that raise `OSError`;
  `flute.socket_handle.Socket` wraps one socket with option setters.
- `flute.selector`, `flute.channel` and `flute.timer_queue` are the readiness,
  per-descriptor callback and timer machinery the loop is built from.
- `flute.thread_pool.ThreadPool` runs callables on worker threads and returns
  futures.
- `flute.timestamp.Timestamp` holds microseconds since the epoch.
- `flute.logger` writes timestamped records through a settable callback.

## What it does not do

There is no TCP server class that accepts connections and keeps track of them
for you, and no TCP client or reconnecting connector. A TCP server is put
together from an `Acceptor` and `TcpConnection` objects, as below.

## A TCP echo server

```python
from flute import socket_ops
from flute.acceptor import Acceptor
from flute.event_loop_group import EventLoopGroup
from flute.inet_address import InetAddress
from flute.tcp_connection import TcpConnection

socket_ops.initialize()
group = EventLoopGroup(0)
connections = {}


def on_message(connection, buffer):
    connection.send(buffer.read(4096))


def on_close(connection):
    connection.handle_connection_destroy()


def on_destroy(connection):
    connections.pop(id(connection), None)


def on_accept(sock):
    loop = group.choose_slave_event_loop(sock.fileno())
    connection = TcpConnection(
        sock, loop, socket_ops.get_local_addr(sock), socket_ops.get_remote_addr(sock)
    )
    connection.message_callback = on_message
    connection.close_callback = on_close
    connection.connection_destroy_callback = on_destroy
    connections[id(connection)] = connection
    connection.handle_connection_established()


acceptor = Acceptor(group.master_event_loop())
acceptor.accept_callback = on_accept
acceptor.bind(InetAddress(9999))
acceptor.listen()
group.dispatch()
```

## A UDP echo server

```python
from flute.event_loop_group import EventLoopGroup
from flute.inet_address import InetAddress
from flute.udp_server import UdpServer


def on_datagram(server, address, buffer):
    server.send(address, buffer.read(4096))


group = EventLoopGroup(0)
server = UdpServer(group)
server.message_callback = on_datagram
server.bind(InetAddress(9999))
group.dispatch()
```

## Timers

```python
from flute.event_loop import EventLoop

with EventLoop() as loop:
    loop.schedule(lambda: print("tick"), 1000, 3)
    loop.schedule(loop.quit, 3500, 1)
    loop.dispatch()
```

## Thread pool

```python
from flute.thread_pool import ThreadPool

pool = ThreadPool()
pool.start(4)
future = pool.execute(lambda a, b: a + b, 1, 2)
print(future.result())  # 3
pool.shutdown()
```

## Logging

```python
from flute import logger

logger.set_log_level(logger.LogLevel.INFO)
logger.set_log_callback(lambda text: print(text, end=""))
logger.info("server started")
```

`set_log_callback(None)` silences output. Trace and debug records are dropped
below the current level; the other levels are always written.