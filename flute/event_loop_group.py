"""A master event loop plus worker loops each running on its own thread."""

from __future__ import annotations

from concurrent.futures import Future
from types import TracebackType
from typing import List, Optional, Type

from flute.event_loop import EventLoop
from flute.thread_pool import ThreadPool


def _run_slave(ready: Future) -> None:
    try:
        loop = EventLoop()
    except BaseException as exc:
        ready.set_exception(exc)
        return
    ready.set_result(loop)
    try:
        loop.dispatch()
    finally:
        loop.close()


class EventLoopGroup:
    """The master loop lives on the creating thread; slaves run in a thread pool."""

    def __init__(self, child_loop_size: int) -> None:
        self._child_loop_size = child_loop_size
        self._master = EventLoop()
        self._slaves: List[EventLoop] = []
        self._pool = ThreadPool()
        self._pool.start(child_loop_size)
        for _ in range(child_loop_size):
            ready: Future = Future()
            self._pool.execute(_run_slave, ready)
            self._slaves.append(ready.result())

    def __enter__(self) -> "EventLoopGroup":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.shutdown()
        self._master.close()

    def child_loop_size(self) -> int:
        return self._child_loop_size

    def master_event_loop(self) -> EventLoop:
        return self._master

    def choose_slave_event_loop(self, hash_value: int) -> EventLoop:
        """Pick a worker loop by hash; the master when there are no workers."""
        if not self._slaves:
            return self._master
        return self._slaves[hash_value % len(self._slaves)]

    def dispatch(self) -> None:
        """Run the master loop on the calling thread until it quits."""
        self._master.dispatch()

    def shutdown(self) -> None:
        """Stop every worker loop, join their threads and ask the master to quit."""
        for loop in self._slaves:
            loop.quit()
        self._pool.shutdown()
        self._master.quit()