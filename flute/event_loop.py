"""Single-threaded reactor: I/O readiness, timers and cross-thread tasks."""

from __future__ import annotations

import struct
import threading
from types import TracebackType
from typing import Any, Callable, List, Optional, Type

from flute import logger, socket_ops
from flute.channel import Channel
from flute.selector import create_selector
from flute.timer_queue import TimerQueue, current_milliseconds

Task = Callable[[], Any]

_WAKEUP = struct.pack("=Q", 1)


class _Interruptor:
    """A socket pair whose readable end wakes the loop out of ``select``."""

    def __init__(self, loop: "EventLoop") -> None:
        try:
            self._reader, self._writer = socket_ops.socketpair()
        except OSError:
            logger.fatal("create event interruptor failed.")
            raise
        self._closed = False
        self._channel = Channel(self._reader, loop, read_callback=self._handle_read)
        self._channel.enable_read()

    def interrupt(self) -> None:
        if self._closed:
            return
        try:
            self._writer.send(_WAKEUP)
        except (BlockingIOError, InterruptedError):
            # A full pipe already holds a pending wakeup.
            pass
        except OSError:
            pass

    def _handle_read(self) -> None:
        while True:
            try:
                data = self._reader.recv(4096)
            except (BlockingIOError, InterruptedError):
                return
            if not data:
                return

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel.disable_all()
        self._writer.close()
        self._reader.close()


class EventLoop:
    """Waits for channel readiness, fires timers and runs queued tasks.

    The loop belongs to the thread that created it; ``dispatch`` is meant to
    run there, while ``queue_in_loop``, ``interrupt`` and ``quit`` may be
    called from any thread.
    """

    def __init__(self) -> None:
        self._selector = create_selector()
        self._thread_id = threading.get_ident()
        self._quit = True
        self._running_tasks = False
        self._tasks: List[Task] = []
        self._lock = threading.Lock()
        self._closed = False
        self._interruptor = _Interruptor(self)
        self._timer_queue = TimerQueue(self)

    def __enter__(self) -> "EventLoop":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def is_in_loop_thread(self) -> bool:
        return threading.get_ident() == self._thread_id

    def add_event(self, channel: Channel, events: int) -> None:
        """Register additional interest for a channel."""
        self._selector.add_event(channel.descriptor(), channel.events(), events, channel)

    def remove_event(self, channel: Channel, events: int) -> None:
        """Drop interest for a channel."""
        self._selector.remove_event(channel.descriptor(), channel.events(), events, channel)

    def dispatch(self) -> None:
        """Run until ``quit`` is called."""
        self._quit = False
        while not self._quit:
            now = current_milliseconds()
            self._timer_queue.handle_timer_event(now)
            timeout = self._timer_queue.search_nearest_time(now)
            for event in self._selector.select(timeout):
                event.data.handle_event(event.events)
            self._execute_tasks()

    def quit(self) -> None:
        """Ask ``dispatch`` to return after its current iteration."""
        self._quit = True
        self._interruptor.interrupt()

    def interrupt(self) -> None:
        """Wake the loop if it is waiting for events."""
        self._interruptor.interrupt()

    def run_in_loop(self, task: Task) -> None:
        """Run ``task`` now if called on the loop thread, else queue it."""
        if self.is_in_loop_thread():
            task()
        else:
            self.queue_in_loop(task)

    def queue_in_loop(self, task: Task) -> None:
        """Queue ``task`` to run at the end of the current or next iteration."""
        with self._lock:
            self._tasks.append(task)
        if not self.is_in_loop_thread() or self._running_tasks:
            self._interruptor.interrupt()

    def schedule(self, callback: Task, delay: int, loop_count: int = 1) -> int:
        """Run ``callback`` after ``delay`` ms, ``loop_count`` times (-1: forever); return its id."""
        return self._timer_queue.schedule(callback, delay, loop_count)

    def cancel(self, timer_id: int) -> None:
        """Cancel a scheduled timer."""
        self._timer_queue.cancel(timer_id)

    def assert_in_loop_thread(self) -> None:
        """Raise RuntimeError when called from a thread other than the loop's."""
        if not self.is_in_loop_thread():
            message = (
                f"EventLoop {id(self):#x} was create in thread {self._thread_id}, "
                f"current thread id {threading.get_ident()}."
            )
            logger.fatal(message)
            raise RuntimeError(message)

    def close(self) -> None:
        """Release the wakeup sockets and the selector; closing twice is harmless."""
        if self._closed:
            return
        self._closed = True
        self._interruptor.close()
        self._selector.close()

    def _execute_tasks(self) -> None:
        self._running_tasks = True
        try:
            with self._lock:
                tasks, self._tasks = self._tasks, []
            for task in tasks:
                task()
        finally:
            self._running_tasks = False