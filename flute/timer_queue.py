"""Timers ordered by deadline, fired from an event loop."""

from __future__ import annotations

import functools
import itertools
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


def current_milliseconds() -> int:
    """Return wall-clock time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


_id_lock = threading.Lock()
_ids = itertools.count(1)


def _next_timer_id() -> int:
    with _id_lock:
        return next(_ids)


@dataclass(eq=False)
class Timer:
    """A callback due ``delay`` ms after ``start_time``.

    ``loop_count`` is the number of runs left; -1 repeats forever.
    """

    callback: Optional[Callable[[], Any]]
    delay: int
    loop_count: int
    timer_id: int
    start_time: int = field(default_factory=current_milliseconds)
    index: int = field(default=-1, repr=False)

    @property
    def deadline(self) -> int:
        return self.start_time + self.delay

    def _sort_key(self) -> Tuple[bool, int, int]:
        # Exhausted timers sink below every live one.
        return (self.loop_count == 0, self.deadline, self.timer_id)


class TimerHeap:
    """Binary min-heap of timers that tracks each timer's position."""

    def __init__(self) -> None:
        self._timers: List[Timer] = []

    def __len__(self) -> int:
        return len(self._timers)

    def top(self) -> Timer:
        """Return the timer due first; raise IndexError if the heap is empty."""
        if not self._timers:
            raise IndexError("top of an empty timer heap")
        return self._timers[0]

    def pop(self) -> Optional[Timer]:
        """Remove and return the timer due first, or None if the heap is empty."""
        if not self._timers:
            return None
        timer = self._timers[0]
        self.remove(timer)
        return timer

    def remove(self, timer: Timer) -> None:
        """Remove ``timer``; do nothing if it is not in the heap."""
        index = timer.index
        if not 0 <= index < len(self._timers) or self._timers[index] is not timer:
            return
        last = self._timers.pop()
        if index < len(self._timers):
            self._place(index, last)
            if index > 0 and last._sort_key() < self._timers[(index - 1) // 2]._sort_key():
                self._shift_up(index)
            else:
                self._shift_down(index)
        timer.index = -1

    def push(self, timer: Timer) -> None:
        """Insert ``timer``."""
        self._timers.append(timer)
        timer.index = len(self._timers) - 1
        self._shift_up(timer.index)

    def _place(self, index: int, timer: Timer) -> None:
        self._timers[index] = timer
        timer.index = index

    def _shift_up(self, index: int) -> None:
        timer = self._timers[index]
        key = timer._sort_key()
        while index > 0:
            parent = (index - 1) // 2
            if not key < self._timers[parent]._sort_key():
                break
            self._place(index, self._timers[parent])
            index = parent
        self._place(index, timer)

    def _shift_down(self, index: int) -> None:
        timer = self._timers[index]
        key = timer._sort_key()
        size = len(self._timers)
        while True:
            child = 2 * index + 1
            if child >= size:
                break
            right = child + 1
            if right < size and self._timers[right]._sort_key() < self._timers[child]._sort_key():
                child = right
            if not self._timers[child]._sort_key() < key:
                break
            self._place(index, self._timers[child])
            index = child
        self._place(index, timer)


class TimerQueue:
    """Schedules and fires timers on behalf of an event loop.

    Changes are applied through ``loop.run_in_loop`` when a loop is given,
    and immediately otherwise.
    """

    def __init__(self, loop: Any = None) -> None:
        self._loop = loop
        self._heap = TimerHeap()
        self._timers: Dict[int, Timer] = {}

    def _run(self, task: Callable[[], None]) -> None:
        if self._loop is None:
            task()
        else:
            self._loop.run_in_loop(task)

    def schedule(self, callback: Callable[[], Any], delay: int, loop_count: int = 1) -> int:
        """Run ``callback`` after ``delay`` ms, ``loop_count`` times (-1: forever); return its id."""
        timer = Timer(callback, delay, loop_count, _next_timer_id())
        self._run(functools.partial(self._schedule_in_loop, timer))
        return timer.timer_id

    def cancel(self, timer_id: int) -> None:
        """Cancel a timer; unknown ids are ignored."""
        self._run(functools.partial(self._cancel_in_loop, timer_id))

    def search_nearest_time(self, now: int) -> int:
        """Return ms from ``now`` until the next deadline, or -1 if nothing is scheduled."""
        if not len(self._heap):
            return -1
        return self._heap.top().deadline - now

    def handle_timer_event(self, now: Optional[int] = None) -> None:
        """Fire every timer due at ``now`` and reschedule those with runs left."""
        if now is None:
            now = current_milliseconds()
        fired: List[Timer] = []
        try:
            while len(self._heap):
                timer = self._heap.top()
                if timer.deadline > now:
                    break
                fired.append(timer)
                self._heap.remove(timer)
                if timer.loop_count > 0:
                    timer.loop_count -= 1
                if timer.callback is not None:
                    timer.callback()
        finally:
            for timer in fired:
                if self._timers.get(timer.timer_id) is not timer:
                    continue
                if timer.loop_count > 0 or timer.loop_count == -1:
                    timer.start_time = now
                    self._heap.push(timer)
                else:
                    del self._timers[timer.timer_id]

    def _schedule_in_loop(self, timer: Timer) -> None:
        self._heap.push(timer)
        self._timers[timer.timer_id] = timer

    def _cancel_in_loop(self, timer_id: int) -> None:
        timer = self._timers.pop(timer_id, None)
        if timer is not None:
            self._heap.remove(timer)