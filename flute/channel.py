"""Binds one descriptor's read/write interest to callbacks on an event loop."""

from __future__ import annotations

from typing import Any, Callable, Optional

from flute.selector import EventMask

Callback = Callable[[], Any]


class Channel:
    """Tracks the events a descriptor is registered for and dispatches readiness.

    The loop must provide ``add_event(channel, events)`` and
    ``remove_event(channel, events)``; it is told before the channel's own
    event set changes, so ``events()`` still shows the old interest then.
    """

    def __init__(
        self,
        descriptor: Any,
        loop: Any,
        read_callback: Optional[Callback] = None,
        write_callback: Optional[Callback] = None,
    ) -> None:
        self._descriptor = descriptor
        self._loop = loop
        self._events = EventMask.NONE
        self.read_callback = read_callback
        self.write_callback = write_callback

    def handle_event(self, events: int) -> None:
        """Run the read callback, then the write callback, for the ready events."""
        ready = EventMask(events)
        if ready & EventMask.READ and self.read_callback is not None:
            self.read_callback()
        if ready & EventMask.WRITE and self.write_callback is not None:
            self.write_callback()

    def disable_read(self) -> None:
        if self._events & EventMask.READ:
            self._loop.remove_event(self, EventMask.READ)
            self._events &= ~EventMask.READ

    def enable_read(self) -> None:
        if not self._events & EventMask.READ:
            self._loop.add_event(self, EventMask.READ)
            self._events |= EventMask.READ

    def disable_write(self) -> None:
        if self._events & EventMask.WRITE:
            self._loop.remove_event(self, EventMask.WRITE)
            self._events &= ~EventMask.WRITE

    def enable_write(self) -> None:
        if not self._events & EventMask.WRITE:
            self._loop.add_event(self, EventMask.WRITE)
            self._events |= EventMask.WRITE

    def disable_all(self) -> None:
        if self._events & (EventMask.READ | EventMask.WRITE):
            self._loop.remove_event(self, self._events)
            self._events = EventMask.NONE

    def descriptor(self) -> Any:
        return self._descriptor

    def events(self) -> EventMask:
        return self._events

    def is_writeable(self) -> bool:
        return bool(self._events & EventMask.WRITE)

    def is_readable(self) -> bool:
        return bool(self._events & EventMask.READ)