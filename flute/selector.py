"""Readiness notification over the platform's best I/O multiplexer."""

from __future__ import annotations

import enum
import selectors
from dataclasses import dataclass
from types import TracebackType
from typing import Any, List, Optional, Type

from flute import logger


class EventMask(enum.IntFlag):
    """Interest and readiness bits."""

    NONE = 0x0
    READ = 0x1
    WRITE = 0x2
    ET = 0x4


@dataclass
class SelectorEvent:
    """One ready descriptor: what it is ready for and the data registered with it."""

    events: EventMask = EventMask.NONE
    data: Any = None


def _interest(mask: int) -> int:
    interest = 0
    if mask & EventMask.READ:
        interest |= selectors.EVENT_READ
    if mask & EventMask.WRITE:
        interest |= selectors.EVENT_WRITE
    return interest


def _ready(mask: int) -> EventMask:
    result = EventMask.NONE
    if mask & selectors.EVENT_READ:
        result |= EventMask.READ
    if mask & selectors.EVENT_WRITE:
        result |= EventMask.WRITE
    return result


class Selector:
    """Tracks read/write interest per descriptor and waits for readiness.

    Descriptors are sockets, file objects or integer file descriptors.
    """

    def __init__(self) -> None:
        self._selector: Optional[selectors.BaseSelector] = selectors.DefaultSelector()

    def __enter__(self) -> "Selector":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def _backend(self) -> selectors.BaseSelector:
        if self._selector is None:
            raise ValueError("selector is closed")
        return self._selector

    def _apply(self, sock: Any, interest: int, data: Any) -> None:
        backend = self._backend()
        try:
            key = backend.get_key(sock)
        except KeyError:
            key = None
        try:
            if interest == 0:
                if key is not None:
                    backend.unregister(sock)
            elif key is None:
                backend.register(sock, interest, data)
            else:
                backend.modify(sock, interest, data)
        except (OSError, ValueError) as exc:
            logger.error(f"selector update error: {exc}")
            raise

    def _registered(self, sock: Any) -> bool:
        try:
            self._backend().get_key(sock)
        except KeyError:
            return False
        return True

    def add_event(self, sock: Any, old: int, events: int, data: Any) -> None:
        """Add ``events`` to the interest ``old`` already held for ``sock``."""
        self._apply(sock, _interest(EventMask(old) | EventMask(events)), data)

    def remove_event(self, sock: Any, old: int, events: int, data: Any) -> None:
        """Drop ``events`` from ``old``; unregister ``sock`` when nothing is left."""
        if not self._registered(sock):
            return
        self._apply(sock, _interest(EventMask(old) & ~EventMask(events)), data)

    def select(self, timeout: Optional[int]) -> List[SelectorEvent]:
        """Wait up to ``timeout`` ms (None or negative: forever) and return ready descriptors."""
        seconds = None if timeout is None or timeout < 0 else timeout / 1000.0
        ready = self._backend().select(seconds)
        return [SelectorEvent(_ready(mask), key.data) for key, mask in ready]

    def close(self) -> None:
        """Release the multiplexer; closing twice is harmless."""
        if self._selector is not None:
            self._selector.close()
            self._selector = None


def create_selector() -> Selector:
    """Return a selector backed by the best mechanism the platform offers."""
    return Selector()