"""Wall-clock timestamps with microsecond resolution."""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(order=True)
class Timestamp:
    """Microseconds since the Unix epoch."""

    microseconds: int = 0

    @classmethod
    def now(cls) -> "Timestamp":
        """Return the current time."""
        return cls(time.time_ns() // 1000)