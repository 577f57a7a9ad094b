"""Absolute wall-clock deadline for a run."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

Clock = Callable[[], float]


@dataclass(frozen=True)
class Deadline:
    """Computed once at run start; never moves afterwards."""

    at: float

    @classmethod
    def start(cls, timeout_seconds: Optional[float], clock: Clock = time.monotonic) -> "Deadline":
        if timeout_seconds is None or timeout_seconds < 0:
            return cls(at=math.inf)
        return cls(at=clock() + timeout_seconds)

    @property
    def unbounded(self) -> bool:
        return math.isinf(self.at)

    def expired(self, now: float) -> bool:
        return now > self.at
