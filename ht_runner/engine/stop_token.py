"""Cooperative cancellation signal threaded into the emulation core."""

from __future__ import annotations

import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class StopToken:
    """
    Lightweight cooperative stop controller.

    The orchestrator trips it when the deadline passes; emulation cores
    check `should_stop()` at their own checkpoints inside `advance` and
    return early when True. Nothing interrupts a core that never checks.
    """

    def __init__(self, on_stop: Optional[Callable[[], None]] = None) -> None:
        self._on_stop = on_stop
        self._stop_requested = False
        self.reason = ""

    def request_stop(self, reason: str = "") -> None:
        """Mark the token as stopped and trigger callback once."""
        if self._stop_requested:
            return
        self._stop_requested = True
        self.reason = reason
        if self._on_stop:
            try:
                self._on_stop()
            except Exception as exc:
                logger.debug("Stop callback failed: %s", exc)

    def should_stop(self) -> bool:
        """Return True once a stop was requested."""
        return self._stop_requested
