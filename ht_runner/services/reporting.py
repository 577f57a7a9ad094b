"""Ordered test lifecycle reporting (TeamCity service messages)."""

from __future__ import annotations

import logging
import sys
import time
from typing import Callable, List, Optional, TextIO

from ht_common.errors import ReportingProtocolError
from ht_runner.models.events import TestEvent, TestEventKind


logger = logging.getLogger(__name__)

BOOT_FAILURE_MESSAGE = "PRX/ELF missing"
TIMEOUT_MESSAGE = "Test timeout"

_ESCAPES = {
    "|": "||",
    "'": "|'",
    "\n": "|n",
    "\r": "|r",
    "[": "|[",
    "]": "|]",
    "\u0085": "|x",
    "\u2028": "|l",
    "\u2029": "|p",
}


def escape_value(value: str) -> str:
    """Escape a value for a TeamCity service message attribute."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def format_service_message(event: TestEvent) -> str:
    """Render an event as a single `##teamcity[...]` line."""
    attrs = [f"name='{escape_value(event.name)}'"]
    if event.kind is TestEventKind.STARTED:
        attrs.append("captureStandardOutput='true'")
    elif event.kind in (TestEventKind.IGNORED, TestEventKind.FAILED):
        attrs.append(f"message='{escape_value(event.message)}'")
    return f"##teamcity[{event.kind.value} {' '.join(attrs)}]"


class TestEventReporter:
    """
    Emit lifecycle events in protocol order.

    At most one of Started/Ignored, at most one Failed, and exactly one
    Finished which must come last. Violations raise
    `ReportingProtocolError` instead of producing a corrupt log.
    """

    __test__ = False

    def __init__(
        self,
        test_name: str,
        stream: Optional[TextIO] = None,
        callback: Optional[Callable[[TestEvent], None]] = None,
    ) -> None:
        self.test_name = test_name
        self._stream = stream
        self._callback = callback
        self.events: List[TestEvent] = []

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def started(self) -> None:
        self._emit(TestEventKind.STARTED)

    def ignored(self, message: str = BOOT_FAILURE_MESSAGE) -> None:
        self._emit(TestEventKind.IGNORED, message)

    def failed(self, message: str) -> None:
        self._emit(TestEventKind.FAILED, message)

    def finished(self) -> None:
        self._emit(TestEventKind.FINISHED)

    def _seen(self, *kinds: TestEventKind) -> bool:
        return any(event.kind in kinds for event in self.events)

    def _check_order(self, kind: TestEventKind) -> None:
        if self._seen(TestEventKind.FINISHED):
            raise ReportingProtocolError(
                f"{kind.value} emitted after testFinished", context={"test": self.test_name}
            )
        if kind in (TestEventKind.STARTED, TestEventKind.IGNORED) and self._seen(
            TestEventKind.STARTED, TestEventKind.IGNORED
        ):
            raise ReportingProtocolError(
                f"{kind.value} emitted after the test was already started or ignored",
                context={"test": self.test_name},
            )
        if kind is TestEventKind.FAILED and self._seen(TestEventKind.FAILED):
            raise ReportingProtocolError(
                "testFailed emitted twice", context={"test": self.test_name}
            )

    def _emit(self, kind: TestEventKind, message: str = "") -> None:
        self._check_order(kind)
        event = TestEvent(kind=kind, name=self.test_name, message=message, timestamp=time.time())
        self.events.append(event)
        self.stream.write(format_service_message(event) + "\n")
        self.stream.flush()
        if self._callback:
            try:
                self._callback(event)
            except Exception as exc:
                logger.debug("Event callback failed: %s", exc)


class NullReporter(TestEventReporter):
    """Reporter used when the protocol is disabled; every call is a no-op."""

    def __init__(self, test_name: str = "") -> None:
        super().__init__(test_name)

    def started(self) -> None:
        pass

    def ignored(self, message: str = BOOT_FAILURE_MESSAGE) -> None:
        pass

    def failed(self, message: str) -> None:
        pass

    def finished(self) -> None:
        pass


def create_reporter(
    enabled: bool,
    test_name: str,
    stream: Optional[TextIO] = None,
    callback: Optional[Callable[[TestEvent], None]] = None,
) -> TestEventReporter:
    """Pick the TeamCity reporter or the no-op one."""
    if not enabled:
        return NullReporter(test_name)
    return TestEventReporter(test_name, stream=stream, callback=callback)
