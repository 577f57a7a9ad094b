"""
Run orchestration for a single headless test.

The orchestrator boots the target, drives the emulation core in fixed
quanta until it completes or the deadline passes, then releases every
acquired resource and reports the outcome.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO, Tuple

from ht_common.errors import BootError, GraphicsError
from ht_common.logging import bind_test_context
from ht_runner.core.interface import QUANTUM_MICROSECONDS, CoreStatus, EmulationCore, us_to_cycles
from ht_runner.engine.deadline import Clock, Deadline
from ht_runner.engine.stop_token import StopToken
from ht_runner.graphics import GraphicsBackend, NullGraphics, create_graphics
from ht_runner.models.config import RunConfig
from ht_runner.models.events import TestEventKind
from ht_runner.models.state import RunState, can_transition
from ht_runner.services.comparison import ComparisonInvoker, ComparisonResult
from ht_runner.services.output_sink import OutputSink
from ht_runner.services.reporting import (
    BOOT_FAILURE_MESSAGE,
    TIMEOUT_MESSAGE,
    TestEventReporter,
    create_reporter,
)


logger = logging.getLogger(__name__)

TESTERROR_MARKER = "TESTERROR\n"
TIMEOUT_MARKER = "TIMEOUT\n"


@dataclass(frozen=True)
class BootFailure:
    """Why the boot target never started."""

    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RunOutcome:
    """Final state of a run and the process exit code it maps to."""

    state: RunState
    comparison: Optional[ComparisonResult] = None
    failure_message: str = ""
    failure_details: Dict[str, Any] = field(default_factory=dict)
    transitions: List[Tuple[RunState, RunState]] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.state is RunState.BOOT_FAILED else 0


class RunOrchestrator:
    """Drive one test from boot to report. Only one may be active per process."""

    _active = threading.Lock()

    def __init__(
        self,
        config: RunConfig,
        core: EmulationCore,
        *,
        graphics: Optional[GraphicsBackend] = None,
        reporter: Optional[TestEventReporter] = None,
        output: Optional[OutputSink] = None,
        comparison: Optional[ComparisonInvoker] = None,
        stream: Optional[TextIO] = None,
        clock: Clock = time.monotonic,
        quantum_cycles: int = us_to_cycles(QUANTUM_MICROSECONDS),
    ) -> None:
        self.config = config
        self.core = core
        self._stream = stream
        self.output = output or OutputSink(capture=config.compare_output, passthrough=stream)
        self.graphics = graphics or create_graphics(
            config, frame_source=core.framebuffer, stream=stream
        )
        self.reporter = reporter or create_reporter(
            config.teamcity, config.test_name, stream=stream
        )
        self.comparison = comparison or ComparisonInvoker()
        self.stop_token = StopToken(on_stop=core.request_stop)
        self.quantum_cycles = quantum_cycles
        self._clock = clock
        self.state = RunState.BOOTING
        self.deadline: Optional[Deadline] = None
        self.transitions: List[Tuple[RunState, RunState]] = []
        self._cleaned_up = False

    def _transition(self, target: RunState) -> None:
        if not can_transition(self.state, target):
            raise RuntimeError(f"Illegal run state transition {self.state.name} -> {target.name}")
        logger.debug("Run state %s -> %s", self.state.name, target.name)
        self.transitions.append((self.state, target))
        self.state = target

    def _fail_boot(self, exc: BootError) -> BootFailure:
        logger.error("Failed to start %s. Error: %s", self.config.boot_target, exc)
        self.output.write_through(TESTERROR_MARKER)
        self._transition(RunState.BOOT_FAILED)
        return BootFailure(str(exc), details=exc.to_dict())

    def _acquire_graphics(self) -> None:
        try:
            self.graphics.acquire()
        except GraphicsError as exc:
            if isinstance(self.graphics, NullGraphics):
                raise BootError(str(exc), cause=exc)
            logger.warning("%s; falling back to null graphics", exc)
            self.graphics = NullGraphics(stream=self._stream)
            self.graphics.acquire()

    def initialize(self) -> Optional[BootFailure]:
        """Acquire graphics and boot the target. Returns a BootFailure on error."""
        try:
            self._acquire_graphics()
            self.core.boot(self.config, self.output)
        except BootError as exc:
            return self._fail_boot(exc)
        self._transition(RunState.RUNNING)
        if self.config.screenshot is not None:
            self.graphics.register_expected_screenshot(self.config.screenshot)
        return None

    def _drive(self) -> None:
        self.deadline = Deadline.start(self.config.timeout_seconds, self._clock)
        while self.state is RunState.RUNNING:
            status = self.core.advance(self.quantum_cycles, self.stop_token)

            if status is CoreStatus.FRAME_READY:
                self._transition(RunState.AWAITING_FRAME_SWAP)
                self.graphics.swap_frame()
                self._transition(RunState.RUNNING)

            if self.deadline.expired(self._clock()):
                # Partial output stays visible for diagnosis; no comparison.
                self.output.flush()
                self._transition(RunState.TIMED_OUT)
                self.graphics.send_debug_output(TIMEOUT_MARKER)
                self.stop_token.request_stop(TIMEOUT_MESSAGE)
                logger.warning(
                    "%s exceeded its %.3fs timeout", self.config.test_name, self.config.timeout_seconds
                )
                return

            if status is CoreStatus.COMPLETED:
                self._transition(RunState.COMPLETED)

    def _cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        try:
            self.graphics.release()
        finally:
            self.core.shutdown()
        self.graphics.flush_diagnostics()

    def _report(self, failure: Optional[BootFailure]) -> RunOutcome:
        outcome = RunOutcome(state=self.state, transitions=list(self.transitions))
        if failure is not None:
            outcome.failure_message = failure.message
            outcome.failure_details = failure.details
            self.reporter.ignored(BOOT_FAILURE_MESSAGE)
        elif self.state is RunState.TIMED_OUT:
            outcome.failure_message = TIMEOUT_MESSAGE
            # shutdown may have drained more output after the in-loop flush
            self.output.flush()
            self.reporter.failed(TIMEOUT_MESSAGE)
        elif self.state is RunState.COMPLETED and self.config.compare_output:
            result = self.comparison.invoke(self.config.boot_target, self.output.captured)
            outcome.comparison = result
            if not result.passed:
                outcome.failure_message = result.diagnostic
                self.output.write_through(f"{result.diagnostic}\n")
                self.reporter.failed(result.diagnostic)
        self.reporter.finished()
        return outcome

    def _abort(self, exc: Exception) -> None:
        """Close the event stream after an unexpected error in the run loop."""
        message = f"Runner error: {exc}"
        kinds = {event.kind for event in self.reporter.events}
        if TestEventKind.FINISHED in kinds:
            return
        if TestEventKind.FAILED not in kinds:
            self.reporter.failed(message)
        self.reporter.finished()

    def run(self) -> RunOutcome:
        """Execute the whole lifecycle: boot, loop, cleanup, report."""
        if not RunOrchestrator._active.acquire(blocking=False):
            raise RuntimeError("Another RunOrchestrator is already active in this process")
        try:
            bind_test_context(self.config.test_name)
            try:
                failure = self.initialize()
                if failure is None:
                    self.reporter.started()
                    self._drive()
                self._cleanup()
            except Exception as exc:
                logger.exception("Run of %s aborted", self.config.test_name)
                try:
                    self._cleanup()
                finally:
                    self._abort(exc)
                raise
            return self._report(failure)
        finally:
            RunOrchestrator._active.release()
