import io
from collections import defaultdict
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest
from rich.console import Console
from rich.table import Table

from ht_common.errors import BootError, GraphicsError
from ht_runner.core.interface import CoreStatus, EmulationCore
from ht_runner.engine.orchestrator import RunOrchestrator
from ht_runner.graphics.null import NullGraphics
from ht_runner.models.config import RunConfig
from ht_runner.services.output_sink import OutputSink
from ht_runner.services.reporting import create_reporter


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """
    Custom hook to print statistics by marker at the end of the test session.
    """
    _ = (exitstatus, config)
    known_markers = {"unit", "unit_common", "unit_runner", "unit_ui", "slow"}
    marker_stats = defaultdict(lambda: {"passed": 0, "failed": 0, "skipped": 0, "total": 0, "duration": 0.0})

    for outcome in ["passed", "failed", "skipped"]:
        reports = terminalreporter.stats.get(outcome, [])
        for report in reports:
            # Only count the actual test call, or setup skips
            if report.when == "call" or (report.when == "setup" and report.outcome == "skipped"):
                duration = getattr(report, "duration", 0.0)
                for marker in known_markers:
                    if marker in report.keywords:
                        stats = marker_stats[marker]
                        stats[outcome] += 1
                        stats["total"] += 1
                        stats["duration"] += duration

    if not marker_stats:
        return

    console = Console()
    table = Table(title="Test Statistics by Marker", show_header=True, header_style="bold magenta")
    table.add_column("Marker", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Duration (s)", justify="right", style="blue")

    for marker in sorted(marker_stats.keys()):
        stats = marker_stats[marker]
        if stats["total"] > 0:
            table.add_row(
                marker,
                str(stats["total"]),
                str(stats["passed"]),
                str(stats["failed"]),
                str(stats["skipped"]),
                f"{stats['duration']:.2f}",
            )

    console.print("\n")
    console.print(table)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


class FakeCore(EmulationCore):
    """Scripted emulation core recording every call into a shared list."""

    name = "fake"

    def __init__(
        self,
        calls: List[str],
        script: Sequence[CoreStatus] = (),
        boot_error: Optional[str] = None,
        output: Sequence[str] = (),
        clock: Optional[FakeClock] = None,
        quantum_seconds: float = 0.1,
        frame: Optional[bytes] = None,
        shutdown_output: Sequence[str] = (),
    ) -> None:
        self.calls = calls
        self.script = list(script)
        self.boot_error = boot_error
        self.program_output = list(output)
        self.clock = clock
        self.quantum_seconds = quantum_seconds
        self.frame = frame
        self.shutdown_output = list(shutdown_output)
        self.sink = None
        self.advanced = 0
        self.stop_tokens = []

    def boot(self, config, output) -> None:
        self.calls.append("core.boot")
        if self.boot_error is not None:
            raise BootError(self.boot_error, context={"boot_target": config.boot_target})
        self.sink = output
        for text in self.program_output:
            output.append(text)

    def advance(self, cycles, stop_token) -> CoreStatus:
        self.calls.append("core.advance")
        self.advanced += 1
        self.stop_tokens.append(stop_token)
        if self.clock is not None:
            self.clock.tick(self.quantum_seconds)
        if self.script:
            return self.script.pop(0)
        return CoreStatus.COMPLETED

    def request_stop(self) -> None:
        self.calls.append("core.request_stop")

    def shutdown(self) -> None:
        self.calls.append("core.shutdown")
        if self.sink is not None:
            for text in self.shutdown_output:
                self.sink.append(text)

    def framebuffer(self) -> Optional[bytes]:
        return self.frame


class RecordingGraphics(NullGraphics):
    """Null backend that records lifecycle calls."""

    def __init__(self, calls: List[str], fail_acquire: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self.calls = calls
        self.fail_acquire = fail_acquire
        self.screenshots: List[Path] = []

    def acquire(self) -> None:
        self.calls.append("graphics.acquire")
        if self.fail_acquire:
            raise GraphicsError("no context")
        super().acquire()

    def swap_frame(self) -> None:
        self.calls.append("graphics.swap_frame")
        super().swap_frame()

    def register_expected_screenshot(self, path: Path) -> None:
        self.screenshots.append(path)

    def release(self) -> None:
        self.calls.append("graphics.release")
        super().release()

    def flush_diagnostics(self) -> None:
        self.calls.append("graphics.flush_diagnostics")
        super().flush_diagnostics()


class RecordingOutputSink(OutputSink):
    def __init__(self, calls: List[str], capture: bool, passthrough) -> None:
        super().__init__(capture=capture, passthrough=passthrough)
        self.calls = calls

    def flush(self) -> None:
        self.calls.append("output.flush")
        super().flush()


@pytest.fixture
def calls() -> List[str]:
    return []


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def boot_target(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Relative boot target so name derivation sees the tests/ prefix."""
    monkeypatch.chdir(tmp_path)
    target = Path("tests") / "cpu" / "alu.prx"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"\x7fELF")
    return target


@pytest.fixture
def make_core(calls: List[str], fake_clock: FakeClock) -> Callable[..., FakeCore]:
    def _make(**kwargs) -> FakeCore:
        kwargs.setdefault("clock", fake_clock)
        return FakeCore(calls, **kwargs)

    return _make


@pytest.fixture
def make_orchestrator(
    calls: List[str], fake_clock: FakeClock, stream: io.StringIO, boot_target: Path
) -> Callable[..., RunOrchestrator]:
    """Build an orchestrator wired to recording fakes."""

    def _make(core: FakeCore, fail_acquire: bool = False, comparison=None, **config_overrides) -> RunOrchestrator:
        config_overrides.setdefault("boot_target", boot_target)
        config = RunConfig(**config_overrides)
        reporter = create_reporter(
            config.teamcity,
            config.test_name,
            stream=stream,
            callback=lambda event: calls.append(f"event.{event.kind.value}"),
        )
        return RunOrchestrator(
            config,
            core,
            graphics=RecordingGraphics(calls, fail_acquire=fail_acquire, stream=stream),
            reporter=reporter,
            output=RecordingOutputSink(calls, capture=config.compare_output, passthrough=stream),
            comparison=comparison,
            stream=stream,
            clock=fake_clock,
        )

    return _make
