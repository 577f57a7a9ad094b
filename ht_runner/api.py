"""Stable import surface for embedding the headless runner."""

from __future__ import annotations

from typing import Optional, TextIO

from ht_runner.core import CoreRegistry, CoreStatus, EmulationCore, resolve_core
from ht_runner.engine.orchestrator import BootFailure, RunOrchestrator, RunOutcome
from ht_runner.engine.stop_token import StopToken
from ht_runner.models.config import CpuMode, GraphicsBackendName, RunConfig, derive_test_name
from ht_runner.models.events import TestEvent, TestEventKind
from ht_runner.models.state import RunState
from ht_runner.services.comparison import (
    ComparisonInvoker,
    ComparisonResult,
    ComparisonStatus,
    ExpectedOutputComparator,
)
from ht_runner.services.output_sink import OutputSink
from ht_runner.services.reporting import NullReporter, TestEventReporter, create_reporter


def run_test(
    config: RunConfig,
    *,
    registry: Optional[CoreRegistry] = None,
    stream: Optional[TextIO] = None,
) -> RunOutcome:
    """Run one test end to end with the core named in the configuration."""
    core = resolve_core(config.core, registry)
    return RunOrchestrator(config, core, stream=stream).run()


__all__ = [
    "BootFailure",
    "ComparisonInvoker",
    "ComparisonResult",
    "ComparisonStatus",
    "CoreRegistry",
    "CoreStatus",
    "CpuMode",
    "EmulationCore",
    "ExpectedOutputComparator",
    "GraphicsBackendName",
    "NullReporter",
    "OutputSink",
    "RunConfig",
    "RunOrchestrator",
    "RunOutcome",
    "RunState",
    "StopToken",
    "TestEvent",
    "TestEventKind",
    "TestEventReporter",
    "create_reporter",
    "derive_test_name",
    "run_test",
]
