"""Headless single-test runner.

Boots one test image in an emulation core, runs it to completion or
timeout and reports the outcome for CI.
"""

from ht_runner.engine.orchestrator import RunOrchestrator, RunOutcome
from ht_runner.models.config import RunConfig
from ht_runner.models.state import RunState

__all__ = ["RunConfig", "RunOrchestrator", "RunOutcome", "RunState"]
