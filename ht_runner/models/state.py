"""Run state machine states and allowed transitions."""

from __future__ import annotations

from enum import Enum, auto
from typing import Dict, FrozenSet


class RunState(Enum):
    """Lifecycle state of a headless run."""

    BOOTING = auto()
    RUNNING = auto()
    AWAITING_FRAME_SWAP = auto()
    TIMED_OUT = auto()
    COMPLETED = auto()
    BOOT_FAILED = auto()

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[RunState] = frozenset(
    {RunState.BOOT_FAILED, RunState.TIMED_OUT, RunState.COMPLETED}
)

TRANSITIONS: Dict[RunState, FrozenSet[RunState]] = {
    RunState.BOOTING: frozenset({RunState.RUNNING, RunState.BOOT_FAILED}),
    RunState.RUNNING: frozenset(
        {
            RunState.RUNNING,
            RunState.AWAITING_FRAME_SWAP,
            RunState.TIMED_OUT,
            RunState.COMPLETED,
        }
    ),
    RunState.AWAITING_FRAME_SWAP: frozenset({RunState.RUNNING}),
    RunState.TIMED_OUT: frozenset(),
    RunState.COMPLETED: frozenset(),
    RunState.BOOT_FAILED: frozenset(),
}


def can_transition(current: RunState, target: RunState) -> bool:
    """Return True if ``target`` is reachable from ``current`` in one step."""
    return target in TRANSITIONS[current]
