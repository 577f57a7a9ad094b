"""Contract between the run orchestrator and an emulation core."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ht_runner.engine.stop_token import StopToken
    from ht_runner.models.config import RunConfig
    from ht_runner.services.output_sink import OutputSink

# Emulated CPU clock of the target console.
CPU_HZ = 222_000_000
# One loop iteration advances this much emulated time.
QUANTUM_MICROSECONDS = 1_000_000 // 10


def us_to_cycles(microseconds: int) -> int:
    """Convert emulated microseconds to CPU cycles."""
    return CPU_HZ * microseconds // 1_000_000


def cycles_to_seconds(cycles: int) -> float:
    return cycles / CPU_HZ


class CoreStatus(str, Enum):
    """What the core reports after advancing one quantum."""

    RUNNING = "running"
    FRAME_READY = "frame_ready"
    COMPLETED = "completed"


class EmulationCore(ABC):
    """
    An emulation core driven in bounded quanta.

    `advance` is a blocking call whose duration is proportional to the
    number of cycles requested. Implementations should poll the stop token
    at their own checkpoints and return early once it is tripped.
    """

    name: str = "core"

    @abstractmethod
    def boot(self, config: RunConfig, output: OutputSink) -> None:
        """Load and start the boot target. Raise BootError on failure."""

    @abstractmethod
    def advance(self, cycles: int, stop_token: StopToken) -> CoreStatus:
        """Run up to ``cycles`` emulated cycles."""

    def request_stop(self) -> None:
        """Ask the core to wind down at its next checkpoint."""

    @abstractmethod
    def shutdown(self) -> None:
        """Release everything acquired by `boot`. Called exactly once."""

    def framebuffer(self) -> Optional[bytes]:
        """Return the last displayed frame as raw RGBA bytes, if any."""
        return None
