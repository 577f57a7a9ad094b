"""Emulation core boundary and built-in implementations."""

from ht_runner.core.interface import (
    CPU_HZ,
    QUANTUM_MICROSECONDS,
    CoreStatus,
    EmulationCore,
    us_to_cycles,
)
from ht_runner.core.registry import ENTRYPOINT_GROUP, CoreRegistry, UnavailableCore, resolve_core

__all__ = [
    "CPU_HZ",
    "ENTRYPOINT_GROUP",
    "QUANTUM_MICROSECONDS",
    "CoreRegistry",
    "CoreStatus",
    "EmulationCore",
    "UnavailableCore",
    "resolve_core",
    "us_to_cycles",
]
