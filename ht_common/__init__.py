"""Shared helpers for headless-test-runner packages."""

from ht_common.errors import (
    BootError,
    ComparisonError,
    ConfigurationError,
    CoreRegistryError,
    GraphicsError,
    HTError,
    ReportingProtocolError,
)
from ht_common.logging import configure_logging

__all__ = [
    "BootError",
    "ComparisonError",
    "ConfigurationError",
    "CoreRegistryError",
    "GraphicsError",
    "HTError",
    "ReportingProtocolError",
    "configure_logging",
]
