"""Environment variable parsing utilities."""

from __future__ import annotations

import re

_LEADING_FLOAT = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_float_env(value: str | None) -> float | None:
    """Strict float parsing for numeric env overrides; None when unset or invalid."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_float_prefix(value: str) -> float:
    """Parse the leading numeric part of ``value`` the way ``strtod`` does.

    "2.5s" -> 2.5, "1e-3" -> 0.001, "abc" -> 0.0.
    """
    match = _LEADING_FLOAT.match(value)
    if not match:
        return 0.0
    return float(match.group(0))
