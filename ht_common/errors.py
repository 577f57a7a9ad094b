"""Shared error taxonomy for headless-test-runner."""

from __future__ import annotations

from typing import Any, Mapping


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class HTError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class ConfigurationError(HTError):
    """Malformed command line or configuration input."""


class BootError(HTError):
    """The boot target could not be started inside the emulation core."""


class GraphicsError(HTError):
    """A graphics backend could not be acquired."""


class ComparisonError(HTError):
    """The comparison collaborator could not produce a verdict."""


class CoreRegistryError(HTError):
    """No emulation core is registered under the requested name."""


class ReportingProtocolError(HTError):
    """A test event was emitted out of the protocol's order."""
