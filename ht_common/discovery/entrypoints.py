"""Entry-point discovery and loading helpers."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any, Callable, Iterable


logger = logging.getLogger(__name__)


def discover_entrypoints(
    groups: Iterable[str],
) -> dict[str, importlib.metadata.EntryPoint]:
    """Collect entry points without importing them. Loaded on demand."""
    pending: dict[str, importlib.metadata.EntryPoint] = {}
    for group in groups:
        try:
            eps = importlib.metadata.entry_points().select(group=group)
        except Exception as exc:
            logger.debug("Failed to read entry points for group %s: %s", group, exc)
            eps = ()
        for entry_point in eps:
            pending.setdefault(entry_point.name, entry_point)
    return pending


def load_entrypoint(
    entry_point: importlib.metadata.EntryPoint,
    register: Callable[[Any], None],
    *,
    label: str = "entry point",
) -> bool:
    """Load a single entry point and hand it to ``register``.

    Returns False when the entry point could not be imported.
    """
    try:
        loaded = entry_point.load()
    except ImportError as exc:
        logger.debug(
            "Skipping %s %s due to missing dependency: %s", label, entry_point.name, exc
        )
        return False
    except Exception as exc:
        logger.warning("Failed to load %s %s: %s", label, entry_point.name, exc)
        return False
    register(loaded)
    return True
