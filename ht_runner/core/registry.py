"""Registry of emulation cores: built-ins plus entry-point plugins."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Callable, Dict, Iterable, Optional

from ht_common.discovery.entrypoints import discover_entrypoints, load_entrypoint
from ht_common.errors import BootError, CoreRegistryError
from ht_runner.core.interface import CoreStatus, EmulationCore


logger = logging.getLogger(__name__)
ENTRYPOINT_GROUP = "headless_test_runner.cores"

CoreFactory = Callable[[], EmulationCore]


def builtin_cores() -> Dict[str, CoreFactory]:
    from ht_runner.core.subprocess_core import SubprocessCore

    return {SubprocessCore.name: SubprocessCore}


class CoreRegistry:
    """Resolve a core name to a fresh EmulationCore instance."""

    def __init__(
        self,
        factories: Optional[Dict[str, CoreFactory]] = None,
        groups: Iterable[str] = (ENTRYPOINT_GROUP,),
    ) -> None:
        self._factories: Dict[str, CoreFactory] = dict(
            builtin_cores() if factories is None else factories
        )
        self._pending: Dict[str, importlib.metadata.EntryPoint] = discover_entrypoints(groups)

    def register(self, name: str, factory: CoreFactory) -> None:
        self._factories[name] = factory

    def available(self) -> list[str]:
        return sorted(set(self._factories) | set(self._pending))

    def create(self, name: str) -> EmulationCore:
        if name not in self._factories and name in self._pending:
            entry_point = self._pending.pop(name)
            load_entrypoint(
                entry_point,
                lambda factory: self.register(name, factory),
                label="emulation core",
            )
        factory = self._factories.get(name)
        if factory is None:
            raise CoreRegistryError(
                f"Unknown emulation core '{name}'",
                context={"core": name, "available": self.available()},
            )
        logger.debug("Creating emulation core %s", name)
        return factory()


class UnavailableCore(EmulationCore):
    """Stand-in for a core that could not be created; always fails to boot."""

    name = "unavailable"

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def boot(self, config, output) -> None:  # type: ignore[override]
        raise BootError(self.reason, context={"core": config.core})

    def advance(self, cycles, stop_token) -> CoreStatus:  # type: ignore[override]
        return CoreStatus.COMPLETED

    def shutdown(self) -> None:
        pass


def resolve_core(name: str, registry: Optional[CoreRegistry] = None) -> EmulationCore:
    """Create the named core, or a stand-in whose boot reports why it is missing."""
    try:
        return (registry or CoreRegistry()).create(name)
    except CoreRegistryError as exc:
        logger.error("%s (available: %s)", exc, ", ".join(exc.context.get("available", [])))
        return UnavailableCore(str(exc))
