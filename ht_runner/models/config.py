"""Run configuration (built once by the CLI, passed explicitly everywhere)."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Native PSP frame geometry used for rendering and screenshots.
RENDER_WIDTH = 480
RENDER_HEIGHT = 272

# Test names drop one of these directory prefixes and this file suffix.
TEST_NAME_PREFIXES = ("pspautotests/tests/", "tests/")
TEST_NAME_SUFFIXES = (".prx",)

DEFAULT_CORE = "subprocess"


class CpuMode(str, Enum):
    """How the emulation core executes guest code."""

    INTERPRETER = "interpreter"
    JIT = "jit"


class GraphicsBackendName(str, Enum):
    """Graphics backends selectable with --graphics."""

    NULL = "null"
    SOFTWARE = "software"
    GLES = "gles"
    DIRECTX9 = "directx9"

    @property
    def renders(self) -> bool:
        return self is not GraphicsBackendName.NULL


def _chop_front(value: str, prefixes: tuple[str, ...]) -> str:
    for prefix in sorted(prefixes, key=len, reverse=True):
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def _chop_end(value: str, suffixes: tuple[str, ...]) -> str:
    for suffix in sorted(suffixes, key=len, reverse=True):
        if suffix and value.endswith(suffix):
            return value[: -len(suffix)]
    return value


def derive_test_name(boot_target: str | os.PathLike[str]) -> str:
    """
    Guess a CI test name from the boot target path.

    Strips the longest known directory prefix and file suffix, so
    "pspautotests/tests/cpu/alu.prx" becomes "cpu/alu". Paths matching
    neither are returned unchanged.

    Only one prefix and one suffix are stripped. A result that still starts
    with a known prefix or ends with ".prx" is therefore not a fixed point:
    "tests/tests/misc/testgp.prx" gives "tests/misc/testgp", and deriving
    again gives "misc/testgp".
    """
    return _chop_end(_chop_front(os.fspath(boot_target), TEST_NAME_PREFIXES), TEST_NAME_SUFFIXES)


class RunConfig(BaseModel):
    """Immutable configuration for a single headless test run."""

    model_config = ConfigDict(frozen=True)

    boot_target: Path = Field(description="Executable test image to boot")
    cpu_mode: CpuMode = Field(default=CpuMode.JIT, description="Interpreter or JIT execution")
    graphics: GraphicsBackendName = Field(
        default=GraphicsBackendName.NULL, description="Graphics backend used for rendering"
    )
    mount_image: Optional[Path] = Field(default=None, description="Disc image mounted as UMD")
    timeout_seconds: Optional[float] = Field(
        default=None, description="Abort the run after this many seconds; negative or None is unbounded"
    )
    screenshot: Optional[Path] = Field(default=None, description="Expected screenshot compared per frame")
    compare_output: bool = Field(default=False, description="Compare program output with the .expected fixture")
    full_log: bool = Field(default=False, description="Emit the full emulator log, not just program output")
    teamcity: bool = Field(default=False, description="Emit TeamCity service messages")
    core: str = Field(default=DEFAULT_CORE, description="Registered emulation core to boot with")

    @field_validator("core")
    @classmethod
    def _core_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("RunConfig: 'core' must be non-empty")
        return value.strip()

    @property
    def test_name(self) -> str:
        return derive_test_name(self.boot_target.as_posix())

    @property
    def has_deadline(self) -> bool:
        return self.timeout_seconds is not None and self.timeout_seconds >= 0
