"""Boundary to the output comparison collaborator."""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from ht_common.errors import ComparisonError


logger = logging.getLogger(__name__)

EXPECTED_SUFFIX = ".expected"
MAX_DIFF_LINES = 200


class ComparisonStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


@dataclass(frozen=True)
class ComparisonResult:
    """Verdict returned by a comparison collaborator."""

    status: ComparisonStatus
    diagnostic: str = ""

    @property
    def passed(self) -> bool:
        return self.status is ComparisonStatus.PASS

    @classmethod
    def ok(cls) -> "ComparisonResult":
        return cls(ComparisonStatus.PASS)

    @classmethod
    def fail(cls, diagnostic: str) -> "ComparisonResult":
        return cls(ComparisonStatus.FAIL, diagnostic)

    @classmethod
    def error(cls, diagnostic: str) -> "ComparisonResult":
        return cls(ComparisonStatus.ERROR, diagnostic)


class OutputComparator(Protocol):
    """Anything able to judge captured output for a boot target."""

    def compare(self, boot_target: Path, captured: str) -> ComparisonResult:
        ...


def expected_path_for(boot_target: Path) -> Path:
    """Fixture lives next to the boot target: tests/cpu/alu.prx -> tests/cpu/alu.expected."""
    return boot_target.with_suffix(EXPECTED_SUFFIX)


def _normalize(text: str) -> list[str]:
    return text.replace("\r\n", "\n").rstrip("\n").split("\n")


class ExpectedOutputComparator:
    """Line diff of captured output against the `.expected` fixture."""

    def __init__(self, max_diff_lines: int = MAX_DIFF_LINES) -> None:
        self.max_diff_lines = max_diff_lines

    def compare(self, boot_target: Path, captured: str) -> ComparisonResult:
        fixture = expected_path_for(boot_target)
        try:
            expected = fixture.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return ComparisonResult.error(f"Expected output file missing: {fixture}")
        except OSError as exc:
            raise ComparisonError(
                f"Cannot read {fixture}: {exc}", context={"fixture": fixture}, cause=exc
            )

        expected_lines = _normalize(expected)
        actual_lines = _normalize(captured)
        if expected_lines == actual_lines:
            return ComparisonResult.ok()

        diff = list(
            difflib.unified_diff(
                expected_lines,
                actual_lines,
                fromfile=str(fixture),
                tofile="output",
                lineterm="",
            )
        )
        if len(diff) > self.max_diff_lines:
            omitted = len(diff) - self.max_diff_lines
            diff = diff[: self.max_diff_lines] + [f"... {omitted} more diff lines"]
        return ComparisonResult.fail("Output different from expected file\n" + "\n".join(diff))


class ComparisonInvoker:
    """Forward captured output to the collaborator and relay its verdict."""

    def __init__(self, comparator: OutputComparator | None = None) -> None:
        self.comparator = comparator or ExpectedOutputComparator()

    def invoke(self, boot_target: Path, captured: str) -> ComparisonResult:
        try:
            result = self.comparator.compare(boot_target, captured)
        except ComparisonError as exc:
            logger.error("Output comparison for %s failed: %s", boot_target, exc)
            return ComparisonResult.error(str(exc))
        except Exception as exc:
            logger.exception("Output comparison for %s crashed", boot_target)
            return ComparisonResult.error(f"Comparison crashed: {exc}")
        if result.passed:
            logger.info("Output matched expected fixture for %s", boot_target)
        else:
            logger.warning(
                "Output comparison for %s returned %s", boot_target, result.status.value
            )
        return result
