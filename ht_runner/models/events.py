"""Test lifecycle events consumed by CI build-log readers."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class TestEventKind(str, Enum):
    """Kinds of lifecycle events, named after their service messages."""

    __test__ = False

    STARTED = "testStarted"
    IGNORED = "testIgnored"
    FAILED = "testFailed"
    FINISHED = "testFinished"


@dataclass(frozen=True)
class TestEvent:
    """A lifecycle event emitted for the test under run."""

    __test__ = False

    kind: TestEventKind
    name: str
    message: str = ""
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
