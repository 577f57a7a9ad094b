"""Graphics collaborator interface shared by every backend."""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from ht_runner.models.config import RENDER_HEIGHT, RENDER_WIDTH


logger = logging.getLogger(__name__)

FrameSource = Callable[[], Optional[bytes]]


class GraphicsBackend(ABC):
    """
    Headless host for one graphics backend.

    Besides frame presentation it owns the debug output channel: runner
    diagnostics (e.g. TIMEOUT) are queued with `send_debug_output` and
    written out by `flush_diagnostics` once the core has shut down.
    """

    name: str = "graphics"

    def __init__(
        self,
        width: int = RENDER_WIDTH,
        height: int = RENDER_HEIGHT,
        frame_source: Optional[FrameSource] = None,
        stream: Optional[TextIO] = None,
    ) -> None:
        self.width = width
        self.height = height
        self.frame_source = frame_source
        self._stream = stream
        self._debug_output: List[str] = []
        self.acquired = False
        self.frames = 0

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    @abstractmethod
    def acquire(self) -> None:
        """Create the rendering context. Raise GraphicsError if unavailable."""

    def swap_frame(self) -> None:
        self.frames += 1

    @abstractmethod
    def register_expected_screenshot(self, path: Path) -> None:
        """Compare every presented frame with ``path`` from now on."""

    def send_debug_output(self, text: str) -> None:
        self._debug_output.append(text)

    def release(self) -> None:
        if self.acquired:
            logger.debug("Releasing %s graphics after %s frames", self.name, self.frames)
        self.acquired = False

    def flush_diagnostics(self) -> None:
        if not self._debug_output:
            return
        self.stream.write("".join(self._debug_output))
        self.stream.flush()
        self._debug_output.clear()
