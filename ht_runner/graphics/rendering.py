"""Backends that render frames and can compare them with a screenshot."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional, TextIO

from ht_common.errors import GraphicsError
from ht_runner.graphics.base import FrameSource, GraphicsBackend
from ht_runner.models.config import RENDER_HEIGHT, RENDER_WIDTH, GraphicsBackendName
from ht_runner.services.comparison import ComparisonResult
from ht_runner.services.screenshot import ScreenshotComparator


logger = logging.getLogger(__name__)


class RenderingGraphics(GraphicsBackend):
    """Common per-frame screenshot handling for rendering backends."""

    def __init__(
        self,
        width: int = RENDER_WIDTH,
        height: int = RENDER_HEIGHT,
        frame_source: Optional[FrameSource] = None,
        stream: Optional[TextIO] = None,
    ) -> None:
        super().__init__(width, height, frame_source, stream)
        self._comparator: Optional[ScreenshotComparator] = None
        self.last_screenshot_result: Optional[ComparisonResult] = None

    def available(self) -> tuple[bool, str]:
        return True, ""

    def acquire(self) -> None:
        ok, reason = self.available()
        if not ok:
            raise GraphicsError(
                f"{self.name} backend unavailable: {reason}", context={"backend": self.name}
            )
        logger.debug("Acquired %s graphics (%sx%s)", self.name, self.width, self.height)
        self.acquired = True

    def register_expected_screenshot(self, path: Path) -> None:
        self._comparator = ScreenshotComparator(path, self.width, self.height)

    def swap_frame(self) -> None:
        super().swap_frame()
        if self._comparator is None or self.frame_source is None:
            return
        frame = self.frame_source()
        if not frame:
            return
        result = self._comparator.compare_frame(frame)
        previous = self.last_screenshot_result
        self.last_screenshot_result = result
        if not result.passed and (previous is None or previous.diagnostic != result.diagnostic):
            self.send_debug_output(f"{result.diagnostic}\n")


class SoftwareGraphics(RenderingGraphics):
    """CPU rasterizer; always available."""

    name = GraphicsBackendName.SOFTWARE.value


class HardwareGraphics(RenderingGraphics):
    """GPU-accelerated backend (GLES or Direct3D 9)."""

    def __init__(
        self,
        backend: GraphicsBackendName,
        width: int = RENDER_WIDTH,
        height: int = RENDER_HEIGHT,
        frame_source: Optional[FrameSource] = None,
        stream: Optional[TextIO] = None,
    ) -> None:
        if backend not in (GraphicsBackendName.GLES, GraphicsBackendName.DIRECTX9):
            raise ValueError(f"Not a hardware backend: {backend.value}")
        super().__init__(width, height, frame_source, stream)
        self.backend = backend
        self.name = backend.value

    def available(self) -> tuple[bool, str]:
        if self.backend is GraphicsBackendName.DIRECTX9:
            if sys.platform != "win32":
                return False, "Direct3D 9 requires Windows"
            return True, ""
        if sys.platform.startswith("linux") and not (
            os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")
        ):
            return False, "no display available for a GL context"
        return True, ""
