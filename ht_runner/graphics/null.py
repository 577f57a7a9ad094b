"""Backend used when no rendering is requested."""

from __future__ import annotations

import logging
from pathlib import Path

from ht_runner.graphics.base import GraphicsBackend


logger = logging.getLogger(__name__)


class NullGraphics(GraphicsBackend):
    """Presents nothing; frames are only counted."""

    name = "null"

    def acquire(self) -> None:
        self.acquired = True

    def register_expected_screenshot(self, path: Path) -> None:
        logger.warning(
            "Ignoring screenshot %s: the null graphics backend does not render", path
        )
