"""Per-frame screenshot comparison used by rendering graphics backends."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageChops, ImageStat

from ht_common.errors import ComparisonError
from ht_runner.models.config import RENDER_HEIGHT, RENDER_WIDTH
from ht_runner.services.comparison import ComparisonResult


logger = logging.getLogger(__name__)

# Fill for the area outside the smaller image; counted as changed regardless of colour.
_PAD = (255, 0, 255, 255)


def _load_rgba(path: Path) -> Image.Image:
    try:
        with Image.open(path) as img:
            return img.convert("RGBA")
    except (OSError, ValueError) as exc:
        raise ComparisonError(
            f"Cannot load screenshot {path}: {exc}", context={"path": path}, cause=exc
        )


def _pad_to(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    if image.size == size:
        return image
    padded = Image.new("RGBA", size, _PAD)
    padded.paste(image, (0, 0))
    return padded


class ScreenshotComparator:
    """Pixel comparison of a rendered frame against an expected image."""

    def __init__(
        self,
        expected: Path,
        width: int = RENDER_WIDTH,
        height: int = RENDER_HEIGHT,
        tolerance: float = 0.0,
    ) -> None:
        self.expected_path = expected
        self.size = (width, height)
        self.tolerance = tolerance
        self._expected: Image.Image | None = None

    def _expected_image(self) -> Image.Image:
        if self._expected is None:
            self._expected = _load_rgba(self.expected_path)
        return self._expected

    def compare_frame(self, frame: bytes) -> ComparisonResult:
        """Compare raw RGBA frame bytes with the expected screenshot."""
        try:
            actual = Image.frombytes("RGBA", self.size, frame)
        except ValueError as exc:
            return ComparisonResult.error(f"Invalid frame buffer: {exc}")
        try:
            expected = self._expected_image()
        except ComparisonError as exc:
            return ComparisonResult.error(str(exc))

        same_size = actual.size == expected.size
        width = max(actual.width, expected.width)
        height = max(actual.height, expected.height)
        overlap = (min(actual.width, expected.width), min(actual.height, expected.height))
        actual = _pad_to(actual, (width, height))
        expected = _pad_to(expected, (width, height))

        diff = ImageChops.difference(actual.convert("RGB"), expected.convert("RGB"))
        if same_size and diff.getbbox() is None:
            return ComparisonResult.ok()

        inside = diff.crop((0, 0) + overlap)
        changed = sum(1 for px in inside.getdata() if px != (0, 0, 0))
        changed += width * height - overlap[0] * overlap[1]
        ratio = changed / max(1, width * height)
        if same_size and ratio <= self.tolerance:
            return ComparisonResult.ok()
        mean_rgb = ImageStat.Stat(diff).mean[:3]
        mean_abs = sum(mean_rgb) / (3.0 * 255.0)
        logger.debug("Screenshot delta %.6f (%s pixels)", ratio, changed)
        return ComparisonResult.fail(
            f"Screenshot mismatch vs {self.expected_path}: "
            f"{changed} of {width * height} pixels differ "
            f"(ratio {ratio:.6f}, mean delta {mean_abs:.6f})"
        )
