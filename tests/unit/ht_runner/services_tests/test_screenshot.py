"""Unit tests for per-frame screenshot comparison."""

from pathlib import Path

import pytest
from PIL import Image

from ht_runner.models.config import RENDER_HEIGHT, RENDER_WIDTH
from ht_runner.services.comparison import ComparisonStatus
from ht_runner.services.screenshot import ScreenshotComparator


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]

SIZE = (RENDER_WIDTH, RENDER_HEIGHT)


def _frame(color) -> bytes:
    return Image.new("RGBA", SIZE, color).tobytes()


@pytest.fixture
def expected(tmp_path: Path) -> Path:
    path = tmp_path / "expected.png"
    Image.new("RGB", SIZE, (200, 10, 10)).save(path)
    return path


def test_identical_frame_passes(expected: Path) -> None:
    result = ScreenshotComparator(expected).compare_frame(_frame((200, 10, 10, 255)))
    assert result.passed


def test_different_frame_fails(expected: Path) -> None:
    frame = Image.new("RGBA", SIZE, (200, 10, 10, 255))
    frame.putpixel((0, 0), (0, 0, 0, 255))

    result = ScreenshotComparator(expected).compare_frame(frame.tobytes())

    assert result.status is ComparisonStatus.FAIL
    assert "1 of" in result.diagnostic


def test_tolerance_allows_small_delta(expected: Path) -> None:
    frame = Image.new("RGBA", SIZE, (200, 10, 10, 255))
    frame.putpixel((5, 5), (0, 0, 0, 255))

    result = ScreenshotComparator(expected, tolerance=0.01).compare_frame(frame.tobytes())

    assert result.passed


def test_smaller_expected_image_is_padded(tmp_path: Path) -> None:
    path = tmp_path / "small.png"
    Image.new("RGB", (10, 10), (200, 10, 10)).save(path)

    result = ScreenshotComparator(path).compare_frame(_frame((200, 10, 10, 255)))

    assert result.status is ComparisonStatus.FAIL


def test_size_mismatch_fails_even_when_frame_matches_fill_colour(tmp_path: Path) -> None:
    path = tmp_path / "small_magenta.png"
    Image.new("RGB", (10, 10), (255, 0, 255)).save(path)

    result = ScreenshotComparator(path, tolerance=1.0).compare_frame(_frame((255, 0, 255, 255)))

    assert result.status is ComparisonStatus.FAIL
    total = RENDER_WIDTH * RENDER_HEIGHT
    assert f"{total - 100} of {total} pixels differ" in result.diagnostic


def test_truncated_frame_is_error(expected: Path) -> None:
    result = ScreenshotComparator(expected).compare_frame(b"\x00" * 16)
    assert result.status is ComparisonStatus.ERROR


def test_missing_expected_is_error(tmp_path: Path) -> None:
    result = ScreenshotComparator(tmp_path / "nope.png").compare_frame(_frame((0, 0, 0, 255)))
    assert result.status is ComparisonStatus.ERROR
    assert "nope.png" in result.diagnostic
