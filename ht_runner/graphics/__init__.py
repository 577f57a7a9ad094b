"""Graphics collaborators, one implementation per backend."""

from __future__ import annotations

from typing import Callable, Dict, Optional, TextIO

from ht_runner.graphics.base import FrameSource, GraphicsBackend
from ht_runner.graphics.null import NullGraphics
from ht_runner.graphics.rendering import HardwareGraphics, RenderingGraphics, SoftwareGraphics
from ht_runner.models.config import RENDER_HEIGHT, RENDER_WIDTH, GraphicsBackendName, RunConfig

_FACTORIES: Dict[GraphicsBackendName, Callable[..., GraphicsBackend]] = {
    GraphicsBackendName.NULL: NullGraphics,
    GraphicsBackendName.SOFTWARE: SoftwareGraphics,
    GraphicsBackendName.GLES: lambda **kw: HardwareGraphics(GraphicsBackendName.GLES, **kw),
    GraphicsBackendName.DIRECTX9: lambda **kw: HardwareGraphics(GraphicsBackendName.DIRECTX9, **kw),
}


def create_graphics(
    config: RunConfig,
    frame_source: Optional[FrameSource] = None,
    stream: Optional[TextIO] = None,
) -> GraphicsBackend:
    """Instantiate the backend selected by the configuration."""
    return _FACTORIES[config.graphics](
        width=RENDER_WIDTH,
        height=RENDER_HEIGHT,
        frame_source=frame_source,
        stream=stream,
    )


__all__ = [
    "FrameSource",
    "GraphicsBackend",
    "HardwareGraphics",
    "NullGraphics",
    "RenderingGraphics",
    "SoftwareGraphics",
    "create_graphics",
]
