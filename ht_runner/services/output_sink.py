"""Program output capture: buffered for comparison or streamed through."""

from __future__ import annotations

import sys
from typing import List, Optional, TextIO


class OutputSink:
    """
    Collect emulated program output.

    With `capture` enabled the text is retained (not echoed) for the
    post-run comparison; otherwise every append goes straight to the
    pass-through stream.
    """

    def __init__(self, capture: bool, passthrough: Optional[TextIO] = None) -> None:
        self.capture = capture
        self._passthrough = passthrough
        self._chunks: List[str] = []

    @property
    def passthrough(self) -> TextIO:
        # Resolved lazily so test harnesses swapping sys.stdout are honoured.
        return self._passthrough or sys.stdout

    def append(self, text: str) -> None:
        if not text:
            return
        if self.capture:
            self._chunks.append(text)
            return
        self.passthrough.write(text)
        self.passthrough.flush()

    def write_through(self, text: str) -> None:
        """Write runner markers (e.g. TESTERROR) directly to the stream."""
        self.passthrough.write(text)
        self.passthrough.flush()

    def flush(self) -> None:
        """Write out and drop any retained output. No-op when empty."""
        if not self._chunks:
            return
        text = "".join(self._chunks)
        self._chunks.clear()
        self.passthrough.write(text)
        self.passthrough.flush()

    @property
    def captured(self) -> str:
        return "".join(self._chunks)
