"""
scrcpy_mirror/core/decoder/echo.py

Decoder backend that decodes nothing.

Every chunk immediately produces one blank frame carrying the chunk's
timestamp. Used for dry runs of the pipeline and in tests.
"""

import logging
from typing import List, Optional

import numpy as np

from .backend import (
    DecodedFrame,
    DecoderBackend,
    DecoderConfig,
    EncodedChunk,
    ErrorCallback,
    FrameCallback,
)
from .exceptions import DecodeError


logger = logging.getLogger(__name__)


__all__ = ["EchoDecoderBackend"]


class EchoDecoderBackend(DecoderBackend):
    """Echoes chunk timestamps back as blank frames of a fixed size."""

    def __init__(
        self,
        on_frame: FrameCallback,
        on_error: ErrorCallback,
        width: int = 320,
        height: int = 240,
    ) -> None:
        super().__init__(on_frame, on_error)
        self.width = width
        self.height = height
        self.config: Optional[DecoderConfig] = None
        self.chunks: List[EncodedChunk] = []
        self.closed = False

    def configure(self, config: DecoderConfig) -> None:
        self.config = config
        logger.debug(f"Echo decoder configured for {config.codec}")

    def decode(self, chunk: EncodedChunk) -> None:
        if self.closed:
            return
        if self.config is None:
            raise DecodeError("Decoder not configured")
        self.chunks.append(chunk)
        pixels = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self._on_frame(DecodedFrame(pixels, self.width, self.height, chunk.timestamp))

    def queue_depth(self) -> int:
        return 0

    def close(self) -> None:
        self.closed = True
