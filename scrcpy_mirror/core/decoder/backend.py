"""
scrcpy_mirror/core/decoder/backend.py

Decoder capability interface.

The decoder session only talks to a DecoderBackend, never to a concrete
codec API. Backends exist for PyAV (software and hardware accelerated) and
for tests (echo).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np


__all__ = [
    "ChunkType",
    "DecoderConfig",
    "EncodedChunk",
    "DecodedFrame",
    "FrameCallback",
    "ErrorCallback",
    "DecoderBackend",
    "BackendFactory",
]


class ChunkType(Enum):
    """Encoded chunk types."""
    KEY = "key"
    DELTA = "delta"


@dataclass(frozen=True)
class DecoderConfig:
    """
    Decoder configuration, passed once per session.

    Attributes:
        codec: Codec identifier (``avc1.PPCCLL``)
        low_latency: Ask the decoder to output frames as early as possible
        description: SPS + PPS the configuration was derived from (Annex-B)
    """
    codec: str
    low_latency: bool = True
    description: Optional[bytes] = None


@dataclass(frozen=True)
class EncodedChunk:
    """
    One access unit ready for decoding.

    Attributes:
        type: KEY or DELTA
        timestamp: Presentation timestamp in microseconds
        data: Annex-B access unit bytes
    """
    type: ChunkType
    timestamp: int
    data: bytes

    @property
    def is_key(self) -> bool:
        return self.type is ChunkType.KEY


@dataclass
class DecodedFrame:
    """
    A decoded picture.

    Attributes:
        pixels: RGB24 image with shape (display_height, display_width, 3)
        display_width: Frame width in pixels
        display_height: Frame height in pixels
        timestamp: Timestamp of the chunk that produced the frame
    """
    pixels: np.ndarray
    display_width: int
    display_height: int
    timestamp: int = 0


FrameCallback = Callable[[DecodedFrame], None]
ErrorCallback = Callable[[Exception], None]


class DecoderBackend(ABC):
    """
    Stateful video decoder handle.

    Backends deliver frames and asynchronous failures through the callbacks
    given at construction. ``decode`` may return before the chunk has been
    decoded; ``queue_depth`` reports how many chunks are still pending.
    """

    def __init__(self, on_frame: FrameCallback, on_error: ErrorCallback) -> None:
        self._on_frame = on_frame
        self._on_error = on_error

    @abstractmethod
    def configure(self, config: DecoderConfig) -> None:
        """
        Configure the decoder.

        Raises:
            CodecNotSupportedError: If the codec is not supported
            DecoderInitializationError: If the decoder cannot be set up
        """

    @abstractmethod
    def decode(self, chunk: EncodedChunk) -> None:
        """
        Submit a chunk for decoding.

        Raises:
            DecodeError: If the chunk is rejected synchronously
        """

    @abstractmethod
    def queue_depth(self) -> int:
        """Get the number of chunks waiting to be decoded."""

    @abstractmethod
    def close(self) -> None:
        """Release the decoder. Must be safe to call more than once."""


BackendFactory = Callable[[FrameCallback, ErrorCallback], DecoderBackend]
