"""
scrcpy_mirror/core/transport.py

UI-side transport adapter for video messages.

Video crosses the host/UI boundary as base64 text. The adapter decodes each
message into a reusable scratch buffer and runs it through the parsing
pipeline synchronously:

    base64 -> ScratchBuffer -> NAL split -> AccessUnitAssembler
           -> DecoderSession -> FrameSurface
"""

import base64
import binascii
import logging
import time
from typing import Callable, Optional

from .assembler import AccessUnitAssembler
from .decoder.backend import BackendFactory
from .decoder.session import DecoderSession, VideoGeometry
from .protocol import (
    DEFAULT_MAX_DECODE_QUEUE,
    DEFAULT_SCRATCH_MIN_SIZE,
    LogEvent,
    MessageType,
)
from .surface import FrameSurface


logger = logging.getLogger(__name__)


__all__ = [
    "ScratchBuffer",
    "TransportAdapter",
    "encode_video_message",
    "decode_video_data",
]


def encode_video_message(data: bytes) -> dict:
    """Build the wire message carrying a batch of video bytes."""
    return {
        "type": MessageType.VIDEO.value,
        "data": base64.b64encode(data).decode("ascii"),
    }


def decode_video_data(data: str) -> bytes:
    """
    Decode the payload of a video message.

    Raises:
        ValueError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid video payload: {e}")


class ScratchBuffer:
    """
    Resizable byte buffer reused across messages of one stream.

    On a miss the buffer is replaced by one of ``max(needed * 2, min_size)``
    bytes; it never shrinks.
    """

    def __init__(self, min_size: int = DEFAULT_SCRATCH_MIN_SIZE) -> None:
        self._min_size = min_size
        self._buffer = bytearray()
        self._grow_count = 0

    def acquire(self, size: int) -> bytearray:
        """Get a buffer of at least ``size`` bytes."""
        if len(self._buffer) < size:
            # A new object, not a resize: NAL views of the old one may be alive
            self._buffer = bytearray(max(size * 2, self._min_size))
            self._grow_count += 1
            logger.debug(f"Scratch buffer grown to {len(self._buffer)} bytes")
        return self._buffer

    def write(self, data: bytes) -> bytearray:
        """Copy ``data`` to the start of the buffer and return the buffer."""
        buffer = self.acquire(len(data))
        buffer[:len(data)] = data
        return buffer

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    @property
    def grow_count(self) -> int:
        return self._grow_count


class TransportAdapter:
    """
    Owns the parsing and decoding state of one stream.

    Example:
        >>> adapter = TransportAdapter(create_backend_factory("pyav"))
        >>> adapter.process_message(message["data"])
        >>> frame = adapter.surface.consume()
    """

    def __init__(
        self,
        backend_factory: BackendFactory,
        surface: Optional[FrameSurface] = None,
        on_log: Optional[Callable[[LogEvent], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        max_decode_queue: int = DEFAULT_MAX_DECODE_QUEUE,
        scratch: Optional[ScratchBuffer] = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            backend_factory: Creates the decoder backend of each session
            surface: Surface receiving decoded frames (creates one if None)
            on_log: Receives decoder log events
            clock: Clock used for chunk timestamps
            max_decode_queue: Backpressure threshold of the decoder session
            scratch: Scratch buffer (creates one if None)
        """
        self._backend_factory = backend_factory
        self._on_log = on_log
        self._clock = clock
        self._max_decode_queue = max_decode_queue

        self.surface = surface if surface is not None else FrameSurface()
        self._scratch = scratch if scratch is not None else ScratchBuffer()

        self._session: Optional[DecoderSession] = None
        self._assembler: Optional[AccessUnitAssembler] = None
        self._new_session()

    def _new_session(self) -> None:
        """Create a fresh decoder session and parameter set cache."""
        self._session = DecoderSession(
            self._backend_factory,
            on_frame=self.surface.draw,
            on_log=self._on_log,
            clock=self._clock,
            max_queue_depth=self._max_decode_queue,
        )
        self._assembler = AccessUnitAssembler(on_parameter_sets=self._session.configure)

        # Statistics
        self._messages_received = 0
        self._bytes_received = 0
        self._malformed_messages = 0
        self._access_units = 0

    def process_message(self, data: str) -> bool:
        """
        Handle the payload of one video message.

        Returns:
            True if an access unit was submitted to the decoder
        """
        try:
            raw = decode_video_data(data)
        except ValueError as e:
            self._malformed_messages += 1
            logger.debug(f"Dropping video message: {e}")
            return False
        return self.process_bytes(raw)

    def process_bytes(self, raw: bytes) -> bool:
        """
        Run one packet of raw Annex-B bytes through the pipeline.

        Returns:
            True if an access unit was submitted to the decoder
        """
        size = len(raw)
        self._messages_received += 1
        self._bytes_received += size

        buffer = self._scratch.write(raw)
        unit = self._assembler.assemble(buffer, size)
        if unit is None:
            return False

        self._access_units += 1
        return self._session.decode(unit)

    def reset(self) -> None:
        """Tear down the decoder session and start over with empty caches."""
        self._session.close()
        self.surface.clear()
        self._new_session()
        logger.debug("Transport adapter reset")

    def close(self) -> None:
        """Release the decoder session."""
        self._session.close()

    @property
    def session(self) -> DecoderSession:
        return self._session

    @property
    def assembler(self) -> AccessUnitAssembler:
        return self._assembler

    @property
    def scratch(self) -> ScratchBuffer:
        return self._scratch

    @property
    def geometry(self) -> VideoGeometry:
        """Video size from the last decoded frame."""
        return self._session.geometry

    @property
    def dropped_frames(self) -> int:
        return self._session.dropped_frames

    def get_stats(self) -> dict:
        """Get transport adapter statistics."""
        stats = {
            "messages_received": self._messages_received,
            "bytes_received": self._bytes_received,
            "malformed_messages": self._malformed_messages,
            "access_units": self._access_units,
            "scratch_capacity": self._scratch.capacity,
        }
        stats.update(self._assembler.get_stats())
        stats.update(self._session.get_stats())
        return stats
