"""
scrcpy_mirror/core/decoder/session.py

Decoder session state machine.

A session owns one decoder backend for the lifetime of one stream:

    unconfigured -> configuring -> configured -> closed
          \\              \\             \\
           `-------------- `------------ `--> errored

Configuration happens exactly once. Any configure or decode failure moves
the session to ``errored`` for good: the owner must tear it down and build a
new one to resume.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .backend import (
    BackendFactory,
    ChunkType,
    DecodedFrame,
    DecoderBackend,
    DecoderConfig,
    EncodedChunk,
)
from ..assembler import AccessUnit
from ..nal import MalformedNalError, codec_string
from ..protocol import DEFAULT_MAX_DECODE_QUEUE, LogEvent, LogLevel


logger = logging.getLogger(__name__)


__all__ = ["SessionState", "VideoGeometry", "DecoderSession"]


# Rendered frames between two progress logs
FRAME_LOG_INTERVAL = 60

# Backpressure drops between two aggregated logs
DROP_LOG_INTERVAL = 100


class SessionState(Enum):
    """Decoder session states."""
    UNCONFIGURED = "unconfigured"
    CONFIGURING = "configuring"
    CONFIGURED = "configured"
    CLOSED = "closed"
    ERRORED = "errored"


@dataclass(frozen=True)
class VideoGeometry:
    """Video size, taken from the decoded frames."""
    width: int = 0
    height: int = 0


class DecoderSession:
    """
    Drives a DecoderBackend through configure and decode.

    Example:
        >>> session = DecoderSession(PyAVDecoderBackend, on_frame=surface.draw)
        >>> session.configure(sps, pps)
        >>> session.decode(access_unit)
        >>> session.close()
    """

    def __init__(
        self,
        backend_factory: BackendFactory,
        on_frame: Optional[Callable[[DecodedFrame], None]] = None,
        on_log: Optional[Callable[[LogEvent], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        max_queue_depth: int = DEFAULT_MAX_DECODE_QUEUE,
    ) -> None:
        """
        Initialize the session.

        Args:
            backend_factory: Creates the backend, given the frame and error callbacks
            on_frame: Receives every decoded frame
            on_log: Receives configure/decode failures and lifecycle events
            clock: Monotonic clock in seconds, used for chunk timestamps
            max_queue_depth: Pending decodes above which delta frames are dropped
        """
        self._backend_factory = backend_factory
        self._on_frame = on_frame
        self._on_log = on_log
        self._clock = clock
        self._max_queue_depth = max_queue_depth

        self._lock = threading.RLock()
        self._state = SessionState.UNCONFIGURED
        self._backend: Optional[DecoderBackend] = None
        self._codec: Optional[str] = None
        self._geometry = VideoGeometry()

        # Timestamp generation
        self._start_time: Optional[float] = None
        self._last_timestamp: Optional[int] = None

        # Statistics
        self._configure_count = 0
        self._chunks_submitted = 0
        self._frames_decoded = 0
        self._dropped_frames = 0
        self._skipped_units = 0

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, sps: bytes, pps: bytes) -> bool:
        """
        Configure the decoder from the cached parameter sets.

        Only the first successful call per session configures anything.

        Returns:
            True if the decoder accepted the configuration
        """
        with self._lock:
            if self._state is not SessionState.UNCONFIGURED:
                return False

            try:
                codec = codec_string(sps)
            except MalformedNalError as e:
                logger.warning(f"Cannot derive codec string: {e}")
                return False

            self._state = SessionState.CONFIGURING
            config = DecoderConfig(codec=codec, low_latency=True, description=sps + pps)

            try:
                self._backend = self._backend_factory(self._handle_frame, self._handle_error)
                self._backend.configure(config)
            except Exception as e:
                self._fail(f"Failed to configure decoder: {e}")
                return False

            self._state = SessionState.CONFIGURED
            self._codec = codec
            self._configure_count += 1
            self._start_time = self._clock()
            self._last_timestamp = None

        self._log(f"Decoder configured with codec: {codec}")
        return True

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, unit: AccessUnit) -> bool:
        """
        Submit one access unit.

        Delta frames are dropped while the backend has more than
        ``max_queue_depth`` chunks pending. Key frames are never dropped for
        that reason. Calls after close() or a failure are no-ops.

        Returns:
            True if the unit was handed to the backend
        """
        with self._lock:
            if self._state is not SessionState.CONFIGURED:
                if self._state is SessionState.UNCONFIGURED:
                    self._skipped_units += 1
                return False

            backend = self._backend
            if not unit.is_key_frame and backend.queue_depth() > self._max_queue_depth:
                self._dropped_frames += 1
                if self._dropped_frames % DROP_LOG_INTERVAL == 0:
                    logger.debug(f"Backpressure drops: {self._dropped_frames}")
                return False

            chunk = EncodedChunk(
                type=ChunkType.KEY if unit.is_key_frame else ChunkType.DELTA,
                timestamp=self._next_timestamp(),
                data=unit.data,
            )

            try:
                backend.decode(chunk)
            except Exception as e:
                self._fail(f"Decode error: {e}")
                return False

            self._chunks_submitted += 1
            return True

    def _next_timestamp(self) -> int:
        """Microseconds since configuration, strictly increasing."""
        timestamp = round((self._clock() - self._start_time) * 1_000_000)
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + 1
        self._last_timestamp = timestamp
        return timestamp

    # ------------------------------------------------------------------
    # Backend callbacks
    # ------------------------------------------------------------------

    def _handle_frame(self, frame: DecodedFrame) -> None:
        """Track geometry and forward a decoded frame."""
        with self._lock:
            if self._state is not SessionState.CONFIGURED:
                return

            resized = (
                frame.display_width != self._geometry.width
                or frame.display_height != self._geometry.height
            )
            if resized:
                self._geometry = VideoGeometry(frame.display_width, frame.display_height)

            self._frames_decoded += 1
            frames_decoded = self._frames_decoded

        if resized:
            self._log(f"Video size: {frame.display_width}x{frame.display_height}")
        if frames_decoded % FRAME_LOG_INTERVAL == 0:
            logger.debug(f"Rendered {frames_decoded} frames")

        if self._on_frame is not None:
            self._on_frame(frame)

    def _handle_error(self, error: Exception) -> None:
        """Asynchronous backend failure."""
        with self._lock:
            if self._state in (SessionState.CLOSED, SessionState.ERRORED):
                return
            self._fail(f"Decoder error: {error}")

    def _fail(self, message: str) -> None:
        """Move to the errored sink state. Caller holds the lock."""
        self._state = SessionState.ERRORED
        logger.error(message)
        if self._on_log is not None:
            self._on_log(LogEvent(message, LogLevel.ERROR))

    def _log(self, message: str) -> None:
        logger.info(message)
        if self._on_log is not None:
            self._on_log(LogEvent(message, LogLevel.INFO))

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the decoder handle. Later calls are no-ops."""
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED
            backend = self._backend
            self._backend = None

        # Outside the lock: the backend may be joining a worker thread that
        # is waiting to deliver a frame
        if backend is not None:
            try:
                backend.close()
            except Exception as e:
                logger.warning(f"Error closing decoder backend: {e}")
        logger.debug("Decoder session closed")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Get the session state."""
        return self._state

    @property
    def is_configured(self) -> bool:
        return self._state is SessionState.CONFIGURED

    @property
    def is_errored(self) -> bool:
        return self._state is SessionState.ERRORED

    @property
    def codec(self) -> Optional[str]:
        """Codec identifier the decoder was configured with."""
        return self._codec

    @property
    def geometry(self) -> VideoGeometry:
        """Size of the last decoded frame."""
        return self._geometry

    @property
    def dropped_frames(self) -> int:
        """Delta frames dropped for backpressure (monotonic)."""
        return self._dropped_frames

    def get_stats(self) -> dict:
        """Get decoder session statistics."""
        return {
            "state": self._state.value,
            "codec": self._codec,
            "configure_count": self._configure_count,
            "chunks_submitted": self._chunks_submitted,
            "frames_decoded": self._frames_decoded,
            "dropped_frames": self._dropped_frames,
            "skipped_units": self._skipped_units,
            "width": self._geometry.width,
            "height": self._geometry.height,
        }
