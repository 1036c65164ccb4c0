"""
scrcpy_mirror/core/decoder/pyav.py

H.264 decoder backend using PyAV (FFmpeg).

Chunks are decoded on a dedicated worker thread so that decode() returns
immediately; the number of chunks waiting for the worker is the backend's
queue depth. Frames are delivered as RGB24 numpy arrays.
"""

import logging
import queue
import threading
from typing import Optional

import av
import numpy as np

from .backend import (
    DecodedFrame,
    DecoderBackend,
    DecoderConfig,
    EncodedChunk,
    ErrorCallback,
    FrameCallback,
)
from .exceptions import CodecNotSupportedError, DecodeError, DecoderInitializationError
from .hw import HWAccelConfig, HWDeviceType, create_hw_codec_context, transfer_hw_frame
from ..protocol import CODEC_PREFIX_AVC


logger = logging.getLogger(__name__)


__all__ = ["PyAVDecoderBackend"]


# FFmpeg: AV_CODEC_FLAG_LOW_DELAY, output frames as soon as possible
AV_CODEC_FLAG_LOW_DELAY = 0x00080000

# FFmpeg: AV_CODEC_FLAG2_FAST, allow speedups that break strict conformance
AV_CODEC_FLAG2_FAST = 0x00000001


class PyAVDecoderBackend(DecoderBackend):
    """
    Decoder backend for H.264 streams using PyAV.

    Example:
        >>> backend = PyAVDecoderBackend(on_frame, on_error)
        >>> backend.configure(DecoderConfig(codec="avc1.640028"))
        >>> backend.decode(chunk)
        >>> backend.close()
    """

    def __init__(
        self,
        on_frame: FrameCallback,
        on_error: ErrorCallback,
        hw_config: Optional[HWAccelConfig] = None,
    ) -> None:
        """
        Initialize the backend.

        Args:
            on_frame: Receives decoded frames (called from the worker thread)
            on_error: Receives decode failures (called from the worker thread)
            hw_config: Hardware acceleration settings (software if None)
        """
        super().__init__(on_frame, on_error)
        self._hw_config = hw_config

        self._codec_context: Optional[av.CodecContext] = None
        self._chunk_queue: queue.Queue = queue.Queue()
        self._worker: Optional[threading.Thread] = None

        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False
        self._failed = False

    # ------------------------------------------------------------------
    # DecoderBackend
    # ------------------------------------------------------------------

    def configure(self, config: DecoderConfig) -> None:
        if not config.codec.startswith(f"{CODEC_PREFIX_AVC}."):
            raise CodecNotSupportedError(f"Unsupported codec: {config.codec}")
        if self._codec_context is not None:
            raise DecoderInitializationError("Decoder is already configured")

        codec = self._create_context()

        if config.low_latency:
            # Single thread: frame threading adds one frame of delay per thread
            codec.thread_count = 1
            try:
                codec.flags |= AV_CODEC_FLAG_LOW_DELAY
                codec.flags2 |= AV_CODEC_FLAG2_FAST
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Could not set low-latency flags: {e}")

        if config.description:
            try:
                codec.extradata = config.description
            except (AttributeError, ValueError) as e:
                logger.debug(f"Could not set extradata: {e}")

        self._codec_context = codec
        self._worker = threading.Thread(
            target=self._decode_loop, name="PyAVDecoder", daemon=True
        )
        self._worker.start()
        logger.info(f"Initialized {codec.name} decoder for {config.codec}")

    def _create_context(self) -> av.CodecContext:
        """Create the codec context, hardware first when requested."""
        hw_config = self._hw_config
        if hw_config is not None and hw_config.device_type != HWDeviceType.NONE:
            codec = create_hw_codec_context(hw_config)
            if codec is not None:
                return codec
            if not hw_config.enable_fallback:
                raise DecoderInitializationError(
                    f"Hardware decoder {hw_config.device_type.value} not available"
                )
            logger.info("Falling back to software decoding")

        try:
            return av.CodecContext.create("h264", "r")
        except (ValueError, av.error.FFmpegError) as e:
            raise DecoderInitializationError(f"Failed to initialize codec context: {e}")

    def decode(self, chunk: EncodedChunk) -> None:
        with self._lock:
            if self._closed or self._failed:
                return
            if self._codec_context is None:
                raise DecodeError("Decoder not configured")
            self._pending += 1
        self._chunk_queue.put(chunk)

    def queue_depth(self) -> int:
        with self._lock:
            return self._pending

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True

        if self._worker is not None:
            # None is a signal to stop
            self._chunk_queue.put(None)
            if self._worker is not threading.current_thread():
                self._worker.join(timeout=5.0)
                if self._worker.is_alive():
                    logger.warning("Decoder thread did not stop gracefully")
            self._worker = None

        self._drain_queue()
        self._codec_context = None
        logger.debug("PyAV decoder closed")

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _decode_loop(self) -> None:
        """Pull chunks from the queue and decode them."""
        logger.debug("Decoder loop started")

        while True:
            chunk = self._chunk_queue.get()
            if chunk is None:
                break

            try:
                if not self._closed and not self._failed:
                    self._decode_chunk(chunk)
            except DecodeError as e:
                with self._lock:
                    self._failed = True
                self._on_error(e)
            except Exception as e:
                logger.error(f"Error in decoder loop: {e}", exc_info=True)
            finally:
                with self._lock:
                    self._pending = max(0, self._pending - 1)

        logger.debug("Decoder loop finished")

    def _decode_chunk(self, chunk: EncodedChunk) -> None:
        """
        Decode one chunk and deliver every frame it produces.

        Raises:
            DecodeError: If FFmpeg rejects the chunk
        """
        packet = av.Packet(chunk.data)
        packet.pts = chunk.timestamp

        try:
            frames = self._codec_context.decode(packet)
        except av.error.BlockingIOError:
            # Decoder is full, expected behavior
            return
        except av.error.EOFError:
            logger.debug("Decoder EOF")
            return
        except Exception as e:
            raise DecodeError(f"Failed to decode chunk: {e}")

        for frame in frames:
            try:
                pixels = self._frame_to_rgb(frame)
            except Exception as e:
                raise DecodeError(f"Failed to convert frame to RGB: {e}")

            timestamp = frame.pts if frame.pts is not None else chunk.timestamp
            self._on_frame(DecodedFrame(pixels, frame.width, frame.height, timestamp))

    @staticmethod
    def _frame_to_rgb(frame: av.VideoFrame) -> np.ndarray:
        """
        Convert a frame to an RGB24 array of shape (height, width, 3).

        The frame's own dimensions are used so rotations come through as
        geometry changes. The array is copied since PyAV reuses its buffers.
        """
        frame_rgb = transfer_hw_frame(frame, "rgb24")
        return frame_rgb.to_ndarray().copy()

    def _drain_queue(self) -> None:
        """Discard chunks that were never decoded."""
        while True:
            try:
                self._chunk_queue.get_nowait()
            except queue.Empty:
                break
        with self._lock:
            self._pending = 0
