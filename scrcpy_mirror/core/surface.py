"""
scrcpy_mirror/core/surface.py

Drawable surface for decoded frames.

The surface keeps a single pending frame: drawing a new frame replaces the
previous one whether or not it was consumed, so a slow renderer always gets
the most recent picture instead of a backlog.
"""

import logging
from threading import Lock
from typing import Optional, Tuple

import numpy as np

from .decoder.backend import DecodedFrame


logger = logging.getLogger(__name__)


__all__ = ['FrameSurface']


class FrameSurface:
    """
    Single-frame drawable surface.

    Thread-safe: frames are drawn from the decoder thread and consumed from
    the render thread.
    """

    def __init__(self):
        """Initialize an empty surface of size 0x0."""
        self._pending_frame: Optional[np.ndarray] = None
        self._consumed = True
        self._size: Tuple[int, int] = (0, 0)
        self._lock = Lock()

        # Statistics
        self._frames_drawn = 0
        self._frames_skipped = 0
        self._resize_count = 0

    def draw(self, frame: DecodedFrame) -> bool:
        """
        Draw a decoded frame.

        The surface takes the frame's dimensions before storing its pixels,
        so a geometry change applies to this very frame.

        Returns:
            True if the previous frame was replaced before being consumed
        """
        with self._lock:
            size = (frame.display_width, frame.display_height)
            if size != self._size:
                self._size = size
                self._resize_count += 1
                logger.info(f"Surface resized to {size[0]}x{size[1]}")

            previous_skipped = not self._consumed
            if previous_skipped:
                self._frames_skipped += 1

            self._pending_frame = frame.pixels
            self._consumed = False
            self._frames_drawn += 1
            return previous_skipped

    def consume(self) -> Optional[np.ndarray]:
        """
        Take the pending frame, marking it as consumed.

        Returns:
            A copy of the pending frame, or None if it was already consumed
        """
        with self._lock:
            if self._consumed or self._pending_frame is None:
                return None
            self._consumed = True
            # The decoder may draw again while the renderer uploads this one
            return self._pending_frame.copy()

    def peek(self) -> Optional[np.ndarray]:
        """Get the last drawn frame without consuming it."""
        with self._lock:
            return self._pending_frame

    def clear(self) -> None:
        """Drop the pending frame and reset the size."""
        with self._lock:
            self._pending_frame = None
            self._consumed = True
            self._size = (0, 0)

    @property
    def size(self) -> Tuple[int, int]:
        """Current (width, height) of the surface."""
        with self._lock:
            return self._size

    @property
    def frames_drawn(self) -> int:
        return self._frames_drawn

    def get_stats(self) -> dict:
        """Get surface statistics."""
        with self._lock:
            return {
                "frames_drawn": self._frames_drawn,
                "frames_skipped": self._frames_skipped,
                "resize_count": self._resize_count,
                "width": self._size[0],
                "height": self._size[1],
            }
