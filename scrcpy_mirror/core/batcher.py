"""
scrcpy_mirror/core/batcher.py

Host-side batching of raw video bytes.

Chunks read from the device are coalesced and posted to the UI as one
base64 message per flush interval. If the UI cannot keep up and the pending
batch would exceed its cap, the whole batch is discarded and the decoder
resynchronizes on the next keyframe.
"""

import logging
import threading
from typing import Callable, List, Optional

from .protocol import DEFAULT_BATCH_INTERVAL, DEFAULT_MAX_BATCH_BYTES
from .transport import encode_video_message


logger = logging.getLogger(__name__)


__all__ = ["VideoBatcher", "Scheduler"]


# schedule(delay, callback) -> handle with cancel()
Scheduler = Callable[[float, Callable[[], None]], object]


def _timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class VideoBatcher:
    """
    Coalesces video chunks into timed batches.

    Example:
        >>> batcher = VideoBatcher(post_message)
        >>> batcher.push(chunk)   # posted within ~8ms
        >>> batcher.cancel()
    """

    def __init__(
        self,
        post: Callable[[dict], None],
        interval: float = DEFAULT_BATCH_INTERVAL,
        max_bytes: int = DEFAULT_MAX_BATCH_BYTES,
        schedule: Optional[Scheduler] = None,
    ) -> None:
        """
        Initialize the batcher.

        Args:
            post: Sends a wire message to the UI
            interval: Flush delay in seconds after the first pending chunk
            max_bytes: Cap on pending bytes before the batch is discarded
            schedule: Timer factory (a daemon threading.Timer if None)
        """
        self._post = post
        self._interval = interval
        self._max_bytes = max_bytes
        self._schedule = schedule or _timer_scheduler

        self._chunks: List[bytes] = []
        self._pending_bytes = 0
        self._timer = None
        self._cancelled = False
        self._lock = threading.Lock()
        # Held while posting so cancel() can wait for an in-flight batch
        self._post_lock = threading.RLock()

        # Statistics
        self._batches_posted = 0
        self._bytes_posted = 0
        self._overflows = 0
        self._bytes_discarded = 0

    def push(self, chunk: bytes) -> None:
        """Queue a chunk and arm the flush timer if it is not armed."""
        if not chunk:
            return

        with self._lock:
            if self._cancelled:
                return

            if self._pending_bytes + len(chunk) > self._max_bytes:
                logger.warning(
                    f"Video batch overflow, discarding {self._pending_bytes} pending bytes"
                )
                self._overflows += 1
                self._bytes_discarded += self._pending_bytes
                self._chunks = []
                self._pending_bytes = 0

            self._chunks.append(bytes(chunk))
            self._pending_bytes += len(chunk)

            if self._timer is None:
                self._timer = self._schedule(self._interval, self.flush)

    def flush(self) -> None:
        """Post all pending bytes as one video message."""
        with self._lock:
            self._timer = None
            if self._cancelled or not self._chunks:
                return
            data = b"".join(self._chunks)
            self._chunks = []
            self._pending_bytes = 0

        # Post outside the lock so a slow receiver doesn't block push()
        with self._post_lock:
            if self._cancelled:
                logger.debug(f"Dropping {len(data)} bytes flushed during cancel")
                return
            self._post(encode_video_message(data))

        with self._lock:
            self._batches_posted += 1
            self._bytes_posted += len(data)

    def cancel(self) -> None:
        """
        Disarm the timer and drop pending bytes.

        Once this returns nothing more is posted, including a batch that
        was already being flushed. Later pushes are ignored.
        """
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._chunks = []
            self._pending_bytes = 0

        # Wait for a post in progress on another thread
        with self._post_lock:
            pass

    @property
    def pending_bytes(self) -> int:
        with self._lock:
            return self._pending_bytes

    def get_stats(self) -> dict:
        """Get batcher statistics."""
        with self._lock:
            return {
                "batches_posted": self._batches_posted,
                "bytes_posted": self._bytes_posted,
                "pending_bytes": self._pending_bytes,
                "overflows": self._overflows,
                "bytes_discarded": self._bytes_discarded,
            }
