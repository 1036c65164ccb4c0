"""
scrcpy_mirror/core/reader.py

Abortable read loop over a device channel.

The reader runs in a dedicated thread:
- a read timeout means the device is idle (static screen), the loop retries
- end of stream or a socket error is terminal and ends the loop
- stop() closes the channel to sever a blocking read; anything read after
  that is discarded instead of being delivered to a dead session
"""

import logging
import threading
from typing import Callable, Optional

from .channel.base import ChannelClosedError, ChannelTimeoutError, DeviceChannel
from .protocol import DEFAULT_READ_TIMEOUT


logger = logging.getLogger(__name__)


__all__ = ["VideoStreamReader"]


class VideoStreamReader:
    """
    Reads video chunks from a device channel on a background thread.

    Example:
        >>> reader = VideoStreamReader(channel, batcher.push, on_end)
        >>> reader.start()
        >>> reader.stop()
    """

    def __init__(
        self,
        channel: DeviceChannel,
        on_chunk: Callable[[bytes], None],
        on_end: Optional[Callable[[Optional[Exception]], None]] = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ):
        """
        Initialize the reader.

        Args:
            channel: Channel to read from (closed by stop())
            on_chunk: Receives every chunk read (called from the reader thread)
            on_end: Called once when the stream ends on its own, with the
                error that ended it or None for a clean end of stream
            read_timeout: Read timeout in seconds before retrying
        """
        self._channel = channel
        self._on_chunk = on_chunk
        self._on_end = on_end
        self._read_timeout = read_timeout

        # Threading
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()

        # Statistics
        self._bytes_received = 0
        self._chunks_received = 0
        self._timeouts = 0
        self._chunks_discarded = 0

    def start(self) -> None:
        """Start the reader thread."""
        if self._thread is not None:
            logger.warning("Reader already started")
            return

        self._stopped.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="VideoStreamReader", daemon=True
        )
        self._thread.start()
        logger.info("VideoStreamReader started")

    def stop(self) -> None:
        """Stop the reader and wait for the thread to finish."""
        self._stopped.set()

        # Close channel to interrupt blocking read
        try:
            self._channel.close()
        except OSError as e:
            logger.debug(f"Error closing channel: {e}")

        thread = self._thread
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout=5.0)
            if thread.is_alive():
                logger.warning("VideoStreamReader did not stop gracefully")

        self._thread = None
        logger.info("VideoStreamReader stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and not self._stopped.is_set()

    def _run_loop(self) -> None:
        """Main read loop."""
        error: Optional[Exception] = None

        try:
            while not self._stopped.is_set():
                try:
                    chunk = self._channel.read(self._read_timeout)
                except ChannelTimeoutError:
                    self._timeouts += 1
                    logger.debug("No video data within timeout, device idle")
                    continue
                except ChannelClosedError as e:
                    if not self._stopped.is_set():
                        logger.info(f"Video stream ended: {e}")
                    break
                except OSError as e:
                    if not self._stopped.is_set():
                        logger.error(f"Channel error: {e}")
                        error = e
                    break

                if self._stopped.is_set():
                    self._chunks_discarded += 1
                    break

                self._chunks_received += 1
                self._bytes_received += len(chunk)
                self._on_chunk(chunk)

        except Exception as e:
            logger.error(f"Reader loop error: {e}", exc_info=True)
            error = e

        finally:
            logger.info("VideoStreamReader loop ended")

        if not self._stopped.is_set():
            self._stopped.set()
            if self._on_end is not None:
                self._on_end(error)

    def get_stats(self) -> dict:
        """Get reader statistics."""
        return {
            "bytes_received": self._bytes_received,
            "chunks_received": self._chunks_received,
            "timeouts": self._timeouts,
            "chunks_discarded": self._chunks_discarded,
        }
