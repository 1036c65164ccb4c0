"""
Host side of the mirror.

The host owns the device channel: a reader thread pulls raw video bytes,
a batcher coalesces them, and every batch is posted to the UI as a wire
message. Lifecycle changes are posted as messages too.
"""

import logging
import threading
from typing import Callable, Optional

from scrcpy_mirror.client.config import MirrorConfig
from scrcpy_mirror.core.batcher import Scheduler, VideoBatcher
from scrcpy_mirror.core.channel import DeviceChannel
from scrcpy_mirror.core.protocol import MessageType
from scrcpy_mirror.core.reader import VideoStreamReader


logger = logging.getLogger(__name__)


class MirrorHost:
    """
    Drives one device channel at a time and posts messages to the UI.

    Example:
        >>> host = MirrorHost(view.handle_message)
        >>> host.start(channel)
        >>> ...
        >>> host.stop()
    """

    def __init__(
        self,
        post_message: Callable[[dict], None],
        config: Optional[MirrorConfig] = None,
        schedule: Optional[Scheduler] = None,
    ):
        """
        Initialize the host.

        Args:
            post_message: Sends a wire message to the UI (any thread)
            config: Mirror configuration (defaults if None)
            schedule: Timer factory for the batcher (threading.Timer if None)
        """
        self._post = post_message
        self.config = config or MirrorConfig()
        self._schedule = schedule

        self._lock = threading.Lock()
        self._active = False
        self._reader: Optional[VideoStreamReader] = None
        self._batcher: Optional[VideoBatcher] = None
        self._sessions_started = 0

    def start(self, channel: DeviceChannel) -> bool:
        """
        Start mirroring from a device channel.

        Returns:
            True if mirroring started, False if a mirror is already active
        """
        with self._lock:
            already_active = self._active
            if not already_active:
                # Fresh batcher and reader per session, nothing carries over
                batcher = VideoBatcher(
                    self._post,
                    interval=self.config.batch_interval,
                    max_bytes=self.config.max_batch_bytes,
                    schedule=self._schedule,
                )
                reader = VideoStreamReader(
                    channel,
                    on_chunk=batcher.push,
                    on_end=self._on_stream_end,
                    read_timeout=self.config.read_timeout,
                )
                self._batcher = batcher
                self._reader = reader
                self._active = True
                self._sessions_started += 1

        if already_active:
            logger.warning("Mirror already active")
            self._post({"type": MessageType.ERROR.value, "message": "Mirror already active"})
            return False

        self._post({"type": MessageType.CONNECTING.value})
        self._post({"type": MessageType.CONNECTED.value})
        reader.start()
        logger.info("Mirror started")
        return True

    def stop(self) -> None:
        """Stop mirroring. Posts ``disconnected`` if a mirror was active."""
        reader, batcher = self._deactivate()
        if reader is None:
            return

        reader.stop()
        batcher.cancel()
        self._post({"type": MessageType.DISCONNECTED.value})
        logger.info("Mirror stopped")

    def _on_stream_end(self, error: Optional[Exception]) -> None:
        """Reader thread callback: the stream ended on its own."""
        reader, batcher = self._deactivate()
        if reader is None:
            return

        # Releases the channel; does not join since we are on the reader thread
        reader.stop()
        batcher.cancel()
        if error is not None:
            self._post({
                "type": MessageType.ERROR.value,
                "message": f"Video stream error: {error}",
            })
        self._post({"type": MessageType.DISCONNECTED.value})
        logger.info("Mirror ended by device")

    def _deactivate(self):
        with self._lock:
            if not self._active:
                return None, None
            self._active = False
            reader, self._reader = self._reader, None
            batcher, self._batcher = self._batcher, None
            return reader, batcher

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def get_stats(self) -> dict:
        """Get host statistics."""
        with self._lock:
            reader = self._reader
            batcher = self._batcher
            stats = {
                "active": self._active,
                "sessions_started": self._sessions_started,
            }
        if reader is not None:
            stats["reader"] = reader.get_stats()
        if batcher is not None:
            stats["batcher"] = batcher.get_stats()
        return stats
