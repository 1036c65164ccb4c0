"""
UI side of the mirror.

The view receives wire messages from the host, tracks the connection status
and feeds video messages to a transport adapter that decodes them onto a
drawable surface. Handling of each message is atomic.
"""

import logging
import threading
import time
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional, Tuple

from scrcpy_mirror.client.config import MirrorConfig
from scrcpy_mirror.core.decoder import BackendFactory, create_backend_factory
from scrcpy_mirror.core.protocol import LogEvent, LogLevel, MessageType
from scrcpy_mirror.core.surface import FrameSurface
from scrcpy_mirror.core.transport import ScratchBuffer, TransportAdapter


logger = logging.getLogger(__name__)


# Log events kept for display
MAX_LOG_EVENTS = 100


class ViewStatus(Enum):
    """Connection status shown by the view"""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class MirrorView:
    """
    Routes host messages to the video pipeline.

    Example:
        >>> view = MirrorView(MirrorConfig(decoder="pyav"))
        >>> host = MirrorHost(view.handle_message)
        >>> view.start()
        >>> host.start(channel)
        >>> frame = view.surface.consume()
    """

    def __init__(
        self,
        config: Optional[MirrorConfig] = None,
        backend_factory: Optional[BackendFactory] = None,
        surface: Optional[FrameSurface] = None,
        on_log: Optional[Callable[[LogEvent], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the view.

        Args:
            config: Mirror configuration (defaults if None)
            backend_factory: Decoder backend factory (built from config if None)
            surface: Surface receiving decoded frames (creates one if None)
            on_log: Also receives every log event of the view
            clock: Clock used for decoder timestamps
        """
        self.config = config or MirrorConfig()
        if backend_factory is None:
            backend_factory = create_backend_factory(self.config.decoder, self.config.hw_accel)
        self._backend_factory = backend_factory
        self.surface = surface if surface is not None else FrameSurface()
        self._on_log = on_log
        self._clock = clock

        self._lock = threading.RLock()
        self._status = ViewStatus.IDLE
        self._adapter: Optional[TransportAdapter] = None

        # Decoder log events may arrive from the decoder thread
        self._log_lock = threading.Lock()
        self._logs: Deque[LogEvent] = deque(maxlen=MAX_LOG_EVENTS)
        self._last_error: Optional[str] = None

        # Statistics
        self._messages_handled = 0
        self._video_ignored = 0
        self._unknown_messages = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Reset everything before a new mirror starts."""
        with self._lock:
            self._teardown()
            self._status = ViewStatus.IDLE
            with self._log_lock:
                self._last_error = None
                self._logs.clear()

    def close(self) -> None:
        """Release the decoder."""
        with self._lock:
            self._teardown()

    def _teardown(self) -> None:
        """Close the current stream session. Caller holds the lock."""
        if self._adapter is not None:
            self._adapter.close()
            self._adapter = None
        self.surface.clear()

    def _new_adapter(self) -> TransportAdapter:
        return TransportAdapter(
            self._backend_factory,
            surface=self.surface,
            on_log=self._add_log,
            clock=self._clock,
            max_decode_queue=self.config.max_decode_queue,
            scratch=ScratchBuffer(self.config.scratch_min_size),
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def handle_message(self, message: dict) -> None:
        """Handle one wire message from the host."""
        with self._lock:
            self._messages_handled += 1
            try:
                message_type = MessageType(message.get("type"))
            except ValueError:
                self._unknown_messages += 1
                logger.debug(f"Ignoring unknown message type: {message.get('type')}")
                return

            if message_type is MessageType.VIDEO:
                self._handle_video(message.get("data"))
            elif message_type is MessageType.CONNECTING:
                self._status = ViewStatus.CONNECTING
                self._add_log(LogEvent("Connecting..."))
            elif message_type is MessageType.CONNECTED:
                # A new stream starts with a clean decoder and caches
                self._teardown()
                self._adapter = self._new_adapter()
                self._status = ViewStatus.CONNECTED
                self._add_log(LogEvent("Connected"))
            elif message_type is MessageType.DISCONNECTED:
                self._teardown()
                self._status = ViewStatus.DISCONNECTED
                self._add_log(LogEvent("Disconnected"))
            elif message_type is MessageType.ERROR:
                error = message.get("message") or "Unknown error"
                self._add_log(LogEvent(error, LogLevel.ERROR))

    def _handle_video(self, data) -> None:
        if self._status is not ViewStatus.CONNECTED or self._adapter is None:
            self._video_ignored += 1
            return
        if not isinstance(data, str):
            self._video_ignored += 1
            logger.debug("Ignoring video message without payload")
            return
        self._adapter.process_message(data)

    def _add_log(self, event: LogEvent) -> None:
        with self._log_lock:
            self._logs.append(event)
            if event.level is LogLevel.ERROR:
                self._last_error = event.message
        if self._on_log is not None:
            self._on_log(event)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> ViewStatus:
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        with self._log_lock:
            return self._last_error

    @property
    def logs(self) -> List[LogEvent]:
        with self._log_lock:
            return list(self._logs)

    @property
    def adapter(self) -> Optional[TransportAdapter]:
        return self._adapter

    @property
    def video_size(self) -> Tuple[int, int]:
        """(width, height) of the surface, (0, 0) before the first frame."""
        return self.surface.size

    @property
    def dropped_frames(self) -> int:
        adapter = self._adapter
        return adapter.dropped_frames if adapter is not None else 0

    def get_stats(self) -> dict:
        """Get view statistics."""
        with self._lock:
            stats = {
                "status": self._status.value,
                "messages_handled": self._messages_handled,
                "video_ignored": self._video_ignored,
                "unknown_messages": self._unknown_messages,
            }
            if self._adapter is not None:
                stats.update(self._adapter.get_stats())
            stats["surface"] = self.surface.get_stats()
            return stats
