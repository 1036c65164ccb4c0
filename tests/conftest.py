"""Shared fixtures: bitstream builders, a fake decoder backend, a scripted
device channel, a fake clock and a manual timer scheduler."""

import queue
import threading
from typing import Callable, List, Optional

import numpy as np
import pytest

from scrcpy_mirror.core.channel import ChannelClosedError, DeviceChannel
from scrcpy_mirror.core.decoder.backend import (
    DecodedFrame,
    DecoderBackend,
    DecoderConfig,
    EncodedChunk,
)
from scrcpy_mirror.core.decoder.exceptions import DecodeError, DecoderInitializationError


SC4 = b"\x00\x00\x00\x01"
SC3 = b"\x00\x00\x01"

# High profile, level 4.0
SPS = SC4 + b"\x67\x64\x00\x28\xac\xd9\x40"
PPS = SC4 + b"\x68\xee\x3c\x80"
IDR = SC4 + b"\x65\x88\x84\x21\xa0"
NON_IDR = SC4 + b"\x41\x9a\x02\x03\x04"


def nal(nal_type: int, payload: bytes = b"\xaa\xbb", start_code: bytes = SC4) -> bytes:
    """Build a NAL unit with a header byte of nal_ref_idc=3."""
    return start_code + bytes([0x60 | nal_type]) + payload


class FakeBackend(DecoderBackend):
    """
    Records everything and decodes nothing.

    Set ``depth`` to simulate a busy decoder, ``fail_configure`` or
    ``fail_decode`` to inject failures, ``emit_frames`` to answer every chunk
    with a frame of ``width`` x ``height``.
    """

    def __init__(self, on_frame, on_error):
        super().__init__(on_frame, on_error)
        self.configs: List[DecoderConfig] = []
        self.chunks: List[EncodedChunk] = []
        self.depth = 0
        self.fail_configure = False
        self.fail_decode = False
        self.emit_frames = False
        self.width = 64
        self.height = 48
        self.close_count = 0

    def configure(self, config: DecoderConfig) -> None:
        if self.fail_configure:
            raise DecoderInitializationError("configure rejected")
        self.configs.append(config)

    def decode(self, chunk: EncodedChunk) -> None:
        if self.fail_decode:
            raise DecodeError("decode rejected")
        self.chunks.append(chunk)
        if self.emit_frames:
            self.emit_frame(chunk.timestamp)

    def emit_frame(self, timestamp: int = 0, width: Optional[int] = None, height: Optional[int] = None):
        width = width or self.width
        height = height or self.height
        pixels = np.zeros((height, width, 3), dtype=np.uint8)
        self._on_frame(DecodedFrame(pixels, width, height, timestamp))

    def fail(self, error: Exception) -> None:
        self._on_error(error)

    def queue_depth(self) -> int:
        return self.depth

    def close(self) -> None:
        self.close_count += 1


class BackendRecorder:
    """Backend factory keeping the created backends, with presets applied."""

    def __init__(self, **presets):
        self.presets = presets
        self.backends: List[FakeBackend] = []

    def __call__(self, on_frame, on_error) -> FakeBackend:
        backend = FakeBackend(on_frame, on_error)
        for name, value in self.presets.items():
            setattr(backend, name, value)
        self.backends.append(backend)
        return backend

    @property
    def last(self) -> FakeBackend:
        return self.backends[-1]


class ScriptedChannel(DeviceChannel):
    """Replays queued chunks and errors; blocks when the script runs dry."""

    def __init__(self, *items):
        self.items: queue.Queue = queue.Queue()
        for item in items:
            self.items.put(item)
        self.timeouts = []
        self.closed = threading.Event()

    def feed(self, item) -> None:
        self.items.put(item)

    def read(self, timeout: float) -> bytes:
        self.timeouts.append(timeout)
        while True:
            if self.closed.is_set():
                raise ChannelClosedError("Channel is closed")
            try:
                item = self.items.get(timeout=0.01)
            except queue.Empty:
                continue
            if isinstance(item, BaseException):
                raise item
            return item

    def close(self) -> None:
        self.closed.set()


class ResetSocket:
    """Socket stand-in whose peer resets the connection on the first recv()."""

    def __init__(self):
        self.closed = False

    def settimeout(self, timeout) -> None:
        if self.closed:
            raise OSError(9, "Bad file descriptor")

    def recv(self, size: int) -> bytes:
        raise ConnectionResetError(104, "Connection reset by peer")

    def shutdown(self, how) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when told to."""

    def __init__(self):
        self.timers: List[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def fire(self) -> None:
        """Run every pending timer once."""
        for timer in self.pending:
            timer.cancelled = True
            timer.callback()


@pytest.fixture
def recorder() -> BackendRecorder:
    return BackendRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
