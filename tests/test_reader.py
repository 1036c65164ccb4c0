import threading
import time

from scrcpy_mirror.core.channel import (
    ChannelClosedError,
    ChannelTimeoutError,
    DeviceChannel,
)
from scrcpy_mirror.core.reader import VideoStreamReader

from conftest import ScriptedChannel


class EndRecorder:
    def __init__(self):
        self.errors = []
        self.done = threading.Event()

    def __call__(self, error) -> None:
        self.errors.append(error)
        self.done.set()


def test_chunks_are_delivered_in_order() -> None:
    channel = ScriptedChannel(b"\x01", b"\x02\x03", ChannelClosedError("eof"))
    chunks = []
    on_end = EndRecorder()
    reader = VideoStreamReader(channel, chunks.append, on_end, read_timeout=7.5)

    reader.start()

    assert on_end.done.wait(timeout=2.0)
    assert chunks == [b"\x01", b"\x02\x03"]
    assert on_end.errors == [None]
    assert channel.timeouts[0] == 7.5
    assert reader.get_stats()["bytes_received"] == 3


def test_timeouts_are_retried() -> None:
    channel = ScriptedChannel(
        ChannelTimeoutError("idle"),
        ChannelTimeoutError("idle"),
        b"\x09",
        ChannelClosedError("eof"),
    )
    chunks = []
    on_end = EndRecorder()
    reader = VideoStreamReader(channel, chunks.append, on_end)

    reader.start()

    assert on_end.done.wait(timeout=2.0)
    assert chunks == [b"\x09"]
    assert reader.get_stats()["timeouts"] == 2


def test_socket_error_is_terminal_and_reported() -> None:
    error = ConnectionResetError("reset by peer")
    channel = ScriptedChannel(b"\x01", error, b"\x02")
    chunks = []
    on_end = EndRecorder()
    reader = VideoStreamReader(channel, chunks.append, on_end)

    reader.start()

    assert on_end.done.wait(timeout=2.0)
    assert chunks == [b"\x01"]
    assert on_end.errors == [error]


def test_stop_closes_channel_without_end_callback() -> None:
    channel = ScriptedChannel()
    on_end = EndRecorder()
    reader = VideoStreamReader(channel, lambda chunk: None, on_end)
    reader.start()
    assert reader.is_running

    reader.stop()

    assert channel.closed.is_set()
    assert not reader.is_running
    assert on_end.errors == []


def test_read_completing_after_stop_is_discarded() -> None:
    release = threading.Event()
    entered = threading.Event()
    chunks = []

    class SlowChannel(DeviceChannel):
        def read(self, timeout):
            entered.set()
            release.wait(timeout=2.0)
            return b"\x01\x02"

        def close(self):
            pass

    reader = VideoStreamReader(SlowChannel(), chunks.append)
    reader.start()
    assert entered.wait(timeout=2.0)

    stopper = threading.Thread(target=reader.stop)
    stopper.start()
    # Let stop() set the flag before the read returns
    while reader.is_running:
        time.sleep(0.001)
    release.set()
    stopper.join(timeout=5.0)

    assert chunks == []
    assert reader.get_stats()["chunks_discarded"] == 1


def test_stop_before_start_is_safe() -> None:
    channel = ScriptedChannel()
    reader = VideoStreamReader(channel, lambda chunk: None)

    reader.stop()

    assert channel.closed.is_set()
