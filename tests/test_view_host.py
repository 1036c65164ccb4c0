import base64
import threading
import time

from scrcpy_mirror.client import MirrorConfig, MirrorHost, MirrorView, ViewStatus
from scrcpy_mirror.core.channel import ChannelClosedError, SocketDeviceChannel
from scrcpy_mirror.core.decoder import SessionState
from scrcpy_mirror.core.protocol import LogLevel

from conftest import (
    IDR,
    NON_IDR,
    PPS,
    SPS,
    BackendRecorder,
    ResetSocket,
    ScriptedChannel,
)


def video(data: bytes) -> dict:
    return {"type": "video", "data": base64.b64encode(data).decode("ascii")}


def wait_for(condition, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.005)
    return condition()


class Inbox:
    """Thread-safe message sink."""

    def __init__(self):
        self._lock = threading.Lock()
        self._messages = []

    def __call__(self, message: dict) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def types(self):
        with self._lock:
            return [m["type"] for m in self._messages]

    @property
    def messages(self):
        with self._lock:
            return list(self._messages)


# ----------------------------------------------------------------------
# MirrorView
# ----------------------------------------------------------------------

def make_view(recorder, clock, **kwargs) -> MirrorView:
    view = MirrorView(backend_factory=recorder, clock=clock, **kwargs)
    view.start()
    return view


def connect(view: MirrorView) -> None:
    view.handle_message({"type": "connecting"})
    view.handle_message({"type": "connected"})


def test_video_ignored_until_connected(recorder, clock) -> None:
    view = make_view(recorder, clock)

    view.handle_message(video(SPS + PPS + IDR))
    view.handle_message({"type": "connecting"})
    view.handle_message(video(SPS + PPS + IDR))

    assert view.status is ViewStatus.CONNECTING
    assert recorder.backends == []
    assert view.get_stats()["video_ignored"] == 2


def test_connected_view_decodes_video(clock) -> None:
    recorder = BackendRecorder(emit_frames=True, width=1080, height=2400)
    view = make_view(recorder, clock)
    connect(view)

    view.handle_message(video(SPS + PPS + IDR))
    view.handle_message(video(NON_IDR))

    assert view.status is ViewStatus.CONNECTED
    assert [c.data for c in recorder.last.chunks] == [SPS + PPS + IDR, NON_IDR]
    assert view.video_size == (1080, 2400)
    assert view.surface.consume().shape == (2400, 1080, 3)
    messages = [e.message for e in view.logs]
    assert "Connected" in messages
    assert "Decoder configured with codec: avc1.640028" in messages


def test_disconnect_tears_down_stream(recorder, clock) -> None:
    view = make_view(recorder, clock)
    connect(view)
    view.handle_message(video(SPS + PPS + IDR))
    session = view.adapter.session

    view.handle_message({"type": "disconnected"})

    assert view.status is ViewStatus.DISCONNECTED
    assert view.adapter is None
    assert session.state is SessionState.CLOSED
    assert recorder.last.close_count == 1
    assert view.video_size == (0, 0)

    view.handle_message(video(NON_IDR))
    assert len(recorder.last.chunks) == 1


def test_reconnect_starts_with_empty_parameter_sets(recorder, clock) -> None:
    view = make_view(recorder, clock)
    connect(view)
    view.handle_message(video(SPS + PPS + IDR))
    view.handle_message({"type": "disconnected"})

    connect(view)
    view.handle_message(video(NON_IDR))
    assert len(recorder.backends) == 1

    view.handle_message(video(SPS + PPS + IDR))
    assert len(recorder.backends) == 2
    assert recorder.last.chunks[0].data == SPS + PPS + IDR


def test_error_message_is_surfaced(recorder, clock) -> None:
    view = make_view(recorder, clock)

    view.handle_message({"type": "error", "message": "Device unplugged"})

    assert view.last_error == "Device unplugged"
    assert view.logs[-1].level is LogLevel.ERROR


def test_decoder_failure_is_surfaced(clock) -> None:
    recorder = BackendRecorder(fail_decode=True)
    events = []
    view = make_view(recorder, clock, on_log=events.append)
    connect(view)

    view.handle_message(video(SPS + PPS + IDR))

    assert view.last_error.startswith("Decode error:")
    assert events[-1].level is LogLevel.ERROR
    assert view.adapter.session.is_errored


def test_start_resets_everything(recorder, clock) -> None:
    view = make_view(recorder, clock)
    connect(view)
    view.handle_message(video(SPS + PPS + IDR))
    view.handle_message({"type": "error", "message": "boom"})

    view.start()

    assert view.status is ViewStatus.IDLE
    assert view.adapter is None
    assert view.last_error is None
    assert view.logs == []
    assert recorder.last.close_count == 1


def test_unknown_and_malformed_messages_are_ignored(recorder, clock) -> None:
    view = make_view(recorder, clock)
    connect(view)

    view.handle_message({"type": "resize", "width": 10})
    view.handle_message({})
    view.handle_message({"type": "video"})
    view.handle_message({"type": "video", "data": "***"})

    stats = view.get_stats()
    assert stats["unknown_messages"] == 2
    assert stats["video_ignored"] == 1
    assert stats["malformed_messages"] == 1
    assert view.status is ViewStatus.CONNECTED


def test_view_with_echo_decoder(clock) -> None:
    view = MirrorView(MirrorConfig(decoder="echo"), clock=clock)
    view.start()
    connect(view)

    view.handle_message(video(SPS + PPS + IDR))

    assert view.video_size == (320, 240)
    assert view.adapter.session.codec == "avc1.640028"


# ----------------------------------------------------------------------
# MirrorHost
# ----------------------------------------------------------------------

def test_host_posts_lifecycle_and_batched_video(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)
    channel = ScriptedChannel(SPS + PPS, IDR)

    assert host.start(channel)
    assert host.is_active
    assert wait_for(lambda: host.get_stats()["reader"]["chunks_received"] == 2)

    scheduler.fire()
    host.stop()

    assert inbox.types == ["connecting", "connected", "video", "disconnected"]
    data = base64.b64decode(inbox.messages[2]["data"])
    assert data == SPS + PPS + IDR
    assert channel.closed.is_set()
    assert not host.is_active


def test_host_rejects_second_start(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)
    host.start(ScriptedChannel())

    assert not host.start(ScriptedChannel())

    assert inbox.messages[-1] == {"type": "error", "message": "Mirror already active"}
    host.stop()


def test_host_stop_posts_disconnected_once(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)
    host.start(ScriptedChannel(b"\x01\x02\x03"))
    assert wait_for(lambda: host.get_stats()["reader"]["chunks_received"] == 1)

    host.stop()
    host.stop()

    assert inbox.types.count("disconnected") == 1
    # Pending batch is dropped with the session
    assert scheduler.pending == []
    assert "video" not in inbox.types


def test_host_reports_end_of_stream(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)

    host.start(ScriptedChannel(ChannelClosedError("eof")))

    assert wait_for(lambda: "disconnected" in inbox.types)
    assert "error" not in inbox.types
    assert not host.is_active


def test_host_reports_stream_errors(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)

    host.start(ScriptedChannel(ConnectionResetError("reset by peer")))

    assert wait_for(lambda: "disconnected" in inbox.types)
    assert inbox.types[-2:] == ["error", "disconnected"]
    assert "reset by peer" in inbox.messages[-2]["message"]


def test_host_reports_connection_reset_from_socket_channel(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)

    host.start(SocketDeviceChannel(ResetSocket()))

    assert wait_for(lambda: not host.is_active)
    assert wait_for(lambda: "disconnected" in inbox.types)
    assert inbox.types == ["connecting", "connected", "error", "disconnected"]
    assert "Connection reset by peer" in inbox.messages[2]["message"]


def test_host_can_restart_after_stop(scheduler) -> None:
    inbox = Inbox()
    host = MirrorHost(inbox, schedule=scheduler)
    host.start(ScriptedChannel())
    host.stop()

    assert host.start(ScriptedChannel())
    assert host.get_stats()["sessions_started"] == 2
    host.stop()


def test_host_to_view_end_to_end(scheduler, clock) -> None:
    recorder = BackendRecorder(emit_frames=True, width=720, height=1280)
    view = MirrorView(backend_factory=recorder, clock=clock)
    host = MirrorHost(view.handle_message, MirrorConfig(), schedule=scheduler)
    channel = ScriptedChannel(SPS + PPS + IDR)

    view.start()
    host.start(channel)
    assert wait_for(lambda: host.get_stats()["reader"]["chunks_received"] == 1)
    scheduler.fire()

    channel.feed(NON_IDR)
    assert wait_for(lambda: host.get_stats()["reader"]["chunks_received"] == 2)
    scheduler.fire()

    assert view.video_size == (720, 1280)
    assert [c.data for c in recorder.last.chunks] == [SPS + PPS + IDR, NON_IDR]

    host.stop()
    assert view.status is ViewStatus.DISCONNECTED
    assert recorder.last.close_count == 1
