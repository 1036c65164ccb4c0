from scrcpy_mirror.core.assembler import AccessUnit
from scrcpy_mirror.core.decoder import ChunkType, DecoderSession, SessionState
from scrcpy_mirror.core.protocol import LogLevel

from conftest import IDR, NON_IDR, PPS, SC4, SPS, BackendRecorder


KEY = AccessUnit(SPS + PPS + IDR, True)
DELTA = AccessUnit(NON_IDR, False)


def make_session(recorder, clock, **kwargs):
    frames, logs = [], []
    session = DecoderSession(
        recorder, on_frame=frames.append, on_log=logs.append, clock=clock, **kwargs
    )
    return session, frames, logs


def test_configure_builds_config_from_parameter_sets(recorder, clock) -> None:
    session, _, logs = make_session(recorder, clock)

    assert session.configure(SPS, PPS)

    config = recorder.last.configs[0]
    assert config.codec == "avc1.640028"
    assert config.low_latency
    assert config.description == SPS + PPS
    assert session.state is SessionState.CONFIGURED
    assert session.codec == "avc1.640028"
    assert logs[-1].message == "Decoder configured with codec: avc1.640028"
    assert logs[-1].level is LogLevel.INFO


def test_configure_happens_once(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)

    assert session.configure(SPS, PPS)
    assert not session.configure(SC4 + b"\x67\x42\xc0\x1f", PPS)

    assert len(recorder.backends) == 1
    assert len(recorder.last.configs) == 1
    assert session.get_stats()["configure_count"] == 1


def test_configure_with_unusable_sps_stays_unconfigured(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)

    assert not session.configure(SC4 + b"\x67", PPS)

    assert session.state is SessionState.UNCONFIGURED
    assert recorder.backends == []
    assert session.configure(SPS, PPS)


def test_configure_failure_is_terminal(clock) -> None:
    recorder = BackendRecorder(fail_configure=True)
    session, _, logs = make_session(recorder, clock)

    assert not session.configure(SPS, PPS)

    assert session.is_errored
    assert logs[-1].level is LogLevel.ERROR
    assert logs[-1].message.startswith("Failed to configure decoder:")
    assert not session.configure(SPS, PPS)
    assert not session.decode(KEY)


def test_decode_before_configure_is_skipped(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)

    assert not session.decode(KEY)
    assert session.get_stats()["skipped_units"] == 1


def test_decode_submits_typed_chunks(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)
    session.configure(SPS, PPS)

    assert session.decode(KEY)
    assert session.decode(DELTA)

    chunks = recorder.last.chunks
    assert [c.type for c in chunks] == [ChunkType.KEY, ChunkType.DELTA]
    assert chunks[0].data == KEY.data
    assert chunks[1].data == DELTA.data


def test_timestamps_are_microseconds_since_configure(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)
    session.configure(SPS, PPS)

    session.decode(KEY)
    clock.advance(0.016)
    session.decode(DELTA)
    clock.advance(0.5)
    session.decode(DELTA)

    assert [c.timestamp for c in recorder.last.chunks] == [0, 16000, 516000]


def test_timestamps_strictly_increase_with_frozen_clock(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)
    session.configure(SPS, PPS)

    for _ in range(5):
        session.decode(DELTA)

    assert [c.timestamp for c in recorder.last.chunks] == [0, 1, 2, 3, 4]


def test_timestamps_clamped_when_clock_goes_back(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)
    session.configure(SPS, PPS)

    clock.advance(1.0)
    session.decode(KEY)
    clock.advance(-0.5)
    session.decode(DELTA)

    assert [c.timestamp for c in recorder.last.chunks] == [1000000, 1000001]


def test_backpressure_drops_delta_frames_only(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)
    session.configure(SPS, PPS)
    backend = recorder.last

    backend.depth = 3
    assert session.decode(DELTA)

    backend.depth = 4
    assert not session.decode(DELTA)
    assert not session.decode(DELTA)
    assert session.decode(KEY)

    assert session.dropped_frames == 2
    assert [c.type for c in backend.chunks] == [ChunkType.DELTA, ChunkType.KEY]

    backend.depth = 0
    assert session.decode(DELTA)
    assert session.dropped_frames == 2


def test_backpressure_threshold_is_configurable(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock, max_queue_depth=0)
    session.configure(SPS, PPS)
    recorder.last.depth = 1

    assert not session.decode(DELTA)
    assert session.dropped_frames == 1


def test_decode_failure_is_terminal(clock) -> None:
    recorder = BackendRecorder(fail_decode=True)
    session, _, logs = make_session(recorder, clock)
    session.configure(SPS, PPS)

    assert not session.decode(KEY)

    assert session.is_errored
    assert logs[-1].level is LogLevel.ERROR
    assert logs[-1].message.startswith("Decode error:")

    recorder.last.fail_decode = False
    assert not session.decode(KEY)
    assert recorder.last.chunks == []


def test_async_backend_error_is_terminal(recorder, clock) -> None:
    session, _, logs = make_session(recorder, clock)
    session.configure(SPS, PPS)

    recorder.last.fail(RuntimeError("corrupt slice"))

    assert session.is_errored
    assert logs[-1].level is LogLevel.ERROR
    assert "corrupt slice" in logs[-1].message
    assert not session.decode(KEY)


def test_frames_update_geometry_and_are_forwarded(recorder, clock) -> None:
    session, frames, logs = make_session(recorder, clock)
    session.configure(SPS, PPS)
    backend = recorder.last

    backend.emit_frame(0, 1080, 2400)
    backend.emit_frame(1, 1080, 2400)
    backend.emit_frame(2, 2400, 1080)

    assert len(frames) == 3
    assert (session.geometry.width, session.geometry.height) == (2400, 1080)
    size_logs = [e.message for e in logs if e.message.startswith("Video size")]
    assert size_logs == ["Video size: 1080x2400", "Video size: 2400x1080"]
    assert session.get_stats()["frames_decoded"] == 3


def test_close_is_idempotent(recorder, clock) -> None:
    session, frames, _ = make_session(recorder, clock)
    session.configure(SPS, PPS)
    backend = recorder.last

    session.close()
    session.close()

    assert backend.close_count == 1
    assert session.state is SessionState.CLOSED
    assert not session.decode(KEY)

    # Late frames and errors from the closed backend are ignored
    backend.emit_frame()
    backend.fail(RuntimeError("late"))
    assert frames == []
    assert session.state is SessionState.CLOSED


def test_close_before_configure(recorder, clock) -> None:
    session, _, _ = make_session(recorder, clock)

    session.close()

    assert session.state is SessionState.CLOSED
    assert not session.configure(SPS, PPS)
    assert recorder.backends == []
