"""
Tests for the video recorder.
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

from conftest import FakeEncoder
from models.errors import EncoderInitError, EncoderWriteError
from models.frame import Frame
from models.vision_mode import VisionMode
from pipeline.processor import FrameProcessor
from pipeline.requests import ControlRequest, RequestChannel
from recording.encoder import OpenCVVideoEncoder, opencv_encoder_factory
from recording.recorder import RecorderState, VideoRecorder
from vision.chains import build_chains


class GatedEncoder(FakeEncoder):
    """Blocks inside write/release until the test opens the gate."""

    def __init__(self, block_write=False, block_release=False):
        super().__init__()
        self.gate = threading.Event()
        self.entered = threading.Event()
        self.block_write = block_write
        self.block_release = block_release

    def write(self, image):
        if self.block_write:
            self.entered.set()
            self.gate.wait(timeout=5)
        super().write(image)

    def release(self):
        if self.block_release:
            self.entered.set()
            self.gate.wait(timeout=5)
        super().release()


def frame(ts, width=16, height=12, value=0.5):
    pixels = np.full((height, width, 4), value, dtype=np.float32)
    return Frame(pixels=pixels, timestamp=ts)


@pytest.fixture
def recorder(tmp_path, encoder_factory):
    return VideoRecorder(output_dir=str(tmp_path / "video"), fps=10.0, encoder_factory=encoder_factory)


class TestRecorderLifecycle:
    def test_starts_idle(self, recorder):
        assert recorder.state is RecorderState.IDLE
        assert recorder.is_idle
        assert recorder.session is None

    def test_submit_before_start_ignored(self, recorder):
        assert recorder.submit_frame(frame(1.0), 1.0) is False

    def test_stop_while_idle(self, recorder):
        assert recorder.stop() is None

    def test_start_opens_encoder(self, recorder, fake_encoder, tmp_path):
        path = recorder.start((16, 12))

        assert recorder.is_active
        assert path.parent == tmp_path / "video"
        assert path.name.startswith("filtered_video_")
        assert path.suffix == ".mp4"
        assert fake_encoder.opened == [(path, (16, 12), 10.0)]

        recorder.stop().result(timeout=2)

    def test_start_while_active_returns_current_path(self, recorder):
        path = recorder.start((16, 12))
        assert recorder.start((32, 24)) == path
        recorder.stop().result(timeout=2)

    def test_full_session(self, tmp_path, fake_encoder, encoder_factory):
        completed = []
        recorder = VideoRecorder(
            output_dir=str(tmp_path),
            fps=10.0,
            encoder_factory=encoder_factory,
            on_complete=completed.append,
        )
        path = recorder.start((16, 12))
        for i in range(3):
            assert recorder.submit_frame(frame(50.0 + i * 0.1), 50.0 + i * 0.1)

        assert recorder.stop().result(timeout=2) == path
        assert completed == [path]
        assert recorder.is_idle
        assert fake_encoder.release_count == 1
        assert len(fake_encoder.frames) == 3
        assert recorder.last_session.frames_written == 3

    def test_sessions_get_unique_paths(self, recorder):
        first = recorder.start((16, 12))
        recorder.stop().result(timeout=2)
        second = recorder.start((16, 12))
        recorder.stop().result(timeout=2)
        assert first != second


class TestTimestamps:
    def test_first_frame_anchors_at_zero(self, recorder):
        recorder.start((16, 12))
        recorder.submit_frame(frame(100.0), 100.0)
        recorder.submit_frame(frame(100.1), 100.1)
        session = recorder.session
        recorder.stop().result(timeout=2)

        assert session.anchor == 100.0
        assert session.timestamps[0] == 0.0
        assert session.timestamps[1] == pytest.approx(0.1)

    def test_out_of_order_and_duplicate_dropped(self, recorder):
        recorder.start((16, 12))
        assert recorder.submit_frame(frame(5.0), 5.0)
        assert recorder.submit_frame(frame(5.2), 5.2)
        assert recorder.submit_frame(frame(5.2), 5.2) is False
        assert recorder.submit_frame(frame(5.1), 5.1) is False
        session = recorder.session
        recorder.stop().result(timeout=2)

        assert session.frames_accepted == 2
        assert session.frames_dropped == 2
        assert session.timestamps == pytest.approx([0.0, 0.2])

    def test_gap_repeats_last_frame(self, recorder, fake_encoder):
        recorder.start((16, 12))
        recorder.submit_frame(frame(0.0, value=0.2), 0.0)
        recorder.submit_frame(frame(0.3, value=0.8), 0.3)
        recorder.stop().result(timeout=2)

        assert len(fake_encoder.frames) == 4
        assert recorder.last_session.frames_repeated == 2
        np.testing.assert_array_equal(fake_encoder.frames[1], fake_encoder.frames[0])
        assert fake_encoder.frames[3][0, 0, 0] > fake_encoder.frames[0][0, 0, 0]

    def test_frames_in_same_slot_written_once(self, recorder, fake_encoder):
        recorder.start((16, 12))
        recorder.submit_frame(frame(0.0), 0.0)
        recorder.submit_frame(frame(0.01), 0.01)
        recorder.stop().result(timeout=2)

        assert len(fake_encoder.frames) == 1

    def test_frames_resized_to_session_resolution(self, recorder, fake_encoder):
        recorder.start((8, 6))
        recorder.submit_frame(frame(0.0, width=16, height=12), 0.0)
        recorder.stop().result(timeout=2)

        assert fake_encoder.frames[0].shape == (6, 8, 3)

    def test_mode_switch_mid_recording(self, tmp_path, fake_encoder, encoder_factory):
        """Switching chains while recording keeps one continuous timeline."""
        recorder = VideoRecorder(
            output_dir=str(tmp_path),
            fps=30.0,
            encoder_factory=encoder_factory,
            max_pending_frames=64,
        )
        requests = RequestChannel()
        processor = FrameProcessor(
            build_chains(lut_size=8),
            recorder=recorder,
            requests=requests,
            mode="dog",
        )
        requests.request(ControlRequest.START_RECORDING)

        modes = [VisionMode.DICHROMATIC, VisionMode.THERMAL, VisionMode.UV_PATTERN, VisionMode.ACUITY]
        for i in range(12):
            processor.set_mode(modes[i // 3])
            processor.process(frame(20.0 + i / 30.0))

        session = recorder.session
        recorder.stop().result(timeout=2)

        stamps = session.timestamps
        assert len(stamps) == 12
        assert len(set(stamps)) == len(stamps)
        assert all(b > a for a, b in zip(stamps, stamps[1:]))
        assert stamps[0] == 0.0
        assert processor.stats.recorded == 12


class TestStop:
    def test_double_stop_finalizes_once(self, tmp_path):
        encoder = GatedEncoder(block_release=True)
        completed = []
        recorder = VideoRecorder(
            output_dir=str(tmp_path),
            encoder_factory=lambda: encoder,
            on_complete=completed.append,
        )
        recorder.start((16, 12))
        recorder.submit_frame(frame(1.0), 1.0)

        first = recorder.stop()
        encoder.entered.wait(timeout=2)
        assert recorder.state is RecorderState.FINALIZING
        second = recorder.stop()
        assert second is first

        encoder.gate.set()
        first.result(timeout=2)
        assert recorder.stop() is None
        assert encoder.release_count == 1
        assert len(completed) == 1

    def test_frames_rejected_while_finalizing(self, tmp_path):
        encoder = GatedEncoder(block_release=True)
        recorder = VideoRecorder(output_dir=str(tmp_path), encoder_factory=lambda: encoder)
        recorder.start((16, 12))
        future = recorder.stop()
        encoder.entered.wait(timeout=2)

        assert recorder.submit_frame(frame(3.0), 3.0) is False

        encoder.gate.set()
        future.result(timeout=2)

    def test_completion_callback_error_still_resolves(self, tmp_path, encoder_factory):
        callback = MagicMock(side_effect=RuntimeError("listener gone"))
        recorder = VideoRecorder(output_dir=str(tmp_path), encoder_factory=encoder_factory, on_complete=callback)
        path = recorder.start((16, 12))
        assert recorder.stop().result(timeout=2) == path
        callback.assert_called_once_with(path)


class TestFailures:
    def test_encoder_init_error_leaves_idle(self, tmp_path):
        recorder = VideoRecorder(
            output_dir=str(tmp_path),
            encoder_factory=lambda: FakeEncoder(fail_open=True),
        )
        with pytest.raises(EncoderInitError):
            recorder.start((16, 12))
        assert recorder.is_idle
        assert recorder.session is None

    def test_unusable_output_dir(self, tmp_path, encoder_factory):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        recorder = VideoRecorder(output_dir=str(blocker), encoder_factory=encoder_factory)

        with pytest.raises(EncoderInitError):
            recorder.start((16, 12))
        assert recorder.is_idle

    def test_recovers_after_init_error(self, tmp_path):
        encoders = [FakeEncoder(fail_open=True), FakeEncoder()]
        recorder = VideoRecorder(output_dir=str(tmp_path), encoder_factory=lambda: encoders.pop(0))
        with pytest.raises(EncoderInitError):
            recorder.start((16, 12))
        path = recorder.start((16, 12))
        assert recorder.is_active
        assert recorder.stop().result(timeout=2) == path

    def test_bad_codec_leaves_idle(self, tmp_path):
        recorder = VideoRecorder(output_dir=str(tmp_path), encoder_factory=opencv_encoder_factory("mp4"))
        with pytest.raises(EncoderInitError) as exc:
            recorder.start((16, 12))
        assert isinstance(exc.value.__cause__, ValueError)
        assert recorder.state is RecorderState.IDLE
        assert recorder.stop() is None

    def test_unexpected_factory_error_is_recoverable(self, tmp_path):
        encoders = [RuntimeError("driver gone"), FakeEncoder()]

        def factory():
            item = encoders.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

        recorder = VideoRecorder(output_dir=str(tmp_path), encoder_factory=factory)
        with pytest.raises(EncoderInitError):
            recorder.start((16, 12))
        assert recorder.is_idle

        path = recorder.start((16, 12))
        assert recorder.is_active
        assert recorder.stop().result(timeout=2) == path

    def test_consecutive_write_failures_abort(self, tmp_path):
        encoder = FakeEncoder(fail_writes=True)
        completed = []
        recorder = VideoRecorder(
            output_dir=str(tmp_path),
            encoder_factory=lambda: encoder,
            on_complete=completed.append,
            max_consecutive_write_failures=3,
        )
        recorder.start((16, 12))
        future = recorder.session.future
        for i in range(3):
            recorder.submit_frame(frame(float(i)), float(i))

        assert isinstance(future.exception(timeout=2), EncoderWriteError)
        assert recorder.is_idle
        assert encoder.release_count == 1
        assert completed == []
        assert recorder.last_session.write_errors == 3

    def test_isolated_write_failure_is_skipped(self, tmp_path):
        class FlakyEncoder(FakeEncoder):
            def write(self, image):
                if not self.frames and not getattr(self, "failed", False):
                    self.failed = True
                    raise EncoderWriteError("hiccup")
                super().write(image)

        encoder = FlakyEncoder()
        recorder = VideoRecorder(output_dir=str(tmp_path), fps=10.0, encoder_factory=lambda: encoder)
        recorder.start((16, 12))
        recorder.submit_frame(frame(0.0), 0.0)
        recorder.submit_frame(frame(0.1), 0.1)
        recorder.stop().result(timeout=2)

        assert len(encoder.frames) == 1
        assert recorder.last_session.write_errors == 1

    def test_backlog_drops_frames(self, tmp_path):
        encoder = GatedEncoder(block_write=True)
        recorder = VideoRecorder(
            output_dir=str(tmp_path),
            encoder_factory=lambda: encoder,
            max_pending_frames=2,
        )
        recorder.start((16, 12))

        assert recorder.submit_frame(frame(0.0), 0.0)
        encoder.entered.wait(timeout=2)
        assert recorder.submit_frame(frame(0.1), 0.1)
        assert recorder.submit_frame(frame(0.2), 0.2)
        assert recorder.submit_frame(frame(0.3), 0.3) is False
        session = recorder.session

        encoder.gate.set()
        recorder.stop().result(timeout=2)
        assert session.frames_dropped == 1
        assert session.frames_accepted == 3


class TestStatus:
    def test_status_reports_session(self, recorder):
        assert recorder.status() == {"state": "idle", "session": None}
        recorder.start((16, 12))
        status = recorder.status()
        assert status["state"] == "active"
        assert status["session"]["resolution"] == [16, 12]
        recorder.stop().result(timeout=2)
        assert recorder.status()["session"]["frames_written"] == 0


class TestOpenCVVideoEncoder:
    def test_codec_must_be_fourcc(self):
        with pytest.raises(ValueError):
            OpenCVVideoEncoder("h264x")

    def test_invalid_settings(self, tmp_path):
        with pytest.raises(EncoderInitError):
            OpenCVVideoEncoder().open(tmp_path / "a.mp4", (0, 10), 30.0)

    def test_write_before_open(self):
        with pytest.raises(EncoderWriteError):
            OpenCVVideoEncoder().write(np.zeros((4, 4, 3), dtype=np.uint8))

    def test_release_is_idempotent(self):
        encoder = OpenCVVideoEncoder()
        encoder.release()
        encoder.release()
        assert not encoder.is_open

    def test_writes_mjpg_avi(self, tmp_path):
        path = tmp_path / "clip.avi"
        encoder = OpenCVVideoEncoder("MJPG")
        try:
            encoder.open(path, (32, 24), 10.0)
        except EncoderInitError:
            pytest.skip("MJPG writer not available")
        encoder.write(np.zeros((24, 32, 3), dtype=np.uint8))
        with pytest.raises(EncoderWriteError, match="does not match"):
            encoder.write(np.zeros((12, 16, 3), dtype=np.uint8))
        encoder.release()
        assert path.stat().st_size > 0
