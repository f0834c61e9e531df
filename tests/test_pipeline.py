"""
Tests for the pipeline engine.
"""

import time
from typing import Optional
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from models.frame import Frame
from observation.base import ObservationSource, ObservationConfig
from pipeline.engine import PipelineEngine, PipelineConfig, create_engine_from_config
from pipeline.processor import FrameProcessor
from pipeline.requests import ControlRequest
from pipeline.sinks import CallbackCaptureSink
from recording.recorder import VideoRecorder
from vision.chains import build_chains


class MockObservationSource(ObservationSource):
    """Mock source for testing."""

    def __init__(self, config: ObservationConfig, frames: list = None, max_frames: int = 10):
        super().__init__(config)
        self._frames = frames
        self._max_frames = max_frames
        self._pos = 0
        self.closed = False

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> Optional[Frame]:
        if not self._is_open:
            return None

        if self._frames is not None:
            if self._pos >= len(self._frames):
                return None
            image = self._frames[self._pos]
        else:
            if self._pos >= self._max_frames:
                return None
            image = np.zeros((24, 32, 3), dtype=np.uint8)

        self._pos += 1
        self._frame_index += 1

        return Frame.from_bgr(
            image,
            timestamp=time.monotonic(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class MockWebState:
    """Mock web state for testing."""

    def __init__(self):
        self.frames = []

    def set_frame(self, frame):
        self.frames.append(frame)


@pytest.fixture(scope="module")
def chains():
    return build_chains(lut_size=8)


def fast_config(**kwargs):
    kwargs.setdefault("retry_delay", 0.0)
    kwargs.setdefault("max_consecutive_failures", 2)
    return PipelineConfig(**kwargs)


class TestPipelineConfig:
    def test_default_values(self):
        config = PipelineConfig()
        assert config.max_consecutive_failures == 10
        assert config.stats_log_interval == 60.0
        assert config.display is False
        assert config.record is False

    def test_custom_values(self):
        config = PipelineConfig(
            max_consecutive_failures=5,
            display=True,
            record=True,
            finalize_timeout=3.0,
        )
        assert config.max_consecutive_failures == 5
        assert config.display is True
        assert config.finalize_timeout == 3.0


class TestPipelineEngine:
    def test_engine_processes_frames(self, chains):
        """Engine processes frames through the pipeline."""
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=3)
        processor = FrameProcessor(chains)

        engine = PipelineEngine(source, processor, fast_config())
        engine.run()

        assert engine.stats.frame_count == 3
        assert processor.stats.processed == 3
        assert source.closed
        assert not engine.is_running

    def test_engine_stops_on_failures(self, chains):
        """Engine stops after max consecutive failures."""
        source = MockObservationSource(ObservationConfig(source_id="test"), frames=[])
        processor = FrameProcessor(chains)
        config = PipelineConfig(max_consecutive_failures=3)

        engine = PipelineEngine(source, processor, config)

        with patch('time.sleep'):
            engine.run()

        assert engine.stats.consecutive_failures >= 3
        assert processor.stats.dropped == 3

    def test_engine_callbacks(self, chains):
        """Engine calls registered callbacks with raw and filtered frames."""
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=2)
        processor = FrameProcessor(chains)

        callback_calls = []

        def my_callback(raw, filtered):
            callback_calls.append((raw.frame_index, filtered.frame_index))

        engine = PipelineEngine(source, processor, fast_config())
        engine.add_callback(my_callback)
        engine.run()

        assert callback_calls == [(1, 1), (2, 2)]

    def test_failing_callback_does_not_stop_engine(self, chains):
        source = MockObservationSource(ObservationConfig(), max_frames=3)
        processor = FrameProcessor(chains)
        engine = PipelineEngine(source, processor, fast_config())
        engine.add_callback(MagicMock(side_effect=RuntimeError("boom")))
        engine.run()
        assert engine.stats.frame_count == 3

    def test_engine_updates_preview(self, chains):
        """Every filtered frame reaches the preview sink."""
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=2)
        web_state = MockWebState()
        processor = FrameProcessor(chains, preview_sink=web_state)

        engine = PipelineEngine(source, processor, fast_config())
        engine.run()

        assert len(web_state.frames) == 2

    def test_stop_from_callback(self, chains):
        source = MockObservationSource(ObservationConfig(), max_frames=100)
        processor = FrameProcessor(chains)
        engine = PipelineEngine(source, processor, fast_config())
        engine.add_callback(lambda raw, filtered: engine.stop() if raw.frame_index == 4 else None)
        engine.run()
        assert engine.stats.frame_count == 4

    def test_record_flag_records_until_shutdown(self, chains, tmp_path, fake_encoder, encoder_factory):
        source = MockObservationSource(ObservationConfig(), max_frames=5)
        recorder = VideoRecorder(output_dir=str(tmp_path), encoder_factory=encoder_factory)
        processor = FrameProcessor(chains, recorder=recorder)

        engine = PipelineEngine(source, processor, fast_config(record=True))
        engine.run()

        assert recorder.is_idle
        assert fake_encoder.release_count == 1
        assert fake_encoder.opened[0][1] == (32, 24)
        assert recorder.last_session.frames_accepted == 5

    def test_controller_shut_down(self, chains):
        source = MockObservationSource(ObservationConfig(), max_frames=1)
        controller = MagicMock()
        engine = PipelineEngine(source, FrameProcessor(chains), fast_config(), controller=controller)
        engine.run()
        controller.shutdown.assert_called_once()


class TestDisplayKeys:
    def test_capture_and_quit_keys(self, chains):
        captured = []
        source = MockObservationSource(ObservationConfig(), max_frames=10)
        processor = FrameProcessor(chains, capture_sink=CallbackCaptureSink(captured.append))
        engine = PipelineEngine(source, processor, fast_config(display=True))

        with patch("pipeline.engine.cv2") as mock_cv2:
            mock_cv2.waitKey.side_effect = [ord("c"), ord("q")]
            engine.run()

        assert engine.stats.frame_count == 2
        assert len(captured) == 1
        mock_cv2.destroyAllWindows.assert_called_once()

    def test_record_and_switch_keys(self, chains):
        source = MockObservationSource(ObservationConfig(), max_frames=10)
        processor = FrameProcessor(chains, dispatcher=MagicMock())
        engine = PipelineEngine(source, processor, fast_config(display=True))

        with patch("pipeline.engine.cv2") as mock_cv2:
            mock_cv2.waitKey.side_effect = [ord("r"), ord("s"), ord("q")]
            engine.run()

        pending = processor.requests.pending()
        assert ControlRequest.START_RECORDING in pending
        assert ControlRequest.SWITCH_CAMERA in pending


class TestCreateEngineFromConfig:
    def test_creates_engine(self):
        """Factory creates engine from config dict."""
        config = {
            "camera": {"devices": {"back": 0}, "resolution": [640, 480], "fps": 30},
            "recording": {"finalize_timeout": 4.0},
            "pipeline": {"max_consecutive_failures": 7, "stats_log_interval": 5.0},
        }
        runtime = MagicMock()

        engine = create_engine_from_config(
            config=config,
            runtime=runtime,
            display=True,
            record=False,
        )

        assert engine.source is runtime.source
        assert engine.processor is runtime.processor
        assert engine.controller is runtime.controller
        assert engine.config.display is True
        assert engine.config.max_consecutive_failures == 7
        assert engine.config.stats_log_interval == 5.0
        assert engine.config.finalize_timeout == 4.0
