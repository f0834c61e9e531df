"""
Per-frame processing: filter, publish, act on control requests, record.

Runs on the capture thread, one frame at a time. Filtering and the recorder
hand-off happen inline; preview publication and request handling are passed
to the control dispatcher as a single task per frame so they are serialized
against user requests without blocking the next frame.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from models.frame import Frame
from models.vision_mode import VisionMode
from pipeline.dispatch import Dispatcher, InlineDispatcher
from pipeline.requests import ControlRequest, RequestChannel
from pipeline.sinks import CaptureResult, CaptureSink
from vision.chains import VisionFilterChain

DEFAULT_RESOLUTION: Tuple[int, int] = (1080, 1920)


@dataclass
class ProcessorStats:
    """Counters updated from both the capture and the control thread."""
    processed: int = 0
    dropped: int = 0
    recorded: int = 0
    captures: int = 0
    sink_errors: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def incr(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> Dict[str, int]:
        with self._lock:
            return {
                "processed": self.processed,
                "dropped": self.dropped,
                "recorded": self.recorded,
                "captures": self.captures,
                "sink_errors": self.sink_errors,
            }


class FrameProcessor:
    """
    Turns raw camera frames into filtered frames and routes them.

    Args:
        chains: One filter chain per vision mode.
        recorder: VideoRecorder receiving filtered frames while active.
        controller: CameraController used for camera-switch requests.
        preview_sink: Object with `set_frame(image_bgr)`.
        capture_sink: Receives (original, filtered) pairs.
        requests: Channel of pending control requests.
        dispatcher: Runs the control-thread part of each frame.
        mode: Initial vision mode.
        default_resolution: (width, height) used for recording until the
            first frame reports the native size.
    """

    def __init__(
        self,
        chains: Dict[VisionMode, VisionFilterChain],
        recorder: Any = None,
        controller: Any = None,
        preview_sink: Any = None,
        capture_sink: Optional[CaptureSink] = None,
        requests: Optional[RequestChannel] = None,
        dispatcher: Optional[Dispatcher] = None,
        mode: Union[str, VisionMode] = VisionMode.DICHROMATIC,
        default_resolution: Tuple[int, int] = DEFAULT_RESOLUTION,
    ):
        missing = [m.name for m in VisionMode if m not in chains]
        if missing:
            raise ValueError(f"Missing filter chains for modes: {missing}")

        self.chains = chains
        self.recorder = recorder
        self.controller = controller
        self.preview_sink = preview_sink
        self.capture_sink = capture_sink
        self.requests = requests if requests is not None else RequestChannel()
        self.dispatcher = dispatcher if dispatcher is not None else InlineDispatcher()
        self.stats = ProcessorStats()

        self._mode = VisionMode.parse(mode)
        self._mode_lock = threading.Lock()
        self._native_resolution: Tuple[int, int] = tuple(default_resolution)
        self._resolution_latched = False

    @property
    def mode(self) -> VisionMode:
        with self._mode_lock:
            return self._mode

    def set_mode(self, mode: Union[str, VisionMode]) -> VisionMode:
        """Select the chain for the next processed frame."""
        new_mode = VisionMode.parse(mode)
        with self._mode_lock:
            old_mode, self._mode = self._mode, new_mode
        if old_mode is not new_mode:
            logging.info(f"Vision mode: {old_mode.name} -> {new_mode.name}")
        return new_mode

    @property
    def native_resolution(self) -> Tuple[int, int]:
        return self._native_resolution

    def process(self, raw: Optional[Frame]) -> Optional[Frame]:
        """
        Process one frame from the capture source.

        Returns:
            The filtered frame, or None if the frame was dropped.
        """
        if raw is None:
            self.stats.incr("dropped")
            return None

        if not self._resolution_latched:
            self._native_resolution = raw.size
            self._resolution_latched = True
            logging.info(f"Native resolution: {raw.width}x{raw.height}")

        mode = self.mode
        try:
            filtered = self.chains[mode].transform(raw)
        except Exception as e:
            self.stats.incr("dropped")
            logging.debug(f"Dropped frame {raw.frame_index}: {e}")
            return None

        self.stats.incr("processed")

        self.dispatcher.submit(lambda: self._control_step(raw, filtered, mode))

        recorder = self.recorder
        if recorder is not None and recorder.is_active:
            try:
                if recorder.submit_frame(filtered, raw.timestamp):
                    self.stats.incr("recorded")
            except Exception as e:
                logging.debug(f"Recorder rejected frame {raw.frame_index}: {e}")

        return filtered

    def _control_step(self, raw: Frame, filtered: Frame, mode: VisionMode) -> None:
        self._guarded("preview", self._publish_preview, filtered)
        self._guarded("camera switch", self._handle_switch)
        self._guarded("recording control", self._handle_recording)
        self._guarded("capture", self._handle_capture, raw, filtered, mode)

    def _guarded(self, name: str, fn, *args) -> None:
        try:
            fn(*args)
        except Exception as e:
            self.stats.incr("sink_errors")
            logging.warning(f"{name} step failed: {e}")

    def _publish_preview(self, filtered: Frame) -> None:
        if self.preview_sink is not None:
            self.preview_sink.set_frame(filtered.to_bgr())

    def _handle_switch(self) -> None:
        if not self.requests.consume(ControlRequest.SWITCH_CAMERA):
            return
        if self.controller is None:
            logging.warning("Camera switch requested but no camera controller is configured")
            return
        self.controller.switch_facing_async()

    def _handle_recording(self) -> None:
        recorder = self.recorder
        if recorder is None:
            return
        if recorder.is_idle and self.requests.consume(ControlRequest.START_RECORDING):
            recorder.start(self._native_resolution)
        if recorder.is_active and self.requests.consume(ControlRequest.STOP_RECORDING):
            recorder.stop()

    def _handle_capture(self, raw: Frame, filtered: Frame, mode: VisionMode) -> None:
        if not self.requests.consume(ControlRequest.CAPTURE):
            return
        if self.capture_sink is None:
            logging.warning("Capture requested but no capture sink is configured")
            return
        self.capture_sink.deliver(CaptureResult(original=raw, filtered=filtered, mode=mode))
        self.stats.incr("captures")
