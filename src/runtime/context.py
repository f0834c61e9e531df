from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from camera.controller import CameraController
from camera.device import OpenCVCaptureDevice
from models.config import Config
from models.vision_mode import VisionMode
from observation import create_source_from_config
from pipeline.dispatch import ControlDispatcher, Dispatcher
from pipeline.processor import FrameProcessor
from pipeline.requests import ControlRequest, RequestChannel
from pipeline.sinks import CaptureSink, FileCaptureSink
from recording.encoder import EncoderFactory, opencv_encoder_factory
from recording.recorder import VideoRecorder
from vision.chains import build_chains


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: dict
    source: Any
    device: Any
    controller: CameraController
    recorder: VideoRecorder
    processor: FrameProcessor
    requests: RequestChannel
    capture_sink: Optional[CaptureSink]
    web_state: Any = None

    # Observability
    system_stats: dict = field(default_factory=lambda: {"start_time": time.time()})

    @property
    def mode(self) -> VisionMode:
        return self.processor.mode

    def set_mode(self, mode: Union[str, VisionMode]) -> VisionMode:
        return self.processor.set_mode(mode)

    def request(self, kind: ControlRequest) -> None:
        self.requests.request(kind)

    def apply_zoom(self, factor: float) -> float:
        return self.controller.apply_zoom(factor)

    def status(self) -> Dict[str, Any]:
        """Snapshot of mode, camera, recording and processor state."""
        width, height = self.processor.native_resolution
        return {
            "mode": self.processor.mode.value,
            "camera": self.controller.state.to_dict(),
            "recording": self.recorder.status(),
            "native_resolution": [width, height],
            "pending_requests": sorted(r.value for r in self.requests.pending()),
            "processor": self.processor.stats.to_dict(),
            "uptime_seconds": time.time() - self.system_stats.get("start_time", time.time()),
        }

    def _on_recording_complete(self, path: Path) -> None:
        self.system_stats["last_recording"] = str(path)
        if hasattr(self.web_state, "update_system_stats"):
            self.web_state.update_system_stats({"last_recording": str(path)})


def build_runtime(
    config: Dict[str, Any],
    web_state: Any = None,
    dispatcher: Optional[Dispatcher] = None,
    encoder_factory: Optional[EncoderFactory] = None,
    source: Any = None,
) -> RuntimeContext:
    """
    Wire source, camera, filter chains, recorder and processor from config.

    Args:
        config: Full application config dict.
        web_state: Preview sink (the web PreviewState); None disables preview.
        dispatcher: Control-thread dispatcher (defaults to ControlDispatcher).
        encoder_factory: Video encoder factory (defaults to OpenCV).
        source: Pre-built ObservationSource (defaults to one from config).
    """
    cfg = Config.from_dict(config)

    if source is None:
        source = create_source_from_config(config.get("camera", {}) or {}, source_id="camera")
    device = OpenCVCaptureDevice(
        source,
        devices=cfg.camera.devices,
        facing=cfg.camera.facing,
        max_zoom=cfg.camera.max_zoom,
    )
    controller = CameraController(device)

    recorder = VideoRecorder(
        output_dir=cfg.recording.output_dir,
        fps=cfg.recording.fps,
        container=cfg.recording.container,
        encoder_factory=encoder_factory or opencv_encoder_factory(cfg.recording.codec),
        max_pending_frames=cfg.recording.max_pending_frames,
        max_consecutive_write_failures=cfg.recording.max_consecutive_write_failures,
    )

    requests = RequestChannel()
    capture_sink = FileCaptureSink(cfg.capture.output_dir, cfg.capture.image_format)
    chains = build_chains(cfg.vision.thermal_lut_size)

    processor = FrameProcessor(
        chains,
        recorder=recorder,
        controller=controller,
        preview_sink=web_state,
        capture_sink=capture_sink,
        requests=requests,
        dispatcher=dispatcher if dispatcher is not None else ControlDispatcher(),
        mode=cfg.vision.mode,
        default_resolution=tuple(cfg.recording.default_resolution),
    )

    ctx = RuntimeContext(
        config=config,
        source=source,
        device=device,
        controller=controller,
        recorder=recorder,
        processor=processor,
        requests=requests,
        capture_sink=capture_sink,
        web_state=web_state,
    )
    recorder.on_complete = ctx._on_recording_complete

    logging.info(
        f"Runtime ready: mode={processor.mode.name}, facing={cfg.camera.facing}, "
        f"recording -> {cfg.recording.output_dir}"
    )
    return ctx
