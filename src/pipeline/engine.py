"""
Pipeline engine for the vision camera.

This module drives the capture loop: it reads frames from an
ObservationSource, hands each one to the FrameProcessor, and owns the
shutdown sequence (stop recording, release the source, stop worker threads).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import cv2

from models.frame import Frame
from observation import ObservationSource
from pipeline.processor import FrameProcessor
from pipeline.requests import ControlRequest


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before stopping.
        stats_log_interval: Seconds between status log messages.
        retry_delay: Seconds to wait after a failed read.
        display: Show the filtered stream in a cv2 window.
        record: Request a recording as soon as the pipeline starts.
        finalize_timeout: Seconds to wait for the recording to finalize on
            shutdown.
    """
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    retry_delay: float = 0.5
    display: bool = False
    record: bool = False
    finalize_timeout: float = 10.0


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0

    @property
    def fps(self) -> float:
        elapsed = time.time() - self.start_time
        return self.frame_count / elapsed if elapsed > 0 else 0.0


class PipelineEngine:
    """
    Main capture loop.

    This engine:
    - Reads frames from any ObservationSource
    - Runs each frame through the FrameProcessor
    - Optionally shows the filtered stream in a window
    - Stops recording and releases resources on shutdown

    Example:
        engine = PipelineEngine(source, processor, PipelineConfig(display=True))
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        processor: FrameProcessor,
        config: Optional[PipelineConfig] = None,
        controller: Any = None,
    ):
        self.source = source
        self.processor = processor
        self.config = config or PipelineConfig()
        self.controller = controller
        self.stats = PipelineStats()
        self._running = False
        self._callbacks: List[Callable[[Frame, Frame], None]] = []

    @property
    def is_running(self) -> bool:
        return self._running

    def add_callback(self, callback: Callable[[Frame, Frame], None]) -> None:
        """
        Add a callback to be called after each frame is processed.

        Args:
            callback: Function taking (raw_frame, filtered_frame).
        """
        self._callbacks.append(callback)

    def run(self) -> None:
        """
        Run the main processing loop.

        Opens the observation source, processes frames until stopped or
        exhausted, then releases resources.
        """
        self._running = True
        self.stats = PipelineStats()

        if self.config.record:
            self.processor.requests.request(ControlRequest.START_RECORDING)

        try:
            self.source.open()
            logging.info(
                f"Pipeline started: source={self.source.source_id}, mode={self.processor.mode.name}"
            )

            while self._running:
                raw = self.source.read()

                if raw is None:
                    self.processor.process(None)
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    time.sleep(self.config.retry_delay)
                    continue

                self.stats.consecutive_failures = 0
                self.stats.frame_count += 1
                filtered = self.processor.process(raw)
                if filtered is None:
                    continue

                for callback in self._callbacks:
                    try:
                        callback(raw, filtered)
                    except Exception as e:
                        logging.warning(f"Callback error: {e}")

                if self.config.display:
                    if not self._handle_display(filtered):
                        break  # User pressed 'q'

                self._handle_periodic_tasks()

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._running = False

    def _handle_display(self, filtered: Frame) -> bool:
        """
        Show the filtered frame.

        Returns False if the user pressed 'q' to quit.
        """
        cv2.imshow("Pawvision", filtered.to_bgr())
        key = cv2.waitKey(1) & 0xFF
        if key == ord("c"):
            self.processor.requests.request(ControlRequest.CAPTURE)
        elif key == ord("r"):
            recorder = self.processor.recorder
            if recorder is not None and recorder.is_active:
                self.processor.requests.request(ControlRequest.STOP_RECORDING)
            else:
                self.processor.requests.request(ControlRequest.START_RECORDING)
        elif key == ord("s"):
            self.processor.requests.request(ControlRequest.SWITCH_CAMERA)
        return key != ord("q")

    def _handle_periodic_tasks(self) -> None:
        """Log statistics periodically."""
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count}, fps={self.stats.fps:.1f}, "
                f"mode={self.processor.mode.name}, processor={self.processor.stats.to_dict()}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        """Clean up resources."""
        self._running = False

        # Control work queued for the last frames runs before recording stops
        try:
            self.processor.dispatcher.shutdown(wait=True)
        except Exception as e:
            logging.warning(f"Error stopping control dispatcher: {e}")

        recorder = self.processor.recorder
        if recorder is not None:
            future = recorder.stop()
            if future is not None:
                try:
                    path = future.result(timeout=self.config.finalize_timeout)
                    logging.info(f"Video saved: {path}")
                except Exception as e:
                    logging.error(f"Recording did not finalize cleanly: {e}")

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        if self.controller is not None:
            self.controller.shutdown(wait=False)

        if self.config.display:
            cv2.destroyAllWindows()

        logging.info("Pipeline stopped")


def create_engine_from_config(
    config: Dict[str, Any],
    runtime: Any,
    display: bool = False,
    record: bool = False,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the config dict.

    Args:
        config: Full application config dict.
        runtime: RuntimeContext holding source, processor and controller.
        display: Enable display window.
        record: Start recording immediately.
    """
    recording_cfg = config.get("recording", {}) or {}
    pipeline_cfg = config.get("pipeline", {}) or {}
    pipeline_config = PipelineConfig(
        max_consecutive_failures=pipeline_cfg.get("max_consecutive_failures", 10),
        stats_log_interval=pipeline_cfg.get("stats_log_interval", 60.0),
        display=display,
        record=record,
        finalize_timeout=recording_cfg.get("finalize_timeout", 10.0),
    )
    return PipelineEngine(
        runtime.source,
        runtime.processor,
        pipeline_config,
        controller=runtime.controller,
    )
