"""
Video recorder: multiplexes filtered frames into one container per session.

State machine:

    IDLE -> STARTING -> ACTIVE -> FINALIZING -> IDLE
                          |
                          +-> IDLE  (too many consecutive write failures)

`submit_frame` is called on the capture thread and never blocks: frames go
into a short queue drained by a writer thread, and are dropped when the
queue is full. The first accepted frame anchors the session clock, so it is
written at presentation time zero. Finalization runs on the writer thread and
is reported through a Future and the `on_complete` callback.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from models.errors import EncoderInitError, EncoderWriteError
from models.frame import Frame
from recording.encoder import EncoderFactory, VideoEncoder, opencv_encoder_factory


class RecorderState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    FINALIZING = "finalizing"


@dataclass
class RecordingSession:
    """
    Bookkeeping for one recording.

    Attributes:
        path: Output container file.
        resolution: (width, height) of the encoded video.
        fps: Constant output frame rate.
        anchor: Timestamp of the first accepted frame (None until then).
        timestamps: Presentation times (seconds, relative to anchor) of every
            accepted frame, in submission order.
        future: Resolves to `path` once the file is finalized.
    """
    path: Path
    resolution: Tuple[int, int]
    fps: float
    started_at: float = field(default_factory=time.time)
    anchor: Optional[float] = None
    last_timestamp: Optional[float] = None
    timestamps: List[float] = field(default_factory=list)
    frames_accepted: int = 0
    frames_dropped: int = 0
    frames_written: int = 0
    frames_repeated: int = 0
    write_errors: int = 0
    future: Future = field(default_factory=Future)

    @property
    def duration(self) -> float:
        return self.timestamps[-1] if self.timestamps else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "resolution": list(self.resolution),
            "fps": self.fps,
            "started_at": self.started_at,
            "duration": self.duration,
            "frames_accepted": self.frames_accepted,
            "frames_dropped": self.frames_dropped,
            "frames_written": self.frames_written,
            "frames_repeated": self.frames_repeated,
            "write_errors": self.write_errors,
        }


# Queue sentinel that ends a session
_STOP = object()


class VideoRecorder:
    """
    Records filtered frames to video files, one file per session.

    Args:
        output_dir: Directory for output files (created on start).
        fps: Constant frame rate of the output container.
        container: File extension of the output.
        encoder_factory: Creates a fresh VideoEncoder per session.
        on_complete: Called with the output path after each successful
            finalization, on the writer thread.
        max_pending_frames: Frames allowed in flight before new frames are
            dropped.
        max_consecutive_write_failures: Write failures in a row that abort
            the session.
    """

    def __init__(
        self,
        output_dir: str = "output/video",
        fps: float = 30.0,
        container: str = "mp4",
        encoder_factory: Optional[EncoderFactory] = None,
        on_complete: Optional[Callable[[Path], None]] = None,
        max_pending_frames: int = 8,
        max_consecutive_write_failures: int = 30,
    ):
        self.output_dir = Path(output_dir)
        self.fps = float(fps)
        self.container = container.lstrip(".")
        self.encoder_factory = encoder_factory or opencv_encoder_factory()
        self.on_complete = on_complete
        self.max_pending_frames = max_pending_frames
        self.max_consecutive_write_failures = max_consecutive_write_failures

        self._lock = threading.Lock()
        self._state = RecorderState.IDLE
        self._session: Optional[RecordingSession] = None
        self._queue: Optional[queue.Queue] = None
        self._thread: Optional[threading.Thread] = None
        self._last_session: Optional[RecordingSession] = None

    @property
    def state(self) -> RecorderState:
        with self._lock:
            return self._state

    @property
    def is_idle(self) -> bool:
        return self.state is RecorderState.IDLE

    @property
    def is_active(self) -> bool:
        return self.state is RecorderState.ACTIVE

    @property
    def session(self) -> Optional[RecordingSession]:
        with self._lock:
            return self._session

    @property
    def last_session(self) -> Optional[RecordingSession]:
        with self._lock:
            return self._last_session

    def start(self, resolution: Tuple[int, int]) -> Path:
        """
        Begin a recording session.

        Args:
            resolution: (width, height) of the output video.

        Returns:
            Path of the output file.

        Raises:
            EncoderInitError: If the output cannot be created or the encoder
                rejects the configuration. The recorder stays IDLE.
        """
        with self._lock:
            if self._state is not RecorderState.IDLE:
                current = self._session.path if self._session else None
                logging.warning(f"Recording already in progress ({self._state.value}): {current}")
                return current
            self._state = RecorderState.STARTING

        resolution = (int(resolution[0]), int(resolution[1]))
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._next_path()
            encoder = self.encoder_factory()
            encoder.open(path, resolution, self.fps)
        except EncoderInitError:
            self._set_state(RecorderState.IDLE)
            raise
        except Exception as e:
            self._set_state(RecorderState.IDLE)
            raise EncoderInitError(f"Cannot start recording in {self.output_dir}: {e}") from e

        session = RecordingSession(path=path, resolution=resolution, fps=self.fps)
        pending: queue.Queue = queue.Queue()
        thread = threading.Thread(
            target=self._writer_loop,
            args=(session, encoder, pending),
            name="recording-writer",
            daemon=True,
        )

        with self._lock:
            self._session = session
            self._queue = pending
            self._thread = thread
            self._state = RecorderState.ACTIVE
        thread.start()

        logging.info(f"Recording started: {path} ({resolution[0]}x{resolution[1]} @ {self.fps} fps)")
        return path

    def submit_frame(self, frame: Frame, timestamp: float) -> bool:
        """
        Queue a filtered frame for encoding.

        A no-op unless the recorder is ACTIVE. Never blocks.

        Returns:
            True if the frame was accepted.
        """
        with self._lock:
            if self._state is not RecorderState.ACTIVE:
                return False
            session = self._session
            pending = self._queue

            if pending.qsize() >= self.max_pending_frames:
                session.frames_dropped += 1
                logging.debug(f"Encoder busy, dropped frame at t={timestamp:.3f}")
                return False

            if session.last_timestamp is not None and timestamp <= session.last_timestamp:
                session.frames_dropped += 1
                logging.debug(
                    f"Dropped out-of-order frame t={timestamp:.3f} "
                    f"(last={session.last_timestamp:.3f})"
                )
                return False

            if session.anchor is None:
                session.anchor = timestamp

            pts = timestamp - session.anchor
            session.last_timestamp = timestamp
            session.timestamps.append(pts)
            session.frames_accepted += 1
            pending.put((frame, pts))
        return True

    def stop(self) -> Optional[Future]:
        """
        End the current session.

        Idempotent: while finalizing, returns the same Future; while idle,
        does nothing and returns None.

        Returns:
            Future resolving to the output path once the file is finalized,
            or failing with EncoderWriteError.
        """
        with self._lock:
            if self._session is None or self._state is RecorderState.IDLE:
                logging.debug("Stop requested while not recording")
                return None
            session = self._session
            if self._state is RecorderState.FINALIZING:
                return session.future
            self._state = RecorderState.FINALIZING
            self._queue.put(_STOP)

        logging.info(f"Recording stopping: {session.path}")
        return session.future

    def status(self) -> Dict[str, Any]:
        with self._lock:
            session = self._session or self._last_session
            return {
                "state": self._state.value,
                "session": session.to_dict() if session else None,
            }

    def _set_state(self, state: RecorderState) -> None:
        with self._lock:
            self._state = state

    def _next_path(self) -> Path:
        stem = f"filtered_video_{int(time.time())}"
        path = self.output_dir / f"{stem}.{self.container}"
        suffix = 1
        while path.exists():
            path = self.output_dir / f"{stem}_{suffix}.{self.container}"
            suffix += 1
        return path

    def _writer_loop(
        self,
        session: RecordingSession,
        encoder: VideoEncoder,
        pending: queue.Queue,
    ) -> None:
        next_slot = 0
        last_image: Optional[np.ndarray] = None
        consecutive_failures = 0

        while True:
            item = pending.get()
            if item is _STOP:
                break

            frame, pts = item
            slot = int(round(pts * session.fps))
            if slot < next_slot:
                # Slot already filled by an earlier frame
                continue

            try:
                image = self._prepare(frame, session.resolution)
                if last_image is not None:
                    while next_slot < slot:
                        encoder.write(last_image)
                        next_slot += 1
                        session.frames_repeated += 1
                encoder.write(image)
            except Exception as e:
                session.write_errors += 1
                consecutive_failures += 1
                logging.debug(f"Frame write failed at pts={pts:.3f}: {e}")
                if consecutive_failures >= self.max_consecutive_write_failures:
                    self._abort(
                        session,
                        encoder,
                        EncoderWriteError(
                            f"{consecutive_failures} consecutive write failures, last: {e}"
                        ),
                    )
                    return
                continue

            consecutive_failures = 0
            next_slot = slot + 1
            last_image = image
            session.frames_written += 1

        self._finalize(session, encoder)

    @staticmethod
    def _prepare(frame: Frame, resolution: Tuple[int, int]) -> np.ndarray:
        image = frame.to_bgr()
        if (image.shape[1], image.shape[0]) != resolution:
            image = cv2.resize(image, resolution, interpolation=cv2.INTER_AREA)
        return image

    def _release_session(self, session: RecordingSession) -> None:
        with self._lock:
            if self._session is session:
                self._session = None
                self._queue = None
                self._thread = None
                self._state = RecorderState.IDLE
            self._last_session = session

    def _abort(self, session: RecordingSession, encoder: VideoEncoder, error: EncoderWriteError) -> None:
        logging.error(f"Recording aborted: {session.path}: {error}")
        try:
            encoder.release()
        except Exception as e:
            logging.warning(f"Error releasing encoder: {e}")
        self._release_session(session)
        session.future.set_exception(error)

    def _finalize(self, session: RecordingSession, encoder: VideoEncoder) -> None:
        try:
            encoder.release()
        except Exception as e:
            self._release_session(session)
            logging.error(f"Failed to finalize {session.path}: {e}")
            session.future.set_exception(EncoderWriteError(f"Failed to finalize {session.path}: {e}"))
            return

        self._release_session(session)
        logging.info(
            f"Recording saved: {session.path} "
            f"({session.frames_written} frames, {session.duration:.1f}s, "
            f"{session.frames_dropped} dropped)"
        )
        if self.on_complete is not None:
            try:
                self.on_complete(session.path)
            except Exception as e:
                logging.warning(f"Recording completion callback failed: {e}")

        session.future.set_result(session.path)
