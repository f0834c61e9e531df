"""
OpenCV-based observation source.

Supports:
- USB/built-in cameras (device_id as int, e.g., 0)
- Network streams (device_id as URL)
- Video files (device_id as file path)

Frames are delivered as RGBA Frames stamped with time.monotonic(). The device
can be swapped at runtime with reopen(), and zoom is applied either through
the driver (CAP_PROP_ZOOM) or as a centre crop.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.frame import Frame
from .base import ObservationSource, ObservationConfig

DeviceId = Union[int, str]


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int), stream URL (str), or file path (str).
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_retries: Maximum attempts when opening the device.
        warmup: Seconds to wait after opening a live device.
        hardware_zoom: Try CAP_PROP_ZOOM before falling back to a centre crop.
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Flip frame horizontally.
        flip_vertical: Flip frame vertically.
    """
    device_id: DeviceId = 0
    buffer_size: int = 1
    max_retries: int = 3
    warmup: float = 0.5
    hardware_zoom: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig from the camera config dict.

        The device is `device_id` when given, otherwise the entry of
        `devices` for the configured `facing`.
        """
        resolution = camera_cfg.get("resolution")
        if resolution:
            resolution = tuple(resolution)

        device_id = camera_cfg.get("device_id")
        if device_id is None:
            devices = camera_cfg.get("devices") or {}
            device_id = devices.get(camera_cfg.get("facing", "back"), 0)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.get("fps"),
            device_id=device_id,
            buffer_size=camera_cfg.get("buffer_size", 1),
            max_retries=camera_cfg.get("max_retries", 3),
            warmup=camera_cfg.get("warmup", 0.5),
            hardware_zoom=camera_cfg.get("hardware_zoom", False),
            rotate=camera_cfg.get("rotate", 0) or 0,
            flip_horizontal=camera_cfg.get("flip_horizontal", False),
            flip_vertical=camera_cfg.get("flip_vertical", False),
        )


def _is_file(device_id: DeviceId) -> bool:
    return isinstance(device_id, str) and "://" not in device_id and os.path.exists(device_id)


class OpenCVSource(ObservationSource):
    """
    OpenCV-based observation source for cameras, streams and video files.

    Wraps cv2.VideoCapture to provide frames as Frame objects.
    Handles automatic reconnection for live devices.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            for frame in source:
                processor.process(frame)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._cap_lock = threading.Lock()
        self._consecutive_failures = 0
        self._zoom = 1.0
        self._hardware_zoom_active = False

    @property
    def device_id(self) -> DeviceId:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        """Check if this is a video file."""
        return _is_file(self.device_id)

    @property
    def zoom(self) -> float:
        return self._zoom

    def open(self) -> None:
        """Open the video source."""
        if self._is_open:
            return

        cap = self._create_capture(self.device_id)
        with self._cap_lock:
            self._cap = cap
        self._is_open = True
        self._frame_index = 0
        self._consecutive_failures = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={self.device_id}, resolution={self._opencv_config.resolution}"
        )

    def reopen(self, device_id: DeviceId) -> None:
        """
        Switch to another device.

        The new device is opened before the old one is released, so frames
        keep flowing from the old device until the swap.

        Raises:
            RuntimeError: If the new device cannot be opened. The current
                device stays in use.
        """
        cap = self._create_capture(device_id)
        with self._cap_lock:
            old_cap, self._cap = self._cap, cap
            self._opencv_config.device_id = device_id
            self._consecutive_failures = 0
            self._hardware_zoom_active = False
        if old_cap is not None:
            old_cap.release()
        self._is_open = True
        logging.info(f"OpenCVSource {self.source_id} switched to device {device_id}")

    def set_zoom(self, factor: float) -> float:
        """
        Apply a zoom factor (>= 1.0).

        Uses CAP_PROP_ZOOM when enabled and accepted by the driver, otherwise
        crops the centre of each frame and scales it back up.

        Returns:
            The factor applied.
        """
        factor = max(1.0, float(factor))
        hardware = False
        if self._opencv_config.hardware_zoom and isinstance(self.device_id, int):
            with self._cap_lock:
                if self._cap is not None:
                    hardware = bool(self._cap.set(cv2.CAP_PROP_ZOOM, factor))
        self._hardware_zoom_active = hardware
        self._zoom = factor
        logging.debug(f"Zoom {factor:.2f}x ({'hardware' if hardware else 'digital'})")
        return factor

    def _create_capture(self, device_id: DeviceId) -> cv2.VideoCapture:
        """Open a capture for `device_id`, retrying with backoff."""
        cfg = self._opencv_config
        attempts = max(1, cfg.max_retries)

        for attempt in range(attempts):
            if attempt > 0:
                wait_time = min(2 ** attempt, 10)
                logging.info(
                    f"Retrying device {device_id} (attempt {attempt + 1}/{attempts}) after {wait_time}s"
                )
                time.sleep(wait_time)

            cap = cv2.VideoCapture(device_id)
            if cap.isOpened():
                break
            cap.release()
            logging.warning(f"Failed to open device {device_id}")
        else:
            raise RuntimeError(f"Failed to open device {device_id} after {attempts} attempts")

        # Set properties for local cameras (not streams/files)
        if isinstance(device_id, int) and cfg.resolution:
            w, h = cfg.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if cfg.fps:
                cap.set(cv2.CAP_PROP_FPS, cfg.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)

            actual_w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
            actual_h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
            actual_fps = cap.get(cv2.CAP_PROP_FPS)
            logging.info(
                f"Camera actual settings - Resolution: ({actual_w}x{actual_h}), FPS: {actual_fps}"
            )

        # Brief warmup for live devices
        if not _is_file(device_id) and cfg.warmup > 0:
            time.sleep(cfg.warmup)

        return cap

    def read(self) -> Optional[Frame]:
        """Read the next frame from the source."""
        if not self._is_open:
            return None

        with self._cap_lock:
            cap = self._cap
            if cap is None:
                return None
            ret, image = cap.read()

        if not ret or image is None:
            self._consecutive_failures += 1

            # For files, end of video is expected
            if self.is_file:
                logging.info("End of video file reached")
                return None

            # For cameras, try to reconnect
            if self._consecutive_failures <= 3:
                logging.warning(
                    f"Failed to read frame (failures: {self._consecutive_failures}), reinitializing..."
                )
                try:
                    self.reopen(self.device_id)
                except RuntimeError:
                    logging.error("Reinitialization failed")
                return None

            logging.error("Too many consecutive read failures")
            return None

        self._consecutive_failures = 0
        image = self._apply_transforms(image)
        self._frame_index += 1

        return Frame.from_bgr(
            image,
            timestamp=time.monotonic(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, image: np.ndarray) -> np.ndarray:
        """Apply configured image transforms (rotate, flip, digital zoom)."""
        cfg = self._opencv_config

        # Rotation
        if cfg.rotate == 90:
            image = cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            image = cv2.rotate(image, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            image = cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)

        # Flip
        if cfg.flip_horizontal or cfg.flip_vertical:
            if cfg.flip_horizontal and cfg.flip_vertical:
                flip_code = -1
            elif cfg.flip_horizontal:
                flip_code = 1
            else:
                flip_code = 0
            image = cv2.flip(image, flip_code)

        if self._zoom > 1.0 and not self._hardware_zoom_active:
            image = digital_zoom(image, self._zoom)

        return image

    def close(self) -> None:
        """Close the video source and release resources."""
        with self._cap_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")


def digital_zoom(image: np.ndarray, factor: float) -> np.ndarray:
    """Crop the centre 1/factor of the image and scale it back to full size."""
    if factor <= 1.0:
        return image
    h, w = image.shape[:2]
    crop_w = max(1, int(round(w / factor)))
    crop_h = max(1, int(round(h / factor)))
    x0 = (w - crop_w) // 2
    y0 = (h - crop_h) // 2
    crop = image[y0:y0 + crop_h, x0:x0 + crop_w]
    return cv2.resize(crop, (w, h), interpolation=cv2.INTER_LINEAR)


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: str = "camera") -> OpenCVSource:
    """Factory: build an OpenCVSource from the camera config dict."""
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id))
