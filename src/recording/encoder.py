"""
Video encoders used by the recorder.

The recorder talks to an encoder through a small open/write/release contract
so the container format can be swapped (and faked in tests).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from models.errors import EncoderInitError, EncoderWriteError


class VideoEncoder(ABC):
    """Writes 8-bit BGR frames of a fixed size to one container file."""

    @abstractmethod
    def open(self, path: Path, resolution: Tuple[int, int], fps: float) -> None:
        """
        Create the output file.

        Raises:
            EncoderInitError: If the target cannot be created or the
                configuration is rejected.
        """
        pass

    @abstractmethod
    def write(self, image: np.ndarray) -> None:
        """
        Append one frame.

        Raises:
            EncoderWriteError: If the frame could not be encoded.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Flush and close the container; the file is playable afterwards."""
        pass


class OpenCVVideoEncoder(VideoEncoder):
    """cv2.VideoWriter backed encoder (mp4v in an .mp4 container by default)."""

    def __init__(self, codec: str = "mp4v"):
        if len(codec) != 4:
            raise ValueError(f"FourCC codec must be 4 characters, got '{codec}'")
        self.codec = codec
        self._writer: Optional[cv2.VideoWriter] = None
        self._resolution: Optional[Tuple[int, int]] = None

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    def open(self, path: Path, resolution: Tuple[int, int], fps: float) -> None:
        if self._writer is not None:
            raise EncoderInitError("Encoder is already open")

        width, height = int(resolution[0]), int(resolution[1])
        if width <= 0 or height <= 0 or fps <= 0:
            raise EncoderInitError(f"Invalid encoder settings: {width}x{height} @ {fps} fps")

        fourcc = cv2.VideoWriter_fourcc(*self.codec)
        writer = cv2.VideoWriter(str(path), fourcc, float(fps), (width, height), True)
        if not writer.isOpened():
            writer.release()
            raise EncoderInitError(
                f"OpenCV could not open {path} with codec '{self.codec}' at {width}x{height}"
            )

        self._writer = writer
        self._resolution = (width, height)
        logging.debug(f"Encoder opened: {path} ({self.codec}, {width}x{height} @ {fps} fps)")

    def write(self, image: np.ndarray) -> None:
        if self._writer is None:
            raise EncoderWriteError("Encoder is not open")
        h, w = image.shape[:2]
        if (w, h) != self._resolution:
            raise EncoderWriteError(
                f"Frame size {w}x{h} does not match encoder size "
                f"{self._resolution[0]}x{self._resolution[1]}"
            )
        try:
            self._writer.write(image)
        except cv2.error as e:
            raise EncoderWriteError(str(e)) from e

    def release(self) -> None:
        if self._writer is None:
            return
        try:
            self._writer.release()
        finally:
            self._writer = None
            self._resolution = None


EncoderFactory = Callable[[], VideoEncoder]


def opencv_encoder_factory(codec: str = "mp4v") -> EncoderFactory:
    """Return a factory producing fresh OpenCV encoders for each session."""
    return lambda: OpenCVVideoEncoder(codec)
