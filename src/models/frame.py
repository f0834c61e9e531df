"""
Frame model for captured and filtered video frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np


@dataclass(frozen=True, eq=False)
class Frame:
    """
    Immutable RGBA frame with its capture timestamp.

    Pixels are float32 in the normalized range [0, 1], shape (height, width, 4).
    The array is exposed read-only so one frame can be handed to several sinks
    in the same pass without copies.

    Attributes:
        pixels: RGBA pixel data.
        timestamp: Monotonic capture time in seconds (same clock as the source).
        frame_index: Sequential frame number since the source was opened.
        source: Identifier for the camera/video source.
    """
    pixels: np.ndarray
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    def __post_init__(self):
        pixels = self.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Frame pixels must be HxWx4, got shape {pixels.shape}")
        if pixels.dtype != np.float32:
            pixels = pixels.astype(np.float32)
        if pixels.flags.writeable:
            pixels = pixels.view()
            pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_bgr(
        cls,
        image: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "Frame":
        """Create a Frame from an 8-bit OpenCV image (gray, BGR or BGRA)."""
        if image is None or image.size == 0:
            raise ValueError("Cannot build a frame from an empty image")

        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)

        pixels = rgba.astype(np.float32) / 255.0
        return cls(pixels=pixels, timestamp=timestamp, frame_index=frame_index, source=source)

    @classmethod
    def filled(
        cls,
        width: int,
        height: int,
        rgba: Tuple[float, float, float, float],
        timestamp: float = 0.0,
    ) -> "Frame":
        """Create a uniform frame (handy for calibration and tests)."""
        pixels = np.empty((height, width, 4), dtype=np.float32)
        pixels[...] = np.asarray(rgba, dtype=np.float32)
        return cls(pixels=pixels, timestamp=timestamp)

    def with_pixels(self, pixels: np.ndarray) -> "Frame":
        """Return a new frame with the same timing metadata and new pixels."""
        return Frame(
            pixels=pixels,
            timestamp=self.timestamp,
            frame_index=self.frame_index,
            source=self.source,
        )

    def to_bgr(self) -> np.ndarray:
        """Return an 8-bit BGR image suitable for OpenCV sinks."""
        rgb8 = np.clip(self.pixels[..., :3] * 255.0 + 0.5, 0, 255).astype(np.uint8)
        return cv2.cvtColor(rgb8, cv2.COLOR_RGB2BGR)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Return (height, width, channels)."""
        return self.pixels.shape
