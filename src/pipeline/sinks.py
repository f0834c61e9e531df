"""
Output sinks for the frame processor.

- Preview: any object with `set_frame(image_bgr)`; the web PreviewState is the
  production preview sink.
- Capture: receives the raw and filtered frame as one CaptureResult, exactly
  once per still-capture request.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import cv2

from models.frame import Frame
from models.vision_mode import VisionMode


@dataclass(frozen=True)
class CaptureResult:
    """A still capture: the unfiltered frame paired with its filtered twin."""
    original: Frame
    filtered: Frame
    mode: VisionMode
    captured_at: float = field(default_factory=time.time)


class CaptureSink(ABC):
    @abstractmethod
    def deliver(self, result: CaptureResult) -> None:
        pass


class CallbackCaptureSink(CaptureSink):
    """Forwards captures to a callable."""

    def __init__(self, callback: Callable[[CaptureResult], None]):
        self._callback = callback

    def deliver(self, result: CaptureResult) -> None:
        self._callback(result)


class FileCaptureSink(CaptureSink):
    """
    Writes each capture as an original/filtered image pair.

    Files are named `<stem>_original.<ext>` and `<stem>_<animal>.<ext>` where
    stem is `capture_<epoch_ms>`.
    """

    def __init__(self, output_dir: str, image_format: str = "png"):
        self.output_dir = Path(output_dir)
        self.image_format = image_format.lstrip(".").lower()
        self.saved: List[Tuple[Path, Path]] = []

    def deliver(self, result: CaptureResult) -> None:
        self.write(result)

    def write(self, result: CaptureResult) -> Tuple[Path, Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stem = f"capture_{int(result.captured_at * 1000)}"
        original_path = self.output_dir / f"{stem}_original.{self.image_format}"
        filtered_path = self.output_dir / f"{stem}_{result.mode.animal}.{self.image_format}"

        for path, frame in ((original_path, result.original), (filtered_path, result.filtered)):
            if not cv2.imwrite(str(path), frame.to_bgr()):
                raise IOError(f"Failed to write capture: {path}")

        self.saved.append((original_path, filtered_path))
        logging.info(f"Capture saved: {original_path.name}, {filtered_path.name}")
        return original_path, filtered_path

    @property
    def last_saved(self) -> Optional[Tuple[Path, Path]]:
        return self.saved[-1] if self.saved else None
