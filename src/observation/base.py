"""
Frame producers for the vision pipeline.

Every source hands out `Frame`s: RGBA float pixels in [0, 1] stamped with
`time.monotonic()` at capture, numbered from 1 after each `open()`. Sources
report failure by returning None from `read()`; the engine decides when
enough failures mean the camera is gone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from models.frame import Frame


@dataclass
class ObservationConfig:
    """
    Settings shared by all sources.

    `resolution` is (width, height); None leaves resolution and fps at
    whatever the device picks. `metadata` carries per-backend extras.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Base class for camera, file and stream sources.

    Subclasses set `_is_open` in open()/close() and bump `_frame_index` for
    every frame they return.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Frames handed out since the last open()."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Raises RuntimeError when it cannot be opened."""

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """Next frame, or None on end of stream or a device error."""

    @abstractmethod
    def close(self) -> None:
        """Release the device; calling it twice is harmless."""

    def __enter__(self) -> ObservationSource:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Frame]:
        if not self._is_open:
            raise RuntimeError(f"Source {self.source_id!r} must be open before iterating")
        frame = self.read()
        while frame is not None:
            yield frame
            frame = self.read()
