"""
Capture devices and their reconfiguration bracket.

A CaptureDevice owns a DeviceState (facing, zoom, max zoom). All changes go
through `configuration()`, which grants exclusive reconfiguration rights and
either commits every change made inside it or rolls the device back to the
state it had on entry, so the device is never observed half-configured.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterator, List, Optional, Union

from models.errors import DeviceUnavailableError
from observation.opencv_source import OpenCVSource


class Facing(Enum):
    BACK = "back"
    FRONT = "front"

    @property
    def opposite(self) -> "Facing":
        return Facing.FRONT if self is Facing.BACK else Facing.BACK


@dataclass
class DeviceState:
    """Current camera facing and zoom, plus the device-reported zoom limit."""
    facing: Facing = Facing.BACK
    zoom: float = 1.0
    max_zoom: float = 1.0

    def to_dict(self) -> Dict[str, Union[str, float]]:
        return {
            "facing": self.facing.value,
            "zoom": self.zoom,
            "max_zoom": self.max_zoom,
        }


class CaptureDevice(ABC):
    """
    A camera whose facing and zoom can be changed at runtime.

    Subclasses implement `_apply_facing` and `_apply_zoom`; callers use
    `set_facing` / `set_zoom` inside a `configuration()` block.
    """

    def __init__(self, state: DeviceState):
        self._state = state
        self._config_lock = threading.RLock()
        self._config_owner: Optional[int] = None

    @property
    def state(self) -> DeviceState:
        """Snapshot of the committed device state."""
        with self._config_lock:
            return replace(self._state)

    @property
    def max_zoom_factor(self) -> float:
        return self._state.max_zoom

    @abstractmethod
    def available_facings(self) -> List[Facing]:
        pass

    @abstractmethod
    def _apply_facing(self, facing: Facing) -> None:
        """
        Point the hardware at `facing`.

        Raises:
            DeviceUnavailableError: If no device exists for that facing or it
                cannot be opened. The hardware must be left unchanged.
        """
        pass

    @abstractmethod
    def _apply_zoom(self, factor: float) -> float:
        """Apply a zoom factor already clamped by the caller; returns it."""
        pass

    @contextmanager
    def configuration(self) -> Iterator["CaptureDevice"]:
        """
        Exclusive reconfiguration bracket with commit-or-rollback.

        Example:
            with device.configuration():
                device.set_facing(Facing.FRONT)
                device.set_zoom(1.0)
        """
        with self._config_lock:
            snapshot = replace(self._state)
            outer = self._config_owner is None
            self._config_owner = threading.get_ident()
            try:
                yield self
            except Exception:
                if outer:
                    self._rollback(snapshot)
                raise
            finally:
                if outer:
                    self._config_owner = None

    def set_facing(self, facing: Facing) -> None:
        self._require_configuration()
        if facing is self._state.facing:
            return
        self._apply_facing(facing)
        self._state.facing = facing

    def set_zoom(self, factor: float) -> float:
        self._require_configuration()
        applied = self._apply_zoom(factor)
        self._state.zoom = applied
        return applied

    def _require_configuration(self) -> None:
        if self._config_owner != threading.get_ident():
            raise RuntimeError("Device changes must be made inside configuration()")

    def _rollback(self, snapshot: DeviceState) -> None:
        current = self._state
        if current.facing is not snapshot.facing:
            try:
                self._apply_facing(snapshot.facing)
            except DeviceUnavailableError as e:
                logging.error(f"Rollback to {snapshot.facing.value} camera failed: {e}")
        if current.zoom != snapshot.zoom:
            self._apply_zoom(snapshot.zoom)
        self._state = snapshot
        logging.debug(f"Device configuration rolled back to {snapshot.to_dict()}")


class OpenCVCaptureDevice(CaptureDevice):
    """
    Maps facings to OpenCV device ids and drives an OpenCVSource.

    Args:
        source: Source delivering frames to the pipeline.
        devices: Facing name ("back"/"front") -> OpenCV device id.
        facing: Facing the source is currently opened on.
        max_zoom: Zoom limit reported for the device.
    """

    def __init__(
        self,
        source: OpenCVSource,
        devices: Dict[str, Union[int, str]],
        facing: Union[str, Facing] = Facing.BACK,
        max_zoom: float = 5.0,
    ):
        super().__init__(DeviceState(facing=Facing(facing), zoom=1.0, max_zoom=max_zoom))
        self.source = source
        self.devices = dict(devices)

    def available_facings(self) -> List[Facing]:
        return [f for f in Facing if self.devices.get(f.value) is not None]

    def device_for(self, facing: Facing) -> Optional[Union[int, str]]:
        return self.devices.get(facing.value)

    def _apply_facing(self, facing: Facing) -> None:
        device_id = self.device_for(facing)
        if device_id is None:
            raise DeviceUnavailableError(f"No {facing.value} camera configured")
        try:
            self.source.reopen(device_id)
        except RuntimeError as e:
            raise DeviceUnavailableError(f"{facing.value} camera ({device_id}) unavailable: {e}") from e

    def _apply_zoom(self, factor: float) -> float:
        return self.source.set_zoom(factor)
