"""
Camera control: facing switch and zoom with clamping/fallback policy.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor

from camera.device import CaptureDevice, DeviceState
from models.errors import DeviceUnavailableError

# Upper bound on zoom regardless of what the device reports
MAX_ZOOM_CAP = 5.0


class CameraController:
    """
    Owns camera reconfiguration for the pipeline.

    Switching runs on its own worker thread (see `switch_facing_async`) so it
    never blocks frame processing; frames delivered mid-switch may still come
    from the previous device.
    """

    def __init__(self, device: CaptureDevice):
        self.device = device
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera-switch")

    @property
    def state(self) -> DeviceState:
        return self.device.state

    def zoom_limit(self) -> float:
        return max(1.0, min(self.device.max_zoom_factor, MAX_ZOOM_CAP))

    def switch_facing(self) -> bool:
        """
        Switch to the opposite camera and reset zoom to 1.0.

        If the other camera is unavailable the device stays on the current
        facing and zoom; no error is raised.

        Returns:
            True if the switch happened.
        """
        previous = self.device.state
        target = previous.facing.opposite
        try:
            with self.device.configuration():
                self.device.set_facing(target)
                self.device.set_zoom(1.0)
        except DeviceUnavailableError as e:
            logging.warning(
                f"Camera switch to {target.value} failed, staying on {previous.facing.value}: {e}"
            )
            return False

        logging.info(f"Camera switched: {previous.facing.value} -> {target.value}")
        return True

    def switch_facing_async(self) -> Future:
        """Queue a facing switch on the camera worker thread."""
        return self._executor.submit(self.switch_facing)

    def apply_zoom(self, factor: float) -> float:
        """
        Apply a zoom factor clamped to [1.0, min(device max, 5.0)].

        Out-of-range requests are clamped, never rejected.

        Returns:
            The factor actually applied.
        """
        clamped = min(max(float(factor), 1.0), self.zoom_limit())
        if clamped != factor:
            logging.debug(f"Zoom {factor} clamped to {clamped}")
        with self.device.configuration():
            return self.device.set_zoom(clamped)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
