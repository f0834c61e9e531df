"""
Camera package: capture devices and the controller that reconfigures them.
"""

from .device import Facing, DeviceState, CaptureDevice, OpenCVCaptureDevice
from .controller import CameraController, MAX_ZOOM_CAP

__all__ = [
    "Facing",
    "DeviceState",
    "CaptureDevice",
    "OpenCVCaptureDevice",
    "CameraController",
    "MAX_ZOOM_CAP",
]
