"""
Typed models for the vision pipeline.

Frames, vision modes with their tuned parameters, configuration and the
error taxonomy shared by every layer.
"""

from .frame import Frame
from .vision_mode import (
    VisionMode,
    DichromaticParams,
    UVPatternParams,
    ThermalParams,
    AcuityParams,
    default_params,
)
from .errors import (
    PawvisionError,
    TransientFrameError,
    EncoderInitError,
    EncoderWriteError,
    DeviceUnavailableError,
)
from .config import (
    Config,
    CameraConfig,
    VisionConfig,
    RecordingConfig,
    CaptureConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "Frame",
    # Modes
    "VisionMode",
    "DichromaticParams",
    "UVPatternParams",
    "ThermalParams",
    "AcuityParams",
    "default_params",
    # Errors
    "PawvisionError",
    "TransientFrameError",
    "EncoderInitError",
    "EncoderWriteError",
    "DeviceUnavailableError",
    # Config
    "Config",
    "CameraConfig",
    "VisionConfig",
    "RecordingConfig",
    "CaptureConfig",
    "WebConfig",
]
