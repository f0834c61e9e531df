"""
Recording of filtered frames to video files.
"""

from .encoder import VideoEncoder, OpenCVVideoEncoder, opencv_encoder_factory
from .recorder import RecorderState, RecordingSession, VideoRecorder

__all__ = [
    "VideoEncoder",
    "OpenCVVideoEncoder",
    "opencv_encoder_factory",
    "RecorderState",
    "RecordingSession",
    "VideoRecorder",
]
