"""
Pipeline module for the vision camera.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Vision filtering per selected mode
- Preview publication and control-request handling on the control thread
- Hand-off of filtered frames to the video recorder
"""

from .engine import PipelineEngine, PipelineConfig, create_engine_from_config
from .processor import FrameProcessor, ProcessorStats
from .requests import ControlRequest, RequestChannel
from .dispatch import Dispatcher, ControlDispatcher, InlineDispatcher
from .sinks import CaptureResult, CaptureSink, CallbackCaptureSink, FileCaptureSink

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "create_engine_from_config",
    "FrameProcessor",
    "ProcessorStats",
    "ControlRequest",
    "RequestChannel",
    "Dispatcher",
    "ControlDispatcher",
    "InlineDispatcher",
    "CaptureResult",
    "CaptureSink",
    "CallbackCaptureSink",
    "FileCaptureSink",
]
