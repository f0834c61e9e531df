"""
Error taxonomy for the vision pipeline.

Every error here is recovered locally by the component that owns it:
- TransientFrameError: a single frame could not be decoded or filtered (dropped).
- EncoderInitError: a recording session could not be started.
- EncoderWriteError: a frame could not be encoded while recording (dropped).
- DeviceUnavailableError: the requested capture device is missing.
"""

from __future__ import annotations


class PawvisionError(Exception):
    """Base class for pipeline errors."""


class TransientFrameError(PawvisionError):
    """A single frame failed to decode or filter."""


class EncoderInitError(PawvisionError):
    """The output target or encoder could not be created."""


class EncoderWriteError(PawvisionError):
    """A frame failed to encode while a session was active."""


class DeviceUnavailableError(PawvisionError):
    """The requested capture device does not exist or cannot be opened."""
