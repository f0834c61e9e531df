"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    devices: Dict[str, Union[int, str]] = field(default_factory=lambda: {"back": 0, "front": 1})
    facing: str = "back"
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    max_zoom: float = 5.0
    hardware_zoom: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            devices=d.get("devices", {"back": 0, "front": 1}),
            facing=d.get("facing", "back"),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            max_zoom=d.get("max_zoom", 5.0),
            hardware_zoom=d.get("hardware_zoom", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "devices": self.devices,
            "facing": self.facing,
            "resolution": self.resolution,
            "fps": self.fps,
            "max_zoom": self.max_zoom,
            "hardware_zoom": self.hardware_zoom,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class VisionConfig:
    """Vision mode selection."""
    mode: str = "dog"
    thermal_lut_size: int = 64

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VisionConfig":
        return cls(
            mode=d.get("mode", "dog"),
            thermal_lut_size=d.get("thermal_lut_size", 64),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "thermal_lut_size": self.thermal_lut_size,
        }


@dataclass
class RecordingConfig:
    """Video recording configuration."""
    output_dir: str = "output/video"
    codec: str = "mp4v"
    container: str = "mp4"
    fps: float = 30.0
    default_resolution: List[int] = field(default_factory=lambda: [1080, 1920])
    max_pending_frames: int = 8
    max_consecutive_write_failures: int = 30
    finalize_timeout: float = 10.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RecordingConfig":
        return cls(
            output_dir=d.get("output_dir", "output/video"),
            codec=d.get("codec", "mp4v"),
            container=d.get("container", "mp4"),
            fps=d.get("fps", 30.0),
            default_resolution=d.get("default_resolution", [1080, 1920]),
            max_pending_frames=d.get("max_pending_frames", 8),
            max_consecutive_write_failures=d.get("max_consecutive_write_failures", 30),
            finalize_timeout=d.get("finalize_timeout", 10.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": self.output_dir,
            "codec": self.codec,
            "container": self.container,
            "fps": self.fps,
            "default_resolution": self.default_resolution,
            "max_pending_frames": self.max_pending_frames,
            "max_consecutive_write_failures": self.max_consecutive_write_failures,
            "finalize_timeout": self.finalize_timeout,
        }


@dataclass
class CaptureConfig:
    """Still-capture output configuration."""
    output_dir: str = "output/captures"
    image_format: str = "png"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CaptureConfig":
        return cls(
            output_dir=d.get("output_dir", "output/captures"),
            image_format=d.get("image_format", "png"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": self.output_dir,
            "image_format": self.image_format,
        }


@dataclass
class WebConfig:
    """Control/preview web server configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/pawvision.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            vision=VisionConfig.from_dict(d.get("vision", {}) or {}),
            recording=RecordingConfig.from_dict(d.get("recording", {}) or {}),
            capture=CaptureConfig.from_dict(d.get("capture", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/pawvision.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "camera": self.camera.to_dict(),
            "vision": self.vision.to_dict(),
            "recording": self.recording.to_dict(),
            "capture": self.capture.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
