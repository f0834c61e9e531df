"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.errors import EncoderInitError, EncoderWriteError  # noqa: E402
from models.frame import Frame  # noqa: E402
from recording.encoder import VideoEncoder  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  devices:
    back: 0
    front: 1
  facing: "back"
  resolution: [640, 480]
  fps: 30
  max_zoom: 5.0

vision:
  mode: "dog"
  thermal_lut_size: 32

recording:
  output_dir: "output/video"
  codec: "mp4v"
  fps: 30.0

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "devices": {"back": 0, "front": 1},
            "facing": "back",
            "resolution": [1280, 720],
            "fps": 30,
            "max_zoom": 5.0,
        },
        "vision": {
            "mode": "dog",
            "thermal_lut_size": 64,
        },
        "recording": {
            "output_dir": "output/video",
            "codec": "mp4v",
            "container": "mp4",
            "fps": 30.0,
            "default_resolution": [1080, 1920],
        },
        "capture": {
            "output_dir": "output/captures",
        },
        "web": {
            "enabled": True,
            "port": 5000,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def random_frame(rng):
    """A 48x64 frame of uniform random RGBA noise."""
    pixels = rng.random((48, 64, 4), dtype=np.float32)
    pixels[..., 3] = 1.0
    return Frame(pixels=pixels, timestamp=0.0)


class FakeEncoder(VideoEncoder):
    """In-memory encoder recording every call."""

    def __init__(self, fail_open=False, fail_writes=False):
        self.fail_open = fail_open
        self.fail_writes = fail_writes
        self.opened = []
        self.frames = []
        self.release_count = 0
        self.released = threading.Event()

    def open(self, path, resolution, fps):
        if self.fail_open:
            raise EncoderInitError("rejected configuration")
        Path(path).touch()
        self.opened.append((path, tuple(resolution), fps))

    def write(self, image):
        if self.fail_writes:
            raise EncoderWriteError("disk full")
        self.frames.append(image)

    def release(self):
        self.release_count += 1
        self.released.set()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def encoder_factory(fake_encoder):
    """Factory handing out the shared fake_encoder."""
    return lambda: fake_encoder
