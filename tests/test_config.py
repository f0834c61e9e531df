"""
Smoke tests for configuration loading and validation.
"""

import pytest

from main import load_config, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "vision", "recording", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        """Each required section is reported by name when missing."""
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error

    def test_optional_sections_may_be_absent(self, valid_config):
        """capture and web fall back to defaults."""
        del valid_config["capture"]
        del valid_config["web"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_devices_must_be_mapping(self, valid_config):
        valid_config["camera"]["devices"] = [0, 1]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "camera.devices" in error

    def test_unknown_facing_key(self, valid_config):
        valid_config["camera"]["devices"]["side"] = 2

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "side" in error

    def test_invalid_device_id_type(self, valid_config):
        """Device ids must be int or str."""
        valid_config["camera"]["devices"]["back"] = 1.5

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "camera.devices.back" in error

    def test_negative_device_id(self, valid_config):
        valid_config["camera"]["devices"]["front"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "non-negative" in error

    def test_string_device_id_valid(self, valid_config):
        """A URL or file path is accepted as a device id."""
        valid_config["camera"]["devices"]["back"] = "clips/street.mp4"

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_missing_front_device_allowed(self, valid_config):
        """A single-camera setup only needs the initial facing."""
        valid_config["camera"]["devices"] = {"back": 0}

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_initial_facing_needs_device(self, valid_config):
        valid_config["camera"]["devices"] = {"back": 0}
        valid_config["camera"]["facing"] = "front"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "front" in error

    def test_invalid_resolution_format(self, valid_config):
        valid_config["camera"]["resolution"] = "1280x720"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error

    def test_invalid_resolution_length(self, valid_config):
        valid_config["camera"]["resolution"] = [1280]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error

    def test_invalid_fps(self, valid_config):
        valid_config["camera"]["fps"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "fps" in error

    def test_max_zoom_below_one(self, valid_config):
        valid_config["camera"]["max_zoom"] = 0.5

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "max_zoom" in error

    def test_invalid_rotate(self, valid_config):
        valid_config["camera"]["rotate"] = 45

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "rotate" in error

    @pytest.mark.parametrize("mode", ["dog", "bee", "snake", "bird", "THERMAL"])
    def test_vision_modes_accepted(self, valid_config, mode):
        valid_config["vision"]["mode"] = mode

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_unknown_vision_mode(self, valid_config):
        valid_config["vision"]["mode"] = "cat"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "vision.mode" in error

    def test_lut_size_too_small(self, valid_config):
        valid_config["vision"]["thermal_lut_size"] = 1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "thermal_lut_size" in error

    def test_codec_must_be_fourcc(self, valid_config):
        valid_config["recording"]["codec"] = "h264x"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "codec" in error

    def test_recording_fps_positive(self, valid_config):
        valid_config["recording"]["fps"] = -30

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "recording.fps" in error

    def test_pending_frames_positive_int(self, valid_config):
        valid_config["recording"]["max_pending_frames"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "max_pending_frames" in error

    def test_invalid_web_port(self, valid_config):
        valid_config["web"]["port"] = 70000

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "web.port" in error

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Config loads from default.yaml when only it exists."""
        config_path = str(temp_config_dir / "config.yaml")

        config = load_config(config_path)

        assert config["camera"]["backend"] == "opencv"
        assert config["camera"]["devices"] == {"back": 0, "front": 1}
        assert config["camera"]["resolution"] == [640, 480]
        assert config["vision"]["mode"] == "dog"

    def test_local_overrides_merge(self, temp_config_dir):
        """Local config.yaml overrides default.yaml."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
camera:
  resolution: [1920, 1080]
  fps: 60
""")

        config = load_config(str(config_yaml))

        assert config["camera"]["resolution"] == [1920, 1080]
        assert config["camera"]["fps"] == 60

        assert config["camera"]["backend"] == "opencv"
        assert config["camera"]["facing"] == "back"

    def test_deep_merge_preserves_nested(self, temp_config_dir):
        """Deep merge preserves nested keys not overridden."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
camera:
  devices:
    front: "rtsp://phone.local/front"
""")

        config = load_config(str(config_yaml))

        assert config["camera"]["devices"]["front"] == "rtsp://phone.local/front"
        assert config["camera"]["devices"]["back"] == 0

    def test_explicit_config_applied_last(self, temp_config_dir, tmp_path):
        """An explicit --config file overrides both default and local files."""
        (temp_config_dir / "config.yaml").write_text("vision:\n  mode: bee\n")
        explicit = temp_config_dir / "snake.yaml"
        explicit.write_text("vision:\n  mode: snake\n")

        config = load_config(str(explicit))

        assert config["vision"]["mode"] == "snake"
        assert config["vision"]["thermal_lut_size"] == 32

    def test_loaded_defaults_validate(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        is_valid, error = validate_config(config)

        assert is_valid is True, error
