"""
Pawvision: live camera feed rendered through simulated animal vision.

Runs the capture pipeline with the web control surface, or converts a single
photo when --convert is given.

Usage:
    python src/main.py --config config/config.yaml --display
    python src/main.py --mode bee --record
    python src/main.py --convert photo.jpg --output photo_snake.png --mode snake

Arguments:
    --config: Path to configuration file
    --mode: Initial vision mode (dog, bee, snake, bird)
    --display: Show the filtered stream in a window
    --record: Start recording immediately
    --no-web: Do not start the web control server
    --convert/--output: Convert a still image and exit
"""

import os
import sys
import argparse
import logging
import threading
import time
from typing import Dict, Any, Tuple, Optional

import yaml
import uvicorn

from models.vision_mode import VisionMode
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from runtime.context import build_runtime
from vision.still import convert_image_file
from web.app import create_app
from web.state import state as web_state


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_resolution(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(x, int) and x > 0 for x in value)
    )


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['camera', 'vision', 'recording', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate camera settings
    camera = config.get('camera', {}) or {}
    devices = camera.get('devices')
    if not isinstance(devices, dict) or not devices:
        return False, "camera.devices must map facings (back/front) to device ids"
    for facing, device_id in devices.items():
        if facing not in ('back', 'front'):
            return False, f"camera.devices has unknown facing '{facing}' (use back/front)"
        if device_id is not None and not isinstance(device_id, (int, str)):
            return False, f"camera.devices.{facing} must be an integer (index), string (URL/path) or null"
        if isinstance(device_id, int) and device_id < 0:
            return False, f"camera.devices.{facing} integer must be non-negative"

    facing = camera.get('facing', 'back')
    if facing not in ('back', 'front'):
        return False, "camera.facing must be one of: back, front"
    if devices.get(facing) is None:
        return False, f"camera.devices has no device for the initial facing '{facing}'"

    if 'resolution' not in camera:
        return False, "Missing camera.resolution"
    if not _is_resolution(camera['resolution']):
        return False, "camera.resolution must be a list of [width, height] positive integers"

    if 'fps' not in camera:
        return False, "Missing camera.fps"
    if not isinstance(camera['fps'], int) or camera['fps'] <= 0:
        return False, "camera.fps must be a positive integer"

    max_zoom = camera.get('max_zoom', 5.0)
    if not isinstance(max_zoom, (int, float)) or max_zoom < 1.0:
        return False, "camera.max_zoom must be a number >= 1.0"

    if camera.get('rotate', 0) not in (0, 90, 180, 270):
        return False, "camera.rotate must be one of: 0, 90, 180, 270"

    # Validate vision settings
    vision = config.get('vision', {}) or {}
    try:
        VisionMode.parse(vision.get('mode', 'dog'))
    except ValueError as e:
        return False, f"vision.mode: {e}"
    lut_size = vision.get('thermal_lut_size', 64)
    if not isinstance(lut_size, int) or lut_size < 2:
        return False, "vision.thermal_lut_size must be an integer >= 2"

    # Validate recording settings
    recording = config.get('recording', {}) or {}
    if not isinstance(recording.get('output_dir', 'output/video'), str):
        return False, "recording.output_dir must be a string"
    codec = recording.get('codec', 'mp4v')
    if not isinstance(codec, str) or len(codec) != 4:
        return False, "recording.codec must be a 4-character FourCC code"
    rec_fps = recording.get('fps', 30.0)
    if not isinstance(rec_fps, (int, float)) or rec_fps <= 0:
        return False, "recording.fps must be a positive number"
    if not _is_resolution(recording.get('default_resolution', [1080, 1920])):
        return False, "recording.default_resolution must be a list of [width, height] positive integers"
    for key in ('max_pending_frames', 'max_consecutive_write_failures'):
        if key in recording:
            value = recording[key]
            if not isinstance(value, int) or value <= 0:
                return False, f"recording.{key} must be a positive integer"

    # Optional web settings
    web = config.get('web', {}) or {}
    if 'port' in web and (not isinstance(web['port'], int) or not (0 < web['port'] < 65536)):
        return False, "web.port must be an integer between 1 and 65535"

    # Validate log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def _start_web_server(config: Dict[str, Any]) -> threading.Thread:
    web_cfg = config.get('web', {}) or {}
    host = web_cfg.get('host', '0.0.0.0')
    port = web_cfg.get('port', 5000)

    def run_web_app():
        uvicorn.run(
            create_app(),
            host=host,
            port=port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, name="web", daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on {host}:{port}")
    return web_thread


def main(argv=None):
    """Main application function."""
    parser = argparse.ArgumentParser(description='Pawvision - see the world like an animal')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--mode', type=str, default=None,
                        help='Initial vision mode (dog, bee, snake, bird)')
    parser.add_argument('--display', action='store_true',
                        help='Show the filtered stream in a window (q quits, c captures, r records, s switches camera)')
    parser.add_argument('--record', action='store_true',
                        help='Start recording immediately')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the web control server')
    parser.add_argument('--convert', type=str, default=None, metavar='INPUT',
                        help='Convert a still image and exit')
    parser.add_argument('--output', type=str, default=None,
                        help='Output path for --convert')
    args = parser.parse_args(argv)

    if args.convert and not args.output:
        parser.error('--convert requires --output')

    # Load configuration
    config = load_config(args.config)
    if args.mode:
        config.setdefault('vision', {})['mode'] = args.mode

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    # Setup logging
    setup_logging(config['log_path'], config['log_level'])

    if args.convert:
        try:
            convert_image_file(
                args.convert,
                args.output,
                config['vision'].get('mode', 'dog'),
                lut_size=config['vision'].get('thermal_lut_size', 64),
            )
        except (OSError, ValueError) as e:
            logging.error(f"Conversion failed: {e}")
            sys.exit(1)
        return

    logging.info("Starting Pawvision")

    runtime = build_runtime(config, web_state=web_state)
    web_state.set_runtime(runtime)
    web_state.update_system_stats({"start_time": time.time()})

    web_enabled = (config.get('web', {}) or {}).get('enabled', True)
    if web_enabled and not args.no_web:
        _start_web_server(config)

    engine = create_engine_from_config(
        config=config,
        runtime=runtime,
        display=args.display,
        record=args.record,
    )
    engine.run()

    logging.info("Pawvision stopped")


if __name__ == "__main__":
    main()
