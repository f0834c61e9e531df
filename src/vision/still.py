"""
Still-image conversion: run a vision chain over a single photo on disk.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Union

import cv2

from models.frame import Frame
from models.vision_mode import VisionMode
from vision.chains import VisionFilterChain
from vision.thermal_lut import DEFAULT_LUT_SIZE, get_thermal_lut

PathLike = Union[str, Path]


def load_still_frame(path: PathLike) -> Frame:
    """
    Load an image file as a Frame.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If OpenCV cannot decode the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")

    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError(f"Could not decode image: {path}")

    return Frame.from_bgr(image, timestamp=time.monotonic(), source=str(path))


def convert_image_file(
    input_path: PathLike,
    output_path: PathLike,
    mode: Union[str, VisionMode],
    lut_size: int = DEFAULT_LUT_SIZE,
    chain: Optional[VisionFilterChain] = None,
) -> Path:
    """
    Convert a photo to the given vision mode and write the result.

    Args:
        input_path: Source image.
        output_path: Destination; the format follows the file extension.
        mode: Vision mode (enum, name or animal alias).
        lut_size: Thermal LUT size; the process-wide table is reused.
        chain: Pre-built chain to use instead of creating one.

    Returns:
        Path of the written image.
    """
    vision_mode = VisionMode.parse(mode)
    if chain is None:
        lut = get_thermal_lut(lut_size) if vision_mode is VisionMode.THERMAL else None
        chain = VisionFilterChain(vision_mode, lut=lut)

    frame = load_still_frame(input_path)
    filtered = chain.transform(frame)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), filtered.to_bgr()):
        raise IOError(f"Failed to write image: {output_path}")

    logging.info(
        f"Converted {input_path} -> {output_path} "
        f"({vision_mode.name}, {frame.width}x{frame.height})"
    )
    return output_path
