"""
Thermal lookup table for the snake vision mode.

A cube of side N covers the RGB input space. Every cell stores the thermal
gradient color for the Rec.709 luminance of its input coordinate, so applying
the table to a desaturated image maps brightness to a heat palette running
deep blue -> blue -> cyan -> green -> yellow -> orange -> red.

The cube is built once per process and shared read-only by the live pipeline
and still-image conversions.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Tuple

import numpy as np

from colorspace.ops import LUMA_COEFFS

DEFAULT_LUT_SIZE = 64

# Gradient stops: luminance -> (R, G, B). Adjacent segments share their
# endpoint colors, so the gradient is continuous and piecewise linear.
GRADIENT_STOPS = np.array([0.00, 0.15, 0.30, 0.45, 0.60, 0.75, 1.00], dtype=np.float64)
GRADIENT_COLORS = np.array(
    [
        [0.0, 0.0, 0.3],  # deep blue
        [0.0, 0.0, 1.0],  # blue
        [0.0, 0.9, 1.0],  # cyan
        [0.0, 1.0, 0.0],  # green
        [1.0, 1.0, 0.0],  # yellow
        [1.0, 0.6, 0.0],  # orange
        [1.0, 0.0, 0.0],  # red
    ],
    dtype=np.float64,
)

_lut_cache: Dict[int, "ThermalLUT"] = {}
_lut_cache_lock = threading.Lock()


def thermal_gradient(luminance) -> np.ndarray:
    """
    Map luminance values to thermal RGB colors.

    Args:
        luminance: Scalar or array of luminance values; clamped to [0, 1].

    Returns:
        Array of shape luminance.shape + (3,) with RGB in [0, 1].
    """
    lum = np.clip(np.asarray(luminance, dtype=np.float64), 0.0, 1.0)
    channels = [
        np.interp(lum, GRADIENT_STOPS, GRADIENT_COLORS[:, c]) for c in range(3)
    ]
    return np.stack(channels, axis=-1)


class ThermalLUT:
    """
    Immutable N x N x N x 4 RGBA lookup cube.

    Indexed as table[r, g, b] with each axis spanning [0, 1] in N steps.
    """

    def __init__(self, table: np.ndarray):
        table = np.asarray(table, dtype=np.float32)
        if (
            table.ndim != 4
            or table.shape[-1] != 4
            or not (table.shape[0] == table.shape[1] == table.shape[2])
            or table.shape[0] < 2
        ):
            raise ValueError(f"Thermal LUT must be NxNxNx4 with N >= 2, got {table.shape}")
        table = table.copy()
        table.setflags(write=False)
        self._table = table

    @property
    def size(self) -> int:
        return self._table.shape[0]

    @property
    def table(self) -> np.ndarray:
        return self._table

    def apply(self, image: np.ndarray) -> np.ndarray:
        """
        Look up every pixel of an RGBA image with trilinear interpolation.

        Args:
            image: HxWx4 float32 image in [0, 1]. Input alpha is ignored.

        Returns:
            HxWx4 float32 image; alpha comes from the table (opaque).
        """
        n = self.size
        pos = np.clip(image[..., :3], 0.0, 1.0) * np.float32(n - 1)
        idx0 = np.clip(np.floor(pos).astype(np.intp), 0, n - 2)
        frac = (pos - idx0).astype(np.float32)

        r0, g0, b0 = idx0[..., 0], idx0[..., 1], idx0[..., 2]
        r1, g1, b1 = r0 + 1, g0 + 1, b0 + 1
        fr = frac[..., 0:1]
        fg = frac[..., 1:2]
        fb = frac[..., 2:3]

        cube = self._table
        # Interpolate along B, then G, then R
        c00 = cube[r0, g0, b0] * (1 - fb) + cube[r0, g0, b1] * fb
        c01 = cube[r0, g1, b0] * (1 - fb) + cube[r0, g1, b1] * fb
        c10 = cube[r1, g0, b0] * (1 - fb) + cube[r1, g0, b1] * fb
        c11 = cube[r1, g1, b0] * (1 - fb) + cube[r1, g1, b1] * fb

        c0 = c00 * (1 - fg) + c01 * fg
        c1 = c10 * (1 - fg) + c11 * fg

        out = c0 * (1 - fr) + c1 * fr
        return np.clip(out, 0.0, 1.0, out=out).astype(np.float32, copy=False)

    def sample(self, luminance: float) -> Tuple[float, float, float]:
        """
        Sample the cube on its gray diagonal, i.e. at input (L, L, L).

        Returns:
            (R, G, B) tuple.
        """
        lum = float(np.clip(luminance, 0.0, 1.0))
        pixel = np.array([[[lum, lum, lum, 1.0]]], dtype=np.float32)
        r, g, b = self.apply(pixel)[0, 0, :3]
        return float(r), float(g), float(b)


def build_thermal_lut(size: int = DEFAULT_LUT_SIZE) -> ThermalLUT:
    """
    Build a thermal LUT of the given side length.

    Pure and deterministic: the same size always yields an identical table.

    Raises:
        ValueError: If size < 2.
    """
    if size < 2:
        raise ValueError(f"Thermal LUT size must be >= 2, got {size}")

    axis = np.linspace(0.0, 1.0, size, dtype=np.float64)
    r, g, b = np.meshgrid(axis, axis, axis, indexing="ij")
    lum = LUMA_COEFFS[0] * r + LUMA_COEFFS[1] * g + LUMA_COEFFS[2] * b

    table = np.ones((size, size, size, 4), dtype=np.float32)
    table[..., :3] = thermal_gradient(lum)
    return ThermalLUT(table)


def get_thermal_lut(size: int = DEFAULT_LUT_SIZE) -> ThermalLUT:
    """Return the process-wide thermal LUT for `size`, building it on first use."""
    with _lut_cache_lock:
        lut = _lut_cache.get(size)
        if lut is None:
            logging.info(f"Building {size}x{size}x{size} thermal LUT")
            lut = build_thermal_lut(size)
            _lut_cache[size] = lut
        return lut
