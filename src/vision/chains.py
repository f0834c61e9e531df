"""
Per-mode vision filter chains.

Each VisionMode owns one fixed, ordered sequence of color-space operations.
The set of modes is closed, so dispatch is an explicit branch per mode rather
than a registry of pluggable filters.
"""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np

from colorspace.ops import (
    apply_color_matrix,
    blend,
    color_controls,
    gaussian_blur,
    highlight_shadow_adjust,
    sharpen_luminance,
    unsharp_mask,
)
from models.frame import Frame
from models.vision_mode import (
    AcuityParams,
    DichromaticParams,
    ModeParams,
    ThermalParams,
    UVPatternParams,
    VisionMode,
    default_params,
)
from vision.thermal_lut import DEFAULT_LUT_SIZE, ThermalLUT, get_thermal_lut


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=np.float32)
    arr.setflags(write=False)
    return arr


# Rows: output R, G, B. Columns: input R, G, B, A.
DICHROMATIC_MATRIX = _frozen([
    [0.625, 0.0, 0.0, 0.0],
    [0.375, 0.3, 0.3, 0.0],
    [0.0, 0.0, 0.7, 0.0],
])

# Suppresses red and pushes energy into the blue-green band
UV_SHIFT_MATRIX = _frozen([
    [0.1, 0.0, 0.0, 0.0],
    [0.0, 0.9, 0.3, 0.0],
    [0.0, 0.3, 1.0, 0.0],
])

_PARAM_TYPES = {
    VisionMode.DICHROMATIC: DichromaticParams,
    VisionMode.UV_PATTERN: UVPatternParams,
    VisionMode.THERMAL: ThermalParams,
    VisionMode.ACUITY: AcuityParams,
}


class VisionFilterChain:
    """
    The filter chain for one vision mode.

    Args:
        mode: Vision mode this chain renders.
        params: Parameter set for the mode (defaults to the tuned values).
        lut: Thermal LUT; only used by the thermal mode. Defaults to the
            shared process-wide table.
    """

    def __init__(
        self,
        mode: VisionMode,
        params: Optional[ModeParams] = None,
        lut: Optional[ThermalLUT] = None,
    ):
        self.mode = VisionMode.parse(mode)
        if params is None:
            params = default_params(self.mode)
        expected = _PARAM_TYPES[self.mode]
        if not isinstance(params, expected):
            raise ValueError(
                f"{self.mode.name} chain needs {expected.__name__}, got {type(params).__name__}"
            )
        self.params = params

        if self.mode is VisionMode.THERMAL and lut is None:
            lut = get_thermal_lut()
        self.lut = lut

        if self.mode is VisionMode.DICHROMATIC:
            p = self.params
            self._matrix = _frozen([
                list(p.red) + [0.0],
                list(p.green) + [0.0],
                list(p.blue) + [0.0],
            ])

    def __repr__(self) -> str:
        return f"VisionFilterChain({self.mode.name})"

    def apply(self, image: np.ndarray) -> np.ndarray:
        """Run the chain on an HxWx4 float32 RGBA array."""
        if self.mode is VisionMode.DICHROMATIC:
            return self._dichromatic(image)
        elif self.mode is VisionMode.UV_PATTERN:
            return self._uv_pattern(image)
        elif self.mode is VisionMode.THERMAL:
            return self._thermal(image)
        elif self.mode is VisionMode.ACUITY:
            return self._acuity(image)
        raise ValueError(f"Unhandled vision mode: {self.mode!r}")

    def transform(self, frame: Frame) -> Frame:
        """Filter a frame, keeping its timestamp and metadata."""
        return frame.with_pixels(self.apply(frame.pixels))

    def _dichromatic(self, image: np.ndarray) -> np.ndarray:
        return apply_color_matrix(image, self._matrix)

    def _uv_pattern(self, image: np.ndarray) -> np.ndarray:
        p: UVPatternParams = self.params
        shifted = apply_color_matrix(image, UV_SHIFT_MATRIX)
        out = blend(shifted, p.shift_weight, image, p.original_weight)
        out = unsharp_mask(out, p.coarse_unsharp_radius, p.coarse_unsharp_intensity)
        out = unsharp_mask(out, p.fine_unsharp_radius, p.fine_unsharp_intensity)
        out = sharpen_luminance(out, p.luminance_sharpness)
        out = highlight_shadow_adjust(out, p.highlight_amount, p.shadow_amount)
        return color_controls(out, saturation=p.saturation, contrast=p.contrast)

    def _thermal(self, image: np.ndarray) -> np.ndarray:
        p: ThermalParams = self.params
        out = gaussian_blur(image, p.blur_radius)
        out = color_controls(out, saturation=p.pre_saturation, contrast=p.pre_contrast)
        out = self.lut.apply(out)
        return color_controls(out, saturation=p.post_saturation, contrast=p.post_contrast)

    def _acuity(self, image: np.ndarray) -> np.ndarray:
        p: AcuityParams = self.params
        out = color_controls(image, saturation=p.saturation, contrast=p.contrast)
        out = unsharp_mask(out, p.micro_unsharp_radius, p.micro_unsharp_intensity)
        out = sharpen_luminance(out, p.luminance_sharpness)
        out = unsharp_mask(out, p.fine_unsharp_radius, p.fine_unsharp_intensity)
        return highlight_shadow_adjust(out, p.highlight_amount, p.shadow_amount)


def build_chains(lut_size: int = DEFAULT_LUT_SIZE) -> Dict[VisionMode, VisionFilterChain]:
    """Create one chain per mode, all sharing a single thermal LUT."""
    lut = get_thermal_lut(lut_size)
    return {mode: VisionFilterChain(mode, lut=lut) for mode in VisionMode}
