"""
Vision filter chains, one per simulated animal-vision mode.
"""

from .thermal_lut import (
    DEFAULT_LUT_SIZE,
    ThermalLUT,
    thermal_gradient,
    build_thermal_lut,
    get_thermal_lut,
)
from .chains import (
    DICHROMATIC_MATRIX,
    UV_SHIFT_MATRIX,
    VisionFilterChain,
    build_chains,
)

__all__ = [
    "DEFAULT_LUT_SIZE",
    "ThermalLUT",
    "thermal_gradient",
    "build_thermal_lut",
    "get_thermal_lut",
    "DICHROMATIC_MATRIX",
    "UV_SHIFT_MATRIX",
    "VisionFilterChain",
    "build_chains",
]
