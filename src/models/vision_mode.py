"""
Vision modes and their fixed, hand-tuned parameter sets.

The mode set is closed: each VisionMode maps to exactly one parameter
dataclass and one filter chain. Parameters are frozen; they are tuned per
mode and are not meant to be edited at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class VisionMode(Enum):
    """Simulated-perception modes, valued by the animal they emulate."""
    DICHROMATIC = "dog"
    UV_PATTERN = "bee"
    THERMAL = "snake"
    ACUITY = "bird"

    @classmethod
    def parse(cls, value: Union[str, "VisionMode"]) -> "VisionMode":
        """
        Resolve a mode from an enum member, its name or its animal alias.

        Raises:
            ValueError: If the value does not name a mode.
        """
        if isinstance(value, VisionMode):
            return value
        key = str(value).strip()
        for mode in cls:
            if key.lower() == mode.value or key.upper() == mode.name:
                return mode
        choices = ", ".join(f"{m.value}/{m.name}" for m in cls)
        raise ValueError(f"Unknown vision mode '{value}'. Available: {choices}")

    @property
    def animal(self) -> str:
        return self.value


@dataclass(frozen=True)
class DichromaticParams:
    """Dog vision: a single matrix muting red/green, keeping blue/yellow."""
    red: tuple = (0.625, 0.0, 0.0)
    green: tuple = (0.375, 0.3, 0.3)
    blue: tuple = (0.0, 0.0, 0.7)


@dataclass(frozen=True)
class UVPatternParams:
    """Bee vision: spectral shift plus aggressive pattern sharpening."""
    shift_weight: float = 0.7
    original_weight: float = 0.3
    coarse_unsharp_radius: float = 6.0
    coarse_unsharp_intensity: float = 2.0
    fine_unsharp_radius: float = 2.5
    fine_unsharp_intensity: float = 1.8
    luminance_sharpness: float = 1.2
    highlight_amount: float = 0.8
    shadow_amount: float = 0.6
    saturation: float = 1.35
    contrast: float = 1.15


@dataclass(frozen=True)
class ThermalParams:
    """Snake vision: diffused, desaturated luminance mapped to a heat palette."""
    blur_radius: float = 8.0
    pre_contrast: float = 1.2
    pre_saturation: float = 0.0
    post_saturation: float = 1.4
    post_contrast: float = 1.05


@dataclass(frozen=True)
class AcuityParams:
    """Bird vision: micro-contrast and fine-detail enhancement."""
    contrast: float = 1.08
    saturation: float = 1.0
    micro_unsharp_radius: float = 0.8
    micro_unsharp_intensity: float = 0.9
    luminance_sharpness: float = 0.6
    fine_unsharp_radius: float = 0.4
    fine_unsharp_intensity: float = 0.7
    highlight_amount: float = 0.95
    shadow_amount: float = 0.3


ModeParams = Union[DichromaticParams, UVPatternParams, ThermalParams, AcuityParams]


def default_params(mode: VisionMode) -> ModeParams:
    """Return the tuned parameter set for a mode."""
    if mode is VisionMode.DICHROMATIC:
        return DichromaticParams()
    if mode is VisionMode.UV_PATTERN:
        return UVPatternParams()
    if mode is VisionMode.THERMAL:
        return ThermalParams()
    if mode is VisionMode.ACUITY:
        return AcuityParams()
    raise ValueError(f"Unhandled vision mode: {mode!r}")
