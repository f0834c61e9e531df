"""
Stateless color-space operations shared by every vision filter chain.
"""

from .ops import (
    LUMA_WEIGHTS,
    luminance,
    apply_color_matrix,
    blend,
    gaussian_blur,
    unsharp_mask,
    sharpen_luminance,
    highlight_shadow_adjust,
    color_controls,
)

__all__ = [
    "LUMA_WEIGHTS",
    "luminance",
    "apply_color_matrix",
    "blend",
    "gaussian_blur",
    "unsharp_mask",
    "sharpen_luminance",
    "highlight_shadow_adjust",
    "color_controls",
]
