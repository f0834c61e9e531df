"""
Color-space primitives for the vision filter chains.

All functions operate on HxWx4 float32 RGBA arrays in the normalized range
[0, 1] and return a new array in the same layout, clamped to [0, 1]. Alpha is
passed through untouched unless a color matrix carries an alpha row. The
functions hold no state, so the output of any op is valid input to the next.
"""

from __future__ import annotations

from typing import Sequence, Union

import cv2
import numpy as np

# Rec.709 luma weights
LUMA_COEFFS = (0.2126, 0.7152, 0.0722)
LUMA_WEIGHTS = np.array(LUMA_COEFFS, dtype=np.float32)

# Mid-gray pivot for contrast
MID_GRAY = 0.5

# Default radius (in pixels) for luminance sharpening
SHARPEN_RADIUS = 1.69

_VALID_MATRIX_SHAPES = {(3, 4), (3, 5), (4, 4), (4, 5)}

MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


def _clamp(image: np.ndarray) -> np.ndarray:
    return np.clip(image, 0.0, 1.0, out=image)


def _writable_copy(image: np.ndarray) -> np.ndarray:
    return np.array(image, dtype=np.float32, copy=True)


def luminance(image: np.ndarray) -> np.ndarray:
    """Return the Rec.709 luma plane (H, W) of an RGBA image."""
    return image[..., :3] @ LUMA_WEIGHTS


def apply_color_matrix(image: np.ndarray, matrix: MatrixLike) -> np.ndarray:
    """
    Apply an affine color matrix to every pixel.

    Rows are output channels (R, G, B and optionally A); columns are the input
    R, G, B, A coefficients followed by an optional bias term, i.e.
    out = M x [R, G, B, A, 1]^T. A 3-row matrix leaves alpha unchanged.

    Args:
        image: HxWx4 RGBA image.
        matrix: Coefficients of shape (3, 4), (3, 5), (4, 4) or (4, 5).

    Returns:
        Transformed image, clamped to [0, 1].

    Raises:
        ValueError: If the matrix has an unsupported shape.
    """
    m = np.asarray(matrix, dtype=np.float32)
    if m.ndim != 2 or m.shape not in _VALID_MATRIX_SHAPES:
        raise ValueError(
            f"Color matrix must have shape (3|4, 4|5), got {m.shape}"
        )

    rows, cols = m.shape
    out = _writable_copy(image)
    out[..., :rows] = image @ m[:, :4].T
    if cols == 5:
        out[..., :rows] += m[:, 4]
    return _clamp(out)


def blend(
    image_a: np.ndarray,
    weight_a: float,
    image_b: np.ndarray,
    weight_b: float,
) -> np.ndarray:
    """
    Per-pixel linear combination of two images.

    Weights are not normalized; results outside [0, 1] are clamped.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Cannot blend shapes {image_a.shape} and {image_b.shape}")
    out = image_a * np.float32(weight_a) + image_b * np.float32(weight_b)
    return _clamp(out.astype(np.float32, copy=False))


def gaussian_blur(image: np.ndarray, radius: float) -> np.ndarray:
    """
    Separable Gaussian blur with sigma equal to `radius` pixels.

    Edges are extended by replication so borders do not darken.
    A radius <= 0 returns the input unchanged.
    """
    if radius <= 0:
        return image
    src = image if image.flags.writeable else image.copy()
    return cv2.GaussianBlur(
        src,
        (0, 0),
        sigmaX=float(radius),
        sigmaY=float(radius),
        borderType=cv2.BORDER_REPLICATE,
    )


def unsharp_mask(image: np.ndarray, radius: float, intensity: float) -> np.ndarray:
    """
    Local-contrast sharpening: image + intensity * (image - blur(image, radius)).

    Applied to the color channels only.
    """
    if intensity == 0 or radius <= 0:
        return image

    blurred = gaussian_blur(image, radius)
    out = _writable_copy(image)
    rgb = image[..., :3]
    out[..., :3] = rgb + np.float32(intensity) * (rgb - blurred[..., :3])
    return _clamp(out)


def sharpen_luminance(
    image: np.ndarray,
    sharpness: float,
    radius: float = SHARPEN_RADIUS,
) -> np.ndarray:
    """
    Sharpen the luma plane only.

    High-frequency detail is extracted from luma and added equally to R, G and
    B, so chroma differences are preserved and no color fringes appear.
    """
    if sharpness == 0:
        return image

    luma = luminance(image).astype(np.float32)
    luma_blur = cv2.GaussianBlur(
        luma, (0, 0), sigmaX=radius, sigmaY=radius, borderType=cv2.BORDER_REPLICATE
    )
    detail = (luma - luma_blur) * np.float32(sharpness)

    out = _writable_copy(image)
    out[..., :3] += detail[..., np.newaxis]
    return _clamp(out)


def highlight_shadow_adjust(
    image: np.ndarray,
    highlight_amount: float = 1.0,
    shadow_amount: float = 0.0,
) -> np.ndarray:
    """
    Nonlinear luma remap that compresses highlights and lifts shadows.

    Follows the Core Image convention: highlight_amount 1.0 and shadow_amount
    0.0 leave the image unchanged. Lowering highlight_amount pulls bright luma
    down (weighted by luma^2); raising shadow_amount lifts dark luma (weighted
    by luma * (1 - luma)^2, so pure black stays black). Both amounts are
    clamped to [0, 1]. The luma delta is added equally to R, G and B.
    """
    highlight_amount = float(np.clip(highlight_amount, 0.0, 1.0))
    shadow_amount = float(np.clip(shadow_amount, 0.0, 1.0))
    if highlight_amount == 1.0 and shadow_amount == 0.0:
        return image

    luma = np.clip(luminance(image), 0.0, 1.0)
    lift = shadow_amount * luma * (1.0 - luma) ** 2
    compress = (1.0 - highlight_amount) * 0.5 * luma ** 2
    delta = (lift - compress).astype(np.float32)

    out = _writable_copy(image)
    out[..., :3] += delta[..., np.newaxis]
    return _clamp(out)


def color_controls(
    image: np.ndarray,
    saturation: float = 1.0,
    contrast: float = 1.0,
    brightness: float = 0.0,
) -> np.ndarray:
    """
    Brightness, contrast and saturation in one pass.

    Processing order: brightness (additive) -> contrast (multiplicative around
    mid-gray) -> saturation (mix with Rec.709 luma; 0 gives grayscale).
    """
    out = _writable_copy(image)
    rgb = out[..., :3]

    if brightness != 0:
        rgb += np.float32(brightness)

    if contrast != 1.0:
        rgb -= MID_GRAY
        rgb *= np.float32(contrast)
        rgb += MID_GRAY

    if saturation != 1.0:
        luma = (rgb @ LUMA_WEIGHTS)[..., np.newaxis]
        rgb -= luma
        rgb *= np.float32(saturation)
        rgb += luma

    return _clamp(out)
