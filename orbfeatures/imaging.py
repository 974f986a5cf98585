"""Small image primitives used by the feature extractor: angles, blur, resize and padding."""

from __future__ import annotations

import math

import numpy as np

_DEG = 180.0 / math.pi
_ATAN2_P1 = 0.9997878412794807 * _DEG
_ATAN2_P3 = -0.3258083974640975 * _DEG
_ATAN2_P5 = 0.1555786518463281 * _DEG
_ATAN2_P7 = -0.04432655554792128 * _DEG
_EPS = 2.220446049250313e-16


def fast_atan2(y: float, x: float) -> float:
    """Polynomial approximation of ``atan2(y, x)`` in degrees, in ``[0, 360)``.

    The error is below about 0.3 degrees.
    """
    ax, ay = abs(float(x)), abs(float(y))
    if ax >= ay:
        c = ay / (ax + _EPS)
        c2 = c * c
        a = (((_ATAN2_P7 * c2 + _ATAN2_P5) * c2 + _ATAN2_P3) * c2 + _ATAN2_P1) * c
    else:
        c = ax / (ay + _EPS)
        c2 = c * c
        a = 90.0 - (((_ATAN2_P7 * c2 + _ATAN2_P5) * c2 + _ATAN2_P3) * c2 + _ATAN2_P1) * c
    if x < 0:
        a = 180.0 - a
    if y < 0:
        a = 360.0 - a
    return 0.0 if a >= 360.0 else a


def _as_gray(image) -> np.ndarray:
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    return img


def _cast_like(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(values), info.min, info.max).astype(dtype)
    return values.astype(dtype)


def _kernel_size(ksize) -> tuple[int, int]:
    if isinstance(ksize, int):
        width = height = ksize
    else:
        width, height = ksize
    for size in (width, height):
        if size < 1 or size % 2 == 0:
            raise ValueError("kernel size must be a positive odd number")
    return int(width), int(height)


def _gaussian_kernel(size: int, sigma: float) -> np.ndarray:
    if sigma <= 0:
        sigma = 0.3 * ((size - 1) * 0.5 - 1) + 0.8
    offsets = np.arange(size, dtype=np.float64) - (size - 1) / 2.0
    kernel = np.exp(-(offsets**2) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(image, ksize, sigma: float) -> np.ndarray:
    """Blur with a separable Gaussian kernel, mirroring borders without repeating the edge.

    ``ksize`` is an odd int or a ``(width, height)`` pair; a non-positive ``sigma``
    is derived from the kernel size.
    """
    img = _as_gray(image)
    kw, kh = _kernel_size(ksize)
    kx = _gaussian_kernel(kw, sigma)
    ky = _gaussian_kernel(kh, sigma)
    hx, hy = kw // 2, kh // 2
    rows, cols = img.shape
    padded = np.pad(img.astype(np.float64), ((hy, hy), (hx, hx)), mode="reflect")
    horizontal = sum(weight * padded[:, i : i + cols] for i, weight in enumerate(kx))
    blurred = sum(weight * horizontal[i : i + rows, :] for i, weight in enumerate(ky))
    return _cast_like(np.asarray(blurred), img.dtype)


def _axis_samples(src: int, dst: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    pos = (np.arange(dst, dtype=np.float64) + 0.5) * (src / dst) - 0.5
    lower = np.floor(pos).astype(np.int64)
    frac = pos - lower
    below = pos < 0
    lower[below] = 0
    frac[below] = 0.0
    beyond = lower >= src - 1
    lower[beyond] = src - 1
    frac[beyond] = 0.0
    upper = np.minimum(lower + 1, src - 1)
    return lower, upper, frac


def resize_linear(image, width: int, height: int) -> np.ndarray:
    """Resize to ``width`` x ``height`` with bilinear interpolation on pixel centres."""
    img = _as_gray(image)
    if width < 1 or height < 1:
        raise ValueError("target size must be positive")
    rows, cols = img.shape
    if rows == 0 or cols == 0:
        raise ValueError("cannot resize an empty image")
    src = img.astype(np.float64)
    y0, y1, fy = _axis_samples(rows, height)
    x0, x1, fx = _axis_samples(cols, width)
    vertical = src[y0, :] * (1.0 - fy)[:, None] + src[y1, :] * fy[:, None]
    result = vertical[:, x0] * (1.0 - fx)[None, :] + vertical[:, x1] * fx[None, :]
    return _cast_like(result, img.dtype)


def pad_reflect101(image, border: int) -> np.ndarray:
    """Add ``border`` pixels on every side, mirrored about the edge pixel (``gfedcb|abcdefgh|gfedcba``)."""
    img = _as_gray(image)
    if border < 0:
        raise ValueError("border must not be negative")
    if border == 0:
        return img.copy()
    return np.pad(img, border, mode="reflect")