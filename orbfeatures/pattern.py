"""Oriented BRIEF sampling pattern, intensity-centroid orientation and descriptors."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from orbfeatures.keypoint import KeyPoint

PATCH_SIZE = 31
HALF_PATCH_SIZE = 15
EDGE_THRESHOLD = 19
DESCRIPTOR_BYTES = 32

_PATTERN_POINTS = DESCRIPTOR_BYTES * 16
_FACTOR_PI = np.float32(math.pi / 180.0)

# Each row is one point pair: x0, y0, x1, y1.
_BIT_PATTERN_31 = (
    (8, -3, 9, 5),
    (4, 2, 7, -12),
    (-11, 9, -8, 2),
    (7, -12, 12, -13),
    (2, -13, 2, 12),
    (1, -7, 1, 6),
    (-2, -10, -2, -4),
    (-13, -13, -11, -8),
    (-13, -3, -12, -9),
    (10, 4, 11, 9),
    (-13, -8, -8, -9),
    (-11, 7, -9, 12),
    (7, 7, 12, 6),
    (-4, -5, -3, 0),
    (-13, 2, -12, -3),
    (-9, 0, -7, 5),
    (12, -6, 12, -1),
    (-3, 6, -2, 12),
    (-6, -13, -4, -8),
    (11, -13, 12, -8),
    (4, 7, 5, 1),
    (5, -3, 10, -3),
    (3, -7, 6, 12),
    (-8, -7, -6, -2),
    (-2, 11, -1, -10),
    (-13, 12, -8, 10),
    (-7, 3, -5, -3),
    (-4, 2, -3, 7),
    (-10, -12, -6, 11),
    (5, -12, 6, -7),
    (5, -6, 7, -1),
    (1, 0, 4, -5),
    (9, 11, 11, -13),
    (4, 7, 4, 12),
    (2, -1, 4, 4),
    (-4, -12, -2, 7),
    (-8, -5, -7, -10),
    (4, 11, 9, 12),
    (0, -8, 1, -13),
    (-13, -2, -8, 2),
    (-3, -2, -2, 3),
    (-6, 9, -4, -9),
    (8, 12, 10, 7),
    (0, 9, 1, 3),
    (7, -5, 11, -10),
    (-13, -6, -11, 0),
    (10, 7, 12, 1),
    (-6, -3, -6, 12),
    (10, -9, 12, -4),
    (-13, 8, -8, -12),
    (-13, 0, -8, -4),
    (3, 3, 7, 8),
    (5, 7, 10, -7),
    (-1, 7, 1, -12),
    (3, -10, 5, 6),
    (2, -4, 3, -10),
    (-13, 0, -13, 5),
    (-13, -7, -12, 12),
    (-13, 3, -11, 8),
    (-7, 12, -4, 7),
    (6, -10, 12, 8),
    (-9, -1, -7, -6),
    (-2, -5, 0, 12),
    (-12, 5, -7, 5),
    (3, -10, 8, -13),
    (-7, -7, -4, 5),
    (-3, -2, -1, -7),
    (2, 9, 5, -11),
    (-11, -13, -5, -13),
    (-1, 6, 0, -1),
    (5, -3, 5, 2),
    (-4, -13, -4, 12),
    (-9, -6, -9, 6),
    (-12, -10, -8, -4),
    (10, 2, 12, -3),
    (7, 12, 12, 12),
    (-7, -13, -6, 5),
    (-4, 9, -3, 4),
    (7, -1, 12, 2),
    (-7, 6, -5, 1),
    (-13, 11, -12, 5),
    (-3, 7, -2, -6),
    (7, -8, 12, -7),
    (-13, -7, -11, -12),
    (1, -3, 12, 12),
    (2, -6, 3, 0),
    (-4, 3, -2, -13),
    (-1, -13, 1, 9),
    (7, 1, 8, -6),
    (1, -1, 3, 12),
    (9, 1, 12, 6),
    (-1, -9, -1, 3),
    (-13, -13, -10, 5),
    (7, 7, 10, 12),
    (12, -5, 12, 9),
    (6, 3, 7, 11),
    (5, -13, 6, 10),
    (2, -12, 2, 3),
    (3, 8, 4, -6),
    (2, 6, 12, -13),
    (9, -12, 10, 3),
    (-8, 4, -7, 9),
    (-11, 12, -4, -6),
    (1, 12, 2, -8),
    (6, -9, 7, -4),
    (2, 3, 3, -2),
    (6, 3, 11, 0),
    (3, -3, 8, -8),
    (7, 8, 9, 3),
    (-11, -5, -6, -4),
    (-10, 11, -5, 10),
    (-5, -8, -3, 12),
    (-10, 5, -9, 0),
    (8, -1, 12, -6),
    (4, -6, 6, -11),
    (-10, 12, -8, 7),
    (4, -2, 6, 7),
    (-2, 0, -2, 12),
    (-5, -8, -5, 2),
    (7, -6, 10, 12),
    (-9, -13, -8, -8),
    (-5, -13, -5, -2),
    (8, -8, 9, -13),
    (-9, -11, -9, 0),
    (1, -8, 1, -2),
    (7, -4, 9, 1),
    (-2, 1, -1, -4),
    (11, -6, 12, -11),
    (-12, -9, -6, 4),
    (3, 7, 7, 12),
    (5, 5, 10, 8),
    (0, -4, 2, 8),
    (-9, 12, -5, -13),
    (0, 7, 2, 12),
    (-1, 2, 1, 7),
    (5, 11, 7, -9),
    (3, 5, 6, -8),
    (-13, -4, -8, 9),
    (-5, 9, -3, -3),
    (-4, -7, -3, -12),
    (6, 5, 8, 0),
    (-7, 6, -6, 12),
    (-13, 6, -5, -2),
    (1, -10, 3, 10),
    (4, 1, 8, -4),
    (-2, -2, 2, -13),
    (2, -12, 12, 12),
    (-2, -13, 0, -6),
    (4, 1, 9, 3),
    (-6, -10, -3, -5),
    (-3, -13, -1, 1),
    (7, 5, 12, -11),
    (4, -2, 5, -7),
    (-13, 9, -9, -5),
    (7, 1, 8, 6),
    (7, -8, 7, 6),
    (-7, -4, -7, 1),
    (-8, 11, -7, -8),
    (-13, 6, -12, -8),
    (2, 4, 3, 9),
    (10, -5, 12, 3),
    (-6, -5, -6, 7),
    (8, -3, 9, -8),
    (2, -12, 2, 8),
    (-11, -2, -10, 3),
    (-12, -13, -7, -9),
    (-11, 0, -10, -5),
    (5, -3, 11, 8),
    (-2, -13, -1, 12),
    (-1, -8, 0, 9),
    (-13, -11, -12, -5),
    (-10, -2, -10, 11),
    (-3, 9, -2, -13),
    (2, -3, 3, 2),
    (-9, -13, -4, 0),
    (-4, 6, -3, -10),
    (-4, 12, -2, -7),
    (-6, -11, -4, 9),
    (6, -3, 6, 11),
    (-13, 11, -5, 5),
    (11, 11, 12, 6),
    (7, -5, 12, -2),
    (-1, 12, 0, 7),
    (-4, -8, -3, -2),
    (-7, 1, -6, 7),
    (-13, -12, -8, -13),
    (-7, -2, -6, -8),
    (-8, 5, -6, -9),
    (-5, -1, -4, 5),
    (-13, 7, -8, 10),
    (1, 5, 5, -13),
    (1, 0, 10, -13),
    (9, 12, 10, -1),
    (5, -8, 10, -9),
    (-1, 11, 1, -13),
    (-9, -3, -6, 2),
    (-1, -10, 1, 12),
    (-13, 1, -8, -10),
    (8, -11, 10, -6),
    (2, -13, 3, -6),
    (7, -13, 12, -9),
    (-10, -10, -5, -7),
    (-10, -8, -8, -13),
    (4, -6, 8, 5),
    (3, 12, 8, -13),
    (-4, 2, -3, -3),
    (5, -13, 10, -12),
    (4, -13, 5, -1),
    (-9, 9, -4, 3),
    (0, 3, 3, -9),
    (-12, 1, -6, 1),
    (3, 2, 4, -8),
    (-10, -10, -10, 9),
    (8, -13, 12, 12),
    (-8, -12, -6, -5),
    (2, 2, 3, 7),
    (10, 6, 11, -8),
    (6, 8, 8, -12),
    (-7, 10, -6, 5),
    (-3, -9, -3, 9),
    (-1, -13, -1, 5),
    (-3, -7, -3, 4),
    (-8, -2, -8, 3),
    (4, 2, 12, 12),
    (2, -5, 3, 11),
    (6, -9, 11, -13),
    (3, -1, 7, 12),
    (11, -1, 12, 4),
    (-3, 0, -3, 6),
    (4, -11, 4, 12),
    (2, -4, 2, 1),
    (-10, -6, -8, 1),
    (-13, 7, -11, 1),
    (-13, 12, -11, -13),
    (6, 0, 11, -13),
    (0, -1, 1, 4),
    (-13, 3, -9, -2),
    (-9, 8, -6, -3),
    (-13, -6, -8, -2),
    (5, -9, 8, 10),
    (2, 7, 3, -9),
    (-1, -6, -1, -1),
    (9, 5, 11, -2),
    (11, -3, 12, -8),
    (3, 0, 3, 5),
    (-1, 4, 0, 10),
    (3, -6, 4, 5),
    (-13, 0, -10, 5),
    (5, 8, 12, 11),
    (8, 9, 9, -6),
    (7, -4, 8, -12),
    (-10, 4, -10, 9),
    (7, 3, 12, 4),
    (9, -7, 10, -2),
    (7, 0, 12, -2),
    (-1, -6, 0, -11),
)


def bit_pattern_31() -> np.ndarray:
    """Return the 512 sampling points of the 31x31 pattern as an ``(512, 2)`` int array.

    Consecutive points form the pairs whose intensity comparison gives one bit.
    """
    return np.asarray(_BIT_PATTERN_31, dtype=np.int32).reshape(_PATTERN_POINTS, 2)


def _cv_round(value: float) -> int:
    return int(round(float(value)))


def compute_umax(half_patch_size: int) -> list[int]:
    """Return, for each row offset ``v`` in ``0..half_patch_size``, the last column of the circular patch.

    The table is adjusted so that the patch is symmetric under swapping rows and columns.
    """
    if half_patch_size < 1:
        raise ValueError("half_patch_size must be at least 1")
    half = half_patch_size
    vmax = math.floor(half * math.sqrt(2.0) / 2 + 1)
    vmin = math.ceil(half * math.sqrt(2.0) / 2)
    hp2 = float(half * half)
    umax = [0] * (max(half, vmax) + 1)
    for v in range(vmax + 1):
        umax[v] = _cv_round(math.sqrt(hp2 - v * v))

    v0 = 0
    for v in range(half, vmin - 1, -1):
        while umax[v0] == umax[v0 + 1]:
            v0 += 1
        umax[v] = v0
        v0 += 1
    return umax[: half + 1]


def _as_gray(image) -> np.ndarray:
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    return img


def _angle_degrees(y: float, x: float) -> float:
    angle = math.degrees(math.atan2(y, x))
    if angle < 0.0:
        angle += 360.0
    return 0.0 if angle >= 360.0 else angle


def ic_angle(image, x: float, y: float, umax: Sequence[int]) -> float:
    """Orientation in degrees ``[0, 360)`` of the intensity centroid of the circular patch at ``(x, y)``."""
    img = _as_gray(image)
    half = len(umax) - 1
    cx, cy = _cv_round(x), _cv_round(y)
    rows, cols = img.shape
    if cy - half < 0 or cy + half >= rows or cx - half < 0 or cx + half >= cols:
        raise ValueError("orientation patch extends beyond the image")

    patch = img[cy - half : cy + half + 1, cx - half : cx + half + 1].astype(np.int64)
    offsets = np.arange(-half, half + 1)
    limits = np.asarray(umax, dtype=np.int64)[np.abs(offsets)]
    limits[half] = half  # the centre row always spans the full patch width
    mask = np.abs(offsets)[None, :] <= limits[:, None]
    weighted = patch * mask
    m_10 = int((weighted * offsets[None, :]).sum())
    m_01 = int((weighted * offsets[:, None]).sum())
    return _angle_degrees(m_01, m_10)


def _as_pattern(pattern) -> np.ndarray:
    pts = np.asarray(pattern)
    if pts.shape != (_PATTERN_POINTS, 2):
        raise ValueError(f"pattern must have shape ({_PATTERN_POINTS}, 2)")
    return pts


def _descriptor(img: np.ndarray, keypoint: KeyPoint, pts: np.ndarray) -> np.ndarray:
    angle = np.float32(keypoint.angle) * _FACTOR_PI
    a = np.float32(math.cos(float(angle)))
    b = np.float32(math.sin(float(angle)))
    px = pts[:, 0].astype(np.float32)
    py = pts[:, 1].astype(np.float32)
    row_offsets = np.rint(px * b + py * a).astype(np.int64)
    col_offsets = np.rint(px * a - py * b).astype(np.int64)

    r = _cv_round(keypoint.y) + row_offsets
    c = _cv_round(keypoint.x) + col_offsets
    rows, cols = img.shape
    if r.min() < 0 or r.max() >= rows or c.min() < 0 or c.max() >= cols:
        raise ValueError("descriptor pattern extends beyond the image")

    values = img[r, c].astype(np.int32)
    bits = values[0::2] < values[1::2]
    packed = np.packbits(bits.reshape(DESCRIPTOR_BYTES, 8), axis=1, bitorder="little")
    return packed.reshape(DESCRIPTOR_BYTES)


def compute_orb_descriptor(image, keypoint: KeyPoint, pattern) -> np.ndarray:
    """Return the 32-byte rotated BRIEF descriptor of ``keypoint`` as a ``uint8`` array."""
    return _descriptor(_as_gray(image), keypoint, _as_pattern(pattern))


def compute_descriptors(image, keypoints: Sequence[KeyPoint], pattern) -> np.ndarray:
    """Return an ``(n, 32)`` ``uint8`` array holding one descriptor row per keypoint."""
    img = _as_gray(image)
    pts = _as_pattern(pattern)
    descriptors = np.zeros((len(keypoints), DESCRIPTOR_BYTES), dtype=np.uint8)
    for row, keypoint in zip(descriptors, keypoints):
        row[:] = _descriptor(img, keypoint, pts)
    return descriptors