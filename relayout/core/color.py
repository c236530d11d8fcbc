"""
Perceptual color helpers built on scikit-image.

Distances are CIEDE2000 on CIE Lab (D65) divided by 100, so 1.0 spans the
full lightness range and the merge thresholds read as fractions.
"""

from __future__ import annotations

from functools import lru_cache

import numpy as np
from skimage.color import deltaE_ciede2000, hsv2rgb, rgb2hsv, rgb2lab

from relayout.models.segment import RGB

BLACK: RGB = (0.0, 0.0, 0.0)
GRAY: RGB = (0.5, 0.5, 0.5)
SILVER: RGB = (0.75, 0.75, 0.75)

# Below this distance to any grayscale anchor a color counts as "black-ish".
BLACK_ANCHOR_THRESHOLD = 0.2
# Maximum channel spread for a color to count as grayscale.
GRAYSCALE_SPREAD = 0.1


def _as_pixel(color: RGB) -> np.ndarray:
    return np.clip(np.asarray(color, dtype=np.float64), 0.0, 1.0).reshape(1, 1, 3)


@lru_cache(maxsize=4096)
def _lab(color: RGB) -> tuple:
    return tuple(rgb2lab(_as_pixel(color))[0, 0])


def distance(a: RGB, b: RGB) -> float:
    """CIEDE2000 color difference scaled to [0, ~1]."""
    lab_a = np.asarray(_lab(tuple(a)), dtype=np.float64)
    lab_b = np.asarray(_lab(tuple(b)), dtype=np.float64)
    return float(deltaE_ciede2000(lab_a, lab_b)) / 100.0


def is_near_black(color: RGB) -> bool:
    """Close to black, gray or silver; OCR color estimates for these are noisy."""
    return any(distance(color, anchor) < BLACK_ANCHOR_THRESHOLD for anchor in (BLACK, GRAY, SILVER))


def is_grayscale(color: RGB) -> bool:
    r, g, b = color
    return max(abs(r - g), abs(g - b), abs(b - r)) < GRAYSCALE_SPREAD


def _interp_angle(a: float, b: float, t: float) -> float:
    # Hue in [0, 1); interpolate along the shorter arc.
    delta = ((b - a + 0.5) % 1.0) - 0.5
    return (a + t * delta) % 1.0


def blend(a: RGB, b: RGB, weight_a: int, weight_b: int) -> RGB:
    """
    Blend two colors in HSV, each side weighted by how many fragments it
    already represents.
    """
    total = max(weight_a + weight_b, 1)
    t = weight_b / total
    h1, s1, v1 = rgb2hsv(_as_pixel(a))[0, 0]
    h2, s2, v2 = rgb2hsv(_as_pixel(b))[0, 0]
    # An achromatic side has no meaningful hue.
    if s1 == 0 and s2 != 0:
        h1 = h2
    elif s2 == 0 and s1 != 0:
        h2 = h1
    hsv = np.array([[[_interp_angle(h1, h2, t), s1 + t * (s2 - s1), v1 + t * (v2 - v1)]]])
    r, g, b_ = hsv2rgb(hsv)[0, 0]
    return (float(r), float(g), float(b_))
