"""Gradient and region helpers shared by the subject detectors."""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

import numpy as np


def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude at every interior pixel; border pixels are zero."""
    g = gray.astype(np.int32, copy=False)
    mags = np.zeros(g.shape, dtype=np.float32)
    if g.shape[0] < 3 or g.shape[1] < 3:
        return mags
    tl = g[:-2, :-2]
    tc = g[:-2, 1:-1]
    tr = g[:-2, 2:]
    ml = g[1:-1, :-2]
    mr = g[1:-1, 2:]
    bl = g[2:, :-2]
    bc = g[2:, 1:-1]
    br = g[2:, 2:]
    gx = -tl - 2 * ml - bl + tr + 2 * mr + br
    gy = tl + 2 * tc + tr - bl - 2 * bc - br
    mags[1:-1, 1:-1] = np.hypot(gx, gy)
    return mags


@lru_cache(maxsize=32)
def annulus_mask(
    shape: Tuple[int, int],
    center: Tuple[float, float],
    radii: Tuple[float, float],
) -> np.ndarray:
    """Annulus centred at ``center`` (fractions of W, H) with radii as fractions of H."""
    height, width = shape
    cx = width * center[0]
    cy = height * center[1]
    r_inner = height * radii[0]
    r_outer = height * radii[1]
    yy, xx = np.mgrid[0:height, 0:width]
    r = np.hypot(xx - cx, yy - cy)
    mask = (r >= r_inner) & (r <= r_outer)
    mask.setflags(write=False)
    return mask


@lru_cache(maxsize=32)
def ellipse_mask(
    shape: Tuple[int, int],
    center: Tuple[float, float],
    radii: Tuple[float, float],
) -> np.ndarray:
    """Filled ellipse centred at ``center`` with radii (fraction of W, fraction of H)."""
    height, width = shape
    cx = width * center[0]
    cy = height * center[1]
    rx = max(width * radii[0], 1e-6)
    ry = max(height * radii[1], 1e-6)
    yy, xx = np.mgrid[0:height, 0:width]
    nx = (xx - cx) / rx
    ny = (yy - cy) / ry
    mask = nx * nx + ny * ny <= 1.0
    mask.setflags(write=False)
    return mask


def region_energy_ratio(mags: np.ndarray, mask: np.ndarray) -> float:
    """Fraction of total gradient energy that falls inside ``mask``."""
    total = float(mags.sum())
    if total <= 1.0:
        return 0.0
    return float(mags[mask].sum()) / total
