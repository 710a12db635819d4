"""Dominant-color palette extraction."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

import cv2
import numpy as np
from PIL import Image

from ..io.models import PaletteColor

logger = logging.getLogger(__name__)

_MAX_SIDE = 256
_ALPHA_MIN = 128

OCTREE = Image.Quantize.FASTOCTREE
MEDIAN_CUT = Image.Quantize.MEDIANCUT


def downscale(raster: np.ndarray, max_side: int = _MAX_SIDE) -> np.ndarray:
    """Return *raster* shrunk with area interpolation so no side exceeds *max_side*."""
    height, width = raster.shape[:2]
    longest = max(height, width)
    if max_side <= 0 or longest <= max_side:
        return raster
    scale = max_side / float(longest)
    size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    return cv2.resize(raster, size, interpolation=cv2.INTER_AREA)


def opaque_pixels(raster: np.ndarray, alpha_min: int = _ALPHA_MIN) -> np.ndarray:
    """Return the ``(n, 3)`` RGB values of pixels at least *alpha_min* opaque."""
    if raster.ndim != 3 or raster.shape[2] not in (3, 4):
        raise ValueError("raster must be an HxWx3 or HxWx4 array")
    pixels = raster.reshape(-1, raster.shape[2])
    if pixels.shape[1] == 4:
        pixels = pixels[pixels[:, 3] >= alpha_min]
    return np.ascontiguousarray(pixels[:, :3], dtype=np.uint8)


def validate_palette(
    entries: Iterable[Sequence[float]],
) -> list[PaletteColor]:
    """Turn raw ``(r, g, b, proportion)`` rows into checked palette colors.

    Rows with a missing, non-finite or out-of-range channel are dropped. A
    non-finite or negative proportion counts as zero.
    """
    palette: list[PaletteColor] = []
    dropped = 0
    for entry in entries:
        values = list(entry) if entry is not None else []
        channels = values[:3]
        if len(channels) < 3 or not all(_is_channel(value) for value in channels):
            dropped += 1
            logger.debug("Dropping invalid palette entry %r", entry)
            continue
        proportion = values[3] if len(values) > 3 else 0.0
        try:
            proportion = float(proportion)
        except (TypeError, ValueError):
            proportion = 0.0
        if not math.isfinite(proportion) or proportion < 0.0:
            proportion = 0.0
        r, g, b = (float(value) for value in channels)
        palette.append(PaletteColor(rgb=(r, g, b), proportion=proportion))
    if dropped:
        logger.warning("Dropped %d invalid palette entries", dropped)
    return palette


def extract_palette(
    raster: np.ndarray,
    k: int,
    method: Image.Quantize = OCTREE,
    max_side: int = _MAX_SIDE,
) -> list[PaletteColor]:
    """Return up to *k* dominant colors of an RGBA *raster*, largest share first."""
    if k <= 0:
        return []
    pixels = opaque_pixels(downscale(raster, max_side))
    total = pixels.shape[0]
    if total == 0:
        logger.warning("No opaque pixels to extract a palette from")
        return []

    strip = Image.fromarray(pixels.reshape(1, total, 3))
    quantized = strip.quantize(colors=min(int(k), 256), method=method)
    try:
        flat_palette = quantized.getpalette() or []
        counts = quantized.getcolors(maxcolors=256) or []
    finally:
        quantized.close()
        strip.close()

    rows: list[tuple[float, float, float, float]] = []
    for count, index in sorted(counts, key=lambda item: (-item[0], item[1])):
        offset = index * 3
        rgb = flat_palette[offset : offset + 3]
        if len(rgb) < 3:
            rgb = [math.nan, math.nan, math.nan]
        rows.append((rgb[0], rgb[1], rgb[2], count / total))

    palette = validate_palette(rows[:k])
    if not palette:
        logger.warning("No palette colors extracted from %dx%d image", *raster.shape[1::-1])
    return palette


def _is_channel(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    number = float(value)
    return math.isfinite(number) and 0.0 <= number <= 255.0
