"""Per-image color-name distributions at every hierarchy level."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Sequence

import numpy as np

from ..io.models import LEVELS, HierarchyLevel, PaletteColor, Progress
from ..load.archive import DecodedImage
from ..load.taxonomy import Taxonomy
from .matcher import nearest_entry
from .palette import extract_palette, validate_palette

logger = logging.getLogger(__name__)

EXTRACT_PHASE = "extracting palettes"
FALLBACK_RGB = (148, 163, 184)

ProgressCallback = Callable[[Progress], None]
PaletteExtractor = Callable[[np.ndarray, int], List[PaletteColor]]


@dataclass(frozen=True, slots=True)
class DistributionCache:
    """Read-only distribution matrices, one ``(n_images, n_names)`` per level."""

    vectors: Mapping[HierarchyLevel, np.ndarray]
    family_palette: Sequence[str]

    @property
    def image_count(self) -> int:
        family = self.vectors.get(HierarchyLevel.FAMILY)
        return 0 if family is None else int(family.shape[0])

    def level(self, level: HierarchyLevel) -> np.ndarray:
        return self.vectors[level]


def rgb_to_hex(rgb: Sequence[float]) -> str:
    """Return ``#rrggbb`` for *rgb*, rounding and clamping each channel."""
    clamped = [max(0, min(255, int(round(float(value))))) for value in rgb[:3]]
    return "#{:02x}{:02x}{:02x}".format(*clamped)


def build_family_palette(taxonomy: Taxonomy) -> list[str]:
    """Return the average reference color of each family, in ordinal order."""
    names = taxonomy.names(HierarchyLevel.FAMILY)
    sums = np.zeros((len(names), 3), dtype=np.float64)
    counts = np.zeros(len(names), dtype=np.int64)
    ordinal = taxonomy.ordinal(HierarchyLevel.FAMILY)
    for entry in taxonomy:
        index = ordinal[entry.family_name]
        sums[index] += entry.rgb
        counts[index] += 1

    palette: list[str] = []
    for index in range(len(names)):
        if counts[index]:
            palette.append(rgb_to_hex(sums[index] / counts[index]))
        else:
            palette.append(rgb_to_hex(FALLBACK_RGB))
    return palette


def distribution_for_palette(
    palette: Sequence[PaletteColor], taxonomy: Taxonomy
) -> Dict[HierarchyLevel, np.ndarray]:
    """Accumulate palette proportions into one dense vector per level."""
    totals: Dict[HierarchyLevel, Dict[str, float]] = {level: {} for level in LEVELS}
    for color in validate_palette((*color.rgb, color.proportion) for color in palette):
        entry = nearest_entry(taxonomy, color.rgb)
        for level in LEVELS:
            name = entry.name_at(level)
            totals[level][name] = totals[level].get(name, 0.0) + color.proportion

    vectors: Dict[HierarchyLevel, np.ndarray] = {}
    for level in LEVELS:
        ordinal = taxonomy.ordinal(level)
        vector = np.zeros(taxonomy.cardinality(level), dtype=np.float32)
        for name, weight in totals[level].items():
            vector[ordinal[name]] = weight
        vectors[level] = vector
    return vectors


def distributions_from_palettes(
    palettes: Sequence[Sequence[PaletteColor]], taxonomy: Taxonomy
) -> DistributionCache:
    """Build the distribution cache from already extracted *palettes*."""
    matrices = {
        level: np.zeros((len(palettes), taxonomy.cardinality(level)), dtype=np.float32)
        for level in LEVELS
    }
    empty = 0
    for row, palette in enumerate(palettes):
        if not palette:
            empty += 1
            logger.warning("No valid palette entries for image %d", row)
        for level, vector in distribution_for_palette(palette, taxonomy).items():
            matrices[level][row] = vector
    if empty:
        logger.warning("%d of %d images contributed an empty distribution", empty, len(palettes))

    for matrix in matrices.values():
        matrix.flags.writeable = False
    return DistributionCache(vectors=matrices, family_palette=tuple(build_family_palette(taxonomy)))


def extract_palettes(
    images: Sequence[DecodedImage],
    palette_size: int,
    progress: ProgressCallback | None = None,
    max_workers: int | None = None,
    extractor: PaletteExtractor = extract_palette,
) -> list[list[PaletteColor]]:
    """Extract one palette per image, preserving image order."""
    total = len(images)
    palettes: list[list[PaletteColor]] = []

    def _report(done: int) -> None:
        if progress is not None:
            progress(Progress(EXTRACT_PHASE, done, total))

    _report(0)
    if max_workers is not None and max_workers <= 1:
        for image in images:
            palettes.append(extractor(image.raster, palette_size))
            _report(len(palettes))
        return palettes

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = pool.map(lambda image: extractor(image.raster, palette_size), images)
        for palette in results:
            palettes.append(palette)
            _report(len(palettes))
    return palettes


def build_distributions(
    images: Sequence[DecodedImage],
    taxonomy: Taxonomy,
    palette_size: int,
    progress: ProgressCallback | None = None,
    max_workers: int | None = None,
    extractor: PaletteExtractor = extract_palette,
) -> DistributionCache:
    """Extract palettes for *images* and cache their per-level distributions."""
    palettes = extract_palettes(
        images, palette_size, progress=progress, max_workers=max_workers, extractor=extractor
    )
    cache = distributions_from_palettes(palettes, taxonomy)
    logger.info(
        "Distributions cached for %d images across %d levels", cache.image_count, len(LEVELS)
    )
    return cache
