"""Nearest taxonomy entry lookup in RGB space."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..errors import MatchError
from ..io.models import TaxonomyEntry
from ..load.taxonomy import Taxonomy


def nearest_index(taxonomy: Taxonomy, rgb: Sequence[float]) -> int:
    """Return the table index of the entry closest to *rgb*.

    Distance is squared Euclidean over RGB; the scan is exhaustive and a tie
    resolves to the earliest entry in table order.
    """
    if len(taxonomy) == 0:
        raise MatchError("taxonomy not loaded")
    try:
        query = np.asarray(rgb, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MatchError(f"palette color rgb non-numeric: {rgb!r}") from exc
    if query.shape != (3,):
        raise MatchError(f"palette color rgb malformed: {rgb!r}")
    if not np.all(np.isfinite(query)):
        raise MatchError(f"palette color rgb non-finite: {rgb!r}")

    deltas = taxonomy.rgb_matrix - query
    distances = np.einsum("ij,ij->i", deltas, deltas)
    return int(np.argmin(distances))


def nearest_entry(taxonomy: Taxonomy, rgb: Sequence[float]) -> TaxonomyEntry:
    """Return the taxonomy entry closest to *rgb*."""
    return taxonomy[nearest_index(taxonomy, rgb)]
