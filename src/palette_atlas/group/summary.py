"""Per-cluster color-family composition for display."""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np

from ..io.models import NOISE_LABEL, ClusterFamilySummary, ClusterPart

NEUTRAL_GRAY = "#94a3b8"


def summarize_families(
    labels: Sequence[int],
    family_vectors: np.ndarray,
    family_names: Sequence[str],
    family_palette: Sequence[str],
) -> List[ClusterFamilySummary]:
    """Return the family breakdown of every cluster with positive weight.

    Family vectors are summed per label (noise forms its own group), parts
    are normalized to fractions and sorted largest first. Clusters come back
    ordered by id with noise last.
    """
    vectors = np.asarray(family_vectors, dtype=np.float64)
    if len(labels) != vectors.shape[0]:
        raise ValueError(
            f"Got {len(labels)} labels for {vectors.shape[0]} family vectors"
        )
    n_dims = vectors.shape[1] if vectors.ndim == 2 else 0

    totals: Dict[int, np.ndarray] = {}
    for row, label in enumerate(labels):
        key = int(label)
        if key not in totals:
            totals[key] = np.zeros(n_dims, dtype=np.float64)
        totals[key] += vectors[row]

    summaries: List[ClusterFamilySummary] = []
    for cluster_id in sorted(totals, key=lambda item: (item == NOISE_LABEL, item)):
        weights = totals[cluster_id]
        total = float(weights.sum())
        if total <= 0.0:
            continue
        order = sorted(
            (index for index in range(n_dims) if weights[index] > 0.0),
            key=lambda index: (-weights[index], index),
        )
        parts = [
            ClusterPart(
                name=_lookup(family_names, index, f"fam-{index}"),
                fraction=float(weights[index] / total),
                color=_lookup(family_palette, index, NEUTRAL_GRAY),
            )
            for index in order
        ]
        summaries.append(ClusterFamilySummary(cluster_id=cluster_id, parts=parts))
    return summaries


def _lookup(values: Sequence[str], index: int, default: str) -> str:
    if 0 <= index < len(values) and values[index]:
        return values[index]
    return default
