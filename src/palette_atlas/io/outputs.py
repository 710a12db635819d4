"""Output helpers for persisting pipeline results."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Sequence

import pandas as pd

from .models import LEVELS, NOISE_LABEL, ClusterResult

if TYPE_CHECKING:
    from ..features.distributions import DistributionCache
    from ..load.taxonomy import Taxonomy


def write_distribution_table(
    path: Path,
    cache: DistributionCache,
    taxonomy: Taxonomy,
    image_urls: Sequence[str],
) -> Path:
    """Write one parquet row per image holding its vector at every level."""
    rows: list[dict[str, Any]] = []
    for index in range(cache.image_count):
        row: dict[str, Any] = {
            "image_index": index,
            "image_url": image_urls[index] if index < len(image_urls) else None,
        }
        for level in LEVELS:
            row[level.value] = cache.level(level)[index].astype(float).tolist()
        rows.append(row)

    frame = pd.DataFrame(rows, columns=["image_index", "image_url", *(l.value for l in LEVELS)])
    frame.attrs["level_names"] = {level.value: list(taxonomy.names(level)) for level in LEVELS}
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_parquet(path, index=False, engine="pyarrow")
    return path


def cluster_metrics(result: ClusterResult, parameters: Dict[str, Any]) -> Dict[str, Any]:
    """Return headline counts for *result* alongside the run *parameters*."""
    sizes = Counter(label for label in result.labels if label != NOISE_LABEL)
    return {
        "images": len(result.labels),
        "clusters": len(sizes),
        "noise": sum(1 for label in result.labels if label == NOISE_LABEL),
        "largest_cluster": max(sizes.values(), default=0),
        "level": result.level.value,
        "run_id": result.run_id,
        "parameters": dict(parameters),
    }


def write_cluster_result(path: Path, result: ClusterResult) -> Path:
    """Write *result* to *path* as JSON and return the path."""
    path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    return path


def write_metrics(path: Path, metrics: Dict[str, Any]) -> Path:
    """Write run metrics to *path* as JSON and return the path."""
    path.write_text(json.dumps(metrics, indent=2), encoding="utf-8")
    return path
