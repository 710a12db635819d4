"""Clustering of cached distribution vectors."""

from __future__ import annotations

import logging
import math
import warnings

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import pairwise_distances

from ..errors import CacheNotReadyError
from ..features.distributions import DistributionCache
from ..io.models import (
    DEFAULT_K,
    DEFAULT_MIN_NEIGHBORS,
    DEFAULT_RADIUS,
    NOISE_LABEL,
    ClusterMethod,
    HierarchyLevel,
)
from .unionfind import UnionFind

logger = logging.getLogger(__name__)

_KMEANS_N_INIT = 10


def hellinger_embedding(vectors: np.ndarray) -> np.ndarray:
    """Return the element-wise square root of non-negative *vectors*.

    Euclidean distance between embedded rows approximates the Hellinger
    distance between the original distributions.
    """
    values = np.asarray(vectors, dtype=np.float64)
    return np.sqrt(np.clip(values, 0.0, None))


def clamp_k(k: int, n_points: int) -> int:
    """Clamp *k* into ``[1, n_points]`` (``1`` when there are no points)."""
    return max(1, min(int(k), max(1, int(n_points))))


def clamp_radius(radius: float) -> float:
    value = float(radius)
    if not math.isfinite(value) or value < 0.0:
        return 0.0
    return value


def clamp_min_neighbors(min_neighbors: int) -> int:
    return max(1, int(min_neighbors))


def _distance_matrix(points: np.ndarray) -> np.ndarray:
    if points.shape[1] == 0:
        return np.zeros((points.shape[0], points.shape[0]), dtype=np.float64)
    return pairwise_distances(points, metric="euclidean")


def dbscan_labels(points: np.ndarray, radius: float, min_neighbors: int) -> np.ndarray:
    """Label *points* by density reachability.

    A point's neighborhood is every point (itself included) strictly closer
    than *radius*; points whose neighborhood holds at least *min_neighbors*
    points are cores. Linked cores form clusters numbered by their lowest
    core index, a border point joins the lowest-numbered cluster touching it
    and everything else is noise.
    """
    n_points = points.shape[0]
    labels = np.full(n_points, NOISE_LABEL, dtype=np.int32)
    if n_points == 0:
        return labels

    adjacency = _distance_matrix(points) < radius
    core = adjacency.sum(axis=1) >= min_neighbors
    core_indices = [int(index) for index in np.flatnonzero(core)]

    uf: UnionFind[int] = UnionFind(core_indices)
    for index in core_indices:
        for other in np.flatnonzero(adjacency[index] & core):
            if other > index:
                uf.union(index, int(other))

    cluster_ids: dict[int, int] = {}
    for index in core_indices:
        root = uf.find(index)
        if root not in cluster_ids:
            cluster_ids[root] = len(cluster_ids)
        labels[index] = cluster_ids[root]

    for index in np.flatnonzero(~core):
        touching = labels[adjacency[index] & core]
        if touching.size:
            labels[index] = int(touching.min())
    return labels


def kmeans_labels(points: np.ndarray, k: int, random_state: int | None = 42) -> np.ndarray:
    """Partition *points* into ``clamp_k(k)`` groups with k-means."""
    n_points = points.shape[0]
    if n_points == 0:
        return np.zeros(0, dtype=np.int32)
    n_clusters = clamp_k(k, n_points)
    if n_clusters == 1 or points.shape[1] == 0:
        return np.zeros(n_points, dtype=np.int32)
    model = KMeans(n_clusters=n_clusters, n_init=_KMEANS_N_INIT, random_state=random_state)
    with warnings.catch_warnings():
        # duplicate points can leave fewer distinct centroids than requested
        warnings.simplefilter("ignore", ConvergenceWarning)
        labels = model.fit_predict(points)
    return np.asarray(labels, dtype=np.int32)


def cluster_level(
    cache: DistributionCache | None,
    level: HierarchyLevel,
    method: ClusterMethod = ClusterMethod.DENSITY,
    radius: float = DEFAULT_RADIUS,
    min_neighbors: int = DEFAULT_MIN_NEIGHBORS,
    k: int = DEFAULT_K,
    random_state: int | None = 42,
) -> np.ndarray:
    """Cluster the cached vectors of *level* and return one label per image."""
    if cache is None or level not in cache.vectors:
        raise CacheNotReadyError("Distribution cache empty. Did INIT finish?")

    points = hellinger_embedding(cache.level(level))
    n_points = points.shape[0]

    if method is ClusterMethod.PARTITION:
        n_clusters = clamp_k(k, n_points)
        if n_clusters != k:
            logger.info("Clamped k from %s to %d for %d images", k, n_clusters, n_points)
        labels = kmeans_labels(points, n_clusters, random_state=random_state)
    else:
        eps = clamp_radius(radius)
        min_pts = clamp_min_neighbors(min_neighbors)
        if eps != radius or min_pts != min_neighbors:
            logger.info(
                "Clamped density parameters to radius=%s min_neighbors=%d", eps, min_pts
            )
        labels = dbscan_labels(points, eps, min_pts)

    n_clusters = len({int(label) for label in labels if label != NOISE_LABEL})
    logger.info(
        "Clustered %d images at %s level with %s: %d clusters",
        n_points,
        level.value,
        method.value,
        n_clusters,
    )
    return labels
