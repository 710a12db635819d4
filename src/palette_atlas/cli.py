"""Command-line interface for the palette_atlas project."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Iterable

from tqdm import tqdm

from .errors import WorkerFailure
from .io.models import (
    DEFAULT_K,
    DEFAULT_MIN_NEIGHBORS,
    DEFAULT_PALETTE_SIZE,
    DEFAULT_RADIUS,
    ClusterMethod,
    ClusterResult,
    HierarchyLevel,
    PipelineConfig,
    Progress,
    Ready,
)
from .io.outputs import cluster_metrics, write_cluster_result, write_metrics
from .worker import WorkerThread

DEFAULT_ARCHIVE = "samples.tar.gz"
DEFAULT_TAXONOMY = "colornamer.json"


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the clustering pipeline."""
    parser = argparse.ArgumentParser(
        description="Cluster a photo archive by dominant-color composition."
    )
    parser.add_argument(
        "--archive",
        default=DEFAULT_ARCHIVE,
        help="Path or URL of a tar or tar.gz archive of numbered images.",
    )
    parser.add_argument(
        "--taxonomy",
        default=DEFAULT_TAXONOMY,
        help="Path or URL of the color-name taxonomy JSON.",
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Directory path where JSON and parquet outputs will be written.",
    )
    parser.add_argument(
        "--assets",
        default=None,
        help="Directory where decoded sample images are written for viewing.",
    )
    parser.add_argument(
        "--palette-size",
        type=int,
        default=DEFAULT_PALETTE_SIZE,
        help="Number of dominant colors extracted per image.",
    )
    parser.add_argument(
        "--level",
        type=HierarchyLevel.parse,
        default=HierarchyLevel.FAMILY,
        help="Hierarchy level to cluster: xkcd, design, common or family.",
    )
    parser.add_argument(
        "--method",
        type=ClusterMethod.parse,
        default=ClusterMethod.DENSITY,
        help="Clustering method: density (DBSCAN) or partition (k-means).",
    )
    parser.add_argument("--eps", type=float, default=DEFAULT_RADIUS, help="Density radius.")
    parser.add_argument(
        "--min-pts",
        type=int,
        default=DEFAULT_MIN_NEIGHBORS,
        help="Minimum neighborhood size for a density core point.",
    )
    parser.add_argument("--k", type=int, default=DEFAULT_K, help="Cluster count for k-means.")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads used for palette extraction (default: executor default).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


class _ProgressBars:
    """Render worker progress messages as one tqdm bar per phase."""

    def __init__(self) -> None:
        self._phase: str | None = None
        self._bar: tqdm | None = None

    def __call__(self, progress: Progress) -> None:
        if progress.failed:
            self.close()
            return
        if progress.phase != self._phase:
            self.close()
            self._phase = progress.phase
            self._bar = tqdm(total=progress.total, desc=progress.phase, unit="img", leave=False)
        if self._bar is not None:
            self._bar.total = progress.total
            self._bar.n = progress.done
            self._bar.refresh()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
        self._bar = None
        self._phase = None


def _print_summary(result: ClusterResult, metrics: Dict[str, Any]) -> None:
    print(f"Images: {metrics['images']}")
    print(f"Level: {result.level.value}")
    print(f"Clusters: {metrics['clusters']} (noise {metrics['noise']})")
    print(f"Largest cluster: {metrics['largest_cluster']} images")
    for entry in result.family_summary:
        label = "noise" if entry.cluster_id < 0 else f"cluster {entry.cluster_id}"
        top = ", ".join(f"{part.name} {part.fraction:.0%}" for part in entry.parts[:3])
        print(f"  {label}: {top}")


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    config = PipelineConfig(
        archive_source=args.archive,
        taxonomy_source=args.taxonomy,
        asset_dir=Path(args.assets) if args.assets else None,
        distribution_table=out_dir / "distributions.parquet",
        max_workers=args.workers,
    )
    parameters = {
        "method": args.method.value,
        "eps": args.eps,
        "min_pts": args.min_pts,
        "k": args.k,
        "palette_size": args.palette_size,
    }

    bars = _ProgressBars()
    with WorkerThread(config) as worker:
        try:
            worker.initialize(args.palette_size)
            ready = worker.wait_for(Ready, on_progress=bars)
            bars.close()
            print(f"[ready] {ready.image_count} images decoded and profiled")

            worker.request_clusters(
                args.level,
                algorithm=args.method,
                radius=args.eps,
                min_neighbors=args.min_pts,
                k=args.k,
            )
            result = worker.wait_for(ClusterResult, on_progress=bars)
        except WorkerFailure as exc:
            bars.close()
            print(f"[failed] {exc.phase}")
            return 1

    clusters_path = write_cluster_result(out_dir / "clusters.json", result)
    metrics = cluster_metrics(result, parameters)
    metrics_path = write_metrics(out_dir / "metrics.json", metrics)
    print(f"[saved] {clusters_path}")
    print(f"[saved] {metrics_path}")
    _print_summary(result, metrics)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
