"""Message-driven pipeline worker.

The worker owns every long-lived cache (taxonomy, decoded corpus and the
distribution vectors) inside a single :class:`PipelineContext`. Callers only
exchange request and response dataclasses with it, either synchronously via
:meth:`ClusterWorker.handle` or through the queues of :class:`WorkerThread`.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, List, Sequence, Type, TypeVar

from .errors import CacheNotReadyError, PaletteAtlasError, WorkerFailure
from .features.distributions import DistributionCache, build_distributions
from .group.clustering import cluster_level
from .group.summary import summarize_families
from .io.models import (
    DEFAULT_K,
    DEFAULT_MIN_NEIGHBORS,
    DEFAULT_PALETTE_SIZE,
    DEFAULT_RADIUS,
    ClusterMethod,
    ClusterResult,
    HierarchyLevel,
    InitRequest,
    PipelineConfig,
    Progress,
    Ready,
    Request,
    Response,
    RunClusterRequest,
)
from .io.outputs import write_distribution_table
from .load.archive import DecodedImage, load_corpus
from .load.fetch import fetch_bytes
from .load.taxonomy import Taxonomy, parse_taxonomy

logger = logging.getLogger(__name__)

Emit = Callable[[Response], None]
Fetcher = Callable[[str], bytes]
R = TypeVar("R", Progress, Ready, ClusterResult)


@dataclass(frozen=True, slots=True)
class PipelineContext:
    """State produced by one successful initialization."""

    taxonomy: Taxonomy
    images: Sequence[DecodedImage]
    image_urls: List[str]
    cache: DistributionCache


def failure_progress(stage: str, error: BaseException) -> Progress:
    """Return the progress message announcing that *stage* failed."""
    return Progress(phase=f"{stage} failed: {error}", done=0, total=1)


class ClusterWorker:
    """Handle ``InitRequest`` and ``RunClusterRequest`` messages."""

    def __init__(
        self, config: PipelineConfig, emit: Emit, fetcher: Fetcher = fetch_bytes
    ) -> None:
        self._config = config
        self._emit = emit
        self._fetch = fetcher
        self._context: PipelineContext | None = None

    @property
    def ready(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> PipelineContext | None:
        return self._context

    def handle(self, request: Request) -> None:
        """Dispatch *request*; failures are announced before being raised."""
        if isinstance(request, InitRequest):
            self.initialize(request)
        elif isinstance(request, RunClusterRequest):
            self.run_cluster(request)
        else:
            raise TypeError(f"Unsupported request: {type(request).__name__}")

    def initialize(self, request: InitRequest) -> Ready:
        palette_size = max(1, int(request.desired_palette_size))
        logger.info("INIT requested (palette size %d)", palette_size)
        self._context = None
        try:
            self._emit(Progress("loading taxonomy", 0, 1))
            taxonomy = parse_taxonomy(self._fetch(self._config.taxonomy_source))

            self._emit(Progress("loading samples", 0, 1))
            images = load_corpus(self._fetch(self._config.archive_source), progress=self._emit)
            image_urls = self._publish_images(images)

            cache = build_distributions(
                images,
                taxonomy,
                palette_size,
                progress=self._emit,
                max_workers=self._config.max_workers,
            )
            if self._config.distribution_table is not None:
                write_distribution_table(
                    self._config.distribution_table, cache, taxonomy, image_urls
                )
        except Exception as exc:
            self._report_failure("init", exc)
            raise

        self._context = PipelineContext(
            taxonomy=taxonomy, images=tuple(images), image_urls=image_urls, cache=cache
        )
        ready = Ready(image_count=len(images), image_urls=list(image_urls))
        self._emit(ready)
        return ready

    def run_cluster(self, request: RunClusterRequest) -> ClusterResult:
        logger.info(
            "RUN_CLUSTER requested: level=%s method=%s radius=%s min_neighbors=%s k=%s run=%s",
            request.level.value,
            request.algorithm.value,
            request.radius,
            request.min_neighbors,
            request.k,
            request.run_id,
        )
        try:
            context = self._context
            if context is None:
                raise CacheNotReadyError("Distribution cache empty. Did INIT finish?")
            labels = cluster_level(
                context.cache,
                request.level,
                request.algorithm,
                radius=request.radius,
                min_neighbors=request.min_neighbors,
                k=request.k,
                random_state=self._config.random_state,
            )
            summary = summarize_families(
                labels,
                context.cache.level(HierarchyLevel.FAMILY),
                context.taxonomy.names(HierarchyLevel.FAMILY),
                context.cache.family_palette,
            )
        except Exception as exc:
            self._report_failure("cluster", exc)
            raise

        result = ClusterResult(
            labels=[int(label) for label in labels],
            level=request.level,
            run_id=request.run_id,
            family_summary=summary,
        )
        self._emit(result)
        return result

    def _publish_images(self, images: Sequence[DecodedImage]) -> List[str]:
        asset_dir = self._config.asset_dir
        if asset_dir is None:
            return [image.name for image in images]
        asset_dir.mkdir(parents=True, exist_ok=True)
        urls: List[str] = []
        for index, image in enumerate(images):
            filename = PurePosixPath(image.name).name or f"{index}.jpg"
            path = Path(asset_dir) / filename
            path.write_bytes(image.data)
            urls.append(path.resolve().as_uri())
        logger.debug("Wrote %d images to %s", len(urls), asset_dir)
        return urls

    def _report_failure(self, stage: str, error: BaseException) -> None:
        logger.error("%s failed: %s", stage, error)
        self._emit(failure_progress(stage, error))


class WorkerThread:
    """Run a :class:`ClusterWorker` on its own thread behind two queues."""

    def __init__(self, config: PipelineConfig, fetcher: Fetcher = fetch_bytes) -> None:
        self._inbox: queue.Queue[Request | None] = queue.Queue()
        self._outbox: queue.Queue[Response] = queue.Queue()
        self._worker = ClusterWorker(config, emit=self._outbox.put, fetcher=fetcher)
        self._thread = threading.Thread(
            target=self._serve, name="palette-atlas-worker", daemon=True
        )
        self._run_ids = itertools.count(1)
        self._latest_run_id = 0

    def __enter__(self) -> WorkerThread:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def latest_run_id(self) -> int:
        return self._latest_run_id

    def start(self) -> WorkerThread:
        if not self._thread.is_alive():
            self._thread.start()
        return self

    def post(self, request: Request) -> None:
        self._inbox.put(request)

    def initialize(self, desired_palette_size: int = DEFAULT_PALETTE_SIZE) -> None:
        self.post(InitRequest(desired_palette_size=desired_palette_size))

    def request_clusters(
        self,
        level: HierarchyLevel,
        algorithm: ClusterMethod = ClusterMethod.DENSITY,
        radius: float = DEFAULT_RADIUS,
        min_neighbors: int = DEFAULT_MIN_NEIGHBORS,
        k: int = DEFAULT_K,
    ) -> int:
        """Queue a clustering run and return its freshly issued run id."""
        run_id = next(self._run_ids)
        self._latest_run_id = run_id
        self.post(
            RunClusterRequest(
                level=level,
                algorithm=algorithm,
                radius=radius,
                min_neighbors=min_neighbors,
                k=k,
                run_id=run_id,
            )
        )
        return run_id

    def is_current(self, result: ClusterResult) -> bool:
        """Return False for results superseded by a newer request."""
        return result.run_id == self._latest_run_id

    def get(self, timeout: float | None = None) -> Response:
        return self._outbox.get(timeout=timeout)

    def wait_for(
        self,
        response_type: Type[R],
        timeout: float | None = None,
        on_progress: Callable[[Progress], None] | None = None,
    ) -> R:
        """Drain responses until one of *response_type* arrives.

        Stale cluster results are skipped. A failure notification raises
        :class:`WorkerFailure` carrying its phase text.
        """
        while True:
            response = self.get(timeout=timeout)
            if isinstance(response, Progress):
                if on_progress is not None:
                    on_progress(response)
                if response.failed:
                    raise WorkerFailure(response.phase)
                if response_type is Progress:
                    return response  # type: ignore[return-value]
                continue
            if isinstance(response, ClusterResult) and not self.is_current(response):
                logger.debug("Discarding stale result for run %d", response.run_id)
                continue
            if isinstance(response, response_type):
                return response

    def close(self, timeout: float | None = 5.0) -> None:
        if self._thread.is_alive():
            self._inbox.put(None)
            self._thread.join(timeout)

    def _serve(self) -> None:
        while True:
            request = self._inbox.get()
            if request is None:
                break
            try:
                self._worker.handle(request)
            except PaletteAtlasError as exc:
                logger.warning("%s failed: %s", type(request).__name__, exc)
            except Exception:  # noqa: BLE001 - already reported to the caller
                logger.exception("Unexpected failure handling %s", type(request).__name__)
