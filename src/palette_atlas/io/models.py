"""Data models and messages shared across the palette_atlas pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

DEFAULT_PALETTE_SIZE = 6
DEFAULT_RADIUS = 0.35
DEFAULT_MIN_NEIGHBORS = 3
DEFAULT_K = 8
NOISE_LABEL = -1


class HierarchyLevel(str, Enum):
    """Granularity of color naming, finest first."""

    XKCD = "xkcd"
    DESIGN = "design"
    COMMON = "common"
    FAMILY = "family"

    @property
    def column(self) -> str:
        """Name of the taxonomy table column holding this level's names."""
        return _LEVEL_COLUMNS[self]

    @classmethod
    def parse(cls, value: str | HierarchyLevel) -> HierarchyLevel:
        """Return the level for *value*, accepting table column names too."""
        if isinstance(value, HierarchyLevel):
            return value
        cleaned = str(value).strip().lower()
        for level in cls:
            if cleaned in (level.value, level.column):
                return level
        raise ValueError(f"Unknown hierarchy level: {value!r}")


_LEVEL_COLUMNS = {
    HierarchyLevel.XKCD: "xkcd_color",
    HierarchyLevel.DESIGN: "design_color",
    HierarchyLevel.COMMON: "common_color",
    HierarchyLevel.FAMILY: "color_family",
}

LEVELS: Tuple[HierarchyLevel, ...] = tuple(HierarchyLevel)


class ClusterMethod(str, Enum):
    """Clustering algorithm selector."""

    DENSITY = "density"
    PARTITION = "partition"

    @classmethod
    def parse(cls, value: str | ClusterMethod) -> ClusterMethod:
        if isinstance(value, ClusterMethod):
            return value
        cleaned = str(value).strip().lower()
        aliases = {"dbscan": cls.DENSITY, "kmeans": cls.PARTITION}
        if cleaned in aliases:
            return aliases[cleaned]
        return cls(cleaned)


@dataclass(frozen=True, slots=True)
class TaxonomyEntry:
    """One named color anchored to an RGB reference point."""

    rgb: Tuple[int, int, int]
    xkcd_name: str
    design_name: str
    common_name: str
    family_name: str

    def name_at(self, level: HierarchyLevel) -> str:
        if level is HierarchyLevel.XKCD:
            return self.xkcd_name
        if level is HierarchyLevel.DESIGN:
            return self.design_name
        if level is HierarchyLevel.COMMON:
            return self.common_name
        return self.family_name


@dataclass(frozen=True, slots=True)
class PaletteColor:
    """A dominant color and the share of the image it covers."""

    rgb: Tuple[float, float, float]
    proportion: float


@dataclass(slots=True)
class PipelineConfig:
    """Runtime settings for a worker."""

    archive_source: str
    taxonomy_source: str
    asset_dir: Path | None = None
    distribution_table: Path | None = None
    max_workers: int | None = None
    random_state: int = 42


# Inbound requests


@dataclass(frozen=True, slots=True)
class InitRequest:
    desired_palette_size: int = DEFAULT_PALETTE_SIZE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "init", "desired_palette_size": int(self.desired_palette_size)}


@dataclass(frozen=True, slots=True)
class RunClusterRequest:
    level: HierarchyLevel
    algorithm: ClusterMethod = ClusterMethod.DENSITY
    radius: float = DEFAULT_RADIUS
    min_neighbors: int = DEFAULT_MIN_NEIGHBORS
    k: int = DEFAULT_K
    run_id: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "run_cluster",
            "level": self.level.value,
            "algorithm": self.algorithm.value,
            "radius": float(self.radius),
            "min_neighbors": int(self.min_neighbors),
            "k": int(self.k),
            "run_id": int(self.run_id),
        }


Request = InitRequest | RunClusterRequest


def request_from_dict(payload: Mapping[str, Any]) -> Request:
    """Parse an inbound message dictionary into a request dataclass."""
    kind = payload.get("type")
    if kind == "init":
        size = payload.get("desired_palette_size", DEFAULT_PALETTE_SIZE)
        return InitRequest(desired_palette_size=int(size))
    if kind == "run_cluster":
        return RunClusterRequest(
            level=HierarchyLevel.parse(payload["level"]),
            algorithm=ClusterMethod.parse(payload.get("algorithm", ClusterMethod.DENSITY)),
            radius=float(payload.get("radius", DEFAULT_RADIUS)),
            min_neighbors=int(payload.get("min_neighbors", DEFAULT_MIN_NEIGHBORS)),
            k=int(payload.get("k", DEFAULT_K)),
            run_id=int(payload.get("run_id", 0)),
        )
    raise ValueError(f"Unknown request type: {kind!r}")


# Outbound responses


@dataclass(frozen=True, slots=True)
class Progress:
    phase: str
    done: int
    total: int

    @property
    def failed(self) -> bool:
        return " failed: " in self.phase

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "progress",
            "phase": self.phase,
            "done": int(self.done),
            "total": int(self.total),
        }


@dataclass(frozen=True, slots=True)
class Ready:
    image_count: int
    image_urls: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "ready",
            "image_count": int(self.image_count),
            "image_urls": list(self.image_urls),
        }


@dataclass(frozen=True, slots=True)
class ClusterPart:
    name: str
    fraction: float
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "fraction": float(self.fraction), "color": self.color}


@dataclass(frozen=True, slots=True)
class ClusterFamilySummary:
    cluster_id: int
    parts: List[ClusterPart]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster_id": int(self.cluster_id),
            "parts": [part.to_dict() for part in self.parts],
        }


@dataclass(frozen=True, slots=True)
class ClusterResult:
    labels: List[int]
    level: HierarchyLevel
    run_id: int
    family_summary: List[ClusterFamilySummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "cluster_result",
            "labels": [int(label) for label in self.labels],
            "level": self.level.value,
            "run_id": int(self.run_id),
            "family_summary": [entry.to_dict() for entry in self.family_summary],
        }


Response = Progress | Ready | ClusterResult
