"""Exception types raised by the palette_atlas pipeline."""

from __future__ import annotations


class PaletteAtlasError(Exception):
    """Base class for all pipeline failures."""


class FetchError(PaletteAtlasError):
    """Raised when a static asset cannot be read or downloaded."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {source}: {reason}")
        self.source = source


class TaxonomyError(PaletteAtlasError):
    """Raised when the taxonomy table cannot be parsed."""


class CorpusError(PaletteAtlasError):
    """Raised when the image archive cannot be unpacked or decoded."""


class MatchError(PaletteAtlasError):
    """Raised on a nearest-taxonomy lookup that violates its contract."""


class CacheNotReadyError(PaletteAtlasError):
    """Raised when clustering is requested before distributions are built."""


class WorkerFailure(PaletteAtlasError):
    """Raised on the caller's side when the worker announces a failure."""

    def __init__(self, phase: str) -> None:
        super().__init__(phase)
        self.phase = phase
