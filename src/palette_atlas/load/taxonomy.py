"""Color-name taxonomy table and its per-level ordinal namings."""

from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import TaxonomyError
from ..io.models import LEVELS, HierarchyLevel, TaxonomyEntry

logger = logging.getLogger(__name__)

_CHANNEL_COLUMNS = ("xkcd_r", "xkcd_g", "xkcd_b")
_NAME_COLUMNS = tuple(level.column for level in LEVELS)
REQUIRED_COLUMNS = _NAME_COLUMNS + _CHANNEL_COLUMNS


class Taxonomy:
    """Immutable list of taxonomy entries with ordinal lookups per level.

    Each level's ordinal numbering follows the first occurrence of a name in
    table order, so index ``0`` is the name of the first entry.
    """

    def __init__(self, entries: Sequence[TaxonomyEntry]) -> None:
        self._entries: Tuple[TaxonomyEntry, ...] = tuple(entries)
        rgb = np.array([entry.rgb for entry in self._entries], dtype=np.float64)
        self._rgb = rgb.reshape(-1, 3)
        self._rgb.flags.writeable = False

        ordinals: Dict[HierarchyLevel, Dict[str, int]] = {level: {} for level in LEVELS}
        names: Dict[HierarchyLevel, List[str]] = {level: [] for level in LEVELS}
        for entry in self._entries:
            for level in LEVELS:
                name = entry.name_at(level)
                if name not in ordinals[level]:
                    ordinals[level][name] = len(names[level])
                    names[level].append(name)
        self._ordinals = {
            level: MappingProxyType(mapping) for level, mapping in ordinals.items()
        }
        self._names = {level: tuple(values) for level, values in names.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TaxonomyEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> TaxonomyEntry:
        return self._entries[index]

    @property
    def entries(self) -> Tuple[TaxonomyEntry, ...]:
        return self._entries

    @property
    def rgb_matrix(self) -> np.ndarray:
        """Read-only ``(n, 3)`` float array of the entries' reference colors."""
        return self._rgb

    def ordinal(self, level: HierarchyLevel) -> Mapping[str, int]:
        """Return the name → dense index mapping for *level*."""
        return self._ordinals[level]

    def names(self, level: HierarchyLevel) -> Tuple[str, ...]:
        """Return the index → name list for *level*."""
        return self._names[level]

    def cardinality(self, level: HierarchyLevel) -> int:
        return len(self._names[level])


def parse_taxonomy(payload: bytes | str) -> Taxonomy:
    """Parse a taxonomy JSON document into a :class:`Taxonomy`.

    Rows with a missing name or a non-numeric, non-finite or out-of-range RGB
    channel are dropped and counted in a warning.
    """
    try:
        records = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as exc:
        raise TaxonomyError(f"Taxonomy is not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise TaxonomyError("Taxonomy must be a JSON array of records")
    if not records:
        logger.warning("Taxonomy table is empty")
        return Taxonomy([])
    if not all(isinstance(record, dict) for record in records):
        raise TaxonomyError("Taxonomy records must be JSON objects")

    frame = pd.DataFrame.from_records(records)
    missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        raise TaxonomyError(f"Taxonomy is missing columns: {', '.join(missing)}")

    channels = frame.loc[:, list(_CHANNEL_COLUMNS)].apply(pd.to_numeric, errors="coerce")
    channel_values = channels.to_numpy(dtype=np.float64)
    valid = np.isfinite(channel_values).all(axis=1)
    valid &= ((channel_values >= 0.0) & (channel_values <= 255.0)).all(axis=1)
    valid &= frame.loc[:, list(_NAME_COLUMNS)].notna().all(axis=1).to_numpy()

    entries: List[TaxonomyEntry] = []
    for row_index in np.flatnonzero(valid):
        row = frame.iloc[row_index]
        r, g, b = (int(round(value)) for value in channel_values[row_index])
        entries.append(
            TaxonomyEntry(
                rgb=(r, g, b),
                xkcd_name=str(row["xkcd_color"]),
                design_name=str(row["design_color"]),
                common_name=str(row["common_color"]),
                family_name=str(row["color_family"]),
            )
        )

    dropped = len(frame) - len(entries)
    if dropped:
        logger.warning(
            "Dropped %d malformed taxonomy rows (kept %d)", dropped, len(entries)
        )
    logger.info("Taxonomy parsed: %d entries", len(entries))
    return Taxonomy(entries)
