"""Unpacking and decoding of the sample image archive."""

from __future__ import annotations

import gzip
import io
import logging
import re
import tarfile
import zlib
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, List

import numpy as np
from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from ..errors import CorpusError
from ..io.models import Progress

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")
DECODE_PHASE = "decoding samples"

_NUMBER_PATTERN = re.compile(r"(\d+)\.[A-Za-z]+$")

ProgressCallback = Callable[[Progress], None]


@dataclass(slots=True)
class DecodedImage:
    """An archive member decoded into an RGBA raster."""

    name: str
    data: bytes
    raster: np.ndarray

    @property
    def size(self) -> tuple[int, int]:
        height, width = self.raster.shape[:2]
        return width, height


def is_gzip(payload: bytes) -> bool:
    """Return True when *payload* starts with the gzip magic number."""
    return payload[:2] == GZIP_MAGIC


def expand_archive(payload: bytes) -> bytes:
    """Return the tar container held in *payload*, gunzipping only if needed."""
    if is_gzip(payload):
        try:
            return gzip.decompress(payload)
        except (OSError, EOFError, zlib.error) as exc:
            raise CorpusError(f"Corrupt gzip stream: {exc}") from exc
    logger.info("Archive is not gzip-compressed; treating it as an expanded tar")
    return payload


def numeric_key(name: str) -> int:
    """Return the number embedded before the suffix of *name*, or 0."""
    match = _NUMBER_PATTERN.search(PurePosixPath(name).name)
    return int(match.group(1)) if match else 0


def read_image_members(tar_bytes: bytes) -> list[tuple[str, bytes]]:
    """Return ``(name, bytes)`` for image members sorted by numeric file name."""
    members: list[tuple[str, bytes]] = []
    try:
        with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:") as archive:
            for member in archive:
                if not member.isfile():
                    continue
                if not member.name.lower().endswith(IMAGE_SUFFIXES):
                    continue
                handle = archive.extractfile(member)
                if handle is None:
                    continue
                with handle:
                    members.append((member.name, handle.read()))
    except tarfile.TarError as exc:
        raise CorpusError(f"Unreadable tar archive: {exc}") from exc
    members.sort(key=lambda item: numeric_key(item[0]))
    return members


def decode_image(name: str, data: bytes) -> DecodedImage:
    """Decode image *data* into an RGBA ``uint8`` raster."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            rgba = image.convert("RGBA")
    except (UnidentifiedImageError, DecompressionBombError, OSError) as exc:
        raise CorpusError(f"Cannot decode {name}: {exc}") from exc
    raster = np.asarray(rgba, dtype=np.uint8)
    rgba.close()
    return DecodedImage(name=name, data=data, raster=raster)


def load_corpus(
    payload: bytes, progress: ProgressCallback | None = None
) -> List[DecodedImage]:
    """Unpack *payload* and decode every image member in archive order."""
    members = read_image_members(expand_archive(payload))
    total = len(members)
    images: List[DecodedImage] = []
    for index, (name, data) in enumerate(members):
        if progress is not None:
            progress(Progress(DECODE_PHASE, index, total))
        images.append(decode_image(name, data))
    if progress is not None:
        progress(Progress(DECODE_PHASE, total, total))
    logger.info("Sample archive decoded: %d images", len(images))
    return images
