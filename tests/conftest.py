"""
Shared fixtures for palette_atlas tests.

Builds a small taxonomy table and in-memory image archives of solid-color
samples so no test touches the network.
"""
import gzip
import io
import json
import tarfile

import numpy as np
import pytest
from PIL import Image

from palette_atlas.load.taxonomy import parse_taxonomy

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)

TAXONOMY_ROWS = [
    {"xkcd_color": "red", "xkcd_r": 255, "xkcd_g": 0, "xkcd_b": 0,
     "design_color": "scarlet", "common_color": "red", "color_family": "red"},
    {"xkcd_color": "dark red", "xkcd_r": 128, "xkcd_g": 0, "xkcd_b": 0,
     "design_color": "maroon", "common_color": "red", "color_family": "red"},
    {"xkcd_color": "green", "xkcd_r": 0, "xkcd_g": 255, "xkcd_b": 0,
     "design_color": "lime", "common_color": "green", "color_family": "green"},
    {"xkcd_color": "blue", "xkcd_r": 0, "xkcd_g": 0, "xkcd_b": 255,
     "design_color": "azure", "common_color": "blue", "color_family": "blue"},
    {"xkcd_color": "navy", "xkcd_r": 0, "xkcd_g": 0, "xkcd_b": 128,
     "design_color": "navy", "common_color": "blue", "color_family": "blue"},
]


def solid_raster(rgb, size=(16, 16), alpha=255):
    """Return an RGBA uint8 raster filled with *rgb*."""
    width, height = size
    raster = np.zeros((height, width, 4), dtype=np.uint8)
    raster[:, :, :3] = rgb
    raster[:, :, 3] = alpha
    return raster


def encode_image(rgb, fmt="PNG", size=(16, 16)):
    """Encode a solid-color image and return its bytes."""
    buffer = io.BytesIO()
    Image.new("RGB", size, rgb).save(buffer, format=fmt, quality=95)
    return buffer.getvalue()


def make_tar(members, compress=True):
    """Pack ``{name: bytes}`` into a tar archive, gzip-compressed by default."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        for name, data in members.items():
            if data is None:
                info = tarfile.TarInfo(name)
                info.type = tarfile.DIRTYPE
                archive.addfile(info)
                continue
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    raw = buffer.getvalue()
    return gzip.compress(raw) if compress else raw


@pytest.fixture
def taxonomy_bytes():
    return json.dumps(TAXONOMY_ROWS).encode("utf-8")


@pytest.fixture
def taxonomy(taxonomy_bytes):
    return parse_taxonomy(taxonomy_bytes)


@pytest.fixture
def sample_members():
    """Four numbered PNG samples (red, red, green, blue) in scrambled order."""
    return {
        "samples/": None,
        "samples/3.png": encode_image(GREEN),
        "samples/1.png": encode_image(RED),
        "samples/notes.txt": b"not an image",
        "samples/4.png": encode_image(BLUE),
        "samples/2.png": encode_image(RED),
    }


@pytest.fixture
def sample_archive(sample_members):
    return make_tar(sample_members, compress=True)


@pytest.fixture
def asset_files(tmp_path, taxonomy_bytes, sample_archive):
    """Write the taxonomy and archive to disk and return their paths."""
    taxonomy_path = tmp_path / "colornamer.json"
    taxonomy_path.write_bytes(taxonomy_bytes)
    archive_path = tmp_path / "samples.tar.gz"
    archive_path.write_bytes(sample_archive)
    return taxonomy_path, archive_path
