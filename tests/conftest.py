import json
import sqlite3
import zipfile
from pathlib import Path

import pytest
from PIL import Image

from photo_sorter.database.schema import init_schema
from photo_sorter.database.ops import DBOperations

# EXIF IFD0 DateTime
TAG_DATETIME = 0x0132


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)


@pytest.fixture
def make_jpeg():
    """Writes a small JPEG, optionally with an EXIF DateTime."""
    def _make(path: Path, color=(200, 30, 30), exif_datetime=None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        img = Image.new("RGB", (16, 16), color)
        if exif_datetime:
            exif = Image.Exif()
            exif[TAG_DATETIME] = exif_datetime
            img.save(path, "JPEG", exif=exif)
        else:
            img.save(path, "JPEG")
        return path
    return _make


@pytest.fixture
def make_png():
    def _make(path: Path, color=(30, 200, 30)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", (16, 16), color).save(path, "PNG")
        return path
    return _make


@pytest.fixture
def make_zip():
    """Builds a zip from {name: bytes}; entries ending in '/' become directories."""
    def _make(path: Path, entries: dict, date_time=(2020, 1, 2, 3, 4, 6)) -> Path:
        with zipfile.ZipFile(path, "w") as zf:
            for name, data in entries.items():
                info = zipfile.ZipInfo(name, date_time=date_time)
                zf.writestr(info, data)
        return path
    return _make


@pytest.fixture
def takeout_tree(tmp_path, make_jpeg, make_png):
    """
    A small Takeout-style export:
      - a JPEG dated by EXIF
      - a PNG dated by its supplemental JSON
      - a file that claims to be a JPEG but is not
      - a text file the sorter ignores
    """
    root = tmp_path / "takeout"
    photos = root / "Google Photos" / "Photos from 2020"
    make_jpeg(photos / "IMG_1.jpg", exif_datetime="2020:01:02 03:04:05")
    make_png(photos / "IMG_2.png")
    (photos / "IMG_2.png.supplemental-metadata.json").write_text(json.dumps({
        "title": "IMG_2.png",
        "photoTakenTime": {"timestamp": "1212162961", "formatted": "May 30, 2008, 3:56:01 PM UTC"},
        "creationTime": {"timestamp": "1600000000"},
        "geoData": {"latitude": 51.5, "longitude": -0.12, "altitude": 10.0},
        "people": [{"name": "Alice"}, {"name": "Bob"}],
    }))
    (photos / "broken.jpg").write_bytes(b"not an image")
    (photos / "notes.txt").write_text("hello")
    return root


@pytest.fixture
def icloud_tree(tmp_path):
    """An iCloud-style export holding only an album listing."""
    root = tmp_path / "icloud"
    albums = root / "Albums"
    albums.mkdir(parents=True)
    (albums / "Holiday.csv").write_text("imageName\nIMG_1.jpg\nmissing.heic\n")
    return root


@pytest.fixture
def corrupt_member():
    """Flips every compressed byte of one zip member, leaving the headers intact."""
    def _corrupt(zip_path: Path, name: str):
        with zipfile.ZipFile(zip_path) as zf:
            info = zf.getinfo(name)
        with open(zip_path, "r+b") as f:
            f.seek(info.header_offset + 26)
            name_len = int.from_bytes(f.read(2), "little")
            extra_len = int.from_bytes(f.read(2), "little")
            start = info.header_offset + 30 + name_len + extra_len
            f.seek(start)
            data = f.read(info.compress_size)
            f.seek(start)
            f.write(bytes(b ^ 0xFF for b in data))
    return _corrupt
