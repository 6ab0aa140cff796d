import csv
import io
import json
import logging
from dataclasses import replace
from pathlib import PurePosixPath

from .. import config
from ..exceptions import AlbumRejectedError, FileUnreadableError
from ..models import Album, QuickFileType, ScanEntry
from ..scanning.classifier import is_album_media_name
from ..scanning.containers import Container

ALBUM_CSV_HEADER = 'imagename'


class AlbumReader:
    """
    Collects album definitions from one input container.

    iCloud exports list each album as a CSV whose first column is
    'imageName'. Takeout exports give each album a folder holding the
    media and a 'metadata.json'.
    """

    def __init__(self, container: Container):
        self.container = container
        self.rejected: list[str] = []

    def read_all(self, entries: list[ScanEntry]) -> list[Album]:
        albums = []
        for entry in entries:
            if entry.quick_type not in (QuickFileType.ALBUM_CSV, QuickFileType.ALBUM_JSON):
                continue
            try:
                data = self.container.read_bytes(entry.path)
                if entry.quick_type == QuickFileType.ALBUM_CSV:
                    album = self.parse_csv(data, entry.path)
                else:
                    album = self.parse_json(data, entry.path, entries)
            except (AlbumRejectedError, FileUnreadableError) as e:
                logging.warning(f"Skipping album {entry.path}: {e}")
                self.rejected.append(entry.path)
                continue
            logging.debug(f"Album '{album.name}' with {len(album.files)} files from {entry.path}")
            albums.append(album)
        return albums

    def parse_csv(self, data: bytes, source_path: str) -> Album:
        try:
            text = data.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise AlbumRejectedError(f"Not UTF-8: {e}") from e

        reader = csv.reader(io.StringIO(text))
        header = next(reader, None)
        if not header or header[0].strip().lower() != ALBUM_CSV_HEADER:
            raise AlbumRejectedError(f"First column is not '{ALBUM_CSV_HEADER}'")

        files = [
            row[0].strip()
            for row in reader
            if row and is_album_media_name(row[0])
        ]
        if not files:
            raise AlbumRejectedError("No media rows")

        return Album(name=PurePosixPath(source_path).stem, source_path=source_path, files=files)

    def parse_json(self, data: bytes, source_path: str, entries: list[ScanEntry]) -> Album:
        try:
            doc = json.loads(data.decode('utf-8-sig'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise AlbumRejectedError(f"Invalid JSON: {e}") from e
        if not isinstance(doc, dict):
            raise AlbumRejectedError("Album JSON is not an object")

        folder = PurePosixPath(source_path).parent
        if not folder.name:
            raise AlbumRejectedError("Album JSON at the container root has no folder name")

        files = [
            PurePosixPath(e.path).name
            for e in entries
            if e.quick_type == QuickFileType.MEDIA and PurePosixPath(e.path).parent == folder
        ]
        if not files:
            raise AlbumRejectedError("No media next to album JSON")

        return Album(name=folder.name, source_path=source_path, files=files)


def dedup_album_names(albums: list[Album]) -> list[Album]:
    """
    Makes names unique: 'name', 'name-1', 'name-2', ... Albums still
    colliding after the attempt cap are dropped.
    """
    seen: set[str] = set()
    result = []
    for album in albums:
        for attempt in range(config.MAX_NAME_ATTEMPTS):
            name = album.name if attempt == 0 else f"{album.name}-{attempt}"
            if name not in seen:
                break
        else:
            logging.warning(
                f"Dropping album '{album.name}' from {album.source_path}: "
                f"name still taken after {config.MAX_NAME_ATTEMPTS} attempts"
            )
            continue

        seen.add(name)
        result.append(album if name == album.name else replace(album, name=name))
    return result


def albums_to_files_map(albums: list[Album]) -> dict[str, list[str]]:
    """media filename -> album names, in the order albums were given."""
    index: dict[str, list[str]] = {}
    for album in albums:
        for filename in album.files:
            names = index.setdefault(filename, [])
            if album.name not in names:
                names.append(album.name)
    return index


def album_markdown_path(album: Album) -> str:
    safe = album.name.replace('/', '_').replace('\\', '_')
    return f"{config.ALBUMS_DIR}/{safe}.md"


def build_album_markdown(album: Album, synced: dict[str, str]) -> str:
    """
    A heading and one item per entry. Entries synced this run link to
    their output path (relative to the albums folder).
    """
    lines = [f"# {album.name}", ""]
    for filename in album.files:
        target = synced.get(filename)
        if target:
            lines.append(f"- [{filename}](../{target})")
        else:
            lines.append(f"- {filename}")
    return "\n".join(lines) + "\n"
