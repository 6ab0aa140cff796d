import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path, PurePosixPath
from typing import Optional

from . import config
from .database.db import DBManager
from .database.ops import DBOperations
from .exceptions import InputInvalidError, PhotoSorterError, UnsupportedTypeError
from .models import ExifTag, MediaFileDerivedInfo, MediaFileInfo, QuickFileType, ScanEntry, SyncSummary
from .organization.albums import (
    AlbumReader,
    album_markdown_path,
    albums_to_files_map,
    build_album_markdown,
    dedup_album_names,
)
from .organization.markdown import MarkdownWriter, assemble_markdown
from .organization.planner import PathPlanner, derive
from .progress import ProgressEventKind, ProgressReporter
from .scanning.containers import Container, DirectoryContainer, open_container
from .scanning.scanner import MediaScanner, entry_for, guess_datetime


class Syncer:
    """
    Sorts one or more exports into a dated library.

    1. Enumerate every input
    2. Media: checksum, metadata, reconcile time, plan path, write media + sidecar
    3. Albums: parse, de-duplicate names, write album pages
    """

    def __init__(self,
                 output_root: Path,
                 dry_run: bool = False,
                 skip_media: bool = False,
                 skip_markdown: bool = False,
                 skip_albums: bool = False,
                 max_workers: int = config.DEFAULT_MAX_WORKERS,
                 set_modified: bool = True,
                 progress: Optional[ProgressReporter] = None):
        self.output = DirectoryContainer(output_root)
        self.dry_run = dry_run
        self.skip_media = skip_media
        self.skip_markdown = skip_markdown
        self.skip_albums = skip_albums
        self.max_workers = max_workers
        self.set_modified = set_modified
        self.progress = progress or ProgressReporter(enabled=False)

        self.scanner = MediaScanner()
        self.planner = PathPlanner(self.output)
        self.markdown = MarkdownWriter(self.output, dry_run)

        self.summary = SyncSummary()
        # media filename -> output media path, for album pages
        self.synced: dict[str, str] = {}
        self.album_index: dict[str, list[str]] = {}

        self._lock = threading.Lock()
        self._cancel = threading.Event()

    def cancel(self):
        """Stops picking up new files; files already in flight finish."""
        self._cancel.set()

    def sync(self, inputs: list[Container]) -> SyncSummary:
        self.progress.send(ProgressEventKind.START)

        scanned: list[tuple[Container, list[ScanEntry]]] = []
        for container in inputs:
            entries = container.enumerate()
            logging.info(f"Found {len(entries)} files in {container}")
            scanned.append((container, entries))

        if not self.skip_media:
            for container, entries in scanned:
                self._sync_media(container, entries)
        self.progress.send(ProgressEventKind.MEDIA_DONE)

        if not self.skip_albums and not self._cancel.is_set():
            self._sync_albums(scanned)

        self.progress.send(ProgressEventKind.ALL_DONE)
        return self.summary

    # --- Media ---

    def _sync_media(self, container: Container, entries: list[ScanEntry]):
        media = [e for e in entries if e.quick_type == QuickFileType.MEDIA]
        self.progress.send(ProgressEventKind.MEDIA_FILES_CALCULATED, len(media))
        logging.info(f"Syncing {len(media)} media files from {container} (DryRun={self.dry_run})")

        if self.max_workers <= 1:
            for entry in media:
                self._sync_one(container, entry)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._sync_one, container, entry) for entry in media]
            try:
                for future in as_completed(futures):
                    future.result()
            except KeyboardInterrupt:
                logging.warning("Interrupted; finishing files already in progress...")
                self.cancel()
                for future in futures:
                    future.cancel()
                raise

    def _sync_one(self, container: Container, entry: ScanEntry):
        if self._cancel.is_set():
            return

        self._count('media_seen')
        try:
            self._sync_media_file(container, entry)
        except UnsupportedTypeError as e:
            logging.warning(f"Skipping {entry.path}: {e}")
            self._count('media_skipped')
        except (PhotoSorterError, OSError) as e:
            logging.warning(f"Failed to sync {entry.path}: {e}")
            self._count('media_failed')
        finally:
            self.progress.send(ProgressEventKind.MEDIA_FILE_DONE)

    def _sync_media_file(self, container: Container, entry: ScanEntry):
        info, data = self.scanner.inspect(container, entry)
        epoch_ms = guess_datetime(info)
        derived, identical = self.planner.claim(info, epoch_ms)

        if identical:
            logging.debug(f"Already synced: {entry.path} -> {derived.media_path}")
            self._count('media_unchanged')
        else:
            written = False
            try:
                self.output.write(derived.media_path, data, self.dry_run)
                written = True
            finally:
                self.planner.settle(derived.media_path, written)
            self._count('media_written')
            if self.set_modified:
                self.output.set_modified(derived.media_path, epoch_ms, self.dry_run)

        if not self.skip_markdown:
            if self.markdown.write_sidecar(derived.markdown_path, [entry.path]):
                self._count('markdown_written')

        with self._lock:
            self.synced[PurePosixPath(entry.path).name] = derived.media_path

    # --- Albums ---

    def _sync_albums(self, scanned: list[tuple[Container, list[ScanEntry]]]):
        albums = []
        rejected = 0
        for container, entries in scanned:
            reader = AlbumReader(container)
            albums.extend(reader.read_all(entries))
            rejected += len(reader.rejected)

        unique = dedup_album_names(albums)
        self.summary.albums_found = len(unique)
        self.summary.albums_rejected = rejected + len(albums) - len(unique)
        self.album_index = albums_to_files_map(unique)

        self.progress.send(ProgressEventKind.ALBUMS_CALCULATED, len(unique))
        logging.info(f"Writing {len(unique)} albums ({self.summary.albums_rejected} rejected)")

        for album in unique:
            try:
                content = build_album_markdown(album, self.synced)
                if self.markdown.write_document(album_markdown_path(album), content):
                    self.summary.albums_written += 1
            except (PhotoSorterError, OSError) as e:
                logging.warning(f"Failed to write album '{album.name}': {e}")
            finally:
                self.progress.send(ProgressEventKind.ALBUM_FILE_DONE)

        self.progress.send(ProgressEventKind.ALBUMS_DONE)

    def _count(self, name: str):
        with self._lock:
            setattr(self.summary, name, getattr(self.summary, name) + 1)


class MediaIndexer:
    """
    Scans an export and stores one media_item row per media entry in
    SQLite. Previous rows are replaced.
    """

    def __init__(self, db_path: Path):
        self.db_manager = DBManager(db_path)
        self.scanner = MediaScanner()

    def index(self, container: Container, max_workers: int = config.DEFAULT_MAX_WORKERS) -> int:
        with self.db_manager as conn:
            db_ops = DBOperations(conn)

            with self.db_manager.transaction():
                removed = db_ops.clear_media_items()
            if removed:
                logging.info(f"Removed {removed} previous media items")

            media = [e for e in container.enumerate() if e.quick_type == QuickFileType.MEDIA]
            logging.info(f"Indexing {len(media)} media files from {container}")

            inserted = 0
            with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
                futures = [executor.submit(self._inspect, container, e) for e in media]
                for future in as_completed(futures):
                    result = future.result()
                    if result is None:
                        continue
                    info, tags, epoch_ms = result
                    with self.db_manager.transaction():
                        db_ops.insert_media_item(info, tags, epoch_ms)
                    inserted += 1

            for ftype, count in db_ops.count_by_accurate_type().items():
                logging.info(f"  {ftype}: {count}")
            dupes = db_ops.duplicate_long_hashes()
            if dupes:
                logging.info(f"{len(dupes)} checksums appear more than once")

        logging.info(f"Indexed {inserted} media files into {self.db_manager.db_path}")
        return inserted

    def _inspect(self, container: Container, entry: ScanEntry):
        try:
            info, data = self.scanner.inspect(container, entry)
        except (PhotoSorterError, OSError) as e:
            logging.warning(f"Skipping {entry.path}: {e}")
            return None
        return info, exif_tags(self.scanner, info, data), guess_datetime(info)


@dataclass
class MediaReport:
    """Everything the inspection commands print about one file."""
    info: MediaFileInfo
    guessed_datetime: Optional[int]
    derived: MediaFileDerivedInfo
    markdown: str
    exif_tags: list[ExifTag]


def inspect_file(path: Path, root: Optional[Path] = None, tz: Optional[tzinfo] = None) -> MediaReport:
    """
    Runs the per-file pipeline on a single file without writing anything.

    With a root, path is an entry inside that export (directory or zip)
    and its supplemental JSON is looked up there, as during a sort.
    """
    if root is None:
        path = Path(path)
        container = DirectoryContainer(path.parent)
        entry_path, shown = path.name, str(path)
    else:
        container = open_container(root, tz)
        entry_path = shown = str(path).replace('\\', '/')

    try:
        if not container.exists(entry_path):
            raise InputInvalidError(f"No such file in {container}: {entry_path}")
        return _inspect_entry(container, entry_path, shown)
    finally:
        container.close()


def _inspect_entry(container: Container, entry_path: str, shown: str) -> MediaReport:
    entry = entry_for(container, entry_path)

    scanner = MediaScanner()
    info, data = scanner.inspect(container, entry)
    epoch_ms = guess_datetime(info)

    return MediaReport(
        info=info,
        guessed_datetime=epoch_ms,
        derived=derive(info, epoch_ms),
        markdown=assemble_markdown('', [shown]) or '',
        exif_tags=exif_tags(scanner, info, data),
    )


def exif_tags(scanner: MediaScanner, info: MediaFileInfo, data: bytes) -> list[ExifTag]:
    if not info.accurate_type.has_exif:
        return []
    try:
        return scanner.exif.all_tags(data)
    except Exception as e:
        logging.debug(f"Unable to list EXIF tags for {info.original_path}: {e}")
        return []
