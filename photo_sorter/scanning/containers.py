"""
Uniform access to an export, whether it was unpacked to a directory or
left as a zip archive.
"""
import io
import logging
import os
import threading
import zipfile
import zlib
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator, Optional

from .. import config
from ..exceptions import FileUnreadableError, InputInvalidError, WriteFailureError
from ..models import FileMetadata, ScanEntry
from .classifier import quick_type


class Container(ABC):
    """Read side shared by directory and zip containers."""

    @abstractmethod
    def enumerate(self) -> list[ScanEntry]:
        """Every file in the container, as forward-slash paths relative to the root."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Returns a seekable binary stream. Caller closes it."""

    @abstractmethod
    def metadata(self, path: str) -> FileMetadata:
        ...

    def read_bytes(self, path: str) -> bytes:
        with self.open(path) as f:
            return f.read()

    def close(self):
        pass


class DirectoryContainer(Container):
    def __init__(self, root: Path):
        self.root = Path(root)

    def __repr__(self):
        return f"DirectoryContainer({str(self.root)!r})"

    def enumerate(self) -> list[ScanEntry]:
        entries = []
        for path in self._iter_files(self.root):
            rel = path.relative_to(self.root).as_posix()
            try:
                meta = self._stat_metadata(path)
            except OSError as e:
                logging.warning(f"Unable to stat {path}: {e}")
                meta = FileMetadata(len=0)
            entries.append(ScanEntry(
                path=rel,
                quick_type=quick_type(rel),
                modified_ms=meta.modified_ms,
                created_ms=meta.created_ms,
            ))
        return entries

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def open(self, path: str) -> BinaryIO:
        p = self._resolve(path)
        try:
            return open(p, 'rb')
        except OSError as e:
            raise FileUnreadableError(f"Unable to open file {p}: {e}") from e

    def metadata(self, path: str) -> FileMetadata:
        p = self._resolve(path)
        try:
            return self._stat_metadata(p)
        except OSError as e:
            raise FileUnreadableError(f"Unable to stat file {p}: {e}") from e

    # --- Output side ---

    def write(self, path: str, data: bytes, dry_run: bool = False):
        p = self._resolve(path)
        if dry_run:
            logging.info(f"[DRY RUN] Write {len(data)} bytes -> {p}")
            return
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as e:
            raise WriteFailureError(f"Unable to write file {p}: {e}") from e
        logging.debug(f"Wrote file {p}")

    def set_modified(self, path: str, epoch_ms: Optional[int], dry_run: bool = False):
        if epoch_ms is None:
            return
        p = self._resolve(path)
        if dry_run:
            logging.info(f"[DRY RUN] Set modified time of {p} to {epoch_ms}")
            return
        try:
            ns = epoch_ms * 1_000_000
            os.utime(p, ns=(ns, ns))
        except OSError as e:
            raise WriteFailureError(f"Unable to set modified time for {p}: {e}") from e
        logging.debug(f"Set modified time of {p} to {epoch_ms}")

    # --- Internals ---

    def _resolve(self, path: str) -> Path:
        return self.root.joinpath(*PurePosixPath(path).parts)

    def _stat_metadata(self, p: Path) -> FileMetadata:
        st = p.stat()
        birthtime = getattr(st, 'st_birthtime', None)
        return FileMetadata(
            len=st.st_size,
            modified_ms=st.st_mtime_ns // 1_000_000,
            created_ms=int(birthtime * 1000) if birthtime is not None else None,
        )

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError:
                logging.warning(f"Unable to read directory: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    yield Path(e.path)

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)


class ZipContainer(Container):
    """
    Read-only view over a zip archive.

    The archive handle is shared, so every read goes through one lock.
    Entries are inflated into memory because the EXIF and MP4 parsers
    both need to seek.
    """

    def __init__(self, zip_path: Path, tz: Optional[tzinfo] = None):
        self.zip_path = Path(zip_path)
        self.tz = tz or config.local_utc_offset()
        self._lock = threading.Lock()
        try:
            self._zip = zipfile.ZipFile(self.zip_path)
        except (OSError, zipfile.BadZipFile) as e:
            raise InputInvalidError(f"Unable to open zip file {self.zip_path}: {e}") from e
        self._names: list[str] = []
        self._metadata: dict[str, FileMetadata] = {}
        # forward-slash path -> archive member as stored
        self._members: dict[str, zipfile.ZipInfo] = {}
        self._index()

    def __repr__(self):
        return f"ZipContainer({str(self.zip_path)!r})"

    def close(self):
        with self._lock:
            self._zip.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def enumerate(self) -> list[ScanEntry]:
        return [
            ScanEntry(
                path=name,
                quick_type=quick_type(name),
                modified_ms=self._metadata[name].modified_ms,
                created_ms=None,
            )
            for name in self._names
        ]

    def exists(self, path: str) -> bool:
        return path in self._metadata

    def open(self, path: str) -> BinaryIO:
        if path not in self._metadata:
            raise FileUnreadableError(f"File not found in zip {self.zip_path}: {path}")
        with self._lock:
            try:
                data = self._zip.read(self._members[path])
            except (OSError, EOFError, KeyError, RuntimeError, zipfile.BadZipFile, zlib.error) as e:
                raise FileUnreadableError(f"Unable to read {path} from {self.zip_path}: {e}") from e
        return io.BytesIO(data)

    def metadata(self, path: str) -> FileMetadata:
        try:
            return self._metadata[path]
        except KeyError:
            raise FileUnreadableError(f"File not found in zip {self.zip_path}: {path}") from None

    def _index(self):
        for info in self._zip.infolist():
            if info.is_dir():
                continue
            name = self._enclosed_name(info.filename)
            if name is None:
                logging.warning(f"Skipping unsafe zip entry name: {info.filename!r}")
                continue
            if name in self._members:
                logging.warning(f"Skipping duplicate zip entry: {info.filename!r}")
                continue
            self._names.append(name)
            self._members[name] = info
            self._metadata[name] = FileMetadata(
                len=info.file_size,
                modified_ms=self._zip_datetime_ms(info.date_time),
                created_ms=None,
            )
        logging.debug(f"Counted {len(self._names)} files in zip {self.zip_path}")

    def _zip_datetime_ms(self, date_time: tuple) -> Optional[int]:
        # zip entries store a naive local time
        try:
            dt = datetime(*date_time, tzinfo=self.tz)
        except ValueError:
            return None
        return int(dt.timestamp()) * 1000

    @staticmethod
    def _enclosed_name(name: str) -> Optional[str]:
        """Forward-slash form of a member name, or None if it escapes the root."""
        parts = PurePosixPath(name.replace('\\', '/')).parts
        if not parts or parts[0] == '/' or '..' in parts or parts[0].endswith(':'):
            return None
        return '/'.join(parts)


def open_container(path: Path, tz: Optional[tzinfo] = None) -> Container:
    """Directory roots and zip files; anything else is invalid input."""
    path = Path(path)
    if path.is_dir():
        logging.info(f"Input directory: {path}")
        return DirectoryContainer(path)
    if path.is_file():
        logging.info(f"Input zip: {path}")
        return ZipContainer(path, tz)
    raise InputInvalidError(f"Input path does not exist: {path}")
