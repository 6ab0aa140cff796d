import logging
import threading
from typing import Optional

from .. import config
from ..exceptions import FileUnreadableError, WriteFailureError
from ..metadata.timestamps import ms_to_datetime
from ..models import MediaFileDerivedInfo, MediaFileInfo
from ..scanning.containers import DirectoryContainer
from ..scanning.hasher import FileHasher


def desired_media_path(short_checksum: str, epoch_ms: Optional[int]) -> str:
    """
    'YYYY/MM/DD/hhmm-ssSSS' for dated media, 'undated/<short>' otherwise.
    No extension.
    """
    if epoch_ms is None:
        return f"{config.UNDATED_DIR}/{short_checksum}"
    dt = ms_to_datetime(epoch_ms)
    ms = dt.microsecond // 1000
    return f"{dt:%Y/%m/%d/%H%M}-{dt:%S}{ms:03d}"


def derive(info: MediaFileInfo, epoch_ms: Optional[int]) -> MediaFileDerivedInfo:
    return MediaFileDerivedInfo(
        desired_media_path=desired_media_path(info.hash_info.short_checksum, epoch_ms),
        desired_extension=info.accurate_type.extension,
    )


class _Claim:
    """One output path owned by one set of bytes for the rest of the run."""

    def __init__(self, long_checksum: str, written: bool = False):
        self.long_checksum = long_checksum
        self.written = written
        self._settled = threading.Event()
        if written:
            self._settled.set()

    def settle(self, written: bool):
        self.written = written
        self._settled.set()

    def wait(self) -> bool:
        self._settled.wait()
        return self.written


class PathPlanner:
    """
    Hands out output paths for one run.

    Two different files that land on the same path get '-1', '-2', ...
    suffixes. A path already holding the same bytes (from this run or a
    previous one) is handed back as is. A path claimed in this run only
    counts as holding the bytes once its owner has settled the write;
    a failed write frees the path again.
    """

    def __init__(self, output: DirectoryContainer):
        self.output = output
        self.hasher = FileHasher()
        self.claimed: dict[str, _Claim] = {}
        # media path -> long checksum found on disk (None if absent)
        self._on_disk: dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def claim(self, info: MediaFileInfo, epoch_ms: Optional[int]) -> tuple[MediaFileDerivedInfo, bool]:
        """
        Returns the derived paths and whether the target already holds
        identical bytes. Unless identical, the caller must settle() the
        returned media path once its write has finished or failed.
        """
        base = derive(info, epoch_ms)
        long_checksum = info.hash_info.long_checksum

        attempt = 0
        while attempt < config.MAX_NAME_ATTEMPTS:
            if attempt == 0:
                candidate = base
            else:
                candidate = MediaFileDerivedInfo(
                    desired_media_path=f"{base.desired_media_path}-{attempt}",
                    desired_extension=base.desired_extension,
                )
            path = candidate.media_path

            with self._lock:
                owner = self.claimed.get(path)
                hashed = path in self._on_disk
                on_disk = self._on_disk.get(path)
                if owner is None and hashed and on_disk in (None, long_checksum):
                    identical = on_disk is not None
                    self.claimed[path] = _Claim(long_checksum, written=identical)
                    if attempt:
                        logging.debug(f"Path collision for {info.original_path}, using {path}")
                    return candidate, identical

            if owner is not None:
                if owner.long_checksum != long_checksum:
                    attempt += 1
                elif owner.wait():
                    return candidate, True
                # otherwise the owner's write failed and the path is free again
                continue

            if not hashed:
                # hashed outside the lock
                checksum = self._existing_checksum(path)
                with self._lock:
                    self._on_disk.setdefault(path, checksum)
                continue

            attempt += 1

        raise WriteFailureError(
            f"No free output path for {info.original_path} after "
            f"{config.MAX_NAME_ATTEMPTS} attempts (base {base.media_path})"
        )

    def settle(self, path: str, written: bool):
        """Records the outcome of the write for a claimed path."""
        with self._lock:
            claim = self.claimed.get(path)
            if claim is None:
                return
            if not written:
                del self.claimed[path]
        claim.settle(written)

    def _existing_checksum(self, path: str) -> Optional[str]:
        if not self.output.exists(path):
            return None
        try:
            with self.output.open(path) as f:
                return self.hasher.compute(f).long_checksum
        except (FileUnreadableError, OSError) as e:
            raise WriteFailureError(f"Unable to check existing output {path}: {e}") from e
