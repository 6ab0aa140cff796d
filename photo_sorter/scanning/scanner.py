import logging
from typing import Optional

from ..exceptions import FileUnreadableError, UnsupportedTypeError
from ..metadata.exif import ExifDecoder
from ..metadata.mp4 import Mp4Decoder
from ..metadata.supplemental import SupplementalLoader
from ..metadata.timestamps import reconcile
from ..models import AccurateFileType, MediaFileInfo, ScanEntry, SupplementalInfo
from .classifier import accurate_type, detect_supplemental, quick_type
from .containers import Container
from .hasher import FileHasher


class MediaScanner:
    """
    Turns one media entry of a container into a MediaFileInfo: checksum,
    content type, EXIF or MP4 header, and the export's JSON companion.
    """

    def __init__(self):
        self.hasher = FileHasher()
        self.exif = ExifDecoder()
        self.mp4 = Mp4Decoder()
        self.supplemental = SupplementalLoader()

    def inspect(self, container: Container, entry: ScanEntry) -> tuple[MediaFileInfo, bytes]:
        """
        Returns the info and the file bytes. Raises UnsupportedTypeError
        when the content is not a type we sort.
        """
        # 1. Read + checksum
        try:
            with container.open(entry.path) as f:
                hash_info = self.hasher.compute(f)
                f.seek(0)
                data = f.read()
        except OSError as e:
            raise FileUnreadableError(f"Unable to read {entry.path}: {e}") from e

        # 2. Export companion JSON
        supp_info = self.load_supplemental(container, entry.path)

        # 3. Classify by content
        ftype = accurate_type(data, entry.path)
        if ftype == AccurateFileType.UNSUPPORTED:
            raise UnsupportedTypeError(f"Unsupported file type: {entry.path}")

        # 4. Embedded metadata
        parsed_exif = self.exif.parse(data, entry.path, ftype) if ftype.has_exif else None
        parsed_mp4 = self.mp4.parse(data, entry.path) if ftype == AccurateFileType.MP4 else None

        info = MediaFileInfo(
            original_path=entry.path,
            quick_type=entry.quick_type,
            accurate_type=ftype,
            hash_info=hash_info,
            parsed_exif=parsed_exif,
            parsed_mp4=parsed_mp4,
            supp_info=supp_info,
            modified_ms=entry.modified_ms,
            created_ms=entry.created_ms,
        )
        return info, data

    def load_supplemental(self, container: Container, path: str) -> Optional[SupplementalInfo]:
        supp_path = detect_supplemental(path, container)
        if supp_path is None:
            return None
        try:
            data = container.read_bytes(supp_path)
        except (FileUnreadableError, OSError) as e:
            logging.warning(f"Unable to read supplemental {supp_path}: {e}")
            return None
        return self.supplemental.parse(data, supp_path)


def guess_datetime(info: MediaFileInfo) -> Optional[int]:
    return reconcile(info.parsed_exif, info.supp_info, info.modified_ms, info.created_ms)


def entry_for(container: Container, path: str) -> ScanEntry:
    """A ScanEntry for a single known path, outside of enumerate()."""
    meta = container.metadata(path)
    return ScanEntry(
        path=path,
        quick_type=quick_type(path),
        modified_ms=meta.modified_ms,
        created_ms=meta.created_ms,
    )
