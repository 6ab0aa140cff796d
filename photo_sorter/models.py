from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class QuickFileType(str, Enum):
    """Verdict from the file name alone."""
    MEDIA = 'Media'
    ALBUM_CSV = 'AlbumCsv'
    ALBUM_JSON = 'AlbumJson'
    UNKNOWN = 'Unknown'


class AccurateFileType(str, Enum):
    """Verdict from the file content."""
    JPG = 'Jpg'
    PNG = 'Png'
    HEIC = 'Heic'
    GIF = 'Gif'
    MP4 = 'Mp4'
    JSON = 'Json'
    CSV = 'Csv'
    UNSUPPORTED = 'Unsupported'

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def has_exif(self) -> bool:
        return self in (AccurateFileType.JPG, AccurateFileType.PNG, AccurateFileType.HEIC)


_EXTENSIONS = {
    AccurateFileType.JPG: 'jpg',
    AccurateFileType.GIF: 'gif',
    AccurateFileType.PNG: 'png',
    AccurateFileType.HEIC: 'heic',
    AccurateFileType.MP4: 'mp4',
    AccurateFileType.JSON: 'json',
    AccurateFileType.CSV: 'csv',
    AccurateFileType.UNSUPPORTED: 'bin',
}


@dataclass(frozen=True)
class ScanEntry:
    """
    One file discovered in an input container. Immutable after the scan.
    """
    path: str               # relative to the container root, forward slashes
    quick_type: QuickFileType
    modified_ms: Optional[int] = None
    created_ms: Optional[int] = None


@dataclass(frozen=True)
class FileMetadata:
    len: int
    modified_ms: Optional[int] = None
    created_ms: Optional[int] = None


@dataclass(frozen=True)
class HashInfo:
    short_checksum: str     # display / path suffix
    long_checksum: str      # identity key


@dataclass
class ParsedExif:
    # RFC-3339 UTC strings, gps_date is YYYY-MM-DD
    datetime_original: Optional[str] = None
    datetime: Optional[str] = None
    gps_date: Optional[str] = None
    unique_id: Optional[str] = None


@dataclass
class ExifTag:
    """One EXIF field as enumerated for inspection."""
    code: str
    description: str
    value: str
    type: str


@dataclass
class ParsedMp4:
    width: int
    height: int
    duration_ticks: int
    timescale: int
    creation_time_ms: Optional[int] = None
    modification_time_ms: Optional[int] = None


@dataclass
class GeoData:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None


@dataclass
class SupplementalInfo:
    """
    Parsed export sidecar JSON. Time fields hold seconds-since-epoch as
    the decimal strings found in the file.
    """
    geo_data: Optional[GeoData] = None
    geo_data_exif: Optional[GeoData] = None
    people: list[str] = field(default_factory=list)
    photo_taken_time: Optional[str] = None
    creation_time: Optional[str] = None


@dataclass
class MediaFileInfo:
    original_path: str
    quick_type: QuickFileType
    accurate_type: AccurateFileType
    hash_info: HashInfo
    parsed_exif: Optional[ParsedExif] = None
    parsed_mp4: Optional[ParsedMp4] = None
    supp_info: Optional[SupplementalInfo] = None
    modified_ms: Optional[int] = None
    created_ms: Optional[int] = None


@dataclass(frozen=True)
class MediaFileDerivedInfo:
    desired_media_path: str     # relative to the output root, no extension
    desired_extension: str

    @property
    def media_path(self) -> str:
        return f"{self.desired_media_path}.{self.desired_extension}"

    @property
    def markdown_path(self) -> str:
        return f"{self.media_path}.md"


@dataclass
class Album:
    name: str
    source_path: str
    files: list[str] = field(default_factory=list)


@dataclass
class SyncSummary:
    """Counters for one sort run."""
    media_seen: int = 0
    media_written: int = 0
    media_unchanged: int = 0
    media_skipped: int = 0
    media_failed: int = 0
    markdown_written: int = 0
    albums_found: int = 0
    albums_written: int = 0
    albums_rejected: int = 0
