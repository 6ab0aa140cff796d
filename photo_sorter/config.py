"""
Configuration constants for the photo sorter.
"""
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

# --- File Type Definitions ---
MEDIA_EXTS = {'.jpg', '.jpeg', '.png', '.gif', '.heic', '.mp4', '.mov'}
ALBUM_CSV_EXTS = {'.csv'}
ALBUM_JSON_NAME = 'metadata.json'

# Entries listed inside an album CSV must look like one of these
ALBUM_MEDIA_EXTS = {'.jpg', '.jpeg', '.heic', '.png', '.tiff', '.tif', '.webp'}

# Google export writes the per-media JSON next to the media, with the
# suffix truncated when the full name gets too long
SUPPLEMENTAL_SUFFIXES = [
    '.supplemental-metadata.json',
    '.supplemental-metad.json',
    '.suppl.json',
]

# Content sniffing only ever looks at the head of a file
SNIFF_WINDOW = 36_870

# --- Hashing ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
SHORT_CHECKSUM_LEN = 7

# --- EXIF ---
# exifread keys by "<IFD> <TagName>"; some writers put EXIF tags in IFD0
DATETIME_ORIGINAL_TAGS = ['EXIF DateTimeOriginal', 'Image DateTimeOriginal']
SUBSEC_ORIGINAL_TAGS = ['EXIF SubSecTimeOriginal', 'Image SubSecTimeOriginal']
DATETIME_TAGS = ['Image DateTime', 'EXIF DateTime']
SUBSEC_TAGS = ['EXIF SubSecTime', 'Image SubSecTime']
GPS_DATE_TAGS = ['GPS GPSDate']
UNIQUE_ID_TAGS = ['EXIF ImageUniqueID', 'Image ImageUniqueID']

# --- MP4 ---
# mvhd times count seconds from 1904-01-01 UTC
MP4_EPOCH = datetime(1904, 1, 1, tzinfo=timezone.utc)
MP4_EPOCH_MS = int(MP4_EPOCH.timestamp() * 1000)
# MediaInfo reports durations in milliseconds
MP4_TIMESCALE = 1000

# --- Organization ---
UNDATED_DIR = 'undated'
ALBUMS_DIR = 'albums'
MAX_NAME_ATTEMPTS = 100
FRONT_MATTER_ORIGINAL_PATHS = 'original-paths'

# --- Execution ---
DEFAULT_MAX_WORKERS = 10
LOG_FILE_NAME = 'photo-sorter.log'
DB_PATH = Path('db.sqlite')

_OFFSET_RE = re.compile(r'^(?P<sign>[+-])(?P<h>\d{1,2}):?(?P<m>\d{2})?$')


def local_utc_offset() -> timezone:
    """The process-local offset, frozen as a fixed offset."""
    offset = datetime.now().astimezone().utcoffset() or timedelta(0)
    return timezone(offset)


def parse_utc_offset(value: str) -> timezone:
    """Parses '+10:00', '-0530', '+2' or 'Z' into a fixed offset."""
    s = value.strip()
    if s.upper() in ('Z', 'UTC'):
        return timezone.utc
    m = _OFFSET_RE.match(s)
    if not m:
        raise ValueError(f"Invalid UTC offset: {value!r}")
    hours = int(m.group('h'))
    minutes = int(m.group('m') or 0)
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid UTC offset: {value!r}")
    delta = timedelta(hours=hours, minutes=minutes)
    if m.group('sign') == '-':
        delta = -delta
    return timezone(delta)
