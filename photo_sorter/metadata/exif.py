import io
import logging
import re
from datetime import UTC, datetime, timedelta
from typing import Optional

import exifread

from .. import config
from ..exceptions import ParseFailureError
from ..models import AccurateFileType, ExifTag, ParsedExif

# "YYYY:MM:DD HH:MM:SS" or bare "YYYY:MM:DD"; some writers use dashes
_EXIF_DATETIME_RE = re.compile(
    r'^(?P<y>\d{4})[:-](?P<mo>\d{1,2})[:-](?P<d>\d{1,2})'
    r'(?:[ T](?P<h>\d{1,2}):(?P<mi>\d{1,2}):(?P<s>\d{1,2}))?'
)

# exifread field_type -> EXIF type name
FIELD_TYPE_NAMES = {
    1: 'Byte',
    2: 'Ascii',
    3: 'Short',
    4: 'Long',
    5: 'Rational',
    6: 'SByte',
    7: 'Undefined',
    8: 'SShort',
    9: 'SLong',
    10: 'SRational',
    11: 'Float',
    12: 'Double',
    13: 'Ifd',
}


class ExifDecoder:
    """
    Pulls the handful of EXIF fields the sorter cares about out of
    JPEG, PNG and HEIC files, using 'exifread'.
    """

    def parse(self, data: bytes, name: str, ftype: AccurateFileType) -> Optional[ParsedExif]:
        if not ftype.has_exif:
            return None

        try:
            tags = self._read_tags(data)
        except Exception as e:
            logging.warning(f"ExifRead failed for {name}: {e}")
            return None

        if not tags:
            logging.debug(f"No EXIF block in {name}")
            return None

        return ParsedExif(
            datetime_original=self._datetime_field(
                tags, name, config.DATETIME_ORIGINAL_TAGS, config.SUBSEC_ORIGINAL_TAGS),
            datetime=self._datetime_field(
                tags, name, config.DATETIME_TAGS, config.SUBSEC_TAGS),
            gps_date=self._gps_date_field(tags, name),
            unique_id=_first_value(tags, config.UNIQUE_ID_TAGS),
        )

    def all_tags(self, data: bytes) -> list[ExifTag]:
        """Every EXIF field, for the inspection commands."""
        tags = self._read_tags(data)
        result = []
        for key, tag in tags.items():
            # thumbnails and maker blobs come back as raw bytes
            if not hasattr(tag, 'field_type'):
                continue
            result.append(ExifTag(
                code=f"0x{tag.tag:04X}",
                description=key,
                value=str(tag.printable).strip(),
                type=FIELD_TYPE_NAMES.get(tag.field_type, 'Unknown'),
            ))
        return result

    # --- Internal Helpers ---

    def _read_tags(self, data: bytes) -> dict:
        # details=False skips maker notes and thumbnails
        return exifread.process_file(io.BytesIO(data), details=False)

    def _datetime_field(self, tags, name: str, dt_tags: list[str], subsec_tags: list[str]) -> Optional[str]:
        value = _first_value(tags, dt_tags)
        if value is None:
            return None
        try:
            return format_exif_datetime(value, _first_value(tags, subsec_tags), name)
        except ParseFailureError as e:
            logging.warning(f"{e} ({name})")
            return None

    def _gps_date_field(self, tags, name: str) -> Optional[str]:
        value = _first_value(tags, config.GPS_DATE_TAGS)
        if value is None:
            return None
        try:
            return format_exif_date(value)
        except ParseFailureError as e:
            logging.warning(f"{e} ({name})")
            return None


def format_exif_datetime(value: str, subsec: Optional[str] = None, name: str = '') -> str:
    """
    Converts an EXIF datetime to RFC-3339 UTC.

    Seconds past 59 carry into the minute. Sub-seconds are read as whole
    milliseconds; out-of-range values are dropped with a warning.
    """
    m = _EXIF_DATETIME_RE.match(value.strip())
    if not m:
        raise ParseFailureError(f"Unrecognised EXIF datetime: {value!r}")

    try:
        dt = datetime(int(m['y']), int(m['mo']), int(m['d']), tzinfo=UTC)
    except ValueError as e:
        raise ParseFailureError(f"Invalid EXIF date {value!r}: {e}") from e

    if m['h'] is not None:
        dt += timedelta(hours=int(m['h']), minutes=int(m['mi']), seconds=int(m['s']))

    ms = None
    if subsec is not None and subsec.strip().isdigit():
        ms = int(subsec.strip())
        if ms >= 1000:
            logging.warning(f"Sub-second value {subsec!r} out of range, ignoring ({name})")
            ms = 0

    if ms is None:
        return dt.strftime('%Y-%m-%dT%H:%M:%SZ')
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{ms:03d}Z"


def format_exif_date(value: str) -> str:
    """EXIF GPS date ('YYYY:MM:DD') to 'YYYY-MM-DD'."""
    m = _EXIF_DATETIME_RE.match(value.strip())
    if not m:
        raise ParseFailureError(f"Unrecognised EXIF date: {value!r}")
    try:
        return datetime(int(m['y']), int(m['mo']), int(m['d'])).strftime('%Y-%m-%d')
    except ValueError as e:
        raise ParseFailureError(f"Invalid EXIF date {value!r}: {e}") from e


def _first_value(tags, candidates: list[str]) -> Optional[str]:
    for key in candidates:
        if key in tags:
            value = str(tags[key]).strip().strip('\x00')
            if value:
                return value
    return None
