"""
Picks one "taken" time per media file out of several noisy sources.

Priority, first defined wins:
  1. supplemental photoTakenTime
  2. EXIF DateTimeOriginal
  3. EXIF DateTime
  4. EXIF GPS date (midnight UTC)
  5. supplemental creationTime
  6. file modified time
  7. file created time

File times are a last resort; copies and syncs rarely preserve them and
zip entries have no creation time at all.
"""
import logging
from datetime import UTC, datetime, timedelta
from typing import Optional

from ..models import ParsedExif, SupplementalInfo
from .supplemental import timestamp_to_ms

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def reconcile(exif: Optional[ParsedExif],
              supp: Optional[SupplementalInfo],
              modified_ms: Optional[int] = None,
              created_ms: Optional[int] = None) -> Optional[int]:
    """Returns the best epoch-ms guess, or None if nothing is known."""
    candidates = [
        lambda: timestamp_to_ms(supp.photo_taken_time) if supp else None,
        lambda: rfc3339_to_ms(exif.datetime_original) if exif else None,
        lambda: rfc3339_to_ms(exif.datetime) if exif else None,
        lambda: rfc3339_to_ms(exif.gps_date) if exif else None,
        lambda: timestamp_to_ms(supp.creation_time) if supp else None,
        lambda: modified_ms,
        lambda: created_ms,
    ]
    for candidate in candidates:
        if (value := candidate()) is not None:
            return value
    return None


def rfc3339_to_ms(value: Optional[str]) -> Optional[int]:
    """RFC-3339 datetime or bare 'YYYY-MM-DD' (taken as UTC) to epoch ms."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        logging.debug(f"Unrecognised datetime: {value!r}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return (dt - UNIX_EPOCH) // timedelta(milliseconds=1)


def ms_to_datetime(epoch_ms: int) -> datetime:
    return UNIX_EPOCH + timedelta(milliseconds=epoch_ms)


def ms_to_rfc3339(epoch_ms: Optional[int]) -> Optional[str]:
    if epoch_ms is None:
        return None
    dt = ms_to_datetime(epoch_ms)
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{dt.microsecond // 1000:03d}Z"
