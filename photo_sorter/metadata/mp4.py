import io
import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from pymediainfo import MediaInfo

from .. import config
from ..models import ParsedMp4
from .timestamps import UNIX_EPOCH


class Mp4Decoder:
    """
    Reads the movie header of MP4 files through 'pymediainfo'.

    MediaInfo exposes the mvhd creation time as the General track's
    'encoded_date' and the modification time as 'tagged_date'. Durations
    come back already scaled to milliseconds.
    """

    def parse(self, data: bytes, name: str) -> Optional[ParsedMp4]:
        try:
            mi = MediaInfo.parse(io.BytesIO(data))
        except Exception as e:
            logging.warning(f"MediaInfo failed for {name}: {e}")
            return None

        general = None
        video = None
        for track in mi.tracks:
            if track.track_type == "General" and general is None:
                general = track
            elif track.track_type == "Video" and video is None:
                video = track

        if general is None:
            logging.warning(f"No movie header found in {name}")
            return None

        width = _as_int(getattr(video, "width", None)) if video is not None else 0
        height = _as_int(getattr(video, "height", None)) if video is not None else 0

        return ParsedMp4(
            width=width,
            height=height,
            duration_ticks=_as_int(getattr(general, "duration", None)),
            timescale=config.MP4_TIMESCALE,
            creation_time_ms=parse_mediainfo_date(getattr(general, "encoded_date", None)),
            modification_time_ms=parse_mediainfo_date(getattr(general, "tagged_date", None)),
        )


def parse_mediainfo_date(value: Any) -> Optional[int]:
    """
    'UTC 2024-04-18 11:24:26', '2024-04-18 11:24:26 UTC' or ISO-8601 to
    epoch ms. A zero mvhd time (the 1904 epoch) counts as absent.
    """
    if not value:
        return None

    clean = str(value).replace("UTC", "").strip()
    try:
        dt = datetime.fromisoformat(clean)
    except ValueError:
        logging.debug(f"Unrecognised MediaInfo date: {value!r}")
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    ms = (dt - UNIX_EPOCH) // timedelta(milliseconds=1)
    if ms <= config.MP4_EPOCH_MS:
        return None
    return ms


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0
