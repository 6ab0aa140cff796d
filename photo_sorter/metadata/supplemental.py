import json
import logging
from typing import Any, Optional

from ..models import GeoData, SupplementalInfo


class SupplementalLoader:
    """
    Parses the JSON companion Google Takeout writes next to each media
    file. Only geo, people and the two time fields are kept.
    """

    def parse(self, data: bytes, name: str = '') -> Optional[SupplementalInfo]:
        try:
            doc = json.loads(data.decode('utf-8-sig'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logging.warning(f"Invalid supplemental JSON {name}: {e}")
            return None

        if not isinstance(doc, dict):
            logging.warning(f"Supplemental JSON {name} is not an object")
            return None

        return SupplementalInfo(
            geo_data=_geo(doc.get('geoData')),
            geo_data_exif=_geo(doc.get('geoDataExif')),
            people=_people(doc.get('people')),
            photo_taken_time=_timestamp(doc.get('photoTakenTime')),
            creation_time=_timestamp(doc.get('creationTime')),
        )


def timestamp_to_ms(value: Optional[str]) -> Optional[int]:
    """Seconds-since-epoch string to ms; anything non-numeric is absent."""
    if value is None:
        return None
    try:
        return int(str(value).strip()) * 1000
    except ValueError:
        return None


def _geo(value: Any) -> Optional[GeoData]:
    if not isinstance(value, dict):
        return None
    return GeoData(
        latitude=_float(value.get('latitude')),
        longitude=_float(value.get('longitude')),
        altitude=_float(value.get('altitude')),
    )


def _people(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [
        str(person['name'])
        for person in value
        if isinstance(person, dict) and person.get('name')
    ]


def _timestamp(value: Any) -> Optional[str]:
    if not isinstance(value, dict):
        return None
    ts = value.get('timestamp')
    return str(ts) if ts is not None else None


def _float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
