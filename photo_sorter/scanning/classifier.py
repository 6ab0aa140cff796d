import logging
from pathlib import PurePosixPath
from typing import Optional, TYPE_CHECKING

from .. import config
from ..models import AccurateFileType, QuickFileType

if TYPE_CHECKING:
    from .containers import Container

# ISO-BMFF brands (ftyp box) that decide between HEIC and MP4
HEIC_BRANDS = {b'heic', b'heix', b'heim', b'heis', b'hevc', b'hevx', b'hevm', b'hevs'}
HEIF_CONTAINER_BRANDS = {b'mif1', b'msf1'}
MP4_BRANDS = {
    b'isom', b'iso2', b'iso3', b'iso4', b'iso5', b'iso6',
    b'mp41', b'mp42', b'mp71', b'avc1', b'dash', b'mmp4', b'msnv', b'ndas',
}

# Leading signatures -> type. ftyp and text need a closer look.
MAGIC_SIGNATURES = [
    (b'\xff\xd8\xff', AccurateFileType.JPG),
    (b'\x89PNG\r\n\x1a\n', AccurateFileType.PNG),
    (b'GIF87a', AccurateFileType.GIF),
    (b'GIF89a', AccurateFileType.GIF),
]


def quick_type(path: str) -> QuickFileType:
    """
    Classifies by name only. Case-insensitive; 'metadata.json' is an album.
    """
    name = PurePosixPath(path.replace('\\', '/')).name.lower()
    if name == config.ALBUM_JSON_NAME:
        return QuickFileType.ALBUM_JSON
    ext = PurePosixPath(name).suffix
    if ext in config.ALBUM_CSV_EXTS:
        return QuickFileType.ALBUM_CSV
    if ext in config.MEDIA_EXTS:
        return QuickFileType.MEDIA
    return QuickFileType.UNKNOWN


def accurate_type(data: bytes, name: str) -> AccurateFileType:
    """
    Classifies by content. JSON names are taken at face value.
    """
    if name.lower().endswith('.json'):
        return AccurateFileType.JSON
    if not data:
        logging.warning(f"File is empty: {name}")
        return AccurateFileType.UNSUPPORTED

    head = data[:config.SNIFF_WINDOW]
    for signature, ftype in MAGIC_SIGNATURES:
        if head.startswith(signature):
            return ftype

    if head[4:8] == b'ftyp':
        ftype = _classify_ftyp(head)
    elif _looks_like_csv(head):
        ftype = AccurateFileType.CSV
    else:
        ftype = AccurateFileType.UNSUPPORTED

    if ftype == AccurateFileType.UNSUPPORTED:
        logging.debug(f"Can not guess media type: {name}")
    return ftype


def is_album_media_name(name: str) -> bool:
    """True if an album listing entry names a photo we know how to match."""
    return PurePosixPath(name.strip().lower()).suffix in config.ALBUM_MEDIA_EXTS


def detect_supplemental(path: str, container: 'Container') -> Optional[str]:
    """
    Returns the path of the export's JSON companion for a media path, if any.
    """
    for suffix in config.SUPPLEMENTAL_SUFFIXES:
        candidate = f"{path}{suffix}"
        if container.exists(candidate):
            return candidate
    return None


def _classify_ftyp(head: bytes) -> AccurateFileType:
    box_size = int.from_bytes(head[0:4], 'big')
    major = head[8:12]
    # compatible brands run from offset 16 to the end of the ftyp box
    end = min(box_size, len(head)) if box_size >= 16 else len(head)
    compatible = {head[i:i + 4] for i in range(16, end - 3, 4)}

    if major in HEIC_BRANDS:
        return AccurateFileType.HEIC
    if major in HEIF_CONTAINER_BRANDS:
        if compatible & HEIC_BRANDS:
            return AccurateFileType.HEIC
        return AccurateFileType.UNSUPPORTED
    if major in MP4_BRANDS:
        return AccurateFileType.MP4
    return AccurateFileType.UNSUPPORTED


def _looks_like_csv(head: bytes) -> bool:
    if b'\x00' in head:
        return False
    try:
        text = head.decode('utf-8-sig')
    except UnicodeDecodeError:
        # window may have cut a multi-byte character in half
        try:
            text = head[:-3].decode('utf-8-sig')
        except UnicodeDecodeError:
            return False
    first_line = text.splitlines()[0] if text else ''
    if ',' not in first_line:
        return False
    return all(c.isprintable() or c in '\r\n\t' for c in text)
