import base64
import hashlib
from typing import BinaryIO

from .. import config
from ..models import HashInfo


class FileHasher:
    """
    SHA-256 content checksums, base64-url encoded.

    The long checksum is the identity key used for deduplication; the
    short one is its 7 character prefix, used in paths and for display.
    """

    def compute(self, stream: BinaryIO) -> HashInfo:
        """Streams from the current position to EOF."""
        h = hashlib.sha256()
        while chunk := stream.read(config.HASH_CHUNK_SIZE):
            h.update(chunk)
        return self._to_hash_info(h.digest())

    def compute_bytes(self, data: bytes) -> HashInfo:
        return self._to_hash_info(hashlib.sha256(data).digest())

    def _to_hash_info(self, digest: bytes) -> HashInfo:
        long_checksum = base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')
        return HashInfo(
            short_checksum=long_checksum[:config.SHORT_CHECKSUM_LEN],
            long_checksum=long_checksum,
        )
