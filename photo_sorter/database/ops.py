import json
import sqlite3
from dataclasses import asdict
from typing import Optional

from ..models import ExifTag, MediaFileInfo


class DBOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def clear_media_items(self) -> int:
        cur = self.conn.execute("DELETE FROM media_item")
        return cur.rowcount

    def insert_media_item(self,
                          info: MediaFileInfo,
                          exif_tags: Optional[list[ExifTag]] = None,
                          guessed_datetime: Optional[int] = None) -> int:
        exif_json = json.dumps([asdict(t) for t in exif_tags]) if exif_tags else None
        supp_json = json.dumps(asdict(info.supp_info)) if info.supp_info else None

        cur = self.conn.execute("""
            INSERT INTO media_item (
                media_path, long_hash, short_hash, quick_file_type, accurate_file_type,
                exif_json, supp_info_json, guessed_datetime, modified_at, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            info.original_path,
            info.hash_info.long_checksum,
            info.hash_info.short_checksum,
            info.quick_type.value,
            info.accurate_type.value,
            exif_json,
            supp_json,
            guessed_datetime,
            info.modified_ms,
            info.created_ms,
        ))

        if cur.lastrowid is None:
            raise RuntimeError("Database INSERT failed to return a row ID.")
        return cur.lastrowid

    def count_by_accurate_type(self) -> dict[str, int]:
        cur = self.conn.execute("""
            SELECT accurate_file_type, COUNT(*)
            FROM media_item
            GROUP BY accurate_file_type
            ORDER BY accurate_file_type
        """)
        return {ftype: count for ftype, count in cur.fetchall()}

    def duplicate_long_hashes(self) -> dict[str, list[str]]:
        """long hash -> every media path sharing it, for hashes seen more than once."""
        cur = self.conn.execute("""
            SELECT long_hash, media_path
            FROM media_item
            WHERE long_hash IN (
                SELECT long_hash FROM media_item GROUP BY long_hash HAVING COUNT(*) > 1
            )
            ORDER BY long_hash, media_path
        """)
        dupes: dict[str, list[str]] = {}
        for long_hash, path in cur.fetchall():
            dupes.setdefault(long_hash, []).append(path)
        return dupes
