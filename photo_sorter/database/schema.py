import logging
import sqlite3

CURRENT_SCHEMA_VERSION = 1

# One row per media entry of the scanned export. Times are epoch ms.
MEDIA_ITEM_DDL = """
CREATE TABLE IF NOT EXISTS media_item (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    media_path          TEXT NOT NULL,
    long_hash           TEXT NOT NULL,
    short_hash          TEXT NOT NULL,
    quick_file_type     TEXT NOT NULL,
    accurate_file_type  TEXT NOT NULL,
    exif_json           TEXT,
    supp_info_json      TEXT,
    guessed_datetime    INTEGER,
    modified_at         INTEGER,
    created_at          INTEGER
);
CREATE INDEX IF NOT EXISTS idx_media_item_long_hash ON media_item(long_hash);
CREATE INDEX IF NOT EXISTS idx_media_item_short_hash ON media_item(short_hash);
"""


def init_schema(conn: sqlite3.Connection):
    """Creates the media index tables. Safe to run on every open."""
    with conn:
        conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        if row[0] is None:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))
        elif row[0] > CURRENT_SCHEMA_VERSION:
            logging.warning(f"Media index has schema version {row[0]}, newer than {CURRENT_SCHEMA_VERSION}")

    conn.executescript(MEDIA_ITEM_DDL)
    logging.debug("Media index schema ready")
