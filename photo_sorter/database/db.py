"""
SQLite file behind the `db` command.
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..exceptions import WriteFailureError
from .schema import init_schema


class DBManager:
    """
    Owns the one connection to the media index. Inspection runs on worker
    threads, so the connection is shared and every write goes through
    transaction().
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def connect(self) -> sqlite3.Connection:
        if self._conn:
            return self._conn

        logging.info(f"Opening media index: {self.db_path}")
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            init_schema(conn)
        except (OSError, sqlite3.Error) as e:
            raise WriteFailureError(f"Unable to open media index {self.db_path}: {e}") from e

        self._conn = conn
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialized write; commits on success, rolls back on error."""
        conn = self.connect()
        with self._lock:
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
