"""SQLite-backed content-hash cache for smart scans."""

import hashlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def content_hash(text: str) -> str:
    """SHA256 of a document's text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass
class SQLiteHashIndex:
    """
    Remembers the hash of every document as last synced.

    The DB is a cache that can be rebuilt; flat files remain source of truth.
    A change of settings fingerprint invalidates every entry.
    """

    db_path: Path

    def _conn(self) -> sqlite3.Connection:
        """Get a connection to the SQLite database."""
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        conn = self._conn()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS files (
                    path TEXT PRIMARY KEY,
                    hash TEXT NOT NULL,
                    synced_at REAL NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        """Ensure DB exists and schema is initialized."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if self.db_path.exists():
            try:
                conn = self._conn()
                conn.execute("SELECT 1").fetchone()
                conn.close()
            except sqlite3.DatabaseError:
                # Corrupt cache: back it up and start over
                timestamp = int(time.time())
                backup_path = self.db_path.with_suffix(f".bad-{timestamp}.sqlite")
                self.db_path.rename(backup_path)
                logger.warning("Corrupt hash cache backed up to %s", backup_path)

        self._init_schema()

    def check_fingerprint(self, fingerprint: str) -> bool:
        """
        Store the settings fingerprint. Returns False (and forgets every hash)
        if it differs from the stored one.
        """
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT value FROM meta WHERE key = 'fingerprint'"
            ).fetchone()
            if row is not None and row[0] == fingerprint:
                return True
            conn.execute("DELETE FROM files")
            conn.execute(
                "INSERT INTO meta (key, value) VALUES ('fingerprint', ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (fingerprint,),
            )
            conn.commit()
            return row is None
        finally:
            conn.close()

    def is_dirty(self, path: str, text: str) -> bool:
        """True if text differs from what was last synced for path."""
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT hash FROM files WHERE path = ?", (path,)
            ).fetchone()
        finally:
            conn.close()
        return row is None or row[0] != content_hash(text)

    def record(self, path: str, text: str) -> None:
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO files (path, hash, synced_at) VALUES (?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    hash = excluded.hash,
                    synced_at = excluded.synced_at
                """,
                (path, content_hash(text), time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def forget(self, paths: set[str]) -> int:
        """Drop entries for paths; returns how many were removed."""
        if not paths:
            return 0
        conn = self._conn()
        try:
            cur = conn.executemany(
                "DELETE FROM files WHERE path = ?", [(p,) for p in sorted(paths)]
            )
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()
