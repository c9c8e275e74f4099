"""
cache/store.py -- SQLite-backed key-value cache for component reads.

Component services park the JSON form of read_all() results here under a
named bucket (one bucket per service, e.g. "taskstatus") so repeated list
requests skip the database. Entries expire after a configurable TTL; writes
through a service drop that service's whole bucket.

Eviction is entirely this module's concern -- services only get/set/drop.

Usage:
    cache = CacheStore()                          # in-memory, 10 minute TTL
    cache.set("taskstatus", "all", [{"id": 1}])
    cache.get("taskstatus", "all")                # returns the value or None
    cache.delete_bucket("taskstatus")
    cache.purge_expired()                         # call periodically
"""

import json
import sqlite3
import time
from typing import Any, Optional

_DEFAULT_TTL = 60 * 10  # 10 minutes in seconds

_DDL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    bucket      TEXT NOT NULL,
    key         TEXT NOT NULL,
    data        TEXT NOT NULL,
    cached_at   REAL NOT NULL,
    PRIMARY KEY (bucket, key)
);
"""


class CacheStore:
    def __init__(self, db_path: str = ":memory:", ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, bucket: str, key: str) -> Optional[Any]:
        """Return the cached value if it exists and hasn't expired."""
        row = self._conn.execute(
            "SELECT data, cached_at FROM cache_entries WHERE bucket = ? AND key = ?",
            (bucket, key),
        ).fetchone()
        if row is None:
            return None
        data, cached_at = row
        if time.time() - cached_at > self.ttl:
            self._delete(bucket, key)
            return None
        return json.loads(data)

    def set(self, bucket: str, key: str, data: Any) -> None:
        """Store a JSON-serializable value, replacing any existing entry."""
        self._conn.execute(
            "INSERT OR REPLACE INTO cache_entries (bucket, key, data, cached_at) VALUES (?, ?, ?, ?)",
            (bucket, key, json.dumps(data), time.time()),
        )
        self._conn.commit()

    def delete_bucket(self, bucket: str) -> int:
        """Drop every entry in a bucket. Returns number of rows removed."""
        cursor = self._conn.execute("DELETE FROM cache_entries WHERE bucket = ?", (bucket,))
        self._conn.commit()
        return cursor.rowcount

    def purge_expired(self) -> int:
        """Delete all entries older than TTL. Returns number of rows removed."""
        cutoff = time.time() - self.ttl
        cursor = self._conn.execute("DELETE FROM cache_entries WHERE cached_at < ?", (cutoff,))
        self._conn.commit()
        return cursor.rowcount

    def _delete(self, bucket: str, key: str) -> None:
        self._conn.execute("DELETE FROM cache_entries WHERE bucket = ? AND key = ?", (bucket, key))
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
