"""
SQLite-backed KeyValue store for the VRF state.

Features
--------
- Simple byte-oriented KV: (key BLOB PRIMARY KEY, value BLOB NOT NULL)
- Nestable transactions: the outermost `with kv.transaction():` issues
  BEGIN IMMEDIATE/COMMIT, inner blocks use SAVEPOINTs so a failing inner
  block rolls back only its own writes.
- Efficient prefix iteration using range scans (lower/upper bound).
- Pragmas tuned for node workloads (WAL, synchronous=NORMAL).

Notes
-----
The connection is shared between the worker thread and the RPC threadpool,
so it is opened with `check_same_thread=False` and guarded by an RLock.
Prefix iteration relies on lexicographic byte ordering of BLOBs.
"""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import RLock
from typing import Generator, Iterable, Optional, Tuple


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path))
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    # WAL enables concurrent readers; NORMAL keeps fsync reasonable.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key   BLOB PRIMARY KEY,
            value BLOB NOT NULL
        );
        """
    )


def _next_prefix(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte-string strictly greater than every key starting with
    `prefix`, or None when no such bound exists (empty or all-0xFF prefix).
    """
    if not prefix:
        return None
    b = bytearray(prefix)
    for i in range(len(b) - 1, -1, -1):
        if b[i] != 0xFF:
            b[i] += 1
            return bytes(b[: i + 1])
    return None


@dataclass
class SQLiteKeyValue:
    """
    SQLite implementation of the KeyValue protocol.

    >>> kv = SQLiteKeyValue("/tmp/native_vrf.db")
    >>> with kv.transaction():
    ...     kv.put(b"hello", b"world")
    >>> kv.get(b"hello")
    b'world'
    >>> kv.close()
    """

    path: str
    _depth: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        _ensure_dir(self.path)
        # isolation_level=None -> autocommit mode; we manage BEGIN/COMMIT explicitly
        self._conn = sqlite3.connect(
            self.path, detect_types=0, isolation_level=None, timeout=30.0, check_same_thread=False
        )
        self._lock = RLock()
        _apply_pragmas(self._conn)
        _init_schema(self._conn)

    def __enter__(self) -> "SQLiteKeyValue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- KV API --------------------------------------------------------------

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._conn.execute("INSERT OR REPLACE INTO kv(key, value) VALUES(?, ?)", (bytes(key), bytes(value)))

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return bytes(row[0]) if row else None

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (bytes(key),))

    def has(self, key: bytes) -> bool:
        return self.get(key) is not None

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        upper = _next_prefix(prefix)
        if upper is not None:
            sql = "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key ASC"
            args: tuple = (prefix, upper)
        else:
            sql = "SELECT key, value FROM kv WHERE key >= ? ORDER BY key ASC"
            args = (prefix,)
        with self._lock:
            rows = self._conn.execute(sql, args).fetchall()
        for row in rows:
            k = bytes(row[0])
            if not k.startswith(prefix):
                break
            yield (k, bytes(row[1]))

    # --- Transactions --------------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self._lock:
            depth = self._depth
            if depth == 0:
                # Reserve the write lock early to reduce writer contention.
                self._conn.execute("BEGIN IMMEDIATE;")
            else:
                self._conn.execute(f"SAVEPOINT sp_{depth};")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if depth == 0:
                    self._conn.execute("ROLLBACK;")
                else:
                    self._conn.execute(f"ROLLBACK TO sp_{depth};")
                    self._conn.execute(f"RELEASE sp_{depth};")
                raise
            else:
                self._depth -= 1
                if depth == 0:
                    self._conn.execute("COMMIT;")
                else:
                    self._conn.execute(f"RELEASE sp_{depth};")

    # --- Maintenance ---------------------------------------------------------

    def vacuum(self) -> None:
        """Run VACUUM to compact the database (offline)."""
        with self._lock:
            self._conn.execute("VACUUM;")

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error:
            pass


__all__ = ["SQLiteKeyValue"]
