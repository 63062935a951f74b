"""
SQLite-backed KeyValue store for the entropy protocol.

Schema is a single table ``kv(key BLOB PRIMARY KEY, value BLOB NOT NULL)``.
The connection runs in autocommit mode; :meth:`SQLiteKeyValue.transaction`
issues ``BEGIN IMMEDIATE`` on the outermost block and ``COMMIT``/``ROLLBACK``
when it exits. Writes outside any transaction commit immediately.

Prefix iteration is a range scan ``key >= p AND key < next_prefix(p)``
relying on lexicographic ordering of BLOBs.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


# --- Helpers -----------------------------------------------------------------

def _ensure_dir(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path))
    if d:
        os.makedirs(d, exist_ok=True)


def _next_prefix(prefix: bytes) -> Optional[bytes]:
    """Smallest byte string greater than every key starting with ``prefix``."""
    b = bytearray(prefix)
    while b:
        if b[-1] != 0xFF:
            b[-1] += 1
            return bytes(b)
        b.pop()
    return None


# --- Implementation -----------------------------------------------------------

class SQLiteKeyValue:
    """
    Persistent KeyValue backend.

    >>> kv = SQLiteKeyValue("/tmp/entropy.db")
    >>> with kv.transaction():
    ...     kv.put(b"k", b"v")
    >>> kv.get(b"k")
    b'v'
    """

    def __init__(self, path: str) -> None:
        self.path = path
        if path != ":memory:":
            _ensure_dir(path)
        # isolation_level=None -> autocommit; transactions are explicit.
        self._conn = sqlite3.connect(
            path, isolation_level=None, timeout=30.0, check_same_thread=False
        )
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL)"
        )
        self._lock = threading.RLock()
        self._depth = 0

    def __enter__(self) -> "SQLiteKeyValue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- KV API --------------------------------------------------------------

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv(key, value) VALUES(?, ?)", (bytes(key), bytes(value))
            )

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return bytes(row[0]) if row else None

    def has(self, key: bytes) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return row is not None

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (bytes(key),))

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        upper = _next_prefix(prefix)
        if upper is not None:
            sql = "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key ASC"
            args: Tuple[bytes, ...] = (prefix, upper)
        else:
            sql = "SELECT key, value FROM kv WHERE key >= ? ORDER BY key ASC"
            args = (prefix,)
        with self._lock:
            rows: List[Tuple[bytes, bytes]] = [
                (bytes(k), bytes(v)) for k, v in self._conn.execute(sql, args)
            ]
        return iter(rows)

    # --- Transactions --------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            # BEGIN IMMEDIATE takes the reserved lock up front.
            self._conn.execute("BEGIN IMMEDIATE;")
            self._depth = 1
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK;")
                logger.debug("sqlite transaction rolled back: %s", self.path)
                raise
            else:
                self._conn.execute("COMMIT;")
            finally:
                self._depth = 0

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        with self._lock:
            name = f"sp_{self._depth}_{id(self):x}"
            self._conn.execute(f"SAVEPOINT {name};")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._conn.execute(f"ROLLBACK TO {name};")
                self._conn.execute(f"RELEASE {name};")
                logger.debug("sqlite savepoint rolled back: %s", self.path)
                raise
            else:
                self._conn.execute(f"RELEASE {name};")
            finally:
                self._depth -= 1

    def close(self) -> None:
        with self._lock:
            self._conn.close()


__all__ = ["SQLiteKeyValue"]
