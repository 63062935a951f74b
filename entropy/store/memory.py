"""
In-memory KeyValue backend.

Writes go straight to a dict; a transaction snapshots the dict on entry and
restores it if the block raises. A single re-entrant lock makes the whole
transaction single-writer across threads.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple


class MemoryKeyValue:
    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()
        self._depth = 0

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._data[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(bytes(key), None)

    def has(self, key: bytes) -> bool:
        with self._lock:
            return bytes(key) in self._data

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        with self._lock:
            items: List[Tuple[bytes, bytes]] = sorted(
                (k, v) for k, v in self._data.items() if k.startswith(prefix)
            )
        return iter(items)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                # Nested block: the outermost transaction owns rollback.
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            snapshot = dict(self._data)
            self._depth = 1
            try:
                yield
            except BaseException:
                self._data = snapshot
                raise
            finally:
                self._depth = 0

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        with self._lock:
            snapshot = dict(self._data)
            try:
                yield
            except BaseException:
                self._data = snapshot
                raise

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def close(self) -> None:
        with self._lock:
            self._data.clear()


__all__ = ["MemoryKeyValue"]
