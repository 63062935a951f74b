"""
entropy.store
=============

Storage abstractions for the entropy protocol.

The core talks to a byte-oriented :class:`KeyValue` backend through
:class:`entropy.store.records.RecordStore`, which adds typed buckets for
providers, requests, config, vault balances and the entropy history.

Every public protocol operation runs inside exactly one
``KeyValue.transaction()``: either all writes land or none do. Transactions
are re-entrant on the same thread; nested blocks join the outer one.

Backends:
  • :class:`entropy.store.memory.MemoryKeyValue`   (tests, single process)
  • :class:`entropy.store.sqlite.SQLiteKeyValue`   (CLI, persistent)
"""

from __future__ import annotations

from typing import ContextManager, Iterable, Optional, Protocol, Tuple


class KeyValue(Protocol):
    """Minimal byte-oriented KV interface with atomic transactions."""

    def get(self, key: bytes) -> Optional[bytes]:
        """Return value for key, or None if missing."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (no-op if absent)."""
        ...

    def has(self, key: bytes) -> bool:
        ...

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose keys start with prefix, ordered by key."""
        ...

    def transaction(self) -> ContextManager[None]:
        """All-or-nothing block; rolls back every write if the body raises."""
        ...

    def savepoint(self) -> ContextManager[None]:
        """Rollback scope inside a transaction; undoes only its own writes."""
        ...

    def close(self) -> None:
        ...


__all__ = ["KeyValue"]
