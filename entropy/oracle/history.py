"""
entropy.oracle.history
======================

A retention-bounded history of unpredictable values keyed by a monotonically
increasing *marker*, persisted in the record store so separate processes
(CLI invocations, keepers) observe the same window.

Requests that opt into external entropy record ``current_marker()`` at
creation; the reveal looks the value up again. Once a marker falls out of the
retention window it is gone for good and the lookup returns ``None``, which
the reveal engine turns into a permanent availability error.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from ..constants import DEFAULT_HISTORY_RETENTION, DIGEST_LEN
from ..errors import InvalidArgument
from ..store.records import RecordStore
from ..utils.bytes import ensure_len

logger = logging.getLogger(__name__)

_HEAD_KEY = "history.head"


class EntropyHistory:
    """Marker -> 32-byte value window over a :class:`RecordStore`."""

    def __init__(self, records: RecordStore, retention: int = DEFAULT_HISTORY_RETENTION) -> None:
        if retention <= 0:
            raise InvalidArgument("history retention must be > 0")
        self._records = records
        self.retention = int(retention)

    def current_marker(self) -> int:
        raw = self._records.get_meta(_HEAD_KEY)
        return 0 if raw is None else int.from_bytes(raw, "big")

    def advance(self, value: Optional[bytes] = None) -> int:
        """
        Record a new marker and return it.

        ``value`` defaults to fresh OS randomness. Markers older than the
        retention window are evicted.
        """
        data = secrets.token_bytes(DIGEST_LEN) if value is None else ensure_len(value, DIGEST_LEN, name="entropy value")
        marker = self.current_marker() + 1
        self._records.put_history(marker, data)
        self._records.put_meta(_HEAD_KEY, marker.to_bytes(8, "big"))

        horizon = marker - self.retention
        evicted = 0
        for old, _ in list(self._records.iter_history()):
            if old > horizon:
                break
            self._records.del_history(old)
            evicted += 1
        if evicted:
            logger.debug("history evicted %d markers (horizon=%d)", evicted, horizon)
        return marker

    def lookup(self, marker: int) -> Optional[bytes]:
        if marker <= self.current_marker() - self.retention:
            return None
        return self._records.get_history(marker)

    def __contains__(self, marker: int) -> bool:
        return self.lookup(marker) is not None


__all__ = ["EntropyHistory"]
