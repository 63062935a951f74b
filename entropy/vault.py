"""
Value transfer primitive.

Balances live in the record store's BALANCES bucket and are only moved inside
the caller's transaction, so a fee payment and the state change it pays for
commit or roll back together.
"""

from __future__ import annotations

import logging

from .errors import InsufficientBalance, InvalidArgument
from .store.records import RecordStore

logger = logging.getLogger(__name__)


class Vault:
    def __init__(self, records: RecordStore) -> None:
        self._records = records

    def balance(self, account: bytes) -> int:
        return self._records.get_balance(account) or 0

    def exists(self, account: bytes) -> bool:
        return self._records.get_balance(account) is not None

    def open(self, account: bytes) -> None:
        """Create a zero-balance account if absent."""
        if not self.exists(account):
            self._records.put_balance(account, 0)

    def credit(self, account: bytes, amount: int) -> int:
        if amount < 0:
            raise InvalidArgument("amount must be non-negative")
        new = self.balance(account) + amount
        self._records.put_balance(account, new)
        return new

    def debit(self, account: bytes, amount: int) -> int:
        if amount < 0:
            raise InvalidArgument("amount must be non-negative")
        bal = self.balance(account)
        if bal < amount:
            raise InsufficientBalance(bytes(account), bal, amount)
        self._records.put_balance(account, bal - amount)
        return bal - amount

    def transfer(self, src: bytes, dst: bytes, amount: int) -> None:
        if amount == 0:
            return
        self.debit(src, amount)
        self.credit(dst, amount)
        logger.debug("transfer %d %s -> %s", amount, bytes(src).hex()[:12], bytes(dst).hex()[:12])


__all__ = ["Vault"]
