"""
Protocol governance: the singleton :class:`~entropy.types.records.ConfigRecord`.

Operations
----------
- initialize               once per store; seeds the PRNG and opens the
                           platform fee vault
- propose_admin/accept_admin  two-step admin hand-over
- set_platform_fee, set_default_provider
- withdraw_platform_fees   admin moves accrued platform fees out of the vault
- next_user_random         user contribution for convenience requests

Like the other components, every method writes straight to the record store
and relies on the caller's transaction for atomicity.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from .constants import DIGEST_LEN
from .errors import (AlreadyInitialized, ConfigNotInitialized,
                     InsufficientBalance, InvalidArgument, Unauthorized)
from .signers import platform_vault
from .store.records import RecordStore
from .types.core import Address, is_zero, require_address
from .types.records import ConfigRecord
from .utils.bytes import ensure_len, u64_le
from .utils.hash import HashFn, hashv, sha256
from .vault import Vault

logger = logging.getLogger(__name__)


class Governance:
    def __init__(
        self,
        records: RecordStore,
        vault: Vault,
        *,
        program_id: bytes,
        hash_fn: HashFn = sha256,
    ) -> None:
        self._records = records
        self._vault = vault
        self.program_id = require_address("program_id", program_id)
        self.hash_fn = hash_fn

    @property
    def vault_address(self) -> Address:
        return platform_vault(self.program_id)

    # ------------------------------------------------------------------ reads

    def get(self) -> Optional[ConfigRecord]:
        return self._records.get_config()

    def require(self) -> ConfigRecord:
        cfg = self._records.get_config()
        if cfg is None:
            raise ConfigNotInitialized("protocol config has not been initialized")
        return cfg

    # ------------------------------------------------------------- initialize

    def initialize(
        self,
        payer: bytes,
        *,
        admin: bytes,
        platform_fee: int,
        default_provider: bytes,
        seed: Optional[bytes] = None,
    ) -> ConfigRecord:
        require_address("payer", payer)
        admin = require_address("admin", admin)
        default_provider = require_address("default_provider", default_provider)
        if platform_fee < 0:
            raise InvalidArgument("platform_fee must be non-negative")
        if self._records.get_config() is not None:
            raise AlreadyInitialized("protocol config already exists")
        seed = secrets.token_bytes(DIGEST_LEN) if seed is None else ensure_len(seed, DIGEST_LEN, name="seed")

        cfg = ConfigRecord(
            admin=admin,
            default_provider=default_provider,
            platform_fee=int(platform_fee),
            seed=seed,
        )
        self._records.put_config(cfg)
        self._vault.open(self.vault_address)
        logger.info(
            "entropy initialized admin=%s platform_fee=%d default_provider=%s",
            admin.hex()[:12],
            platform_fee,
            default_provider.hex()[:12],
        )
        return cfg

    # ------------------------------------------------------------------ admin

    def _require_admin(self, caller: bytes) -> ConfigRecord:
        cfg = self.require()
        if bytes(caller) != bytes(cfg.admin):
            raise Unauthorized("only the admin may do this")
        return cfg

    def propose_admin(self, caller: bytes, new_admin: bytes) -> ConfigRecord:
        cfg = self._require_admin(caller)
        cfg.proposed_admin = require_address("new_admin", new_admin)
        self._records.put_config(cfg)
        logger.info("admin hand-over proposed to %s", cfg.proposed_admin.hex()[:12])
        return cfg

    def accept_admin(self, caller: bytes) -> ConfigRecord:
        cfg = self.require()
        if is_zero(cfg.proposed_admin) or bytes(caller) != bytes(cfg.proposed_admin):
            raise Unauthorized("only the proposed admin may accept")
        cfg.admin = cfg.proposed_admin
        cfg.proposed_admin = Address(b"\x00" * len(cfg.admin))
        self._records.put_config(cfg)
        logger.info("admin is now %s", cfg.admin.hex()[:12])
        return cfg

    def set_platform_fee(self, caller: bytes, fee: int) -> ConfigRecord:
        cfg = self._require_admin(caller)
        if fee < 0:
            raise InvalidArgument("platform_fee must be non-negative")
        cfg.platform_fee = int(fee)
        self._records.put_config(cfg)
        logger.info("platform_fee=%d", fee)
        return cfg

    def set_default_provider(self, caller: bytes, provider: bytes) -> ConfigRecord:
        cfg = self._require_admin(caller)
        cfg.default_provider = require_address("default_provider", provider)
        self._records.put_config(cfg)
        return cfg

    # ------------------------------------------------------------------- fees

    def accrue(self, amount: int) -> ConfigRecord:
        cfg = self.require()
        if amount:
            self._vault.credit(self.vault_address, amount)
            cfg.accrued_platform_fees += int(amount)
            self._records.put_config(cfg)
        return cfg

    def withdraw_platform_fees(self, caller: bytes, amount: int, recipient: bytes) -> ConfigRecord:
        cfg = self._require_admin(caller)
        recipient = require_address("recipient", recipient)
        if amount <= 0:
            raise InvalidArgument("withdraw amount must be positive")
        if amount > cfg.accrued_platform_fees:
            raise InsufficientBalance(bytes(self.vault_address), cfg.accrued_platform_fees, amount)
        self._vault.transfer(self.vault_address, recipient, amount)
        cfg.accrued_platform_fees -= int(amount)
        self._records.put_config(cfg)
        logger.info("platform fees withdrawn: %d to %s", amount, recipient.hex()[:12])
        return cfg

    # ------------------------------------------------------------------- prng

    def next_user_random(self, sequence: int, marker: int) -> bytes:
        """
        Advance the config seed and return it as a user contribution.

        ``seed' = H(seed || u64_le(sequence) || u64_le(marker))``. The value is
        only as private as the store, so it is meant for callback requests
        whose user random is published anyway.
        """
        cfg = self.require()
        cfg.seed = hashv(self.hash_fn, cfg.seed, u64_le(sequence), u64_le(marker))
        self._records.put_config(cfg)
        return cfg.seed


__all__ = ["Governance"]
