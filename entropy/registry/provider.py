# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
ProviderRegistry — owns provider records.

Registration seeds a chain head. For a chain of length ``L`` anchored at
``s0``:

    original_sequence = current_sequence = s0
    next_sequence     = s0 + 1          (the anchor itself is never requested)
    end_sequence      = s0 + L          (exclusive)

A brand-new provider anchors at the configured sequence base. Re-registering
an existing authority is a *rotation*: the record is overwritten in place,
anchored at the old ``next_sequence`` so sequence numbers are never reused,
while accrued fees and the operator settings (fee manager, max chain
distance, default resource limit) carry over. Requests still pending against
the previous chain can no longer be verified.

All methods mutate the store directly and expect to run inside the caller's
transaction.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import (COMMITMENT_METADATA_LEN, DEFAULT_SEQUENCE_BASE,
                         DIGEST_LEN, RESOURCE_LIMIT_RESOLUTION, URI_LEN)
from ..errors import (InsufficientBalance, InvalidArgument, ProviderNotFound,
                      Unauthorized)
from ..signers import provider_vault
from ..store.records import RecordStore
from ..types.core import Address, BoundedBytes, require_address
from ..types.records import ProviderRecord
from ..utils.bytes import ensure_len
from ..vault import Vault

logger = logging.getLogger(__name__)


def _short(b: bytes) -> str:
    return bytes(b).hex()[:12]


class ProviderRegistry:
    def __init__(
        self,
        records: RecordStore,
        vault: Vault,
        *,
        program_id: bytes,
        sequence_base: int = DEFAULT_SEQUENCE_BASE,
        resource_limit_resolution: int = RESOURCE_LIMIT_RESOLUTION,
    ) -> None:
        if sequence_base < 0:
            raise InvalidArgument("sequence_base must be non-negative")
        if resource_limit_resolution <= 0:
            raise InvalidArgument("resource_limit_resolution must be > 0")
        self._records = records
        self._vault = vault
        self.program_id = require_address("program_id", program_id)
        self.sequence_base = int(sequence_base)
        self.resource_limit_resolution = int(resource_limit_resolution)

    # ------------------------------------------------------------------ reads

    def get(self, authority: bytes) -> Optional[ProviderRecord]:
        return self._records.get_provider(authority)

    def require(self, authority: bytes) -> ProviderRecord:
        rec = self._records.get_provider(authority)
        if rec is None:
            raise ProviderNotFound(bytes(authority))
        return rec

    def vault_of(self, authority: bytes) -> Address:
        return provider_vault(self.program_id, authority)

    def save(self, rec: ProviderRecord) -> None:
        rec.check_invariants()
        self._records.put_provider(rec)

    # ------------------------------------------------------------- register

    def register(
        self,
        authority: bytes,
        *,
        fee: int,
        commitment: bytes,
        chain_length: int,
        commitment_metadata: bytes = b"",
        uri: bytes = b"",
    ) -> ProviderRecord:
        """
        Register ``authority`` (the signer) or rotate its chain.

        Returns the stored record.
        """
        authority = require_address("authority", authority)
        if chain_length <= 0:
            raise InvalidArgument(f"chain_length must be positive, got {chain_length}")
        if fee < 0:
            raise InvalidArgument("fee must be non-negative")
        commitment = ensure_len(commitment, DIGEST_LEN, name="commitment")
        metadata = BoundedBytes(bytes(commitment_metadata), COMMITMENT_METADATA_LEN)
        uri_b = BoundedBytes(bytes(uri), URI_LEN)

        existing = self._records.get_provider(authority)
        if existing is None:
            s0 = self.sequence_base
            rec = ProviderRecord(authority=authority)
            self._vault.open(self.vault_of(authority))
        else:
            s0 = existing.next_sequence
            rec = existing

        rec.fee = int(fee)
        rec.original_commitment = commitment
        rec.current_commitment = commitment
        rec.original_sequence = s0
        rec.current_sequence = s0
        rec.next_sequence = s0 + 1
        rec.end_sequence = s0 + chain_length
        rec.commitment_metadata = metadata
        rec.uri = uri_b
        self.save(rec)

        logger.info(
            "provider %s %s: seq=[%d, %d) fee=%d",
            _short(authority),
            "rotated" if existing is not None else "registered",
            s0,
            rec.end_sequence,
            rec.fee,
        )
        return rec

    # -------------------------------------------------------------- setters

    def _require_authority(self, caller: bytes, rec: ProviderRecord) -> None:
        if bytes(caller) != bytes(rec.authority):
            raise Unauthorized("only the provider authority may do this", provider=rec.authority)

    def set_fee(self, caller: bytes, provider: bytes, fee: int) -> ProviderRecord:
        rec = self.require(provider)
        if bytes(caller) != bytes(rec.authority) and not (
            rec.has_fee_manager and bytes(caller) == bytes(rec.fee_manager)
        ):
            raise Unauthorized("only the provider authority or fee manager may set the fee")
        if fee < 0:
            raise InvalidArgument("fee must be non-negative")
        rec.fee = int(fee)
        self.save(rec)
        logger.info("provider %s fee=%d", _short(provider), fee)
        return rec

    def set_uri(self, caller: bytes, provider: bytes, uri: bytes) -> ProviderRecord:
        rec = self.require(provider)
        self._require_authority(caller, rec)
        rec.uri = BoundedBytes(bytes(uri), URI_LEN)
        self.save(rec)
        return rec

    def set_fee_manager(self, caller: bytes, provider: bytes, manager: bytes) -> ProviderRecord:
        """``manager`` may be the zero address to clear the delegate."""
        rec = self.require(provider)
        self._require_authority(caller, rec)
        rec.fee_manager = require_address("fee_manager", manager, allow_zero=True)
        self.save(rec)
        logger.info("provider %s fee_manager=%s", _short(provider), _short(manager))
        return rec

    def set_max_chain_distance(self, caller: bytes, provider: bytes, distance: int) -> ProviderRecord:
        rec = self.require(provider)
        self._require_authority(caller, rec)
        if distance < 0:
            raise InvalidArgument("max_chain_distance must be non-negative")
        rec.max_chain_distance = int(distance)
        self.save(rec)
        return rec

    def set_default_resource_limit(self, caller: bytes, provider: bytes, limit: int) -> ProviderRecord:
        rec = self.require(provider)
        self._require_authority(caller, rec)
        if limit < 0:
            raise InvalidArgument("default_resource_limit must be non-negative")
        if limit % self.resource_limit_resolution:
            raise InvalidArgument(
                f"default_resource_limit must be a multiple of {self.resource_limit_resolution}"
            )
        rec.default_resource_limit = int(limit)
        self.save(rec)
        return rec

    # ---------------------------------------------------------------- fees

    def accrue(self, provider: bytes, amount: int) -> ProviderRecord:
        """Credit a fee share to the provider's vault and accrued counter."""
        rec = self.require(provider)
        self._vault.credit(self.vault_of(rec.authority), amount)
        rec.accrued_fees += int(amount)
        self.save(rec)
        return rec

    def withdraw(self, caller: bytes, provider: bytes, amount: int, recipient: bytes) -> ProviderRecord:
        rec = self.require(provider)
        if bytes(caller) != bytes(rec.authority) and not (
            rec.has_fee_manager and bytes(caller) == bytes(rec.fee_manager)
        ):
            raise Unauthorized("only the provider authority or fee manager may withdraw")
        recipient = require_address("recipient", recipient)
        if amount <= 0:
            raise InvalidArgument("withdraw amount must be positive")
        if amount > rec.accrued_fees:
            raise InsufficientBalance(bytes(rec.authority), rec.accrued_fees, amount)
        self._vault.transfer(self.vault_of(rec.authority), recipient, amount)
        rec.accrued_fees -= int(amount)
        self.save(rec)
        logger.info("provider %s withdrew %d to %s", _short(provider), amount, _short(recipient))
        return rec


__all__ = ["ProviderRegistry"]
