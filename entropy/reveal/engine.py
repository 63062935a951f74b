# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
RevealEngine — turns a pair of secrets into a random value.

Reveal steps, in order (any raise aborts the whole operation):

  1. look up the request                           (not found)
  2. check the callback state / requester binding  (authorization)
  3. H(H(user_random) || H^d(provider_random)) == request.commitment,
     d = request.chain_distance                    (integrity)
  4. provider_random links to the provider's live tip
                                                   (integrity)
  5. fetch history entropy if the request opted in (availability)
  6. random = H(user_random || provider_random || entropy or 32 zero bytes)
  7. advance the provider head if this sequence is newer
  8. retire, or hand off to the callback dispatcher

Step 7 only ever moves the head forward, so reveals of different sequences
commute regardless of arrival order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..callback.dispatch import CallbackDispatcher
from ..chain.hashchain import commit, verify, verify_linkage
from ..constants import DIGEST_LEN, ZERO_DIGEST
from ..errors import (ChainLinkageMismatch, EntropyUnavailable,
                      IncorrectRevelation, OutOfRandomness,
                      SequencingError, Unauthorized)
from ..ledger.requests import RequestLedger, request_commitment
from ..oracle.history import EntropyHistory
from ..registry.provider import ProviderRegistry
from ..types.core import CallbackStatus, CapabilityMeta
from ..types.records import ProviderRecord, RequestRecord
from ..utils.bytes import consteq, ensure_len
from ..utils.hash import HashFn, hashv, sha256

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevealOutcome:
    """
    Result of a committed reveal.

    ``callback_status`` is ``FAILED`` when delivery raised (the request stays
    outstanding) and ``NOT_NECESSARY`` once nothing is left to deliver.
    """

    random: bytes
    provider: bytes
    sequence: int
    chain_distance: int
    retired: bool
    callback_status: CallbackStatus
    callback_error: Optional[str] = None


class RevealEngine:
    def __init__(
        self,
        registry: ProviderRegistry,
        ledger: RequestLedger,
        history: EntropyHistory,
        dispatcher: CallbackDispatcher,
        *,
        hash_fn: HashFn = sha256,
    ) -> None:
        self._registry = registry
        self._ledger = ledger
        self._history = history
        self._dispatcher = dispatcher
        self.hash_fn = hash_fn

    # ----------------------------------------------------------------- reveal

    def reveal(
        self,
        provider: bytes,
        sequence: int,
        user_random: bytes,
        provider_random: bytes,
        *,
        caller: bytes,
        with_callback: bool = False,
        capabilities: Sequence[CapabilityMeta] = (),
    ) -> RevealOutcome:
        user_random = ensure_len(user_random, DIGEST_LEN, name="user_random")
        provider_random = ensure_len(provider_random, DIGEST_LEN, name="provider_random")

        rec = self._ledger.require(provider, sequence)
        self._ledger.check_revealable(rec, with_callback)
        if not with_callback and bytes(caller) != bytes(rec.requester_signer):
            raise Unauthorized("only the requester signer may reveal this request", sequence=sequence)

        prov = self._registry.require(provider)
        self._check_commitment(rec, user_random, provider_random)
        if not verify_linkage(
            provider_random, sequence, prov.current_commitment, prov.current_sequence, self.hash_fn
        ):
            raise ChainLinkageMismatch(
                f"provider value for sequence {sequence} does not link to the live tip "
                f"at {prov.current_sequence}",
                sequence=sequence,
                tip_sequence=prov.current_sequence,
            )

        entropy = self._external_entropy(rec)
        random = hashv(self.hash_fn, user_random, provider_random, entropy)
        self._advance_head(prov, sequence, provider_random)

        if not with_callback:
            self._ledger.retire(rec)
            status = CallbackStatus.NOT_NECESSARY
            return RevealOutcome(random, bytes(provider), sequence, rec.chain_distance, True, status)

        result = self._dispatcher.dispatch(rec, random, capabilities)
        if result.ok:
            return RevealOutcome(
                random, bytes(provider), sequence, rec.chain_distance, True, CallbackStatus.NOT_NECESSARY
            )
        return RevealOutcome(
            random,
            bytes(provider),
            sequence,
            rec.chain_distance,
            False,
            CallbackStatus.FAILED,
            result.error,
        )

    def _check_commitment(self, rec: RequestRecord, user_random: bytes, provider_random: bytes) -> None:
        tip_at_request = commit(provider_random, rec.chain_distance, self.hash_fn)
        expected = request_commitment(user_random, tip_at_request, self.hash_fn)
        if not consteq(expected, rec.commitment):
            raise IncorrectRevelation(
                f"revealed values do not match request {rec.sequence}", sequence=rec.sequence
            )

    def _external_entropy(self, rec: RequestRecord) -> bytes:
        if not rec.uses_external_entropy:
            return ZERO_DIGEST
        value = self._history.lookup(rec.request_marker)
        if value is None:
            raise EntropyUnavailable(rec.request_marker)
        return value

    def _advance_head(self, prov: ProviderRecord, sequence: int, provider_random: bytes) -> None:
        if sequence > prov.current_sequence:
            prov.current_commitment = provider_random
            prov.current_sequence = sequence
            self._registry.save(prov)
            logger.debug("provider %s head -> %d", bytes(prov.authority).hex()[:12], sequence)

    # ------------------------------------------------------ advance_commitment

    def advance_commitment(
        self,
        caller: bytes,
        provider: bytes,
        target_sequence: int,
        provider_random: bytes,
    ) -> ProviderRecord:
        """Move the chain head forward without serving a request."""
        provider_random = ensure_len(provider_random, DIGEST_LEN, name="provider_random")
        prov = self._registry.require(provider)
        if bytes(caller) != bytes(prov.authority):
            raise Unauthorized("only the provider authority may advance its commitment")
        if target_sequence <= prov.current_sequence:
            raise SequencingError(
                f"target sequence {target_sequence} is not after current {prov.current_sequence}"
            )
        if target_sequence >= prov.end_sequence:
            raise OutOfRandomness(prov.authority, target_sequence, prov.end_sequence)
        distance = target_sequence - prov.current_sequence
        if not verify(provider_random, distance, prov.current_commitment, self.hash_fn):
            raise IncorrectRevelation(
                f"value does not hash onto the current commitment in {distance} steps"
            )

        prov.current_commitment = provider_random
        prov.current_sequence = target_sequence
        if prov.current_sequence >= prov.next_sequence:
            prov.next_sequence = prov.current_sequence + 1
        self._registry.save(prov)
        logger.info(
            "provider %s commitment advanced to %d", bytes(provider).hex()[:12], target_sequence
        )
        return prov


__all__ = ["RevealEngine", "RevealOutcome"]
