"""
RequestLedger — owns request records keyed by ``(provider, sequence)``.

State machine
-------------

    create(no callback)  ──▶ NOT_NECESSARY ──reveal──▶ (retired)
    create(callback)     ──▶ NOT_STARTED ─┐
                                          ├─reveal_with_callback─▶ IN_PROGRESS ─ok──▶ (retired)
                             FAILED ◀─────┘                             │
                               ▲                                        │
                               └───────────────── callee failed ────────┘

``IN_PROGRESS`` is only ever held inside a dispatch; a FAILED request can be
retried any number of times.

Sequence issuance
-----------------
``create`` takes ``provider.next_sequence`` and increments it. Callers hold
the provider's issuance lock and an open store transaction, so the counter
is single-writer and a rolled-back request never burns a number.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterator, Optional, Sequence

from ..constants import (CALLBACK_PAYLOAD_PREFIX_LEN, DIGEST_LEN,
                         MAX_CALLBACK_ACCOUNTS)
from ..errors import (InvalidArgument, InvalidRevealCall, LastRevealedTooOld,
                      OutOfRandomness, RequestNotFound)
from ..store.records import RecordStore
from ..types.core import (Address, BoundedBytes, CallbackStatus,
                          CapabilityMeta, require_address)
from ..types.records import ProviderRecord, RequestRecord
from ..utils.bytes import ensure_len
from ..utils.hash import HashFn, hashv, sha256

logger = logging.getLogger(__name__)


def request_commitment(user_random: bytes, provider_tip: bytes, hash_fn: HashFn = sha256) -> bytes:
    """``H(H(user_random) || provider_tip)``, the value bound into a request."""
    return hashv(hash_fn, hash_fn(bytes(user_random)), bytes(provider_tip))


class RequestLedger:
    def __init__(self, records: RecordStore, *, hash_fn: HashFn = sha256) -> None:
        self._records = records
        self.hash_fn = hash_fn

    # ------------------------------------------------------------------ create

    def create(
        self,
        provider: ProviderRecord,
        *,
        user_commitment: bytes,
        request_marker: int,
        requester_program: bytes,
        requester_signer: bytes,
        payer: bytes,
        uses_external_entropy: bool = False,
        resource_limit: int = 0,
        callback_target: Optional[bytes] = None,
        capabilities: Sequence[CapabilityMeta] = (),
        payload_prefix: bytes = b"",
        user_random: Optional[bytes] = None,
    ) -> RequestRecord:
        """
        Allocate the next sequence of ``provider`` and store a request.

        Every check runs before ``provider`` is touched. On success the
        provider's ``next_sequence`` has been incremented in place; persisting
        the provider record is the caller's job.
        """
        sequence = provider.next_sequence
        if sequence >= provider.end_sequence:
            raise OutOfRandomness(provider.authority, sequence, provider.end_sequence)
        distance = sequence - provider.current_sequence
        if provider.max_chain_distance and distance > provider.max_chain_distance:
            raise LastRevealedTooOld(provider.authority, distance, provider.max_chain_distance)

        caps = tuple(capabilities)
        if len(caps) > MAX_CALLBACK_ACCOUNTS:
            raise InvalidArgument(
                f"at most {MAX_CALLBACK_ACCOUNTS} callback capabilities allowed, got {len(caps)}"
            )
        prefix = BoundedBytes(bytes(payload_prefix), CALLBACK_PAYLOAD_PREFIX_LEN)
        user_commitment = ensure_len(user_commitment, DIGEST_LEN, name="user_commitment")
        target: Optional[Address] = None
        if callback_target is not None:
            target = require_address("callback_target", callback_target)
        elif caps or len(prefix):
            raise InvalidArgument("callback capabilities or payload given without a callback target")

        rec = RequestRecord(
            provider=provider.authority,
            sequence=sequence,
            chain_distance=distance,
            commitment=hashv(self.hash_fn, user_commitment, provider.current_commitment),
            request_marker=int(request_marker),
            requester_program=require_address("requester_program", requester_program),
            requester_signer=require_address("requester_signer", requester_signer),
            payer=require_address("payer", payer),
            uses_external_entropy=bool(uses_external_entropy),
            callback_status=CallbackStatus.NOT_STARTED if target is not None else CallbackStatus.NOT_NECESSARY,
            resource_limit=int(resource_limit),
            callback_target=target,
            capability_list=caps,
            payload_prefix=prefix,
            user_random=None if user_random is None else bytes(user_random),
        )

        provider.next_sequence = sequence + 1
        self._records.put_request(rec)
        logger.info(
            "request created provider=%s seq=%d distance=%d callback=%s",
            bytes(provider.authority).hex()[:12],
            sequence,
            distance,
            target is not None,
        )
        return rec

    # ------------------------------------------------------------------- reads

    def get(self, provider: bytes, sequence: int) -> Optional[RequestRecord]:
        return self._records.get_request(provider, sequence)

    def require(self, provider: bytes, sequence: int) -> RequestRecord:
        rec = self._records.get_request(provider, sequence)
        if rec is None:
            raise RequestNotFound(bytes(provider), sequence)
        return rec

    def pending(self, provider: Optional[bytes] = None) -> Iterator[RequestRecord]:
        return self._records.iter_requests(provider)

    # ------------------------------------------------------------- transitions

    @staticmethod
    def check_revealable(rec: RequestRecord, with_callback: bool) -> None:
        status = rec.callback_status
        if with_callback:
            if status not in (CallbackStatus.NOT_STARTED, CallbackStatus.FAILED):
                raise InvalidRevealCall(
                    f"reveal with callback not allowed in state {status.name}",
                    sequence=rec.sequence,
                )
        elif status != CallbackStatus.NOT_NECESSARY:
            raise InvalidRevealCall(
                f"request {rec.sequence} has a callback; use reveal with callback",
                sequence=rec.sequence,
            )

    def _set_status(self, rec: RequestRecord, status: CallbackStatus) -> RequestRecord:
        new = dataclasses.replace(rec, callback_status=status)
        self._records.put_request(new)
        return new

    def savepoint(self):
        """Scope whose writes are undone if the body raises."""
        return self._records.savepoint()

    def begin_dispatch(self, rec: RequestRecord) -> RequestRecord:
        return self._set_status(rec, CallbackStatus.IN_PROGRESS)

    def mark_failed(self, rec: RequestRecord) -> RequestRecord:
        logger.info("request %d callback failed; retry allowed", rec.sequence)
        return self._set_status(rec, CallbackStatus.FAILED)

    def retire(self, rec: RequestRecord) -> None:
        self._records.del_request(rec.provider, rec.sequence)
        logger.debug("request %d retired", rec.sequence)


__all__ = ["RequestLedger", "request_commitment"]
