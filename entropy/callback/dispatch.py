# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
CallbackDispatcher — one-shot delivery of a revealed random value.

Payload layout (fixed width after the prefix):

    payload_prefix (≤256, verbatim from the request)
    || u64_le(sequence)
    || provider (32)
    || random (32)

Before anything is invoked, the capability list supplied with the reveal is
compared against the list captured at request time, entry by entry and in
order. Any difference aborts the reveal with an integrity error.

The callee is handed the protocol credential ``entropy_signer(program_id)``,
the same for every reveal no matter who submitted it. Anything the callee
raises is contained: the dispatch reports failure, the request moves to
FAILED and the reveal itself still succeeds.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple

from ..errors import CallbackAccountsMismatch
from ..ledger.requests import RequestLedger
from ..signers import entropy_signer
from ..types.core import CapabilityMeta
from ..types.records import RequestRecord
from ..utils.bytes import u64_le

logger = logging.getLogger(__name__)


# ---- invocation interface ---------------------------------------------------

class CallbackInvoker(Protocol):
    def invoke(
        self,
        target: bytes,
        capabilities: Sequence[CapabilityMeta],
        payload: bytes,
        credential: bytes,
    ) -> None:
        """Run the callee; raising means the callback failed."""
        ...


Handler = Callable[[Sequence[CapabilityMeta], bytes, bytes], None]


class CallbackRouter:
    """In-process :class:`CallbackInvoker` mapping target addresses to handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[bytes, Handler] = {}
        self._lock = threading.RLock()

    def register(self, target: bytes, handler: Handler) -> None:
        with self._lock:
            self._handlers[bytes(target)] = handler

    def unregister(self, target: bytes) -> None:
        with self._lock:
            self._handlers.pop(bytes(target), None)

    def invoke(
        self,
        target: bytes,
        capabilities: Sequence[CapabilityMeta],
        payload: bytes,
        credential: bytes,
    ) -> None:
        with self._lock:
            handler = self._handlers.get(bytes(target))
        if handler is None:
            raise LookupError(f"no callback handler for {bytes(target).hex()}")
        handler(capabilities, payload, credential)


# ---- helpers ----------------------------------------------------------------

def build_payload(rec: RequestRecord, random: bytes) -> bytes:
    return bytes(rec.payload_prefix) + u64_le(rec.sequence) + bytes(rec.provider) + bytes(random)


def validate_capabilities(stored: Sequence[CapabilityMeta], supplied: Sequence[CapabilityMeta]) -> None:
    stored_t: Tuple[CapabilityMeta, ...] = tuple(stored)
    supplied_t: Tuple[CapabilityMeta, ...] = tuple(supplied)
    if len(stored_t) != len(supplied_t):
        raise CallbackAccountsMismatch(
            f"expected {len(stored_t)} callback capabilities, got {len(supplied_t)}"
        )
    for i, (want, got) in enumerate(zip(stored_t, supplied_t)):
        if want.to_bytes() != got.to_bytes():
            raise CallbackAccountsMismatch(f"callback capability {i} does not match the request", index=i)


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    request: Optional[RequestRecord] = None  # the FAILED record, None once retired
    error: Optional[str] = None


# ---- dispatcher -------------------------------------------------------------

class CallbackDispatcher:
    def __init__(self, ledger: RequestLedger, invoker: CallbackInvoker, *, program_id: bytes) -> None:
        self._ledger = ledger
        self._invoker = invoker
        self.credential = entropy_signer(program_id)

    def dispatch(
        self,
        rec: RequestRecord,
        random: bytes,
        capabilities: Sequence[CapabilityMeta],
    ) -> DispatchResult:
        validate_capabilities(rec.capability_list, capabilities)
        payload = build_payload(rec, random)

        in_progress = self._ledger.begin_dispatch(rec)
        try:
            # A raising callee leaves no writes behind; IN_PROGRESS predates the savepoint.
            with self._ledger.savepoint():
                self._invoker.invoke(in_progress.callback_target, in_progress.capability_list, payload, self.credential)
        except Exception as e:
            logger.warning(
                "callback for request %d to %s failed: %s",
                rec.sequence,
                bytes(rec.callback_target or b"").hex()[:12],
                e,
            )
            failed = self._ledger.mark_failed(in_progress)
            return DispatchResult(ok=False, request=failed, error=f"{type(e).__name__}: {e}")

        self._ledger.retire(in_progress)
        logger.info("callback delivered for request %d", rec.sequence)
        return DispatchResult(ok=True)


__all__ = [
    "CallbackInvoker",
    "CallbackRouter",
    "CallbackDispatcher",
    "DispatchResult",
    "build_payload",
    "validate_capabilities",
]
