# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
EntropyService — the protocol's public operation surface.

Wires the components over one record store and gives every operation the
same envelope:

  * one store transaction per call: a raise anywhere rolls back every write,
    including fee transfers;
  * the store transaction lock as the only lock, so ``next_sequence`` has a
    single writer and a callback target may call back into the service;
  * metrics by outcome, and events published only after the transaction
    committed.

A failing requester callback is not an error: the reveal commits with the
request left in ``FAILED`` and a :class:`~entropy.events.CallbackFailed`
event is published.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from .callback.dispatch import CallbackDispatcher, CallbackInvoker, CallbackRouter
from .config import DEFAULT, EntropyConfig, open_store
from .errors import EntropyError, InvalidArgument, Unauthorized
from .events import (CallbackFailed, CommitmentAdvanced, Event, EventBus,
                     FeesWithdrawn, ProviderRegistered, Requested,
                     RequestedWithCallback, Revealed)
from .fees import FeeCalculator
from .governance import Governance
from .ledger.requests import RequestLedger
from .metrics import METRICS, Metrics
from .oracle.history import EntropyHistory
from .registry.provider import ProviderRegistry
from .reveal.engine import RevealEngine, RevealOutcome
from .signers import entropy_signer, provider_vault, requester_signer
from .store import KeyValue
from .store.records import RecordStore
from .types.core import Address, CapabilityMeta, require_address
from .types.records import ConfigRecord, ProviderRecord, RequestRecord
from .utils.bytes import ensure_len
from .vault import Vault

logger = logging.getLogger(__name__)


class EntropyService:
    def __init__(
        self,
        kv: KeyValue,
        *,
        config: EntropyConfig = DEFAULT,
        invoker: Optional[CallbackInvoker] = None,
        events: Optional[EventBus] = None,
        metrics: Metrics = METRICS,
    ) -> None:
        config.validate()
        self.config = config
        self.kv = kv
        self.hash_fn = config.hash()
        self.program_id = Address(config.program_id_bytes)

        self.records = RecordStore(kv)
        self.vault = Vault(self.records)
        self.fees = FeeCalculator(config.resource_limit_resolution)
        self.history = EntropyHistory(self.records, config.history_retention)
        self.governance = Governance(
            self.records, self.vault, program_id=self.program_id, hash_fn=self.hash_fn
        )
        self.registry = ProviderRegistry(
            self.records, self.vault, program_id=self.program_id,
            sequence_base=config.sequence_base,
            resource_limit_resolution=config.resource_limit_resolution,
        )
        self.ledger = RequestLedger(self.records, hash_fn=self.hash_fn)
        self.invoker: CallbackInvoker = invoker if invoker is not None else CallbackRouter()
        self.dispatcher = CallbackDispatcher(self.ledger, self.invoker, program_id=self.program_id)
        self.engine = RevealEngine(
            self.registry, self.ledger, self.history, self.dispatcher, hash_fn=self.hash_fn
        )
        self.events = events if events is not None else EventBus()
        self.metrics = metrics

        self._local = threading.local()

    @classmethod
    def from_config(cls, config: EntropyConfig, **kwargs) -> "EntropyService":
        return cls(open_store(config), config=config, **kwargs)

    # ------------------------------------------------------------ envelope

    @contextmanager
    def _atomic(self) -> Iterator[List[Event]]:
        """Run a block in one transaction; publish the collected events after commit.

        The store transaction holds its lock for the whole block, so it is the
        only lock an operation takes. Nested calls (a callback target calling
        back into the service) join the outer block and its event queue.
        """
        outer = getattr(self._local, "pending", None)
        if outer is not None:
            with self.kv.transaction():
                yield outer
            return
        pending: List[Event] = []
        self._local.pending = pending
        try:
            with self.kv.transaction():
                yield pending
        finally:
            self._local.pending = None
        for ev in pending:
            self.events.publish(ev)

    @property
    def credential(self) -> Address:
        """Protocol signer presented to every callback target."""
        return entropy_signer(self.program_id)

    def requester_signer(self, requester_program: bytes) -> Address:
        return requester_signer(requester_program, self.program_id)

    def provider_vault(self, authority: bytes) -> Address:
        return provider_vault(self.program_id, authority)

    def user_commitment(self, user_random: bytes) -> bytes:
        """What a requester submits in place of its secret: ``H(user_random)``."""
        return self.hash_fn(ensure_len(user_random, 32, name="user_random"))

    # --------------------------------------------------------------- reads

    def get_config(self) -> ConfigRecord:
        return self.governance.require()

    def get_provider(self, provider: bytes) -> ProviderRecord:
        return self.registry.require(provider)

    def get_request(self, provider: bytes, sequence: int) -> RequestRecord:
        return self.ledger.require(provider, sequence)

    def pending_requests(self, provider: Optional[bytes] = None) -> List[RequestRecord]:
        return list(self.ledger.pending(provider))

    def balance(self, account: bytes) -> int:
        return self.vault.balance(account)

    def get_fee(self, provider: Optional[bytes] = None, resource_limit: int = 0) -> int:
        cfg = self.governance.require()
        prov = self.registry.require(provider if provider is not None else cfg.default_provider)
        return self.fees.required_fee(prov, resource_limit, cfg.platform_fee)

    # ---------------------------------------------------------- governance

    def initialize(
        self,
        payer: bytes,
        *,
        admin: bytes,
        platform_fee: int = 0,
        default_provider: bytes,
        seed: Optional[bytes] = None,
    ) -> ConfigRecord:
        with self._atomic():
            cfg = self.governance.initialize(
                payer, admin=admin, platform_fee=platform_fee, default_provider=default_provider, seed=seed
            )
            # Marker 0 never holds a value; open the history at marker 1.
            if self.history.current_marker() == 0:
                self.history.advance()
            return cfg

    def propose_admin(self, caller: bytes, new_admin: bytes) -> ConfigRecord:
        with self._atomic():
            return self.governance.propose_admin(caller, new_admin)

    def accept_admin(self, caller: bytes) -> ConfigRecord:
        with self._atomic():
            return self.governance.accept_admin(caller)

    def set_platform_fee(self, caller: bytes, fee: int) -> ConfigRecord:
        with self._atomic():
            return self.governance.set_platform_fee(caller, fee)

    def set_default_provider(self, caller: bytes, provider: bytes) -> ConfigRecord:
        with self._atomic():
            return self.governance.set_default_provider(caller, provider)

    def withdraw_platform_fees(self, caller: bytes, amount: int, recipient: bytes) -> ConfigRecord:
        with self._atomic() as pending:
            cfg = self.governance.withdraw_platform_fees(caller, amount, recipient)
            pending.append(FeesWithdrawn(bytes(self.governance.vault_address), bytes(recipient), amount))
            return cfg

    def fund(self, account: bytes, amount: int) -> int:
        """Mint ``amount`` into ``account`` (devnet faucet; no governance check)."""
        account = require_address("account", account)
        with self._atomic():
            return self.vault.credit(account, amount)

    def advance_history(self, value: Optional[bytes] = None) -> int:
        """Record a new history marker (the host's notion of a new slot)."""
        with self._atomic():
            return self.history.advance(value)

    # ------------------------------------------------------------ providers

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
        authority = require_address("authority", authority)
        with self._atomic() as pending:
            existed = self.registry.get(authority) is not None
            rec = self.registry.register(
                authority,
                fee=fee,
                commitment=commitment,
                chain_length=chain_length,
                commitment_metadata=commitment_metadata,
                uri=uri,
            )
            pending.append(
                ProviderRegistered(authority, rec.fee, rec.original_sequence, rec.end_sequence, existed)
            )
            return rec

    def set_fee(self, caller: bytes, provider: bytes, fee: int) -> ProviderRecord:
        with self._atomic():
            return self.registry.set_fee(caller, provider, fee)

    def set_uri(self, caller: bytes, provider: bytes, uri: bytes) -> ProviderRecord:
        with self._atomic():
            return self.registry.set_uri(caller, provider, uri)

    def set_fee_manager(self, caller: bytes, provider: bytes, manager: bytes) -> ProviderRecord:
        with self._atomic():
            return self.registry.set_fee_manager(caller, provider, manager)

    def set_max_chain_distance(self, caller: bytes, provider: bytes, distance: int) -> ProviderRecord:
        with self._atomic():
            return self.registry.set_max_chain_distance(caller, provider, distance)

    def set_default_resource_limit(self, caller: bytes, provider: bytes, limit: int) -> ProviderRecord:
        with self._atomic():
            return self.registry.set_default_resource_limit(caller, provider, limit)

    def withdraw(self, caller: bytes, provider: bytes, amount: int, recipient: bytes) -> ProviderRecord:
        with self._atomic() as pending:
            rec = self.registry.withdraw(caller, provider, amount, recipient)
            pending.append(FeesWithdrawn(bytes(self.provider_vault(rec.authority)), bytes(recipient), amount))
            return rec

    # ------------------------------------------------------------- requests

    def request(
        self,
        caller: bytes,
        *,
        payer: bytes,
        requester_program: bytes,
        user_commitment: bytes,
        payment: int,
        provider: Optional[bytes] = None,
        resource_limit: int = 0,
        use_external_entropy: bool = False,
    ) -> RequestRecord:
        """
        Request randomness without a callback.

        The requester keeps ``user_random`` private and submits
        ``user_commitment = H(user_random)``; the eventual reveal must be sent
        by ``requester_signer(requester_program)``.
        """
        return self._request(
            caller,
            payer=payer,
            requester_program=requester_program,
            user_commitment=user_commitment,
            user_random=None,
            payment=payment,
            provider=provider,
            resource_limit=resource_limit,
            use_external_entropy=use_external_entropy,
        )

    def request_with_callback(
        self,
        caller: bytes,
        *,
        payer: bytes,
        requester_program: bytes,
        payment: int,
        callback_target: bytes,
        capabilities: Sequence[CapabilityMeta] = (),
        payload_prefix: bytes = b"",
        user_random: Optional[bytes] = None,
        provider: Optional[bytes] = None,
        resource_limit: int = 0,
        use_external_entropy: bool = False,
    ) -> RequestRecord:
        """
        Request randomness delivered to ``callback_target``.

        The user contribution is stored on the request (anyone may trigger
        the reveal). ``user_random=None`` draws it from the config PRNG.
        """
        if user_random is not None:
            user_random = ensure_len(user_random, 32, name="user_random")
        return self._request(
            caller,
            payer=payer,
            requester_program=requester_program,
            user_commitment=None,
            user_random=user_random,
            payment=payment,
            provider=provider,
            resource_limit=resource_limit,
            use_external_entropy=use_external_entropy,
            callback_target=require_address("callback_target", callback_target),
            capabilities=tuple(capabilities),
            payload_prefix=bytes(payload_prefix),
        )

    def _request(
        self,
        caller: bytes,
        *,
        payer: bytes,
        requester_program: bytes,
        user_commitment: Optional[bytes],
        user_random: Optional[bytes],
        payment: int,
        provider: Optional[bytes],
        resource_limit: int,
        use_external_entropy: bool,
        callback_target: Optional[bytes] = None,
        capabilities: Sequence[CapabilityMeta] = (),
        payload_prefix: bytes = b"",
    ) -> RequestRecord:
        payer = require_address("payer", payer)
        signer = self.requester_signer(requester_program)
        if payment < 0 or resource_limit < 0:
            raise InvalidArgument("payment and resource_limit must be non-negative")
        if provider is None:
            provider = self.governance.require().default_provider
        provider = require_address("provider", provider)

        try:
            with self._atomic() as pending:
                if bytes(caller) != bytes(signer):
                    raise Unauthorized("request must be signed by the requester signer")
                cfg = self.governance.require()
                prov = self.registry.require(provider)
                provider_share, platform_share = self.fees.split(
                    prov, resource_limit, cfg.platform_fee, payment
                )
                marker = self.history.current_marker()
                if callback_target is not None and user_random is None:
                    user_random = self.governance.next_user_random(prov.next_sequence, marker)
                if user_commitment is None:
                    user_commitment = self.hash_fn(user_random)

                rec = self.ledger.create(
                    prov,
                    user_commitment=user_commitment,
                    request_marker=marker,
                    requester_program=requester_program,
                    requester_signer=signer,
                    payer=payer,
                    uses_external_entropy=use_external_entropy,
                    resource_limit=self.fees.effective_limit(prov, resource_limit),
                    callback_target=callback_target,
                    capabilities=capabilities,
                    payload_prefix=payload_prefix,
                    user_random=user_random,
                )
                self.registry.save(prov)
                self.vault.debit(payer, payment)
                self.registry.accrue(provider, provider_share)
                self.governance.accrue(platform_share)

                if callback_target is None:
                    pending.append(
                        Requested(provider, rec.sequence, bytes(requester_program), payer, payment)
                    )
                else:
                    pending.append(
                        RequestedWithCallback(
                            provider,
                            rec.sequence,
                            bytes(requester_program),
                            payer,
                            payment,
                            bytes(user_random),
                            bytes(callback_target),
                        )
                    )
        except EntropyError as e:
            self.metrics.record_request(e.code)
            raise
        self.metrics.record_request("accepted")
        self.metrics.record_fees(provider_share, platform_share)
        return rec

    # --------------------------------------------------------------- reveals

    def reveal(
        self,
        caller: bytes,
        provider: bytes,
        sequence: int,
        *,
        user_random: bytes,
        provider_random: bytes,
    ) -> RevealOutcome:
        """Reveal a request without callback; ``caller`` must be its requester signer."""
        return self._reveal(caller, provider, sequence, user_random, provider_random, False, ())

    def reveal_with_callback(
        self,
        caller: bytes,
        provider: bytes,
        sequence: int,
        *,
        provider_random: bytes,
        capabilities: Sequence[CapabilityMeta] = (),
        user_random: Optional[bytes] = None,
    ) -> RevealOutcome:
        """
        Reveal a callback request and deliver the value. Anyone may call.

        ``user_random`` defaults to the value stored on the request.
        """
        if user_random is None:
            user_random = self.ledger.require(provider, sequence).user_random
            if user_random is None:
                raise InvalidArgument(f"request {sequence} does not carry a user random")
        return self._reveal(caller, provider, sequence, user_random, provider_random, True, capabilities)

    def _reveal(
        self,
        caller: bytes,
        provider: bytes,
        sequence: int,
        user_random: bytes,
        provider_random: bytes,
        with_callback: bool,
        capabilities: Sequence[CapabilityMeta],
    ) -> RevealOutcome:
        try:
            with self._atomic() as pending:
                out = self.engine.reveal(
                    provider,
                    sequence,
                    user_random,
                    provider_random,
                    caller=caller,
                    with_callback=with_callback,
                    capabilities=capabilities,
                )
                pending.append(
                    Revealed(bytes(provider), sequence, out.random, out.retired, int(out.callback_status))
                )
                if out.callback_error is not None:
                    pending.append(CallbackFailed(bytes(provider), sequence, out.callback_error))
        except EntropyError as e:
            self.metrics.record_reveal(e.code)
            raise
        self.metrics.record_reveal("accepted")
        self.metrics.observe_chain_distance(out.chain_distance)
        if with_callback:
            self.metrics.record_callback(out.retired)
        return out

    def advance_commitment(
        self,
        caller: bytes,
        provider: bytes,
        target_sequence: int,
        provider_random: bytes,
    ) -> ProviderRecord:
        with self._atomic() as pending:
            rec = self.engine.advance_commitment(caller, provider, target_sequence, provider_random)
            pending.append(CommitmentAdvanced(bytes(provider), rec.current_sequence))
            return rec


__all__ = ["EntropyService"]
