"""Shared identities and helpers for the entropy tests."""

from __future__ import annotations

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry

from entropy.chain.hashchain import HashChain
from entropy.config import EntropyConfig
from entropy.metrics import Metrics
from entropy.service import EntropyService
from entropy.store.memory import MemoryKeyValue

ADMIN = b"\xa1" * 32
PROVIDER = b"\xb2" * 32
PAYER = b"\xc3" * 32
PROGRAM = b"\xd4" * 32
TARGET = b"\xe5" * 32
OTHER = b"\xf6" * 32

SEED = b"\x07" * 32
BASE = 10
FEE = 100


def make_service(*, registry: Optional[CollectorRegistry] = None, **overrides: Any) -> EntropyService:
    cfg_kw: Dict[str, Any] = {"sequence_base": BASE, "resource_limit_resolution": 1}
    cfg_kw.update(overrides)
    metrics = Metrics(registry=registry if registry is not None else CollectorRegistry())
    return EntropyService(MemoryKeyValue(), config=EntropyConfig(**cfg_kw), metrics=metrics)


def bootstrap(svc: EntropyService, chain: HashChain, *, fee: int = FEE, platform_fee: int = 0) -> EntropyService:
    svc.initialize(ADMIN, admin=ADMIN, platform_fee=platform_fee, default_provider=PROVIDER, seed=SEED)
    svc.register(PROVIDER, fee=fee, commitment=chain.commitment, chain_length=len(chain))
    svc.fund(PAYER, 1_000_000)
    return svc


def request(svc: EntropyService, user_random: bytes, **kw: Any):
    """Request without callback as PROGRAM, paying the required fee by default."""
    payment = kw.pop("payment", None)
    if payment is None:
        payment = svc.get_fee(kw.get("provider"), kw.get("resource_limit", 0))
    return svc.request(
        svc.requester_signer(PROGRAM),
        payer=PAYER,
        requester_program=PROGRAM,
        user_commitment=svc.user_commitment(user_random),
        payment=payment,
        **kw,
    )


def reveal(svc: EntropyService, chain: HashChain, sequence: int, user_random: bytes, *, base: int = BASE):
    return svc.reveal(
        svc.requester_signer(PROGRAM),
        PROVIDER,
        sequence,
        user_random=user_random,
        provider_random=chain.reveal(sequence - base),
    )


def flip(b: bytes, bit: int = 0) -> bytes:
    out = bytearray(b)
    out[bit // 8] ^= 1 << (bit % 8)
    return bytes(out)
