"""
Deterministic derived identities.

Every protocol-owned identity is a 32-byte address derived from a seed and
the program id, ``H(DOMAIN_ADDRESS || seed || parts...)``. Anyone holding
the inputs can recompute and verify the derivation; nothing here holds a
private key.
"""

from __future__ import annotations

from .constants import (DOMAIN_ADDRESS, ENTROPY_SIGNER_SEED,
                        PLATFORM_FEE_VAULT_SEED, PROVIDER_VAULT_SEED,
                        REQUESTER_SIGNER_SEED)
from .types.core import Address, require_address
from .utils.hash import HashFn, hashv, sha256


def derive_address(seed: bytes, *parts: bytes, hash_fn: HashFn = sha256) -> Address:
    return Address(hashv(hash_fn, DOMAIN_ADDRESS, seed, *parts))


def entropy_signer(program_id: bytes, hash_fn: HashFn = sha256) -> Address:
    """Credential presented to callback targets; identical for every reveal."""
    return derive_address(ENTROPY_SIGNER_SEED, require_address("program_id", program_id), hash_fn=hash_fn)


def requester_signer(requester_program: bytes, program_id: bytes, hash_fn: HashFn = sha256) -> Address:
    """Signer a requester program uses for requester-bound reveals."""
    return derive_address(
        REQUESTER_SIGNER_SEED,
        require_address("requester_program", requester_program),
        require_address("program_id", program_id),
        hash_fn=hash_fn,
    )


def provider_vault(program_id: bytes, authority: bytes, hash_fn: HashFn = sha256) -> Address:
    return derive_address(
        PROVIDER_VAULT_SEED,
        require_address("program_id", program_id),
        require_address("authority", authority),
        hash_fn=hash_fn,
    )


def platform_vault(program_id: bytes, hash_fn: HashFn = sha256) -> Address:
    return derive_address(PLATFORM_FEE_VAULT_SEED, require_address("program_id", program_id), hash_fn=hash_fn)


def verify_derivation(address: bytes, seed: bytes, *parts: bytes, hash_fn: HashFn = sha256) -> bool:
    return bytes(address) == derive_address(seed, *parts, hash_fn=hash_fn)


__all__ = [
    "derive_address",
    "entropy_signer",
    "requester_signer",
    "provider_vault",
    "platform_vault",
    "verify_derivation",
]
