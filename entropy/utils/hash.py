# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
entropy.utils.hash
==================

The protocol's hash primitive ``H``. The core is parametric over the
function; a deployment picks one by name and must keep it for the life of
every registered chain.

Supported names
---------------
- ``sha256``     (default)
- ``sha3_256``
- ``blake2b256`` (BLAKE2b with a 32-byte digest)

All produce 32-byte digests. ``hashv(fn, *parts)`` hashes the plain
concatenation of its parts; callers pass fixed-length fields so the
encoding is unambiguous.
"""

from __future__ import annotations

import hashlib
from typing import Callable, Dict

from ..constants import DEFAULT_HASH_FN, DIGEST_LEN

HashFn = Callable[[bytes], bytes]

__all__ = [
    "HashFn",
    "sha256",
    "sha3_256",
    "blake2b256",
    "get_hash_fn",
    "hash_fn_names",
    "hashv",
]


def _require_bytes(data: bytes) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("hash input must be bytes-like")
    return bytes(data)


def sha256(data: bytes) -> bytes:
    """Return SHA-256(data)."""
    return hashlib.sha256(_require_bytes(data)).digest()


def sha3_256(data: bytes) -> bytes:
    """Return SHA3-256(data)."""
    return hashlib.sha3_256(_require_bytes(data)).digest()


def blake2b256(data: bytes) -> bytes:
    """Return BLAKE2b-256(data)."""
    return hashlib.blake2b(_require_bytes(data), digest_size=DIGEST_LEN).digest()


_REGISTRY: Dict[str, HashFn] = {
    "sha256": sha256,
    "sha3_256": sha3_256,
    "blake2b256": blake2b256,
}


def hash_fn_names() -> tuple:
    return tuple(sorted(_REGISTRY))


def get_hash_fn(name: str = DEFAULT_HASH_FN) -> HashFn:
    try:
        return _REGISTRY[name.lower()]
    except KeyError:
        raise ValueError(
            f"unsupported hash function {name!r} (expected one of {', '.join(hash_fn_names())})"
        ) from None


def hashv(fn: HashFn, *parts: bytes) -> bytes:
    """H(part_0 || part_1 || ...)."""
    return fn(b"".join(_require_bytes(p) for p in parts))
