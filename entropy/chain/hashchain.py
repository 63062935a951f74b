# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Hash-chain commitments.

A provider picks a secret ``x_n`` and publishes ``x_0 = H^n(x_n)``. The value
revealed for sequence ``s0 + i`` is ``x_i`` and satisfies ``H^i(x_i) == x_0``,
so every reveal proves knowledge of a pre-image of the published tip without
exposing the values further down the chain.

    x_n ──H──▶ x_{n-1} ──H──▶ … ──H──▶ x_1 ──H──▶ x_0   (commitment)

Verification is always against the provider's *live* tip, which moves forward
as values are revealed. Reveals may arrive out of order, so linkage is
checked in whichever direction the two positions allow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from ..constants import DIGEST_LEN
from ..errors import InvalidArgument
from ..utils.bytes import as_bytes, consteq
from ..utils.hash import HashFn, sha256

logger = logging.getLogger(__name__)

# Guardrail for provider-side chain materialisation (memory, not protocol).
MAX_CHAIN_LENGTH = 1 << 24


def commit(secret: bytes, distance: int, hash_fn: HashFn = sha256) -> bytes:
    """
    Apply ``hash_fn`` to ``secret`` exactly ``distance`` times.

    ``distance == 0`` returns the secret unchanged.
    """
    if distance < 0:
        raise InvalidArgument(f"chain distance must be non-negative, got {distance}")
    value = as_bytes(secret)
    for _ in range(distance):
        value = hash_fn(value)
    return value


def verify(
    secret: bytes,
    distance: int,
    expected_tip: bytes,
    hash_fn: HashFn = sha256,
) -> bool:
    """True iff ``commit(secret, distance) == expected_tip`` (constant-time compare)."""
    if distance < 0:
        return False
    return consteq(commit(secret, distance, hash_fn), expected_tip)


def verify_linkage(
    value: bytes,
    sequence: int,
    tip: bytes,
    tip_sequence: int,
    hash_fn: HashFn = sha256,
) -> bool:
    """
    Check that ``value`` (claimed for ``sequence``) lies on the same chain as
    ``tip`` (recorded for ``tip_sequence``).

    Newer values hash forward onto the tip; older values are reachable by
    hashing the tip forward.
    """
    if sequence >= tip_sequence:
        ok = verify(value, sequence - tip_sequence, tip, hash_fn)
    else:
        ok = verify(tip, tip_sequence - sequence, value, hash_fn)
    logger.debug(
        "chain linkage seq=%d tip_seq=%d ok=%s", sequence, tip_sequence, ok
    )
    return ok


@dataclass(frozen=True)
class HashChain:
    """
    A materialised hash chain held by a provider.

    ``values[i]`` is the value revealed for offset ``i`` from the registered
    anchor; ``values[0]`` is the published commitment.
    """

    values: Sequence[bytes]

    @classmethod
    def from_secret(cls, secret: bytes, length: int, hash_fn: HashFn = sha256) -> "HashChain":
        if length <= 0:
            raise InvalidArgument("chain length must be positive")
        if length > MAX_CHAIN_LENGTH:
            raise InvalidArgument(f"chain length {length} exceeds {MAX_CHAIN_LENGTH}")
        head = as_bytes(secret)
        if len(head) != DIGEST_LEN:
            head = hash_fn(head)
        # Build from the secret end, then flip so index == offset.
        out: List[bytes] = [head]
        for _ in range(length - 1):
            out.append(hash_fn(out[-1]))
        out.reverse()
        return cls(tuple(out))

    def __len__(self) -> int:
        return len(self.values)

    @property
    def commitment(self) -> bytes:
        return self.values[0]

    def reveal(self, offset: int) -> bytes:
        if not 0 <= offset < len(self.values):
            raise InvalidArgument(f"offset {offset} outside chain of length {len(self.values)}")
        return self.values[offset]


__all__ = ["MAX_CHAIN_LENGTH", "commit", "verify", "verify_linkage", "HashChain"]
