# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
entropy.utils.bytes
===================

Hex/bytes helpers plus strict **length guards** for protocol fields.

- :func:`to_hex` / :func:`from_hex` with strict validation.
- :func:`as_bytes` to normalize bytes-like values.
- :func:`ensure_len`, :func:`ensure_max_len` length guards raising
  :class:`entropy.errors.InvalidArgument` so bad input is reported in the
  validation category.
- :func:`parse_address` for 32-byte identities given as hex.
- :func:`u64_le` fixed-width integer encoding used in callback payloads.
- :func:`consteq` timing-safe equality.
- :func:`jsonable` hex-encodes bytes inside records for JSON output.
"""

from __future__ import annotations

import hmac
import re
from enum import IntEnum
from typing import Any, Union

from ..constants import ADDRESS_LEN
from ..errors import InvalidArgument

BytesLike = Union[bytes, bytearray, memoryview]

__all__ = [
    "BytesLike",
    "to_hex",
    "from_hex",
    "is_hex",
    "as_bytes",
    "ensure_len",
    "ensure_max_len",
    "parse_address",
    "u64_le",
    "consteq",
    "jsonable",
]

_HEX_RE = re.compile(r"^(?:0[xX])?[0-9a-fA-F]*$")
_U64_MAX = (1 << 64) - 1


def is_hex(s: str) -> bool:
    """True if *s* is even-length hex with an optional ``0x`` prefix."""
    if not isinstance(s, str) or not _HEX_RE.match(s):
        return False
    body = s[2:] if s.startswith(("0x", "0X")) else s
    return len(body) % 2 == 0


def from_hex(s: str, *, name: str = "value") -> bytes:
    if not isinstance(s, str):
        raise InvalidArgument(f"{name} must be a hex string")
    if not is_hex(s):
        raise InvalidArgument(f"{name} is not valid even-length hex")
    body = s[2:] if s.startswith(("0x", "0X")) else s
    return bytes.fromhex(body)


def to_hex(b: BytesLike, *, prefix: str = "0x") -> str:
    return (prefix or "") + as_bytes(b).hex()


def as_bytes(x: BytesLike) -> bytes:
    """Normalize bytes-like to immutable :class:`bytes`."""
    if isinstance(x, bytes):
        return x
    if isinstance(x, (bytearray, memoryview)):
        return bytes(x)
    raise InvalidArgument(f"expected bytes-like, got {type(x).__name__}")


def ensure_len(b: BytesLike, expected: int, *, name: str = "value") -> bytes:
    bb = as_bytes(b)
    if len(bb) != expected:
        raise InvalidArgument(f"{name} must be {expected} bytes, got {len(bb)}")
    return bb


def ensure_max_len(b: BytesLike, max_len: int, *, name: str = "value") -> bytes:
    bb = as_bytes(b)
    if len(bb) > max_len:
        raise InvalidArgument(f"{name} must be at most {max_len} bytes, got {len(bb)}")
    return bb


def parse_address(value: Union[str, BytesLike], *, name: str = "address") -> bytes:
    """Accept a 32-byte identity as raw bytes or (0x-)hex."""
    raw = from_hex(value, name=name) if isinstance(value, str) else as_bytes(value)
    return ensure_len(raw, ADDRESS_LEN, name=name)


def u64_le(n: int) -> bytes:
    if not 0 <= n <= _U64_MAX:
        raise InvalidArgument(f"{n} does not fit in u64")
    return n.to_bytes(8, "little")


def consteq(a: BytesLike, b: BytesLike) -> bool:
    """Timing-safe equality for two bytes-like values."""
    return hmac.compare_digest(as_bytes(a), as_bytes(b))


def jsonable(v: Any) -> Any:
    """Recursively render bytes as 0x-hex so records can go through ``json``."""
    if isinstance(v, (bytes, bytearray, memoryview)):
        return to_hex(v)
    if isinstance(v, IntEnum):
        return v.name
    if isinstance(v, dict):
        return {k: jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [jsonable(x) for x in v]
    return v
