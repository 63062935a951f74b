from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, NewType

from ..constants import (ADDRESS_LEN, CALLBACK_FAILED, CALLBACK_IN_PROGRESS,
                         CALLBACK_NOT_NECESSARY, CALLBACK_NOT_STARTED,
                         ZERO_ADDRESS)
from ..errors import InvalidArgument

"""
Core typed primitives for the entropy protocol.

These are intentionally minimal and free of heavy dependencies so they can be
shared across the registry, ledger, reveal engine, store codec and RPC.

Types provided:
  • Address         — 32-byte identity (provider authority, payer, program, …)
  • CallbackStatus  — request callback state machine
  • BoundedBytes    — variable-length byte field with a fixed capacity
  • CapabilityMeta  — one entry of a callback capability list
"""

Address = NewType("Address", bytes)


def require_address(name: str, value: bytes, *, allow_zero: bool = False) -> Address:
    if not isinstance(value, (bytes, bytearray)):
        raise InvalidArgument(f"{name} must be bytes")
    if len(value) != ADDRESS_LEN:
        raise InvalidArgument(f"{name} must be exactly {ADDRESS_LEN} bytes (got {len(value)})")
    if not allow_zero and bytes(value) == ZERO_ADDRESS:
        raise InvalidArgument(f"{name} must not be the zero address")
    return Address(bytes(value))


def is_zero(value: bytes) -> bool:
    return bytes(value) == ZERO_ADDRESS


class CallbackStatus(IntEnum):
    """Request callback states. IN_PROGRESS is only held during dispatch."""

    NOT_NECESSARY = CALLBACK_NOT_NECESSARY
    NOT_STARTED = CALLBACK_NOT_STARTED
    IN_PROGRESS = CALLBACK_IN_PROGRESS
    FAILED = CALLBACK_FAILED


@dataclass(frozen=True, slots=True)
class BoundedBytes:
    """
    A byte string with an explicit maximum capacity.

    Fields:
      data      — the payload (len(data) ≤ capacity)
      capacity  — storage capacity reserved for the field
    """

    data: bytes
    capacity: int

    def __post_init__(self) -> None:  # type: ignore[override]
        if not isinstance(self.data, (bytes, bytearray)):
            raise InvalidArgument("data must be bytes")
        if self.capacity < 0:
            raise InvalidArgument("capacity must be non-negative")
        if len(self.data) > self.capacity:
            raise InvalidArgument(
                f"{len(self.data)} bytes exceed capacity {self.capacity}"
            )

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return bytes(self.data)

    def to_dict(self) -> Dict[str, Any]:
        return {"data": bytes(self.data), "capacity": self.capacity}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoundedBytes":
        return cls(bytes(d["data"]), int(d["capacity"]))


@dataclass(frozen=True, slots=True)
class CapabilityMeta:
    """
    One external reference handed to a callback target.

    Fields:
      key          — referenced identity (32 bytes)
      is_signer    — the reference is presented as a signer
      is_writable  — the reference is presented as writable
    """

    key: bytes
    is_signer: bool = False
    is_writable: bool = False

    def __post_init__(self) -> None:  # type: ignore[override]
        require_address("capability key", self.key, allow_zero=True)

    def to_bytes(self) -> bytes:
        return bytes(self.key) + bytes([int(self.is_signer), int(self.is_writable)])

    def to_dict(self) -> Dict[str, Any]:
        return {"key": bytes(self.key), "is_signer": self.is_signer, "is_writable": self.is_writable}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CapabilityMeta":
        return cls(bytes(d["key"]), bool(d["is_signer"]), bool(d["is_writable"]))


__all__ = [
    "Address",
    "require_address",
    "is_zero",
    "CallbackStatus",
    "BoundedBytes",
    "CapabilityMeta",
]
