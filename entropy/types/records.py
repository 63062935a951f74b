"""
Persistent protocol records: Provider, Request and Config.

Records are plain dataclasses with explicit ``to_dict``/``from_dict`` so the
store codec (msgspec) only ever sees primitive containers. Providers and
Config are mutated in place by their owning component; requests are frozen
value objects whose state transitions go through ``dataclasses.replace``,
which keeps ``commitment``, ``capability_list`` and ``payload_prefix``
immutable after creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from ..constants import (CALLBACK_PAYLOAD_PREFIX_LEN, COMMITMENT_METADATA_LEN,
                         DIGEST_LEN, URI_LEN, ZERO_ADDRESS, ZERO_DIGEST)
from ..errors import InvalidArgument, SequencingError
from .core import Address, BoundedBytes, CallbackStatus, CapabilityMeta, is_zero


def _require_digest(name: str, value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != DIGEST_LEN:
        raise InvalidArgument(f"{name} must be {DIGEST_LEN} bytes")


@dataclass(slots=True)
class ProviderRecord:
    """
    A registered randomness provider.

    Sequence fields satisfy, at all times:
        original_sequence ≤ current_sequence < next_sequence ≤ end_sequence
    and ``current_sequence`` never moves backwards.

    ``accrued_fees`` is the logical withdrawable balance; the value itself
    sits in the provider's vault account.
    """

    authority: Address
    fee: int = 0
    accrued_fees: int = 0
    original_commitment: bytes = ZERO_DIGEST
    original_sequence: int = 0
    commitment_metadata: BoundedBytes = field(
        default_factory=lambda: BoundedBytes(b"", COMMITMENT_METADATA_LEN)
    )
    uri: BoundedBytes = field(default_factory=lambda: BoundedBytes(b"", URI_LEN))
    end_sequence: int = 0
    next_sequence: int = 0
    current_commitment: bytes = ZERO_DIGEST
    current_sequence: int = 0
    fee_manager: Address = Address(ZERO_ADDRESS)
    max_chain_distance: int = 0
    default_resource_limit: int = 0

    @property
    def has_fee_manager(self) -> bool:
        return not is_zero(self.fee_manager)

    @property
    def remaining(self) -> int:
        """Sequence numbers still available for requests."""
        return max(self.end_sequence - self.next_sequence, 0)

    def check_invariants(self) -> None:
        if not (
            self.original_sequence
            <= self.current_sequence
            < self.next_sequence
            <= self.end_sequence
        ):
            raise SequencingError(
                "provider sequence invariant violated: "
                f"{self.original_sequence} ≤ {self.current_sequence} < "
                f"{self.next_sequence} ≤ {self.end_sequence}"
            )

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["commitment_metadata"] = self.commitment_metadata.to_dict()
        out["uri"] = self.uri.to_dict()
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProviderRecord":
        data = dict(d)
        data["commitment_metadata"] = BoundedBytes.from_dict(data["commitment_metadata"])
        data["uri"] = BoundedBytes.from_dict(data["uri"])
        for name in ("authority", "original_commitment", "current_commitment", "fee_manager"):
            data[name] = bytes(data[name])
        return cls(**data)


@dataclass(frozen=True, slots=True)
class RequestRecord:
    """
    An outstanding randomness request keyed by (provider, sequence).

    Fields:
      commitment         — H(H(user_random) || provider tip at creation)
      chain_distance     — sequence − provider.current_sequence at creation
      request_marker     — history marker current when the request was made
      requester_signer   — derived signer allowed to reveal without callback
      user_random        — only for callback requests (published with the request)
    """

    provider: Address
    sequence: int
    chain_distance: int
    commitment: bytes
    request_marker: int
    requester_program: Address
    requester_signer: Address
    payer: Address
    uses_external_entropy: bool = False
    callback_status: CallbackStatus = CallbackStatus.NOT_NECESSARY
    resource_limit: int = 0
    callback_target: Optional[Address] = None
    capability_list: Tuple[CapabilityMeta, ...] = ()
    payload_prefix: BoundedBytes = field(
        default_factory=lambda: BoundedBytes(b"", CALLBACK_PAYLOAD_PREFIX_LEN)
    )
    user_random: Optional[bytes] = None

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_digest("commitment", self.commitment)
        if self.sequence < 0 or self.chain_distance < 0:
            raise InvalidArgument("sequence and chain_distance must be non-negative")
        if not isinstance(self.capability_list, tuple):
            object.__setattr__(self, "capability_list", tuple(self.capability_list))
        if not isinstance(self.callback_status, CallbackStatus):
            object.__setattr__(self, "callback_status", CallbackStatus(self.callback_status))

    @property
    def has_callback(self) -> bool:
        return self.callback_status != CallbackStatus.NOT_NECESSARY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "sequence": self.sequence,
            "chain_distance": self.chain_distance,
            "commitment": self.commitment,
            "request_marker": self.request_marker,
            "requester_program": self.requester_program,
            "requester_signer": self.requester_signer,
            "payer": self.payer,
            "uses_external_entropy": self.uses_external_entropy,
            "callback_status": int(self.callback_status),
            "resource_limit": self.resource_limit,
            "callback_target": self.callback_target,
            "capability_list": [c.to_dict() for c in self.capability_list],
            "payload_prefix": self.payload_prefix.to_dict(),
            "user_random": self.user_random,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RequestRecord":
        target = d.get("callback_target")
        user_random = d.get("user_random")
        return cls(
            provider=Address(bytes(d["provider"])),
            sequence=int(d["sequence"]),
            chain_distance=int(d["chain_distance"]),
            commitment=bytes(d["commitment"]),
            request_marker=int(d["request_marker"]),
            requester_program=Address(bytes(d["requester_program"])),
            requester_signer=Address(bytes(d["requester_signer"])),
            payer=Address(bytes(d["payer"])),
            uses_external_entropy=bool(d["uses_external_entropy"]),
            callback_status=CallbackStatus(int(d["callback_status"])),
            resource_limit=int(d["resource_limit"]),
            callback_target=None if target is None else Address(bytes(target)),
            capability_list=tuple(CapabilityMeta.from_dict(c) for c in d["capability_list"]),
            payload_prefix=BoundedBytes.from_dict(d["payload_prefix"]),
            user_random=None if user_random is None else bytes(user_random),
        )


@dataclass(slots=True)
class ConfigRecord:
    """Protocol-wide settings, mutated only by governance operations."""

    admin: Address
    default_provider: Address
    platform_fee: int = 0
    accrued_platform_fees: int = 0
    proposed_admin: Address = Address(ZERO_ADDRESS)
    seed: bytes = ZERO_DIGEST

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ConfigRecord":
        data = dict(d)
        for name in ("admin", "default_provider", "proposed_admin", "seed"):
            data[name] = bytes(data[name])
        return cls(**data)


__all__ = ["ProviderRecord", "RequestRecord", "ConfigRecord"]
