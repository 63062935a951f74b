"""
Entropy protocol errors.

A small, typed hierarchy of exceptions raised by the protocol core. Every
error carries an :class:`ErrorCategory` so callers (RPC, CLI, keepers) can
tell retryable conditions (payment) from permanent ones (integrity,
availability) without matching on concrete classes.

Any raised error means the whole operation was aborted with no state
change. A failing requester callback is *not* an error: it downgrades the
request to ``FAILED`` and the reveal still succeeds.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    SEQUENCING = "sequencing"
    AUTHORIZATION = "authorization"
    PAYMENT = "payment"
    INTEGRITY = "integrity"
    AVAILABILITY = "availability"
    NOT_FOUND = "not_found"


_RETRYABLE = frozenset({ErrorCategory.PAYMENT})


class EntropyError(Exception):
    """Base class for all entropy protocol errors."""

    category: ErrorCategory = ErrorCategory.VALIDATION
    code: str = "entropy_error"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details: Dict[str, Any] = details

    @property
    def retryable(self) -> bool:
        return self.category in _RETRYABLE

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            out["details"] = {
                k: (v.hex() if isinstance(v, (bytes, bytearray)) else v)
                for k, v in self.details.items()
            }
        return out

    def __str__(self) -> str:
        return f"{self.category.value}: {self.message}"


# ---- (a) validation ---------------------------------------------------------

class ValidationError(EntropyError):
    category = ErrorCategory.VALIDATION
    code = "invalid_argument"


class InvalidArgument(ValidationError):
    """Malformed input: zero identity, bad length, non-positive chain length, …"""


class AlreadyInitialized(ValidationError):
    code = "already_initialized"


# ---- (b) sequencing ---------------------------------------------------------

class SequencingError(EntropyError):
    category = ErrorCategory.SEQUENCING
    code = "sequencing"


class OutOfRandomness(SequencingError):
    """The provider's registered chain has no sequence numbers left."""

    code = "out_of_randomness"

    def __init__(self, provider: bytes, sequence: int, end_sequence: int) -> None:
        super().__init__(
            f"sequence {sequence} is not below end_sequence {end_sequence}",
            provider=provider,
            sequence=sequence,
            end_sequence=end_sequence,
        )


class LastRevealedTooOld(SequencingError):
    """The chain distance from the last revealed value exceeds the provider limit."""

    code = "last_revealed_too_old"

    def __init__(self, provider: bytes, distance: int, max_distance: int) -> None:
        super().__init__(
            f"chain distance {distance} exceeds max_chain_distance {max_distance}",
            provider=provider,
            distance=distance,
            max_distance=max_distance,
        )


# ---- (c) authorization ------------------------------------------------------

class AuthorizationError(EntropyError):
    category = ErrorCategory.AUTHORIZATION
    code = "unauthorized"


class Unauthorized(AuthorizationError):
    """Wrong signer for a provider, admin, fee-manager or requester-bound action."""


class InvalidRevealCall(AuthorizationError):
    """The request's callback status does not allow this kind of reveal."""

    code = "invalid_reveal_call"


# ---- (d) payment ------------------------------------------------------------

class PaymentError(EntropyError):
    category = ErrorCategory.PAYMENT
    code = "payment"


class InsufficientFee(PaymentError):
    code = "insufficient_fee"

    def __init__(self, paid: int, required: int) -> None:
        super().__init__(f"paid {paid} < required {required}", paid=paid, required=required)


class InsufficientBalance(PaymentError):
    code = "insufficient_balance"

    def __init__(self, account: bytes, balance: int, amount: int) -> None:
        super().__init__(
            f"balance {balance} < amount {amount}",
            account=account,
            balance=balance,
            amount=amount,
        )


# ---- (e) integrity ----------------------------------------------------------

class IntegrityError(EntropyError):
    category = ErrorCategory.INTEGRITY
    code = "integrity"


class IncorrectRevelation(IntegrityError):
    """Revealed secrets do not reproduce the request's stored commitment."""

    code = "incorrect_revelation"


class ChainLinkageMismatch(IntegrityError):
    """Provider value is not linked to the provider's live chain tip."""

    code = "chain_linkage_mismatch"


class CallbackAccountsMismatch(IntegrityError):
    """Capability list supplied at reveal time differs from the stored one."""

    code = "callback_accounts_mismatch"


# ---- (f) availability -------------------------------------------------------

class AvailabilityError(EntropyError):
    category = ErrorCategory.AVAILABILITY
    code = "availability"


class EntropyUnavailable(AvailabilityError):
    """Historical entropy for the request's marker was evicted. Permanent."""

    code = "entropy_unavailable"

    def __init__(self, marker: int) -> None:
        super().__init__(f"history entropy for marker {marker} is unavailable", marker=marker)


# ---- not found --------------------------------------------------------------

class NotFoundError(EntropyError):
    category = ErrorCategory.NOT_FOUND
    code = "not_found"


class ProviderNotFound(NotFoundError):
    code = "provider_not_found"

    def __init__(self, provider: bytes) -> None:
        super().__init__(f"provider {provider.hex()} is not registered", provider=provider)


class RequestNotFound(NotFoundError):
    code = "request_not_found"

    def __init__(self, provider: bytes, sequence: int) -> None:
        super().__init__(
            f"no request {sequence} for provider {provider.hex()}",
            provider=provider,
            sequence=sequence,
        )


class ConfigNotInitialized(NotFoundError):
    code = "config_not_initialized"


def category_of(exc: BaseException) -> Optional[ErrorCategory]:
    """Return the category of an entropy error, or None for foreign exceptions."""
    return exc.category if isinstance(exc, EntropyError) else None


__all__ = [
    "ErrorCategory",
    "EntropyError",
    "ValidationError",
    "InvalidArgument",
    "AlreadyInitialized",
    "SequencingError",
    "OutOfRandomness",
    "LastRevealedTooOld",
    "AuthorizationError",
    "Unauthorized",
    "InvalidRevealCall",
    "PaymentError",
    "InsufficientFee",
    "InsufficientBalance",
    "IntegrityError",
    "IncorrectRevelation",
    "ChainLinkageMismatch",
    "CallbackAccountsMismatch",
    "AvailabilityError",
    "EntropyUnavailable",
    "NotFoundError",
    "ProviderNotFound",
    "RequestNotFound",
    "ConfigNotInitialized",
    "category_of",
]
