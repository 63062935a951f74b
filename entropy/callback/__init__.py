"""Requester callback delivery."""

from __future__ import annotations

from .dispatch import (CallbackDispatcher, CallbackInvoker, CallbackRouter,
                       DispatchResult, build_payload, validate_capabilities)

__all__ = [
    "CallbackDispatcher",
    "CallbackInvoker",
    "CallbackRouter",
    "DispatchResult",
    "build_payload",
    "validate_capabilities",
]
