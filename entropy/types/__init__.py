"""
Entropy — types package

Typed primitives and records shared across the protocol components:

  • core     — Address, CallbackStatus, BoundedBytes, CapabilityMeta
  • records  — ProviderRecord, RequestRecord, ConfigRecord

Re-exported here for convenience:
    from entropy.types import ProviderRecord, CallbackStatus
"""

from __future__ import annotations

from .core import (Address, BoundedBytes, CallbackStatus, CapabilityMeta,
                   is_zero, require_address)
from .records import ConfigRecord, ProviderRecord, RequestRecord

__all__ = [
    "Address",
    "BoundedBytes",
    "CallbackStatus",
    "CapabilityMeta",
    "is_zero",
    "require_address",
    "ConfigRecord",
    "ProviderRecord",
    "RequestRecord",
]
