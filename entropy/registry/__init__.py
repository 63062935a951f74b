"""Provider registry: chain heads, fee schedules and provider vaults."""

from __future__ import annotations

from .provider import ProviderRegistry

__all__ = ["ProviderRegistry"]
