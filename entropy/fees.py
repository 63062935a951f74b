# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Fee computation for randomness requests.

    limit' = normalize(max(limit, default))

    provider_fee(p, limit) = p.fee                                        if default == 0 or limit' <= default
                           = p.fee + (limit' - default) * p.fee // default   otherwise

    required_fee = provider_fee + platform_fee

``normalize`` rounds a resource limit up to a multiple of the deployment's
resolution unit; ``resolution=1`` makes it the identity. Limits below the
provider's default (``0`` included) are raised to it, so they pay the base fee
as long as the default is a multiple of the resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .constants import RESOURCE_LIMIT_RESOLUTION
from .errors import InsufficientFee, InvalidArgument
from .types.records import ProviderRecord


@dataclass(frozen=True)
class FeeCalculator:
    resolution: int = RESOURCE_LIMIT_RESOLUTION

    def __post_init__(self) -> None:
        if self.resolution <= 0:
            raise InvalidArgument("resource limit resolution must be > 0")

    def normalize(self, limit: int) -> int:
        if limit < 0:
            raise InvalidArgument("resource limit must be non-negative")
        r = self.resolution
        return -(-limit // r) * r

    def effective_limit(self, provider: ProviderRecord, limit: int) -> int:
        """The limit a request actually runs with; never below the provider default."""
        if limit < 0:
            raise InvalidArgument("resource limit must be non-negative")
        return max(limit, provider.default_resource_limit)

    def provider_fee(self, provider: ProviderRecord, limit: int) -> int:
        default = provider.default_resource_limit
        if default == 0:
            return provider.fee
        rounded = self.normalize(self.effective_limit(provider, limit))
        if rounded <= default:
            return provider.fee
        return provider.fee + (rounded - default) * provider.fee // default

    def required_fee(self, provider: ProviderRecord, limit: int, platform_fee: int) -> int:
        return self.provider_fee(provider, limit) + platform_fee

    def split(self, provider: ProviderRecord, limit: int, platform_fee: int, payment: int) -> Tuple[int, int]:
        """
        Check ``payment`` and split it into ``(provider_share, platform_share)``.

        Overpayment goes to the provider.
        """
        required = self.required_fee(provider, limit, platform_fee)
        if payment < required:
            raise InsufficientFee(payment, required)
        return payment - platform_fee, platform_fee


__all__ = ["FeeCalculator"]
