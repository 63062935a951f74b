"""
Prometheus metrics for the entropy protocol.

Instruments:
  • requests_total{outcome}   — request submissions
  • reveals_total{outcome}    — reveal attempts
  • callbacks_total{outcome}  — callback dispatches
  • fees_collected_total{kind}— provider / platform fee units collected
  • chain_distance            — chain distance of revealed requests

Outcome labels come from small fixed vocabularies; anything else is recorded
as ``invalid``.

Usage
-----
    from entropy.metrics import METRICS

    METRICS.record_request("accepted")
    METRICS.observe_chain_distance(3)
"""

from __future__ import annotations

from typing import Iterable

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Histogram, generate_latest)

# Dedicated registry so embedding apps can merge or expose it directly.
REGISTRY = CollectorRegistry()

_REQUEST_OUTCOMES = (
    "accepted",
    "insufficient_fee",
    "out_of_randomness",
    "last_revealed_too_old",
    "provider_not_found",
    "invalid",
)

_REVEAL_OUTCOMES = (
    "accepted",
    "incorrect_revelation",
    "chain_linkage_mismatch",
    "entropy_unavailable",
    "invalid_reveal_call",
    "unauthorized",
    "request_not_found",
    "callback_accounts_mismatch",
    "invalid",
)

_CALLBACK_OUTCOMES = (
    "delivered",
    "failed",
)

_FEE_KINDS = ("provider", "platform")

_CHAIN_DISTANCE_BUCKETS = (1, 2, 4, 8, 16, 32, 64, 128, 256, 1024, 4096)


class Metrics:
    """Container for the entropy Prometheus instruments."""

    def __init__(
        self,
        *,
        namespace: str = "animica",
        subsystem: str = "entropy",
        registry=REGISTRY,
        distance_buckets: Iterable[float] = _CHAIN_DISTANCE_BUCKETS,
    ) -> None:
        self.requests_total = Counter(
            "requests_total",
            "Randomness requests processed, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.reveals_total = Counter(
            "reveals_total",
            "Reveal attempts processed, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.callbacks_total = Counter(
            "callbacks_total",
            "Callback dispatches, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.fees_collected_total = Counter(
            "fees_collected_total",
            "Fee units collected from requests.",
            labelnames=("kind",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.chain_distance = Histogram(
            "chain_distance",
            "Chain distance of revealed requests.",
            buckets=tuple(distance_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_request(self, outcome: str) -> None:
        if outcome not in _REQUEST_OUTCOMES:
            outcome = "invalid"
        self.requests_total.labels(outcome=outcome).inc()

    def record_reveal(self, outcome: str) -> None:
        if outcome not in _REVEAL_OUTCOMES:
            outcome = "invalid"
        self.reveals_total.labels(outcome=outcome).inc()

    def record_callback(self, ok: bool) -> None:
        self.callbacks_total.labels(outcome="delivered" if ok else "failed").inc()

    def record_fees(self, provider_share: int, platform_share: int) -> None:
        if provider_share:
            self.fees_collected_total.labels(kind="provider").inc(provider_share)
        if platform_share:
            self.fees_collected_total.labels(kind="platform").inc(platform_share)

    def observe_chain_distance(self, distance: int) -> None:
        self.chain_distance.observe(float(distance))


def render_latest(registry: CollectorRegistry = REGISTRY) -> tuple[bytes, str]:
    """Prometheus text exposition for ``registry`` and its content type."""
    return generate_latest(registry), CONTENT_TYPE_LATEST


# Singleton used by the service facade
METRICS = Metrics()

__all__ = ["Metrics", "METRICS", "REGISTRY", "render_latest"]
