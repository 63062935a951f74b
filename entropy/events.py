"""
entropy.events
==============

Typed protocol events and a small synchronous event bus.

Topics:

  - "ProviderRegistered"     : registration or rotation of a provider chain
  - "Requested"              : request without callback
  - "RequestedWithCallback"  : request with callback (carries the user random)
  - "Revealed"               : a reveal produced a random value
  - "CallbackFailed"         : a callback raised; the request stays FAILED
  - "CommitmentAdvanced"     : provider moved its chain head out of band
  - "FeesWithdrawn"          : provider or platform fees left a vault

The service publishes only after the operation's transaction committed, so
subscribers never observe rolled-back state. Subscriber errors are logged
and swallowed; the bus is thread-safe and keeps a short buffer of recent
events for inspection.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, fields
from typing import Any, Callable, ClassVar, Deque, Dict, List, Optional

from .utils.bytes import jsonable

logger = logging.getLogger(__name__)

JSONDict = Dict[str, Any]


@dataclass(frozen=True)
class Event:
    topic: ClassVar[str] = "Event"

    def to_payload(self) -> JSONDict:
        return {f.name: jsonable(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class ProviderRegistered(Event):
    topic: ClassVar[str] = "ProviderRegistered"
    provider: bytes
    fee: int
    original_sequence: int
    end_sequence: int
    rotated: bool


@dataclass(frozen=True)
class Requested(Event):
    topic: ClassVar[str] = "Requested"
    provider: bytes
    sequence: int
    requester_program: bytes
    payer: bytes
    fee_paid: int


@dataclass(frozen=True)
class RequestedWithCallback(Event):
    topic: ClassVar[str] = "RequestedWithCallback"
    provider: bytes
    sequence: int
    requester_program: bytes
    payer: bytes
    fee_paid: int
    user_random: bytes
    callback_target: bytes


@dataclass(frozen=True)
class Revealed(Event):
    topic: ClassVar[str] = "Revealed"
    provider: bytes
    sequence: int
    random: bytes
    retired: bool
    callback_status: int


@dataclass(frozen=True)
class CallbackFailed(Event):
    topic: ClassVar[str] = "CallbackFailed"
    provider: bytes
    sequence: int
    error: str


@dataclass(frozen=True)
class CommitmentAdvanced(Event):
    topic: ClassVar[str] = "CommitmentAdvanced"
    provider: bytes
    sequence: int


@dataclass(frozen=True)
class FeesWithdrawn(Event):
    topic: ClassVar[str] = "FeesWithdrawn"
    account: bytes
    recipient: bytes
    amount: int


Subscriber = Callable[[Event], None]


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    __slots__ = ("_bus", "_topic", "_cb")

    def __init__(self, bus: "EventBus", topic: Optional[str], cb: Subscriber) -> None:
        self._bus = bus
        self._topic = topic
        self._cb = cb

    def unsubscribe(self) -> None:
        self._bus._unsubscribe(self._topic, self._cb)


class EventBus:
    """
    Synchronous pub-sub bus keyed by topic.

    ``topic=None`` subscribes to every event.
    """

    def __init__(self, history: int = 256) -> None:
        self._lock = threading.RLock()
        self._subs: Dict[Optional[str], List[Subscriber]] = {}
        self._recent: Deque[Event] = deque(maxlen=history)

    def subscribe(self, topic: Optional[str], callback: Subscriber) -> Subscription:
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._subs.setdefault(topic, []).append(callback)
        return Subscription(self, topic, callback)

    def _unsubscribe(self, topic: Optional[str], callback: Subscriber) -> None:
        with self._lock:
            lst = self._subs.get(topic)
            if lst and callback in lst:
                lst.remove(callback)
            if not lst:
                self._subs.pop(topic, None)

    def publish(self, event: Event) -> int:
        with self._lock:
            self._recent.append(event)
            subs = list(self._subs.get(event.topic, [])) + list(self._subs.get(None, []))
        delivered = 0
        for cb in subs:
            try:
                cb(event)
                delivered += 1
            except Exception as e:
                logger.warning("subscriber error on topic=%s: %s", event.topic, e, exc_info=True)
        return delivered

    def recent(self, topic: Optional[str] = None) -> List[Event]:
        with self._lock:
            return [e for e in self._recent if topic is None or e.topic == topic]


__all__ = [
    "Event",
    "ProviderRegistered",
    "Requested",
    "RequestedWithCallback",
    "Revealed",
    "CallbackFailed",
    "CommitmentAdvanced",
    "FeesWithdrawn",
    "EventBus",
    "Subscription",
]
