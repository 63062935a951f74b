import pytest

from entropy.errors import InsufficientFee
from entropy.events import EventBus, Requested, Revealed

from .util import PAYER, PROGRAM, PROVIDER, request


def test_payload_is_json_ready():
    ev = Requested(PROVIDER, 11, PROGRAM, PAYER, 100)
    payload = ev.to_payload()
    assert payload["provider"] == "0x" + PROVIDER.hex()
    assert payload["fee_paid"] == 100


def test_subscribers_by_topic():
    bus = EventBus(history=2)
    seen, everything = [], []
    sub = bus.subscribe("Revealed", seen.append)
    bus.subscribe(None, everything.append)

    bus.publish(Requested(PROVIDER, 1, PROGRAM, PAYER, 1))
    bus.publish(Revealed(PROVIDER, 1, b"\x00" * 32, True, 0))
    sub.unsubscribe()
    bus.publish(Revealed(PROVIDER, 2, b"\x00" * 32, True, 0))

    assert [e.sequence for e in seen] == [1]
    assert len(everything) == 3
    assert [e.sequence for e in bus.recent()] == [1, 2]


def test_subscriber_errors_do_not_escape():
    bus = EventBus()

    def boom(_event):
        raise RuntimeError("subscriber bug")

    bus.subscribe(None, boom)
    assert bus.publish(Requested(PROVIDER, 1, PROGRAM, PAYER, 1)) == 0


def test_service_publishes_after_commit(svc):
    topics = []
    svc.events.subscribe(None, lambda e: topics.append(e.topic))
    request(svc, b"\x01" * 32)
    with pytest.raises(InsufficientFee):
        request(svc, b"\x02" * 32, payment=0)
    assert topics == ["Requested"]
