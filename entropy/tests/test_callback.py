import threading
import time

import pytest

from entropy.callback.dispatch import CallbackRouter, build_payload
from entropy.chain.hashchain import HashChain
from entropy.constants import ZERO_DIGEST
from entropy.errors import (CallbackAccountsMismatch, InvalidRevealCall,
                            RequestNotFound)
from entropy.types.core import CallbackStatus, CapabilityMeta
from entropy.utils.bytes import u64_le
from entropy.utils.hash import sha256

from .util import BASE, OTHER, PAYER, PROGRAM, PROVIDER, TARGET

USER = b"\x31" * 32
CAPS = (
    CapabilityMeta(b"\x41" * 32, is_signer=False, is_writable=True),
    CapabilityMeta(b"\x42" * 32, is_signer=False, is_writable=False),
)


class Recorder:
    def __init__(self, fail=None):
        self.calls = []
        self.fail = fail

    def __call__(self, capabilities, payload, credential):
        if self.fail is not None:
            raise self.fail
        self.calls.append((tuple(capabilities), payload, credential))


def _request(svc, **kw):
    kw.setdefault("capabilities", CAPS)
    kw.setdefault("payload_prefix", b"\x99\x98")
    kw.setdefault("user_random", USER)
    return svc.request_with_callback(
        svc.requester_signer(PROGRAM),
        payer=PAYER,
        requester_program=PROGRAM,
        payment=svc.get_fee(),
        callback_target=TARGET,
        **kw,
    )


def test_callback_request_record(svc):
    rec = _request(svc)
    assert rec.callback_status is CallbackStatus.NOT_STARTED
    assert rec.callback_target == TARGET
    assert rec.capability_list == CAPS
    assert bytes(rec.payload_prefix) == b"\x99\x98"
    assert rec.user_random == USER

    ev = svc.events.recent("RequestedWithCallback")[-1]
    assert (ev.sequence, ev.user_random, ev.callback_target) == (rec.sequence, USER, TARGET)


def test_delivery(svc, chain):
    handler = Recorder()
    svc.invoker.register(TARGET, handler)
    rec = _request(svc)

    # any caller may trigger delivery
    out = svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=CAPS)
    random = sha256(USER + chain.reveal(1) + ZERO_DIGEST)
    assert out.random == random
    assert out.retired is True
    assert out.callback_status is CallbackStatus.NOT_NECESSARY
    assert out.callback_error is None

    assert len(handler.calls) == 1
    caps, payload, credential = handler.calls[0]
    assert caps == CAPS
    assert payload == b"\x99\x98" + u64_le(BASE + 1) + PROVIDER + random
    assert payload == build_payload(rec, random)
    assert credential == svc.credential
    assert svc.pending_requests() == []
    assert svc.get_provider(PROVIDER).current_sequence == BASE + 1


def test_capability_mismatch_changes_nothing(svc, chain):
    handler = Recorder()
    svc.invoker.register(TARGET, handler)
    rec = _request(svc)

    wrong_lists = [
        CAPS[::-1],
        CAPS[:1],
        (CAPS[0], CapabilityMeta(CAPS[1].key, is_signer=True)),
        CAPS + (CapabilityMeta(b"\x43" * 32),),
        (CAPS[0], CapabilityMeta(b"\x43" * 32, is_signer=False, is_writable=False)),
    ]
    for caps in wrong_lists:
        with pytest.raises(CallbackAccountsMismatch):
            svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=caps)

    assert handler.calls == []
    assert svc.get_request(PROVIDER, rec.sequence).callback_status is CallbackStatus.NOT_STARTED
    assert svc.get_provider(PROVIDER).current_sequence == BASE


def test_failed_callback_can_be_retried(svc, chain):
    svc.invoker.register(TARGET, Recorder(fail=RuntimeError("callee reverted")))
    rec = _request(svc)

    out = svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=CAPS)
    assert out.retired is False
    assert out.callback_status is CallbackStatus.FAILED
    assert "callee reverted" in out.callback_error
    assert svc.get_request(PROVIDER, rec.sequence).callback_status is CallbackStatus.FAILED
    # the reveal itself committed
    assert svc.get_provider(PROVIDER).current_sequence == rec.sequence
    failed = svc.events.recent("CallbackFailed")[-1]
    assert failed.sequence == rec.sequence

    handler = Recorder()
    svc.invoker.register(TARGET, handler)
    again = svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=CAPS)
    assert again.retired is True
    assert again.random == out.random
    assert len(handler.calls) == 1
    assert svc.pending_requests() == []

    with pytest.raises(RequestNotFound):
        svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=CAPS)


def test_failed_callback_leaves_no_callee_writes(svc, chain):
    victim = b"\x5a" * 32

    def fund_then_revert(capabilities, payload, credential):
        svc.fund(victim, 5)
        raise RuntimeError("callee reverted")

    svc.invoker.register(TARGET, fund_then_revert)
    rec = _request(svc)

    out = svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=CAPS)
    assert out.callback_status is CallbackStatus.FAILED
    assert svc.balance(victim) == 0
    # the reveal and the FAILED status still commit
    assert svc.get_request(PROVIDER, rec.sequence).callback_status is CallbackStatus.FAILED
    assert svc.get_provider(PROVIDER).current_sequence == rec.sequence


def test_callee_may_call_back_into_service_while_others_write(svc, chain):
    other_chain = HashChain.from_secret(b"other-secret", 4)
    svc.register(OTHER, fee=1, commitment=other_chain.commitment, chain_length=len(other_chain))
    entered = threading.Event()
    errors = []

    def reentrant(capabilities, payload, credential):
        entered.set()
        time.sleep(0.05)
        svc.set_fee(OTHER, OTHER, 7)

    def guarded(fn, *args, **kw):
        try:
            fn(*args, **kw)
        except Exception as e:  # surfaced through ``errors``
            errors.append(e)

    svc.invoker.register(TARGET, reentrant)
    rec = _request(svc)

    def writer():
        entered.wait(timeout=5)
        svc.set_fee(OTHER, OTHER, 9)

    revealer = threading.Thread(
        target=guarded,
        args=(svc.reveal_with_callback, OTHER, PROVIDER, rec.sequence),
        kwargs={"provider_random": chain.reveal(1), "capabilities": CAPS},
    )
    other = threading.Thread(target=guarded, args=(writer,))
    revealer.start()
    other.start()
    revealer.join(timeout=5)
    other.join(timeout=5)

    assert not revealer.is_alive() and not other.is_alive()
    assert errors == []
    assert svc.pending_requests() == []
    assert svc.get_provider(OTHER).fee == 9


def test_missing_handler_counts_as_failure(svc, chain):
    rec = _request(svc, capabilities=(), payload_prefix=b"")
    out = svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1))
    assert out.callback_status is CallbackStatus.FAILED
    assert out.callback_error.startswith("LookupError")


def test_plain_reveal_refused_for_failed_request(svc, chain):
    svc.invoker.register(TARGET, Recorder(fail=ValueError("nope")))
    rec = _request(svc)
    svc.reveal_with_callback(OTHER, PROVIDER, rec.sequence, provider_random=chain.reveal(1), capabilities=CAPS)
    with pytest.raises(InvalidRevealCall):
        svc.reveal(
            svc.requester_signer(PROGRAM), PROVIDER, rec.sequence, user_random=USER, provider_random=chain.reveal(1)
        )


def test_router_unregister():
    router = CallbackRouter()
    handler = Recorder()
    router.register(TARGET, handler)
    router.invoke(TARGET, (), b"p", b"c")
    router.unregister(TARGET)
    with pytest.raises(LookupError):
        router.invoke(TARGET, (), b"p", b"c")
    assert handler.calls == [((), b"p", b"c")]
