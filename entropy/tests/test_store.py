import pytest

from entropy.store.memory import MemoryKeyValue
from entropy.store.records import RecordStore
from entropy.store.sqlite import SQLiteKeyValue
from entropy.types.core import BoundedBytes, CallbackStatus, CapabilityMeta
from entropy.types.records import RequestRecord

from .util import PAYER, PROGRAM, PROVIDER, TARGET


@pytest.fixture(params=["memory", "sqlite"])
def kv(request, tmp_path):
    if request.param == "memory":
        store = MemoryKeyValue()
    else:
        store = SQLiteKeyValue(str(tmp_path / "entropy.db"))
    yield store
    store.close()


def test_transaction_rolls_back_every_write(kv):
    kv.put(b"a", b"1")
    with pytest.raises(RuntimeError):
        with kv.transaction():
            kv.put(b"a", b"2")
            kv.put(b"b", b"3")
            kv.delete(b"a")
            raise RuntimeError("boom")
    assert kv.get(b"a") == b"1"
    assert kv.get(b"b") is None


def test_nested_transaction_joins_outer(kv):
    with pytest.raises(ValueError):
        with kv.transaction():
            kv.put(b"x", b"1")
            with kv.transaction():
                kv.put(b"y", b"2")
            raise ValueError
    assert not kv.has(b"x")
    assert not kv.has(b"y")

    with kv.transaction():
        with kv.transaction():
            kv.put(b"y", b"2")
    assert kv.get(b"y") == b"2"


def test_savepoint_undoes_only_its_own_writes(kv):
    with kv.transaction():
        kv.put(b"kept", b"1")
        with pytest.raises(RuntimeError):
            with kv.savepoint():
                kv.put(b"kept", b"2")
                kv.put(b"dropped", b"3")
                raise RuntimeError("callee")
        with kv.savepoint():
            kv.put(b"after", b"4")
    assert kv.get(b"kept") == b"1"
    assert kv.get(b"dropped") is None
    assert kv.get(b"after") == b"4"


def test_iter_prefix_is_ordered(kv):
    for k in (b"\x02b", b"\x01z", b"\x02a", b"\x02\xff", b"\x03"):
        kv.put(k, k)
    assert [k for k, _ in kv.iter_prefix(b"\x02")] == [b"\x02a", b"\x02b", b"\x02\xff"]


def test_request_record_survives_codec(kv):
    records = RecordStore(kv)
    rec = RequestRecord(
        provider=PROVIDER,
        sequence=7,
        chain_distance=2,
        commitment=b"\x09" * 32,
        request_marker=3,
        requester_program=PROGRAM,
        requester_signer=PROGRAM,
        payer=PAYER,
        uses_external_entropy=True,
        callback_status=CallbackStatus.FAILED,
        callback_target=TARGET,
        capability_list=(CapabilityMeta(b"\x0a" * 32, True, False), CapabilityMeta(b"\x0b" * 32)),
        payload_prefix=BoundedBytes(b"hello", 256),
        user_random=b"\x01" * 32,
    )
    records.put_request(rec)
    assert records.get_request(PROVIDER, 7) == rec
    assert [r.sequence for r in records.iter_requests(PROVIDER)] == [7]
    records.del_request(PROVIDER, 7)
    assert records.get_request(PROVIDER, 7) is None


def test_requests_iterate_in_sequence_order():
    records = RecordStore(MemoryKeyValue())
    for seq in (300, 2, 256, 17):
        records.put_request(
            RequestRecord(
                provider=PROVIDER,
                sequence=seq,
                chain_distance=1,
                commitment=b"\x00" * 32,
                request_marker=0,
                requester_program=PROGRAM,
                requester_signer=PROGRAM,
                payer=PAYER,
            )
        )
    assert [r.sequence for r in records.iter_requests(PROVIDER)] == [2, 17, 256, 300]
