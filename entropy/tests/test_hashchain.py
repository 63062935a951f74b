import pytest

from entropy.chain.hashchain import HashChain, commit, verify, verify_linkage
from entropy.errors import InvalidArgument
from entropy.utils.hash import blake2b256, sha256


def test_commit_applies_hash_distance_times():
    x = b"\x11" * 32
    assert commit(x, 0) == x
    assert commit(x, 1) == sha256(x)
    assert commit(x, 3) == sha256(sha256(sha256(x)))


def test_commit_rejects_negative_distance():
    with pytest.raises(InvalidArgument):
        commit(b"\x00" * 32, -1)
    assert verify(b"\x00" * 32, -1, b"\x00" * 32) is False


def test_chain_values_hash_onto_commitment():
    chain = HashChain.from_secret(b"s", 16)
    assert len(chain) == 16
    for i in range(16):
        assert verify(chain.reveal(i), i, chain.commitment)
    # one step short or long never matches
    assert not verify(chain.reveal(5), 4, chain.commitment)
    assert not verify(chain.reveal(5), 6, chain.commitment)


def test_chain_respects_hash_fn():
    a = HashChain.from_secret(b"s", 4, sha256)
    b = HashChain.from_secret(b"s", 4, blake2b256)
    assert a.commitment != b.commitment
    assert verify(b.reveal(3), 3, b.commitment, blake2b256)


def test_reveal_out_of_range():
    chain = HashChain.from_secret(b"s", 4)
    with pytest.raises(InvalidArgument):
        chain.reveal(4)
    with pytest.raises(InvalidArgument):
        HashChain.from_secret(b"s", 0)


def test_linkage_both_directions():
    chain = HashChain.from_secret(b"s", 10)
    tip, tip_seq = chain.reveal(4), 104
    # newer value hashes forward onto the tip
    assert verify_linkage(chain.reveal(7), 107, tip, tip_seq)
    # older value is reached by hashing the tip forward
    assert verify_linkage(chain.reveal(2), 102, tip, tip_seq)
    assert verify_linkage(tip, tip_seq, tip, tip_seq)
    # wrong position
    assert not verify_linkage(chain.reveal(7), 106, tip, tip_seq)
    assert not verify_linkage(chain.reveal(2), 103, tip, tip_seq)


def test_linkage_rejects_foreign_chain():
    a = HashChain.from_secret(b"a", 8)
    b = HashChain.from_secret(b"b", 8)
    assert not verify_linkage(b.reveal(3), 3, a.commitment, 0)
