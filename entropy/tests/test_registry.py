import pytest

from entropy.chain.hashchain import HashChain
from entropy.errors import (ErrorCategory, InsufficientBalance, InvalidArgument,
                            ProviderNotFound, SequencingError, Unauthorized)
from entropy.types.records import ProviderRecord

from .util import (ADMIN, BASE, FEE, OTHER, PROVIDER, bootstrap, make_service,
                   request)


def test_registration_window(svc, chain):
    p = svc.get_provider(PROVIDER)
    assert p.original_sequence == p.current_sequence == BASE
    assert p.next_sequence == BASE + 1
    assert p.end_sequence == BASE + len(chain)
    assert p.original_commitment == p.current_commitment == chain.commitment
    assert p.fee == FEE
    assert p.accrued_fees == 0
    assert svc.vault.exists(svc.provider_vault(PROVIDER))

    ev = svc.events.recent("ProviderRegistered")[-1]
    assert ev.rotated is False
    assert (ev.original_sequence, ev.end_sequence) == (BASE, BASE + len(chain))


def test_rotation_anchors_at_next_sequence_and_keeps_settings(svc):
    svc.set_fee_manager(PROVIDER, PROVIDER, OTHER)
    svc.set_max_chain_distance(PROVIDER, PROVIDER, 50)
    svc.set_default_resource_limit(PROVIDER, PROVIDER, 7)
    request(svc, b"\x01" * 32)
    request(svc, b"\x02" * 32)

    fresh = HashChain.from_secret(b"rotated", 8)
    p = svc.register(PROVIDER, fee=250, commitment=fresh.commitment, chain_length=8, uri=b"https://p")
    assert p.original_sequence == p.current_sequence == BASE + 3
    assert p.next_sequence == BASE + 4
    assert p.end_sequence == BASE + 3 + 8
    assert p.current_commitment == fresh.commitment
    assert p.fee == 250
    assert bytes(p.uri) == b"https://p"
    # fees and delegate settings survive
    assert p.accrued_fees == 2 * FEE
    assert p.fee_manager == OTHER
    assert p.max_chain_distance == 50
    assert p.default_resource_limit == 7
    assert svc.events.recent("ProviderRegistered")[-1].rotated is True


def test_register_rejects_bad_input(svc, chain):
    with pytest.raises(InvalidArgument):
        svc.register(OTHER, fee=1, commitment=chain.commitment, chain_length=0)
    with pytest.raises(InvalidArgument):
        svc.register(OTHER, fee=-1, commitment=chain.commitment, chain_length=4)
    with pytest.raises(InvalidArgument):
        svc.register(OTHER, fee=1, commitment=b"\x00" * 31, chain_length=4)
    with pytest.raises(InvalidArgument):
        svc.register(OTHER, fee=1, commitment=chain.commitment, chain_length=4, uri=b"u" * 257)
    with pytest.raises(InvalidArgument):
        svc.register(OTHER, fee=1, commitment=chain.commitment, chain_length=4, commitment_metadata=b"m" * 65)
    with pytest.raises(ProviderNotFound):
        svc.get_provider(OTHER)


def test_setters_require_authority(svc):
    for op, arg in (
        (svc.set_uri, b"x"),
        (svc.set_fee_manager, OTHER),
        (svc.set_max_chain_distance, 3),
        (svc.set_default_resource_limit, 3),
        (svc.set_fee, 1),
    ):
        with pytest.raises(Unauthorized):
            op(ADMIN, PROVIDER, arg)
    assert svc.get_provider(PROVIDER).fee == FEE


def test_fee_manager_may_set_fee_and_withdraw(svc):
    svc.set_fee_manager(PROVIDER, PROVIDER, OTHER)
    assert svc.set_fee(OTHER, PROVIDER, 42).fee == 42
    request(svc, b"\x01" * 32)

    rec = svc.withdraw(OTHER, PROVIDER, 42, ADMIN)
    assert rec.accrued_fees == 0
    assert svc.balance(ADMIN) == 42
    assert svc.balance(svc.provider_vault(PROVIDER)) == 0

    # clearing the delegate revokes it
    svc.set_fee_manager(PROVIDER, PROVIDER, b"\x00" * 32)
    with pytest.raises(Unauthorized):
        svc.set_fee(OTHER, PROVIDER, 1)


def test_withdraw_bounded_by_accrued_fees(svc):
    request(svc, b"\x01" * 32)
    with pytest.raises(InsufficientBalance):
        svc.withdraw(PROVIDER, PROVIDER, FEE + 1, OTHER)
    with pytest.raises(InvalidArgument):
        svc.withdraw(PROVIDER, PROVIDER, 0, OTHER)

    svc.withdraw(PROVIDER, PROVIDER, 60, OTHER)
    assert svc.get_provider(PROVIDER).accrued_fees == FEE - 60
    assert svc.balance(OTHER) == 60
    ev = svc.events.recent("FeesWithdrawn")[-1]
    assert (ev.recipient, ev.amount) == (OTHER, 60)


def test_default_resource_limit_must_align_with_resolution(chain):
    svc = bootstrap(make_service(resource_limit_resolution=10_000), chain)
    with pytest.raises(InvalidArgument):
        svc.set_default_resource_limit(PROVIDER, PROVIDER, 15_000)
    assert svc.get_provider(PROVIDER).default_resource_limit == 0
    p = svc.set_default_resource_limit(PROVIDER, PROVIDER, 20_000)
    assert p.default_resource_limit == 20_000
    assert svc.get_fee(PROVIDER, 12_000) == svc.get_fee(PROVIDER) == FEE


def test_request_stores_limit_raised_to_default(svc):
    svc.set_default_resource_limit(PROVIDER, PROVIDER, 50)
    assert request(svc, b"\x03" * 32, resource_limit=10).resource_limit == 50
    assert request(svc, b"\x04" * 32).resource_limit == 50
    assert request(svc, b"\x05" * 32, resource_limit=80).resource_limit == 80


def test_sequence_invariant_violation_is_an_entropy_error():
    p = ProviderRecord(
        authority=PROVIDER, original_sequence=5, current_sequence=4, next_sequence=6, end_sequence=9
    )
    with pytest.raises(SequencingError) as ei:
        p.check_invariants()
    assert ei.value.category is ErrorCategory.SEQUENCING
