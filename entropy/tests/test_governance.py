import pytest

from entropy.chain.hashchain import HashChain
from entropy.errors import (AlreadyInitialized, ConfigNotInitialized,
                            InsufficientBalance, Unauthorized)
from entropy.utils.bytes import u64_le
from entropy.utils.hash import sha256

from .util import (ADMIN, BASE, FEE, OTHER, PAYER, PROGRAM, PROVIDER, SEED,
                   TARGET, bootstrap, make_service, request)


def test_initialize_once(svc):
    cfg = svc.get_config()
    assert (cfg.admin, cfg.default_provider, cfg.seed) == (ADMIN, PROVIDER, SEED)
    assert svc.history.current_marker() == 1
    assert svc.vault.exists(svc.governance.vault_address)
    with pytest.raises(AlreadyInitialized):
        svc.initialize(ADMIN, admin=OTHER, default_provider=PROVIDER)
    assert svc.get_config().admin == ADMIN


def test_operations_need_config():
    svc = make_service()
    with pytest.raises(ConfigNotInitialized):
        svc.get_fee()
    with pytest.raises(ConfigNotInitialized):
        svc.get_config()


def test_admin_handover(svc):
    with pytest.raises(Unauthorized):
        svc.propose_admin(OTHER, OTHER)
    svc.propose_admin(ADMIN, OTHER)
    with pytest.raises(Unauthorized):
        svc.accept_admin(PAYER)
    cfg = svc.accept_admin(OTHER)
    assert cfg.admin == OTHER
    assert cfg.proposed_admin == b"\x00" * 32
    with pytest.raises(Unauthorized):
        svc.set_platform_fee(ADMIN, 1)


def test_platform_fee_split_and_withdraw():
    chain = HashChain.from_secret(b"p", 8)
    svc = bootstrap(make_service(), chain, platform_fee=7)
    assert svc.get_fee() == FEE + 7
    request(svc, b"\x01" * 32, payment=FEE + 20)

    assert svc.get_provider(PROVIDER).accrued_fees == FEE + 13
    assert svc.get_config().accrued_platform_fees == 7
    assert svc.balance(svc.governance.vault_address) == 7

    with pytest.raises(Unauthorized):
        svc.withdraw_platform_fees(OTHER, 7, OTHER)
    with pytest.raises(InsufficientBalance):
        svc.withdraw_platform_fees(ADMIN, 8, OTHER)
    svc.withdraw_platform_fees(ADMIN, 7, OTHER)
    assert svc.balance(OTHER) == 7
    assert svc.get_config().accrued_platform_fees == 0


def test_default_provider_switch(svc):
    fresh = HashChain.from_secret(b"other", 4)
    svc.register(OTHER, fee=5, commitment=fresh.commitment, chain_length=4)
    with pytest.raises(Unauthorized):
        svc.set_default_provider(OTHER, OTHER)
    svc.set_default_provider(ADMIN, OTHER)
    assert svc.get_fee() == 5
    rec = request(svc, b"\x01" * 32)
    assert rec.provider == OTHER
    assert rec.sequence == BASE + 1


def test_seed_derived_user_random(svc):
    rec = svc.request_with_callback(
        svc.requester_signer(PROGRAM),
        payer=PAYER,
        requester_program=PROGRAM,
        payment=svc.get_fee(),
        callback_target=TARGET,
    )
    expected = sha256(SEED + u64_le(BASE + 1) + u64_le(1))
    assert rec.user_random == expected
    assert svc.get_config().seed == expected

    nxt = svc.request_with_callback(
        svc.requester_signer(PROGRAM),
        payer=PAYER,
        requester_program=PROGRAM,
        payment=svc.get_fee(),
        callback_target=TARGET,
    )
    assert nxt.user_random == sha256(expected + u64_le(BASE + 2) + u64_le(1))
