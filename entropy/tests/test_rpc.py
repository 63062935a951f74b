import pytest
from fastapi.testclient import TestClient

from entropy.chain.hashchain import HashChain
from entropy.constants import ZERO_DIGEST
from entropy.rpc import create_app
from entropy.utils.bytes import from_hex, to_hex
from entropy.utils.hash import sha256

from .util import ADMIN, BASE, FEE, OTHER, PAYER, PROGRAM, PROVIDER

USER = b"\x61" * 32


@pytest.fixture
def client(svc):
    return TestClient(create_app(svc))


def rpc(client, method, params=None, id=1):
    body = {"jsonrpc": "2.0", "id": id, "method": method, "params": params or {}}
    res = client.post("/rpc", json=body)
    assert res.status_code == 200
    return res.json()


def _request_params(svc, **overrides):
    params = {
        "caller": to_hex(svc.requester_signer(PROGRAM)),
        "payer": to_hex(PAYER),
        "requesterProgram": to_hex(PROGRAM),
        "userCommitment": to_hex(svc.user_commitment(USER)),
        "payment": FEE,
    }
    params.update(overrides)
    return params


def test_get_config_and_fee(client):
    cfg = rpc(client, "entropy.getConfig")["result"]
    assert cfg["admin"] == to_hex(ADMIN)
    assert cfg["default_provider"] == to_hex(PROVIDER)

    assert rpc(client, "entropy.getFee")["result"] == {"fee": FEE, "resourceLimit": 0}
    res = client.get("/entropy/fee", params={"provider": to_hex(PROVIDER)})
    assert res.status_code == 200
    assert res.json()["fee"] == FEE


def test_request_and_reveal_over_jsonrpc(client, svc, chain):
    rec = rpc(client, "entropy.request", _request_params(svc))["result"]
    assert rec["sequence"] == BASE + 1
    assert rec["callback_status"] == 0

    got = rpc(client, "entropy.getRequest", {"provider": to_hex(PROVIDER), "sequence": BASE + 1})["result"]
    assert got["commitment"] == rec["commitment"]

    out = rpc(
        client,
        "entropy.reveal",
        {
            "caller": to_hex(svc.requester_signer(PROGRAM)),
            "provider": to_hex(PROVIDER),
            "sequence": BASE + 1,
            "userRandom": to_hex(USER),
            "providerRandom": to_hex(chain.reveal(1)),
        },
    )["result"]
    assert from_hex(out["random"]) == sha256(USER + chain.reveal(1) + ZERO_DIGEST)
    assert out["retired"] is True
    assert out["callbackStatus"] == "NOT_NECESSARY"


def test_protocol_errors_carry_category(client, svc):
    err = rpc(client, "entropy.request", _request_params(svc, payment=FEE - 1))["error"]
    assert err["code"] == -32012
    assert err["data"]["code"] == "insufficient_fee"
    assert err["data"]["retryable"] is True

    err = rpc(client, "entropy.getProvider", {"provider": to_hex(OTHER)})["error"]
    assert err["code"] == -32004
    assert err["data"]["retryable"] is False


def test_invalid_calls(client):
    assert rpc(client, "entropy.nope")["error"]["code"] == -32601
    err = rpc(client, "entropy.register", {"authority": to_hex(OTHER), "fee": 1, "commitment": "0x00", "chainLength": 4})
    assert err["error"]["code"] == -32602
    err = rpc(client, "entropy.getFee", {"resourceLimit": 0, "bogus": 1})
    assert err["error"]["code"] == -32602

    res = client.post("/rpc", json={"id": 1, "method": "entropy.getConfig"})
    assert res.json()["error"]["code"] == -32600


def test_batch(client):
    res = client.post(
        "/rpc",
        json=[
            {"jsonrpc": "2.0", "id": 1, "method": "entropy.getFee", "params": {}},
            {"jsonrpc": "2.0", "id": 2, "method": "entropy.getProvider", "params": [{"provider": to_hex(PROVIDER)}]},
        ],
    )
    first, second = res.json()
    assert first["result"]["fee"] == FEE
    assert second["result"]["authority"] == to_hex(PROVIDER)


def test_rest_status_codes(client, svc, chain):
    res = client.get(f"/entropy/providers/{to_hex(OTHER)}")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "provider_not_found"

    res = client.post("/entropy/request", json=_request_params(svc))
    assert res.status_code == 200
    seq = res.json()["sequence"]

    pending = client.get(f"/entropy/requests/{to_hex(PROVIDER)}").json()
    assert [r["sequence"] for r in pending] == [seq]

    bad = {
        "caller": to_hex(svc.requester_signer(PROGRAM)),
        "provider": to_hex(PROVIDER),
        "sequence": seq,
        "userRandom": to_hex(USER),
        "providerRandom": to_hex(chain.reveal(2)),
    }
    res = client.post("/entropy/reveal", json=bad)
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "incorrect_revelation"

    res = client.post("/entropy/reveal", json=dict(bad, caller=to_hex(OTHER), providerRandom=to_hex(chain.reveal(1))))
    assert res.status_code == 403

    res = client.post("/entropy/advance_commitment", json={
        "caller": to_hex(PROVIDER),
        "provider": to_hex(PROVIDER),
        "targetSequence": BASE + 40,
        "providerRandom": to_hex(chain.reveal(1)),
    })
    assert res.status_code == 409


def test_register_rest_and_metrics(client):
    fresh = HashChain.from_secret(b"rest", 4)
    res = client.post(
        "/entropy/register",
        json={"authority": to_hex(OTHER), "fee": 3, "commitment": to_hex(fresh.commitment), "chainLength": 4, "uri": "https://x"},
    )
    assert res.status_code == 200
    assert res.json()["end_sequence"] == BASE + 4

    res = client.get("/entropy/metrics")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")
