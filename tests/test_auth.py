import pytest

from bridge.auth import ApiKeyGate, AuthorizationError
from conftest import ADDRESS, TXID

KEY = "s3cret-key"

ROUTES = [
    ("GET", "/health", None),
    ("POST", "/address", {"label": "x"}),
    ("POST", "/estimate", {"address": ADDRESS, "amount": 0.1}),
    ("POST", "/transfer", {"address": ADDRESS, "amount": 0.1}),
    ("POST", "/transfer", {"tx_metadata": "beef"}),
    ("GET", f"/tx/{TXID}", None),
    ("GET", "/tx/deadbeef", None),
    ("POST", "/proof", {"txid": TXID, "address": ADDRESS}),
    ("POST", "/verify", {"txid": TXID, "address": ADDRESS, "signature": "sig"}),
    ("POST", "/estimate", {"amount": "garbage"}),
]


@pytest.mark.parametrize("method,path,payload", ROUTES)
@pytest.mark.parametrize("headers", [{}, {"X-Api-Key": "wrong"}, {"X-Api-Key": ""}])
def test_missing_or_wrong_key_is_rejected_before_anything_else(make_client, fake_rpc, method, path, payload, headers):
    client = make_client(api_key=KEY)
    r = client.request(method, path, json=payload, headers=headers)
    assert r.status_code == 401
    assert r.json()["kind"] == "unauthorized"
    assert fake_rpc.calls == []


def test_malformed_json_body_without_key_is_still_401(make_client, fake_rpc):
    client = make_client(api_key=KEY)
    r = client.post("/estimate", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 401
    assert fake_rpc.calls == []


def test_correct_key_passes(make_client, fake_rpc):
    client = make_client(api_key=KEY)
    r = client.get("/health", headers={"X-Api-Key": KEY})
    assert r.status_code == 200
    assert fake_rpc.methods() == ["get_version"]


def test_no_key_configured_means_open(make_client, fake_rpc):
    client = make_client(api_key="")
    assert client.get("/health").status_code == 200


def test_distinct_apps_use_distinct_keys(fake_rpc):
    from fastapi.testclient import TestClient

    from bridge.config import BridgeConfig
    from bridge.main import create_app

    a = TestClient(create_app(BridgeConfig(api_key="alpha"), rpc_client=fake_rpc))
    b = TestClient(create_app(BridgeConfig(api_key="beta"), rpc_client=fake_rpc))
    assert a.get("/health", headers={"X-Api-Key": "alpha"}).status_code == 200
    assert b.get("/health", headers={"X-Api-Key": "alpha"}).status_code == 401


def test_gate_unit():
    ApiKeyGate("").check(None)
    gate = ApiKeyGate("k")
    gate.check("k")
    with pytest.raises(AuthorizationError):
        gate.check(None)
    with pytest.raises(AuthorizationError):
        gate.check("K")
