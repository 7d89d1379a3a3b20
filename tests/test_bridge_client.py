import pytest
import requests

import wallet_client.bridge_client as bc
from wallet_client.bridge_client import BridgeClient, BridgeRequestError

TXID = "ef" * 32


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        return self._body


@pytest.fixture
def http(monkeypatch):
    calls = []
    replies = []

    def fake_request(method, url, headers=None, json=None, timeout=None):
        calls.append({"method": method, "url": url, "headers": headers, "json": json})
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(bc.requests, "request", fake_request)
    monkeypatch.setattr(bc.time, "sleep", lambda s: None)
    return calls, replies


def test_estimate_sends_key_and_parses(http):
    calls, replies = http
    replies.append(FakeResponse(200, {"fee_xmr": 0.005, "tx_metadata": "meta"}))
    client = BridgeClient("http://127.0.0.1:8787/", api_key="k")

    est = client.estimate("5abc", 0.1)

    assert est.fee_xmr == 0.005
    assert est.tx_metadata == "meta"
    assert calls[0]["url"] == "http://127.0.0.1:8787/estimate"
    assert calls[0]["headers"]["X-Api-Key"] == "k"
    assert calls[0]["json"] == {"address": "5abc", "amount": 0.1}


def test_relay_sends_only_metadata(http):
    calls, replies = http
    replies.append(FakeResponse(200, {"ok": True, "txid": TXID, "tx_hash": TXID, "fee_xmr": None}))
    sent = BridgeClient("http://bridge").relay("meta")
    assert sent.txid == TXID
    assert sent.fee_xmr is None
    assert calls[0]["json"] == {"tx_metadata": "meta"}


def test_error_body_kind_is_surfaced(http):
    _, replies = http
    replies.append(FakeResponse(400, {"detail": "bad txid", "kind": "validation"}))
    with pytest.raises(BridgeRequestError) as info:
        BridgeClient("http://bridge").tx_status("deadbeef")
    assert info.value.kind == "validation"
    assert info.value.status_code == 400


def test_unreachable_bridge(http):
    _, replies = http
    replies.append(requests.exceptions.ConnectionError("refused"))
    with pytest.raises(BridgeRequestError) as info:
        BridgeClient("http://bridge").health()
    assert info.value.kind == "unreachable"


def test_wait_for_confirmation_reports_intermediate_states(http):
    _, replies = http
    replies.extend(
        [
            FakeResponse(404, {"detail": "tx not found", "kind": "not_found"}),
            FakeResponse(200, {"txid": TXID, "in_pool": True, "confirmations": 0, "amount_xmr": 1.0}),
            FakeResponse(200, {"txid": TXID, "in_pool": False, "confirmations": 1, "amount_xmr": 1.0}),
        ]
    )
    seen = []
    status = BridgeClient("http://bridge").wait_for_confirmation(TXID, poll_interval_s=0, on_update=seen.append)
    assert status.confirmations == 1
    assert [s.in_pool for s in seen] == [True, False]


def test_wait_for_confirmation_raises_on_other_errors(http):
    _, replies = http
    replies.append(FakeResponse(502, {"detail": "No wallet file", "kind": "upstream"}))
    with pytest.raises(BridgeRequestError):
        BridgeClient("http://bridge").wait_for_confirmation(TXID, poll_interval_s=0)


def test_wait_for_confirmation_times_out(http, monkeypatch):
    _, replies = http
    replies.extend(
        [FakeResponse(200, {"txid": TXID, "in_pool": True, "confirmations": 0, "amount_xmr": 1.0})] * 3
    )
    ticks = iter([0.0, 0.0, 5.0, 10.0] + [100.0] * 20)
    monkeypatch.setattr(bc.time, "monotonic", lambda: next(ticks))
    with pytest.raises(TimeoutError):
        BridgeClient("http://bridge").wait_for_confirmation(TXID, poll_interval_s=0, timeout_s=8)
