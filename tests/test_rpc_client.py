import pytest
import requests

from walletrpc.client import WalletRpcClient, build_envelope
from walletrpc.errors import TransportError, UpstreamRpcError

TXID = "cd" * 32


class FakeResponse:
    def __init__(self, body=None, status_code=200, raw=None):
        self._body = body
        self.status_code = status_code
        self.text = raw if raw is not None else ""

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response

    def close(self):
        pass


def _client(response=None, exc=None, timeout_s=7.5):
    session = FakeSession(response=response, exc=exc)
    return WalletRpcClient("http://127.0.0.1:18083/json_rpc", timeout_s=timeout_s, session=session), session


def test_call_sends_jsonrpc_envelope_and_returns_result():
    client, session = _client(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": {"version": 65562}}))
    assert client.call("get_version") == {"version": 65562}

    sent = session.posts[0]
    assert sent["url"] == "http://127.0.0.1:18083/json_rpc"
    assert sent["timeout"] == 7.5
    assert sent["json"]["jsonrpc"] == "2.0"
    assert sent["json"]["method"] == "get_version"
    assert sent["json"]["params"] == {}
    assert "id" in sent["json"]


def test_request_ids_increase():
    client, session = _client(FakeResponse({"result": {}}))
    client.call("get_version")
    client.call("get_version")
    assert session.posts[1]["json"]["id"] > session.posts[0]["json"]["id"]


def test_error_object_becomes_upstream_error():
    client, _ = _client(FakeResponse({"error": {"code": -38, "message": "not enough money"}}))
    with pytest.raises(UpstreamRpcError) as info:
        client.call("transfer", {})
    assert info.value.code == -38
    assert info.value.message == "not enough money"
    assert info.value.method == "transfer"


def test_connection_failure_is_transport_error():
    client, _ = _client(exc=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(TransportError) as info:
        client.call("get_version")
    assert info.value.method == "get_version"
    assert info.value.url == "http://127.0.0.1:18083/json_rpc"


def test_timeout_is_transport_error():
    client, _ = _client(exc=requests.exceptions.ReadTimeout("slow"))
    with pytest.raises(TransportError):
        client.call("get_version")


def test_non_json_body_is_transport_error():
    client, _ = _client(FakeResponse(None, status_code=200, raw="<html>"))
    with pytest.raises(TransportError):
        client.call("get_version")


def test_reply_without_result_or_error_is_transport_error():
    client, _ = _client(FakeResponse({"jsonrpc": "2.0", "id": 1}))
    with pytest.raises(TransportError):
        client.call("get_version")


def test_http_error_status_is_transport_error():
    client, _ = _client(FakeResponse({"nope": 1}, status_code=500))
    with pytest.raises(TransportError):
        client.call("get_version")


def test_transfer_normalizes_list_fields():
    client, session = _client(
        FakeResponse(
            {
                "result": {
                    "tx_hash_list": [TXID],
                    "fee_list": [42],
                    "amount_list": [1000],
                    "tx_metadata_list": ["meta"],
                }
            }
        )
    )
    result = client.transfer("5abc", 1000, relay=False)
    assert result.tx_hash == TXID
    assert result.fee == 42
    assert result.amount == 1000
    assert result.tx_metadata == "meta"

    params = session.posts[0]["json"]["params"]
    assert params["do_not_relay"] is True
    assert params["destinations"] == [{"address": "5abc", "amount": 1000}]


def test_transfer_without_hash_is_transport_error():
    client, _ = _client(FakeResponse({"result": {"fee": 1}}))
    with pytest.raises(TransportError):
        client.transfer("5abc", 1, relay=True)


def test_relay_tx_accepts_txid_field():
    client, session = _client(FakeResponse({"result": {"txid": TXID}}))
    assert client.relay_tx("beef") == TXID
    assert session.posts[0]["json"]["params"] == {"hex": "beef"}


def test_get_transfer_by_txid_unknown_returns_none():
    client, _ = _client(FakeResponse({"error": {"code": -8, "message": "Transaction not found."}}))
    assert client.get_transfer_by_txid(TXID) is None


def test_get_transfer_by_txid_other_error_propagates():
    client, _ = _client(FakeResponse({"error": {"code": -13, "message": "No wallet file"}}))
    with pytest.raises(UpstreamRpcError):
        client.get_transfer_by_txid(TXID)


def test_get_transfer_by_txid_marks_pool_transfers():
    client, _ = _client(FakeResponse({"result": {"transfer": {"type": "pool", "amount": 7, "fee": 1}}}))
    status = client.get_transfer_by_txid(TXID)
    assert status.in_pool is True
    assert status.confirmations == 0
    assert status.timestamp is None


def test_identifier_guard_blocks_malformed_ids():
    client, session = _client(FakeResponse({"result": {}}))
    with pytest.raises(ValueError):
        client.get_transfer_by_txid("deadbeef")
    with pytest.raises(ValueError):
        client.get_tx_proof("zz" * 32, "5abc")
    assert session.posts == []


def test_build_envelope_omits_params_when_none():
    assert build_envelope("get_version") == {"jsonrpc": "2.0", "id": 0, "method": "get_version"}


def test_transfer_preview_without_fee_is_transport_error():
    client, _ = _client(FakeResponse({"result": {"tx_hash": TXID, "tx_metadata": "meta"}}))
    with pytest.raises(TransportError) as info:
        client.transfer("5abc", 1000, relay=False)
    assert info.value.method == "transfer"


def test_relayed_transfer_may_omit_fee():
    client, _ = _client(FakeResponse({"result": {"tx_hash": TXID}}))
    assert client.transfer("5abc", 1000, relay=True).fee is None
