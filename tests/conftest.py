import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fastapi.testclient import TestClient  # noqa: E402

from bridge.config import BridgeConfig  # noqa: E402
from bridge.main import create_app  # noqa: E402
from walletrpc.client import WalletRpcClient  # noqa: E402

TXID = "ab" * 32
ADDRESS = "5" + "x" * 94


class FakeWalletRpc(WalletRpcClient):
    """
    Stands in for monero-wallet-rpc at the `call()` seam.

    `results` maps method -> result dict (or an exception instance to raise);
    every call is recorded in `calls` so tests can assert what reached the daemon.
    """

    def __init__(self, results=None):
        super().__init__("http://wallet-rpc.invalid/json_rpc")
        self.results = dict(results or {})
        self.calls = []

    def call(self, method, params=None):
        self.calls.append((method, params or {}))
        result = self.results.get(method, {})
        if isinstance(result, Exception):
            raise result
        return result

    def methods(self):
        return [m for m, _ in self.calls]

    def params(self, method):
        return [p for m, p in self.calls if m == method]


@pytest.fixture
def fake_rpc():
    return FakeWalletRpc(
        {
            "get_version": {"version": 0x10019, "release": True},
            "create_address": {"address": "7" + "a" * 94, "address_index": 3},
            "transfer": {
                "tx_hash": TXID,
                "fee": 5000000000,
                "amount": 5000000000,
                "tx_metadata": "deadbeefcafe",
            },
            "relay_tx": {"tx_hash": TXID},
            "get_transfer_by_txid": {
                "transfer": {
                    "txid": TXID,
                    "type": "out",
                    "confirmations": 2,
                    "amount": 1500000000000,
                    "fee": 30000000,
                    "timestamp": 1700000000,
                    "address": ADDRESS,
                }
            },
            "get_tx_proof": {"signature": "OutProofV2abc"},
            "check_tx_proof": {"good": True, "in_pool": False, "received": 250000000000, "confirmations": 4},
        }
    )


@pytest.fixture
def make_client(fake_rpc):
    def _make(**config_overrides):
        app = create_app(BridgeConfig(**config_overrides), rpc_client=fake_rpc)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()
