import itertools
import logging
import threading
from typing import Any, Dict, Optional

import requests

from walletrpc.errors import TransportError, UpstreamRpcError
from walletrpc.types import (
    CreatedAddress,
    PaymentProof,
    ProofCheck,
    TransferResult,
    TransferStatus,
    WalletVersion,
    is_tx_id,
)

logger = logging.getLogger(__name__)

# wallet_rpc_server_error_codes.h: WALLET_RPC_ERROR_CODE_WRONG_TXID
WRONG_TXID_ERROR_CODE = -8

DEFAULT_TIMEOUT_S = 30.0


def build_envelope(method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = 0) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": str(method)}
    if params is not None:
        envelope["params"] = params
    return envelope


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _opt_int(value: Any) -> Optional[int]:
    value = _first(value)
    if value is None:
        return None
    return int(value)


class WalletRpcClient:
    """
    JSON-RPC 2.0 client for monero-wallet-rpc.

    `call()` is the only method that touches the network; the typed methods
    build parameters and normalize the daemon's reply into `walletrpc.types`.
    Nothing is retried.
    """

    def __init__(self, rpc_url: str, *, timeout_s: float = DEFAULT_TIMEOUT_S, session: Optional[requests.Session] = None):
        if not rpc_url:
            raise ValueError("wallet-rpc URL cannot be empty")
        self.rpc_url = rpc_url
        self.timeout_s = float(timeout_s)
        self._session = session or requests.Session()
        self._ids = itertools.count(1)
        self._ids_lock = threading.Lock()

    def _next_id(self) -> int:
        with self._ids_lock:
            return next(self._ids)

    def close(self) -> None:
        self._session.close()

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = build_envelope(method, params if params is not None else {}, self._next_id())
        try:
            response = self._session.post(
                self.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s,
            )
        except requests.exceptions.RequestException as e:
            logger.error("wallet-rpc unreachable url=%s method=%s: %s", self.rpc_url, method, e)
            raise TransportError(f"wallet-rpc unreachable: {e}", url=self.rpc_url, method=method) from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                "wallet-rpc sent a non-JSON body url=%s method=%s status=%s",
                self.rpc_url,
                method,
                response.status_code,
            )
            raise TransportError(
                f"wallet-rpc returned a non-JSON body (HTTP {response.status_code})",
                url=self.rpc_url,
                method=method,
            ) from e

        if not isinstance(body, dict):
            raise TransportError("wallet-rpc returned a malformed reply", url=self.rpc_url, method=method)

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                code = error.get("code", 0)
                message = error.get("message") or "unknown error"
            else:
                code, message = 0, str(error)
            logger.warning("wallet-rpc rejected method=%s code=%s message=%s", method, code, message)
            raise UpstreamRpcError(code, message, method=method)

        if response.status_code >= 400:
            logger.error(
                "wallet-rpc HTTP error url=%s method=%s status=%s",
                self.rpc_url,
                method,
                response.status_code,
            )
            raise TransportError(
                f"wallet-rpc returned HTTP {response.status_code}",
                url=self.rpc_url,
                method=method,
            )

        if "result" not in body:
            raise TransportError("wallet-rpc reply has neither result nor error", url=self.rpc_url, method=method)
        result = body.get("result")
        return result if isinstance(result, dict) else {}

    def get_version(self) -> WalletVersion:
        r = self.call("get_version")
        return WalletVersion(version=int(r.get("version") or 0), release=bool(r.get("release")))

    def create_address(self, label: str = "", account_index: int = 0) -> CreatedAddress:
        r = self.call("create_address", {"account_index": int(account_index), "label": str(label)})
        address = r.get("address")
        if not address:
            raise TransportError("create_address reply carried no address", url=self.rpc_url, method="create_address")
        return CreatedAddress(
            address=str(address),
            address_index=int(r.get("address_index") or 0),
            account_index=int(account_index),
        )

    def transfer(
        self,
        address: str,
        amount_atomic: int,
        *,
        relay: bool,
        priority: int = 1,
        account_index: int = 0,
    ) -> TransferResult:
        """Build a transfer; with relay=False the daemon returns the signed tx metadata without broadcasting."""
        params = {
            "destinations": [{"address": str(address), "amount": int(amount_atomic)}],
            "account_index": int(account_index),
            "priority": int(priority),
            "do_not_relay": not relay,
            "get_tx_key": bool(relay),
            "get_tx_metadata": not relay,
        }
        r = self.call("transfer", params)
        tx_hash = _first(r.get("tx_hash")) or _first(r.get("tx_hash_list")) or _first(r.get("txid"))
        if not tx_hash:
            raise TransportError("transfer reply carried no tx hash", url=self.rpc_url, method="transfer")
        fee = _opt_int(r.get("fee") if r.get("fee") is not None else r.get("fee_list"))
        if fee is None and not relay:
            raise TransportError("transfer preview carried no fee", url=self.rpc_url, method="transfer")
        amount = r.get("amount") if r.get("amount") is not None else r.get("amount_list")
        return TransferResult(
            tx_hash=str(tx_hash),
            fee=fee,
            amount=_opt_int(amount),
            tx_metadata=_first(r.get("tx_metadata")) or _first(r.get("tx_metadata_list")) or None,
            tx_key=_first(r.get("tx_key")) or _first(r.get("tx_key_list")) or None,
        )

    def relay_tx(self, tx_metadata: str) -> str:
        r = self.call("relay_tx", {"hex": str(tx_metadata)})
        tx_hash = r.get("tx_hash") or r.get("txid")
        if not tx_hash:
            raise TransportError("relay_tx reply carried no tx hash", url=self.rpc_url, method="relay_tx")
        return str(tx_hash)

    def get_transfer_by_txid(self, txid: str, account_index: int = 0) -> Optional[TransferStatus]:
        if not is_tx_id(txid):
            raise ValueError(f"invalid transaction id: {txid!r}")
        try:
            r = self.call("get_transfer_by_txid", {"txid": txid, "account_index": int(account_index)})
        except UpstreamRpcError as e:
            if e.code == WRONG_TXID_ERROR_CODE:
                return None
            raise
        t = r.get("transfer")
        if not t:
            t = _first(r.get("transfers"))
        if not t:
            return None
        kind = t.get("type")
        return TransferStatus(
            txid=txid,
            in_pool=bool(t.get("in_pool")) or kind in {"pool", "pending"},
            confirmations=max(0, int(t.get("confirmations") or 0)),
            amount=int(t.get("amount") or 0),
            fee=int(t.get("fee") or 0),
            timestamp=_opt_int(t.get("timestamp")),
            address=t.get("address") or None,
            type=kind,
            height=_opt_int(t.get("height")),
        )

    def get_tx_proof(self, txid: str, address: str, message: str = "") -> PaymentProof:
        if not is_tx_id(txid):
            raise ValueError(f"invalid transaction id: {txid!r}")
        r = self.call("get_tx_proof", {"txid": txid, "address": address, "message": message})
        signature = r.get("signature")
        if not signature:
            raise TransportError("get_tx_proof reply carried no signature", url=self.rpc_url, method="get_tx_proof")
        return PaymentProof(txid=txid, address=address, message=message, signature=str(signature))

    def check_tx_proof(self, txid: str, address: str, message: str, signature: str) -> ProofCheck:
        if not is_tx_id(txid):
            raise ValueError(f"invalid transaction id: {txid!r}")
        r = self.call(
            "check_tx_proof",
            {"txid": txid, "address": address, "message": message, "signature": signature},
        )
        return ProofCheck(
            good=bool(r.get("good")),
            in_pool=bool(r.get("in_pool")),
            received=int(r.get("received") or 0),
            confirmations=max(0, int(r.get("confirmations") or 0)),
        )
