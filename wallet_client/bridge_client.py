import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class BridgeRequestError(Exception):
    """
    A bridge call failed.

    `kind` mirrors the bridge error body: validation, unauthorized, upstream,
    transport, not_found, internal, or "unreachable" when the bridge itself
    could not be contacted.
    """

    def __init__(self, kind: str, detail: str, status_code: Optional[int] = None):
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{kind}: {detail}" if status_code is None else f"{status_code} {kind}: {detail}")


@dataclass(frozen=True)
class FeeEstimate:
    fee_xmr: float
    tx_metadata: Optional[str]


@dataclass(frozen=True)
class SentTransfer:
    txid: str
    fee_xmr: Optional[float]


@dataclass(frozen=True)
class TxStatus:
    txid: str
    in_pool: bool
    confirmations: int
    amount_xmr: float
    fee_xmr: Optional[float] = None
    timestamp: Optional[int] = None
    address: Optional[str] = None


class BridgeClient:
    """
    Client for the xmr-bridge REST surface.
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout_s: float = 60.0):
        if not base_url:
            raise ValueError("Bridge URL cannot be empty")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = float(timeout_s)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        endpoint = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                endpoint,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Bridge unreachable at {endpoint}: {e}")
            raise BridgeRequestError("unreachable", str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400:
            kind = data.get("kind") or ("upstream" if response.status_code == 502 else "error")
            detail = data.get("detail") or data.get("error") or response.text or "request failed"
            logger.debug(f"Bridge {method} {path} failed: {response.status_code} {kind} {detail}")
            raise BridgeRequestError(str(kind), str(detail), response.status_code)
        return data

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def create_address(self, label: str = "") -> Dict[str, Any]:
        return self._request("POST", "/address", {"label": label})

    def estimate(self, address: str, amount: float) -> FeeEstimate:
        data = self._request("POST", "/estimate", {"address": address, "amount": amount})
        return FeeEstimate(fee_xmr=float(data.get("fee_xmr") or 0.0), tx_metadata=data.get("tx_metadata"))

    def transfer(self, address: str, amount: float) -> SentTransfer:
        data = self._request("POST", "/transfer", {"address": address, "amount": amount})
        return self._sent(data)

    def relay(self, tx_metadata: str) -> SentTransfer:
        """Broadcast the exact transaction previewed by `estimate()`."""
        data = self._request("POST", "/transfer", {"tx_metadata": tx_metadata})
        return self._sent(data)

    @staticmethod
    def _sent(data: Dict[str, Any]) -> SentTransfer:
        txid = data.get("txid") or data.get("tx_hash")
        if not txid:
            raise BridgeRequestError("transport", "bridge reply carried no txid")
        fee = data.get("fee_xmr")
        return SentTransfer(txid=str(txid), fee_xmr=float(fee) if fee is not None else None)

    def tx_status(self, txid: str) -> TxStatus:
        data = self._request("GET", f"/tx/{txid}")
        fee = data.get("fee_xmr")
        return TxStatus(
            txid=str(data.get("txid") or txid),
            in_pool=bool(data.get("in_pool")),
            confirmations=int(data.get("confirmations") or 0),
            amount_xmr=float(data.get("amount_xmr") or 0.0),
            fee_xmr=float(fee) if fee is not None else None,
            timestamp=data.get("timestamp"),
            address=data.get("address"),
        )

    def create_proof(self, txid: str, address: str, message: Optional[str] = None) -> Dict[str, Any]:
        payload = {"txid": txid, "address": address}
        if message is not None:
            payload["message"] = message
        return self._request("POST", "/proof", payload)

    def verify_proof(self, txid: str, address: str, signature: str, message: Optional[str] = None) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/verify",
            {"txid": txid, "address": address, "message": message or "", "signature": signature},
        )

    def wait_for_confirmation(
        self,
        txid: str,
        *,
        min_confirmations: int = 1,
        poll_interval_s: float = 5.0,
        timeout_s: Optional[float] = None,
        on_update: Optional[Callable[[TxStatus], None]] = None,
    ) -> TxStatus:
        """
        Poll the status route until `min_confirmations` is reached.

        A freshly relayed transaction can briefly be unknown to the wallet, so
        not_found is treated as "keep waiting". Raises TimeoutError when
        `timeout_s` elapses first.
        """
        deadline = time.monotonic() + timeout_s if timeout_s is not None else None
        while True:
            try:
                status = self.tx_status(txid)
            except BridgeRequestError as e:
                if e.kind != "not_found":
                    raise
                status = None
            if status is not None:
                if on_update is not None:
                    on_update(status)
                if status.confirmations >= int(min_confirmations):
                    return status
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"{txid} not confirmed within {timeout_s}s")
            time.sleep(poll_interval_s)
