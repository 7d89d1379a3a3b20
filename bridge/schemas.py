from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Union

# Amounts arrive as JSON numbers or numeric strings; validation.require_amount decides.
AmountInput = Optional[Union[float, str]]


class AddressRequest(BaseModel):
    label: Optional[str] = ""
    account_index: int = Field(0, ge=0)


class AddressResponse(BaseModel):
    ok: bool = True
    address: str
    address_index: int
    account_index: int


class EstimateRequest(BaseModel):
    address: Optional[str] = None
    amount: AmountInput = None


class EstimateResponse(BaseModel):
    fee_xmr: float
    tx_metadata: Optional[str] = None


class TransferRequest(BaseModel):
    address: Optional[str] = None
    amount: AmountInput = None
    tx_metadata: Optional[str] = None


class TransferResponse(BaseModel):
    ok: bool = True
    txid: str
    tx_hash: str
    # None after relaying prebuilt metadata: the daemon does not report the fee then.
    fee_xmr: Optional[float] = None


class TxStatusResponse(BaseModel):
    ok: bool = True
    txid: str
    in_pool: bool
    confirmations: int
    amount_xmr: float
    fee_xmr: float
    timestamp: Optional[int] = None
    address: Optional[str] = None


class ProofRequest(BaseModel):
    txid: Optional[str] = None
    address: Optional[str] = None
    message: Optional[str] = ""


class ProofResponse(BaseModel):
    ok: bool = True
    txid: str
    address: str
    message: str
    signature: str


class VerifyRequest(BaseModel):
    txid: Optional[str] = None
    address: Optional[str] = ""
    message: Optional[str] = ""
    signature: Optional[str] = None


class VerifyResponse(BaseModel):
    ok: bool = True
    good: bool
    in_pool: bool
    received_xmr: float
    confirmations: int = 0


class HealthResponse(BaseModel):
    ok: bool
    version: Optional[int] = None
    release: Optional[bool] = None
    error: Optional[str] = None
    wallet_rpc: Optional[Dict[str, Any]] = None
