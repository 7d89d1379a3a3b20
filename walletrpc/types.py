"""Normalized shapes for wallet-rpc replies. Amounts are atomic units (piconero)."""

import re
from dataclasses import dataclass
from typing import Optional

TX_ID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def is_tx_id(value) -> bool:
    return isinstance(value, str) and TX_ID_RE.match(value) is not None


@dataclass(frozen=True)
class WalletVersion:
    version: int
    release: bool

    @property
    def major(self) -> int:
        return self.version >> 16

    @property
    def minor(self) -> int:
        return self.version & 0xFFFF


@dataclass(frozen=True)
class CreatedAddress:
    address: str
    address_index: int
    account_index: int


@dataclass(frozen=True)
class TransferResult:
    tx_hash: str
    fee: Optional[int] = None
    amount: Optional[int] = None
    tx_metadata: Optional[str] = None
    tx_key: Optional[str] = None


@dataclass(frozen=True)
class TransferStatus:
    txid: str
    in_pool: bool
    confirmations: int
    amount: int
    fee: int
    timestamp: Optional[int] = None
    address: Optional[str] = None
    type: Optional[str] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class PaymentProof:
    txid: str
    address: str
    message: str
    signature: str


@dataclass(frozen=True)
class ProofCheck:
    good: bool
    in_pool: bool
    received: int
    confirmations: int = 0
