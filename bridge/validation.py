from typing import Any, Optional

from bridge.errors import BridgeError
from walletrpc.types import is_tx_id
from walletrpc.units import to_atomic

LABEL_MAX_CHARS = 64
MESSAGE_MAX_CHARS = 140
MAX_ATOMIC_AMOUNT = 2**64 - 1


class ValidationError(BridgeError, ValueError):
    """Caller input is malformed; the wallet daemon is never contacted."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def require_address(value: Any, field: str = "address") -> str:
    address = clean_str(value)
    if not address:
        raise ValidationError(f"missing {field}", field=field)
    return address


def require_amount(value: Any, field: str = "amount") -> int:
    """Parse a display amount and return it in atomic units, at least 1 and within the daemon's uint64 range."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"bad {field}", field=field)
    try:
        atomic = to_atomic(value)
    except ValueError:
        raise ValidationError(f"bad {field}", field=field)
    if atomic < 1:
        raise ValidationError(f"{field} is below one atomic unit", field=field)
    if atomic > MAX_ATOMIC_AMOUNT:
        raise ValidationError(f"{field} is too large", field=field)
    return atomic


def require_tx_id(value: Any, field: str = "txid") -> str:
    txid = clean_str(value)
    if not is_tx_id(txid):
        raise ValidationError(f"bad {field}", field=field)
    return txid


def require_non_empty(value: Any, field: str) -> str:
    text = clean_str(value)
    if not text:
        raise ValidationError(f"missing {field}", field=field)
    return text


def truncate(value: Any, limit: int) -> str:
    return ("" if value is None else str(value))[:limit]
