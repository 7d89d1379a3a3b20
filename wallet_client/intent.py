"""Spot a Monero payment request in free text.

Two forms are recognised:

- a `monero:` URI, address as host or path, amount from `tx_amount`/`amount`;
- a bare address (95 base58 chars starting 4/5, or 106 starting 7/8) with the first
  nearby decimal number taken as the amount (`0.01`, `0,01`, `0.01 XMR`).

The result is only a candidate for a human to confirm.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlsplit

_B58 = "1-9A-HJ-NP-Za-km-z"

# 4/5 prefix 95 chars, 7/8 prefix 106 chars.
_ADDRESS_RE = re.compile(rf"(?<![{_B58}])(?:[45][{_B58}]{{94}}|[78][{_B58}]{{105}})(?![{_B58}])")

_AMOUNT_WITH_SUFFIX_RE = re.compile(r"(?<![\d.,])(\d+(?:[.,]\d+)?)\s*xmr\b", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"(?<![\w.,])(\d+(?:[.,]\d+)?)(?![\d.,]*\w)")

URI_SCHEME = "monero"


@dataclass(frozen=True)
class PaymentIntent:
    address: str
    amount: Optional[float] = None


def is_address(s: str) -> bool:
    if not isinstance(s, str) or len(s) not in (95, 106):
        return False
    return _ADDRESS_RE.fullmatch(s) is not None


def _parse_amount(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw.strip().replace(",", "."))
    except ValueError:
        return None
    return value if value > 0 else None


def find_amount(text: str) -> Optional[float]:
    m = _AMOUNT_WITH_SUFFIX_RE.search(text)
    if m is None:
        m = _AMOUNT_RE.search(text)
    return _parse_amount(m.group(1)) if m else None


def _parse_uri(s: str) -> Optional[PaymentIntent]:
    parts = urlsplit(s)
    candidate = parts.netloc or parts.path.replace("/", "")
    if not is_address(candidate):
        return None

    amount = None
    for key, value in parse_qsl(parts.query, keep_blank_values=False):
        if key.lower() in ("tx_amount", "amount"):
            amount = _parse_amount(value)
            break
    return PaymentIntent(address=candidate, amount=amount)


def parse_payment_intent(text: str) -> Optional[PaymentIntent]:
    if not text:
        return None
    s = text.strip()

    if s.lower().startswith(URI_SCHEME + ":"):
        return _parse_uri(s)

    m = _ADDRESS_RE.search(s)
    if m is None:
        return None
    rest = s[: m.start()] + " " + s[m.end() :]
    return PaymentIntent(address=m.group(0), amount=find_amount(rest))
