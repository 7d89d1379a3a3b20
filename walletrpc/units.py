import math
from decimal import MAX_EMAX, MIN_EMIN, ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Union

ATOMIC_PER_XMR = 10**12

_ATOMIC = Decimal(ATOMIC_PER_XMR)

Number = Union[int, float, str, Decimal]


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"amount must be finite, got {value!r}")
        # str() keeps the shortest repr so 0.005 stays 0.005 rather than 0.005000000000000000104
        value = str(value)
    try:
        d = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"not a number: {value!r}") from e
    if not d.is_finite():
        raise ValueError(f"amount must be finite, got {value!r}")
    return d


def to_atomic(display: Number) -> int:
    """
    Convert a display amount (XMR) to atomic units (piconero).

    Rounds half-up to the nearest atomic unit. Negative or non-finite amounts
    raise ValueError; callers are expected to have validated already.
    """
    d = _as_decimal(display)
    if d < 0:
        raise ValueError(f"amount must be >= 0, got {display!r}")
    with localcontext() as ctx:
        # Exact product and integer part at any magnitude.
        ctx.prec = max(ctx.prec, len(d.as_tuple().digits) + 13, d.adjusted() + 14)
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        return int((d * _ATOMIC).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_display(atomic: Union[int, str]) -> Decimal:
    """Convert atomic units to an exact display Decimal."""
    if isinstance(atomic, bool):
        raise ValueError("atomic amount must be an integer")
    value = int(atomic)
    if value < 0:
        raise ValueError(f"atomic amount must be >= 0, got {atomic!r}")
    return Decimal(value) / _ATOMIC


def to_display_float(atomic: Union[int, str, None]) -> float:
    if atomic is None:
        return 0.0
    return float(to_display(atomic))
