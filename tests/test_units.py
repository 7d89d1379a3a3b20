import random
from decimal import Decimal

import pytest

from walletrpc.units import ATOMIC_PER_XMR, to_atomic, to_display, to_display_float


def test_to_atomic_examples():
    assert to_atomic(1) == ATOMIC_PER_XMR
    assert to_atomic(0.005) == 5_000_000_000
    assert to_atomic("0.000000000001") == 1
    assert to_atomic(0) == 0


def test_to_atomic_rounds_half_up():
    assert to_atomic("0.0000000000005") == 1
    assert to_atomic("0.0000000000004999") == 0
    assert to_atomic("1.0000000000015") == 1_000_000_000_002


def test_to_atomic_beyond_default_decimal_precision():
    assert to_atomic(1e17) == 10**29
    assert to_atomic(Decimal("1e30")) == 10**42
    assert to_atomic("123456789012345678901234567890.5") == 123456789012345678901234567890 * 10**12 + 5 * 10**11


def test_to_atomic_long_fraction_rounds_once():
    assert to_atomic("0.0000000000004999999999999999999999999999999") == 0
    assert to_atomic("0.0000000000005000000000000000000000000000001") == 1


def test_to_display_is_exact():
    assert to_display(5_000_000_000) == Decimal("0.005")
    assert to_display_float(5_000_000_000) == 0.005
    assert to_display(1) == Decimal("1E-12")


@pytest.mark.parametrize("bad", [-0.1, float("nan"), float("inf"), "abc", True])
def test_to_atomic_rejects(bad):
    with pytest.raises(ValueError):
        to_atomic(bad)


def test_to_display_rejects_negative():
    with pytest.raises(ValueError):
        to_display(-1)


def test_atomic_round_trip_is_exact():
    rng = random.Random(1234)
    samples = [0, 1, 999_999_999_999, 10**12, 18_446_744_073_709_551_615]
    samples += [rng.randrange(0, 10**19) for _ in range(500)]
    for a in samples:
        assert to_atomic(to_display(a)) == a


def test_display_round_trip_within_one_atomic_unit():
    rng = random.Random(99)
    one_unit = Decimal(1) / Decimal(ATOMIC_PER_XMR)
    for _ in range(500):
        d = rng.uniform(0, 1000)
        back = to_display(to_atomic(d))
        assert abs(back - Decimal(str(d))) <= one_unit
