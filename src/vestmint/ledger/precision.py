# src/vestmint/ledger/precision.py
from __future__ import annotations

"""Integer fixed-point helpers.

No floats: every ratio is `a * b // c` on Python ints, which never overflow,
and every division floors. Flooring per beneficiary guarantees that the sum of
all per-beneficiary amounts never exceeds the pool total.
"""

from typing import Any

from vestmint.ledger.constants import PRECISION


def _require_int(name: str, v: Any) -> int:
    # bool is an int subclass; reject it along with floats and strings.
    if isinstance(v, bool) or not isinstance(v, int):
        raise TypeError(f"{name} must be int, got {type(v).__name__}")
    return v


def percent_of(amount: int, percent: int, precision: int = PRECISION) -> int:
    """Return `amount * percent / precision`, floored."""
    a = _require_int("amount", amount)
    p = _require_int("percent", percent)
    d = _require_int("precision", precision)
    if d <= 0:
        raise ValueError("precision must be > 0")
    return (a * p) // d


def vested_amount(allocated: int, elapsed: int, duration: int) -> int:
    """Linear vesting of `allocated` after `elapsed` of `duration` seconds.

    duration == 0 vests everything at once. Negative elapsed vests nothing.
    """
    total = _require_int("allocated", allocated)
    e = _require_int("elapsed", elapsed)
    d = _require_int("duration", duration)
    if d < 0:
        raise ValueError("duration must be >= 0")
    if d == 0:
        return total
    e = max(0, min(e, d))
    return (total * e) // d


__all__ = ["PRECISION", "percent_of", "vested_amount"]
