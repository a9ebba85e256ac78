from __future__ import annotations

import pytest

from vestmint.ledger.constants import ONE_HUNDRED_PERCENT, PRECISION
from vestmint.ledger.precision import percent_of, vested_amount


def test_precision_is_basis_points() -> None:
    assert PRECISION == 10_000
    assert ONE_HUNDRED_PERCENT == PRECISION


def test_percent_of_floors() -> None:
    assert percent_of(1000, 1000) == 100
    assert percent_of(999, 1) == 0
    assert percent_of(10_001, 3333) == 3333  # 33_333_333 // 10_000
    assert percent_of(1000, 1000, precision=100) == 10_000


def test_percent_of_large_values_do_not_overflow() -> None:
    total = 5_000_000_000 * 10**18
    assert percent_of(total, PRECISION) == total
    assert percent_of(total, 1600) == total * 16 // 100


def test_percent_of_rejects_non_ints() -> None:
    with pytest.raises(TypeError):
        percent_of(100.0, 10)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        percent_of(100, True)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        percent_of(100, 10, precision=0)


def test_vested_amount_linear_and_clamped() -> None:
    assert vested_amount(100, -5, 1000) == 0
    assert vested_amount(100, 0, 1000) == 0
    assert vested_amount(100, 500, 1000) == 50
    assert vested_amount(100, 999, 1000) == 99
    assert vested_amount(100, 1000, 1000) == 100
    assert vested_amount(100, 10_000, 1000) == 100


def test_vested_amount_zero_duration_vests_everything() -> None:
    assert vested_amount(100, 0, 0) == 100
