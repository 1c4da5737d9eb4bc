"""
tests/unit/test_allocation.py — Unit tests for services/allocation.py.

What this file proves:
  - Every successful allocation sums EXACTLY to the parent amount
  - Equal split: ROUND_DOWN base, remainder to the first participants,
    same input → same output
  - Percentage split: sum must be 100 ± 0.01, the error cites the sum;
    shares are proportional to the sent total and rounded to nearest; the
    leftover is at most a unit per participant, first in input order
  - Custom split: sum must match within 0.01, the error cites both totals;
    a residual inside the tolerance is absorbed, never rejected
  - Zero-decimal currencies (JPY) allocate whole units

No database, no Flask: allocation is pure Decimal arithmetic.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.transaction import SplitType
from splitbook.app.services.allocation import (
    allocate,
    allocate_custom,
    allocate_equal,
    allocate_percentage,
    check_amount,
    minor_unit,
)


def _amounts(result: list[dict]) -> list[Decimal]:
    return [row["amount"] for row in result]


def _assert_sums_to(result: list[dict], expected: Decimal) -> None:
    total = sum(_amounts(result), Decimal("0"))
    assert total == expected, f"allocation sums to {total}, expected {expected}"


# ── minor units ────────────────────────────────────────────────────────────

def test_minor_unit_defaults_to_cents():
    assert minor_unit("INR") == Decimal("0.01")
    assert minor_unit("usd") == Decimal("0.01")


def test_minor_unit_zero_decimal_currency():
    assert minor_unit("JPY") == Decimal("1")


def test_check_amount_rejects_fraction_of_yen():
    with pytest.raises(AppError) as exc_info:
        check_amount(Decimal("100.50"), "JPY")
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT_PRECISION


def test_check_amount_rejects_zero():
    with pytest.raises(AppError) as exc_info:
        check_amount(Decimal("0"), "INR")
    assert exc_info.value.code == ErrorCode.NEGATIVE_AMOUNT
    assert exc_info.value.http_status == 400


# ── equal ──────────────────────────────────────────────────────────────────

def test_equal_split_remainder_goes_to_first_participants():
    """100.00 / 3 → 33.34, 33.33, 33.33 in input order."""
    result = allocate_equal(Decimal("100.00"), [7, 3, 9], "INR")

    assert [row["person_id"] for row in result] == [7, 3, 9]
    assert _amounts(result) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    _assert_sums_to(result, Decimal("100.00"))


def test_equal_split_is_deterministic():
    first = allocate_equal(Decimal("100.00"), [1, 2, 3], "INR")
    second = allocate_equal(Decimal("100.00"), [1, 2, 3], "INR")
    assert first == second


def test_equal_split_two_cent_remainder():
    result = allocate_equal(Decimal("0.05"), [1, 2, 3], "INR")
    assert _amounts(result) == [Decimal("0.02"), Decimal("0.02"), Decimal("0.01")]


def test_equal_split_more_people_than_cents():
    """Some participants get nothing; the sum still holds."""
    result = allocate_equal(Decimal("0.02"), [1, 2, 3], "INR")
    assert _amounts(result) == [Decimal("0.01"), Decimal("0.01"), Decimal("0.00")]


def test_equal_split_single_participant_gets_everything():
    result = allocate_equal(Decimal("42.42"), [5], "INR")
    assert _amounts(result) == [Decimal("42.42")]


def test_equal_split_in_yen():
    result = allocate_equal(Decimal("1000"), [1, 2, 3], "JPY")
    assert _amounts(result) == [Decimal("334"), Decimal("333"), Decimal("333")]


@pytest.mark.parametrize("amount, count", [
    ("0.01", 1), ("0.01", 4), ("10.00", 3), ("99.99", 7),
    ("1234.56", 11), ("1000000.01", 6),
])
def test_equal_split_always_sums_exactly(amount, count):
    amount = Decimal(amount)
    result = allocate_equal(amount, list(range(1, count + 1)), "INR")
    _assert_sums_to(result, amount)
    assert all(isinstance(a, Decimal) for a in _amounts(result))


def test_equal_split_rejects_empty_participants():
    with pytest.raises(AppError) as exc_info:
        allocate_equal(Decimal("10.00"), [], "INR")
    assert exc_info.value.code == ErrorCode.EMPTY_PARTICIPANTS


def test_equal_split_rejects_duplicate_person():
    with pytest.raises(AppError) as exc_info:
        allocate_equal(Decimal("10.00"), [1, 2, 1], "INR")
    assert exc_info.value.code == ErrorCode.DUPLICATE_SPLIT_PERSON


# ── percentage ─────────────────────────────────────────────────────────────

def test_percentage_sum_mismatch_cites_the_sum():
    with pytest.raises(AppError) as exc_info:
        allocate_percentage(
            Decimal("100.00"), [1, 2, 3],
            [Decimal("40"), Decimal("40"), Decimal("15")], "INR",
        )

    err = exc_info.value
    assert err.code == ErrorCode.PERCENTAGE_SUM_MISMATCH
    assert err.http_status == 400
    assert "95.00" in err.message
    assert "100.00" in err.message
    assert err.details == {"expected": "100.00", "actual": "95.00"}


def test_percentage_within_tolerance_is_accepted():
    """33.33 × 3 = 99.99, within 0.01 of 100."""
    result = allocate_percentage(
        Decimal("100.00"), [1, 2, 3],
        [Decimal("33.33")] * 3, "INR",
    )
    _assert_sums_to(result, Decimal("100.00"))
    assert _amounts(result) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]


def test_percentage_shares_and_percentages_recorded():
    result = allocate_percentage(
        Decimal("200.00"), [1, 2],
        [Decimal("60"), Decimal("40")], "INR",
    )
    assert _amounts(result) == [Decimal("120.00"), Decimal("80.00")]
    assert [row["percentage"] for row in result] == [Decimal("60"), Decimal("40")]


def test_percentage_residual_skips_zero_percent_participants():
    """The leftover cent goes to the first NON-ZERO participant."""
    result = allocate_percentage(
        Decimal("0.10"), [1, 2, 3],
        [Decimal("0"), Decimal("33.34"), Decimal("66.66")], "INR",
    )
    assert result[0]["amount"] == Decimal("0.00")
    _assert_sums_to(result, Decimal("0.10"))


def test_percentage_over_hundred_is_scaled_to_the_sent_total():
    """Sum 100.01: shares are in proportion 50.01 : 50.00."""
    result = allocate_percentage(
        Decimal("10000.00"), [1, 2],
        [Decimal("50.01"), Decimal("50.00")], "INR",
    )
    assert _amounts(result) == [Decimal("5000.50"), Decimal("4999.50")]
    _assert_sums_to(result, Decimal("10000.00"))


def test_percentage_rounds_to_nearest_minor_unit():
    """0.105 rounds up to 0.11, 0.895 to 0.90; the extra cent is taken from the first."""
    result = allocate_percentage(
        Decimal("1.00"), [1, 2],
        [Decimal("10.5"), Decimal("89.5")], "INR",
    )
    assert _amounts(result) == [Decimal("0.10"), Decimal("0.90")]


def test_percentage_nearest_not_floor():
    """29.997 is 30.00, never 29.99."""
    result = allocate_percentage(
        Decimal("99.99"), [1, 2, 3],
        [Decimal("50"), Decimal("30"), Decimal("20")], "INR",
    )
    assert _amounts(result) == [Decimal("49.99"), Decimal("30.00"), Decimal("20.00")]


def test_percentage_tolerance_gap_is_not_handed_to_one_person():
    """A 0.01 percentage gap on a million is 100.00, not a residual to spread."""
    result = allocate_percentage(
        Decimal("1000000.00"), [1, 2],
        [Decimal("99.99"), Decimal("0.02")], "INR",
    )
    assert _amounts(result) == [Decimal("999800.02"), Decimal("199.98")]
    _assert_sums_to(result, Decimal("1000000.00"))


def test_percentage_large_amount_at_tolerance_edge():
    """Finishes immediately; the leftover is a single cent."""
    amount = Decimal("999999999999.99")
    result = allocate_percentage(
        amount, [1, 2],
        [Decimal("50.005"), Decimal("50.005")], "INR",
    )
    assert _amounts(result) == [Decimal("499999999999.99"), Decimal("500000000000.00")]
    _assert_sums_to(result, amount)


@pytest.mark.parametrize("amount, percentages", [
    ("0.01", ["50", "50"]),
    ("0.07", ["33.33", "33.33", "33.34"]),
    ("123456.78", ["12.5", "37.5", "49.99"]),
    ("100", ["0", "99.99"]),
])
def test_percentage_always_sums_exactly(amount, percentages):
    amount = Decimal(amount)
    pcts = [Decimal(p) for p in percentages]
    result = allocate_percentage(amount, list(range(1, len(pcts) + 1)), pcts, "INR")
    _assert_sums_to(result, amount)
    assert all(a >= 0 for a in _amounts(result))


def test_percentage_out_of_range():
    with pytest.raises(AppError) as exc_info:
        allocate_percentage(
            Decimal("100.00"), [1, 2],
            [Decimal("120"), Decimal("-20")], "INR",
        )
    assert exc_info.value.code == ErrorCode.PERCENTAGE_OUT_OF_RANGE


def test_percentage_list_length_must_match():
    with pytest.raises(AppError) as exc_info:
        allocate_percentage(Decimal("100.00"), [1, 2, 3], [Decimal("50"), Decimal("50")], "INR")
    assert exc_info.value.code == ErrorCode.SHARE_COUNT_MISMATCH


def test_percentage_missing_list():
    with pytest.raises(AppError) as exc_info:
        allocate_percentage(Decimal("100.00"), [1, 2], None, "INR")
    assert exc_info.value.code == ErrorCode.SHARE_COUNT_MISMATCH


# ── custom ─────────────────────────────────────────────────────────────────

def test_custom_sum_mismatch_cites_both_totals():
    with pytest.raises(AppError) as exc_info:
        allocate_custom(
            Decimal("500.00"), [1, 2, 3],
            [Decimal("200"), Decimal("200"), Decimal("50")], "INR",
        )

    err = exc_info.value
    assert err.code == ErrorCode.SPLIT_SUM_MISMATCH
    assert "450.00" in err.message
    assert "500.00" in err.message
    assert err.details == {"expected": "500.00", "actual": "450.00"}


def test_custom_matching_sum_is_accepted_as_given():
    result = allocate_custom(
        Decimal("500.00"), [1, 2, 3],
        [Decimal("200"), Decimal("200"), Decimal("100")], "INR",
    )
    assert _amounts(result) == [Decimal("200"), Decimal("200"), Decimal("100")]
    _assert_sums_to(result, Decimal("500.00"))


def test_custom_residual_inside_tolerance_is_absorbed():
    """3 × 33.33 = 99.99 against 100.00: the first non-zero share takes the cent."""
    result = allocate_custom(
        Decimal("100.00"), [1, 2, 3, 4],
        [Decimal("0"), Decimal("33.33"), Decimal("33.33"), Decimal("33.33")], "INR",
    )
    assert _amounts(result) == [
        Decimal("0"), Decimal("33.34"), Decimal("33.33"), Decimal("33.33"),
    ]


def test_custom_rejects_negative_share():
    with pytest.raises(AppError) as exc_info:
        allocate_custom(
            Decimal("10.00"), [1, 2],
            [Decimal("15.00"), Decimal("-5.00")], "INR",
        )
    assert exc_info.value.code == ErrorCode.NEGATIVE_AMOUNT


def test_custom_rejects_sub_cent_precision():
    with pytest.raises(AppError) as exc_info:
        allocate_custom(
            Decimal("10.00"), [1, 2],
            [Decimal("5.005"), Decimal("4.995")], "INR",
        )
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT_PRECISION


def test_custom_zero_share_allowed():
    result = allocate_custom(
        Decimal("10.00"), [1, 2],
        [Decimal("10.00"), Decimal("0.00")], "INR",
    )
    assert _amounts(result) == [Decimal("10.00"), Decimal("0.00")]


# ── dispatch ───────────────────────────────────────────────────────────────

def test_allocate_dispatches_by_split_type():
    result = allocate(SplitType.EQUAL, Decimal("9.00"), [1, 2, 3], "INR")
    assert _amounts(result) == [Decimal("3.00")] * 3


def test_allocate_rejects_none_split_type():
    with pytest.raises(AppError) as exc_info:
        allocate(SplitType.NONE, Decimal("9.00"), [1, 2, 3], "INR")
    assert exc_info.value.code == ErrorCode.INVALID_SPLIT_TYPE
