"""
services/allocation.py — Split arithmetic.

This file is the SINGLE SOURCE OF TRUTH for how a split amount is divided.
split_service.py calls allocate() and persists the result; nothing else
divides money.

Pure functions only: no Flask, no session, no I/O. Every function takes and
returns Decimal values and is unit-tested without an app.

Rounding policy (all three split types):
  - Work in whole minor units of the currency (cents, paise; yen for JPY).
  - The parent amount is ground truth. The allocation always sums to it
    exactly.
  - Equal shares are rounded down; percentage shares are rounded to the
    nearest minor unit (half up).
  - Whatever rounding leaves over, positive or negative, is moved one minor
    unit at a time starting with the first participant in input order. It
    is never more than one unit per participant.
    Re-running the same input always yields the same distribution.

Allocation result shape (list, in input order):
    [{"person_id": int, "amount": Decimal, "percentage": Decimal | None}, ...]
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from splitbook.app.errors import AppError, ErrorCode, InputValidationError
from splitbook.app.models.transaction import SplitType


# Accepted difference between what the client sends and what must reconcile.
TOLERANCE = Decimal("0.01")
HUNDRED = Decimal("100")

# ISO 4217 currencies without a minor unit. Everything else uses cents.
# Three-decimal currencies (BHD, KWD, ...) are stored at two decimals.
_ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})


def minor_unit(currency: str) -> Decimal:
    """Smallest representable amount for `currency`: Decimal('1') or Decimal('0.01')."""
    if currency.upper() in _ZERO_DECIMAL_CURRENCIES:
        return Decimal("1")
    return Decimal("0.01")


def format_amount(value: Decimal) -> str:
    """Two-decimal rendering used in error messages: Decimal('95') → '95.00'."""
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _to_units(value: Decimal, unit: Decimal) -> int:
    """Exact number of minor units in `value`. `value` must be a multiple of `unit`."""
    return int(value / unit)


def _check_amount(amount: Decimal, unit: Decimal) -> None:
    if amount <= 0:
        raise InputValidationError(
            ErrorCode.NEGATIVE_AMOUNT,
            "Amount must be greater than zero.",
            field="amount",
        )
    if amount != amount.quantize(unit):
        raise InputValidationError(
            ErrorCode.INVALID_AMOUNT_PRECISION,
            f"Amount {amount} has more precision than the currency allows ({unit}).",
            field="amount",
        )


def check_amount(amount: Decimal, currency: str) -> None:
    """Positive and a whole number of `currency` minor units. Used for unsplit amounts too."""
    _check_amount(amount, minor_unit(currency))


def _check_participants(person_ids: list[int]) -> None:
    if not person_ids:
        raise InputValidationError(
            ErrorCode.EMPTY_PARTICIPANTS,
            "A split needs at least one participant.",
            field="personIds",
        )
    if len(person_ids) != len(set(person_ids)):
        raise InputValidationError(
            ErrorCode.DUPLICATE_SPLIT_PERSON,
            "The same person appears more than once in personIds.",
            field="personIds",
        )


def _check_share_count(values: list | None, person_ids: list[int], field: str) -> list:
    if values is None or len(values) != len(person_ids):
        got = 0 if values is None else len(values)
        raise InputValidationError(
            ErrorCode.SHARE_COUNT_MISMATCH,
            f"{field} has {got} entries, expected {len(person_ids)} (one per person).",
            field=field,
        )
    return values


def _spread_residual(
        amounts: list[Decimal],
        residual: Decimal,
        unit: Decimal,
        eligible: list[int],
) -> None:
    """
    Moves `residual` into `amounts` one minor unit at a time, round-robin over
    the indices in `eligible` (input order). A negative residual is taken back
    the same way, skipping shares that would drop below zero.
    """
    remaining = abs(_to_units(residual, unit))
    if remaining == 0:
        return
    step = unit if residual > 0 else -unit

    i = 0
    while remaining:
        idx = eligible[i % len(eligible)]
        if step > 0 or amounts[idx] >= unit:
            amounts[idx] += step
            remaining -= 1
        i += 1


def _build(
        person_ids: list[int],
        amounts: list[Decimal],
        percentages: list[Decimal] | None,
        expected: Decimal,
) -> list[dict]:
    # Sanity check — this must always hold; a failure here is a programming error.
    computed = sum(amounts, Decimal("0"))
    if computed != expected:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Allocation produced sum {computed} for amount {expected}. "
            f"This is a bug — please report it.",
            500,
        )
    return [
        {
            "person_id": pid,
            "amount": amt,
            "percentage": percentages[i] if percentages is not None else None,
        }
        for i, (pid, amt) in enumerate(zip(person_ids, amounts))
    ]


# ── Public allocators ─────────────────────────────────────────────────────

def allocate_equal(
        amount: Decimal,
        person_ids: list[int],
        currency: str,
) -> list[dict]:
    """
    Divides `amount` evenly. The leftover minor units go one each to the
    first participants in input order.

        allocate_equal(Decimal("100.00"), [1, 2, 3], "INR")
        → 33.34, 33.33, 33.33
    """
    unit = minor_unit(currency)
    _check_amount(amount, unit)
    _check_participants(person_ids)

    base_units, leftover = divmod(_to_units(amount, unit), len(person_ids))
    amounts = [
        (base_units + (1 if i < leftover else 0)) * unit
        for i in range(len(person_ids))
    ]
    return _build(person_ids, amounts, None, amount)


def allocate_percentage(
        amount: Decimal,
        person_ids: list[int],
        percentages: list[Decimal] | None,
        currency: str,
) -> list[dict]:
    """
    Each share = amount × pct / total_pct, rounded half up to the minor unit.
    total_pct is the sum the client sent (100 ± 0.01), so the accepted
    tolerance is spread proportionally and only rounding error is left. That
    leftover is pushed onto participants with a non-zero percentage, first
    in input order.

        allocate_percentage(Decimal("1.00"), [1, 2], [Decimal("10.5"), Decimal("89.5")], "INR")
        → 0.10, 0.90

    Raises:
      PERCENTAGE_OUT_OF_RANGE  — any percentage outside [0, 100]
      PERCENTAGE_SUM_MISMATCH  — |sum − 100| > 0.01, message cites the sum
    """
    unit = minor_unit(currency)
    _check_amount(amount, unit)
    _check_participants(person_ids)
    percentages = _check_share_count(percentages, person_ids, "percentages")

    for pct in percentages:
        if pct < 0 or pct > HUNDRED:
            raise InputValidationError(
                ErrorCode.PERCENTAGE_OUT_OF_RANGE,
                f"Percentage {pct} is outside the range 0–100.",
                field="percentages",
            )

    total_pct = sum(percentages, Decimal("0"))
    if abs(total_pct - HUNDRED) > TOLERANCE:
        raise InputValidationError(
            ErrorCode.PERCENTAGE_SUM_MISMATCH,
            f"Percentages sum to {format_amount(total_pct)}, expected 100.00.",
            field="percentages",
            details={"expected": "100.00", "actual": format_amount(total_pct)},
        )

    amounts = [
        (amount * pct / total_pct).quantize(unit, rounding=ROUND_HALF_UP)
        for pct in percentages
    ]
    eligible = [i for i, pct in enumerate(percentages) if pct > 0]
    _spread_residual(amounts, amount - sum(amounts, Decimal("0")), unit, eligible)

    return _build(person_ids, amounts, list(percentages), amount)


def allocate_custom(
        amount: Decimal,
        person_ids: list[int],
        custom_amounts: list[Decimal] | None,
        currency: str,
) -> list[dict]:
    """
    Uses the client's amounts as given. Each must already be a whole number
    of minor units.

    The client total must match `amount` within 0.01; anything further off is
    rejected, never corrected. A residual inside the tolerance (e.g. three
    shares of 33.33 against 100.00) is absorbed by the first participant
    with a non-zero share so the breakdown reconciles exactly.

    Raises:
      NEGATIVE_AMOUNT           — any custom amount below zero
      INVALID_AMOUNT_PRECISION  — finer than the currency's minor unit
      SPLIT_SUM_MISMATCH        — message cites both totals
    """
    unit = minor_unit(currency)
    _check_amount(amount, unit)
    _check_participants(person_ids)
    custom_amounts = _check_share_count(custom_amounts, person_ids, "customAmounts")

    for value in custom_amounts:
        if value < 0:
            raise InputValidationError(
                ErrorCode.NEGATIVE_AMOUNT,
                f"Custom amount {value} is negative.",
                field="customAmounts",
            )
        if value != value.quantize(unit):
            raise InputValidationError(
                ErrorCode.INVALID_AMOUNT_PRECISION,
                f"Custom amount {value} has more precision than {currency} allows.",
                field="customAmounts",
            )

    client_total = sum(custom_amounts, Decimal("0"))
    if abs(client_total - amount) > TOLERANCE:
        raise InputValidationError(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Custom amounts sum to {format_amount(client_total)}, "
            f"expected {format_amount(amount)}.",
            field="customAmounts",
            details={"expected": format_amount(amount), "actual": format_amount(client_total)},
        )

    amounts = list(custom_amounts)
    eligible = [i for i, value in enumerate(amounts) if value > 0]
    residual = amount - sum(amounts, Decimal("0"))
    if residual and not eligible:
        eligible = [0]
    _spread_residual(amounts, residual, unit, eligible)

    return _build(person_ids, amounts, None, amount)


def allocate(
        split_type: SplitType,
        amount: Decimal,
        person_ids: list[int],
        currency: str,
        percentages: list[Decimal] | None = None,
        custom_amounts: list[Decimal] | None = None,
) -> list[dict]:
    """Dispatches to the allocator for `split_type`."""
    if split_type == SplitType.EQUAL:
        return allocate_equal(amount, person_ids, currency)
    if split_type == SplitType.PERCENTAGE:
        return allocate_percentage(amount, person_ids, percentages, currency)
    if split_type == SplitType.CUSTOM:
        return allocate_custom(amount, person_ids, custom_amounts, currency)
    raise InputValidationError(
        ErrorCode.INVALID_SPLIT_TYPE,
        "splitType must be 'equal', 'percentage' or 'custom'.",
        field="splitType",
    )
