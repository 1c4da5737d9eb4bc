"""
schemas/common.py — Field validators shared by every request schema.

Money rules live here once so accounts, transactions, splits, settlements and
groups reject the same inputs with the same codes:
  - strictly positive (zero only where a schema says so)
  - at most 2 decimal places; more is REJECTED (INVALID_AMOUNT_PRECISION),
    never rounded. The column type is NUMERIC(14, 2).

Currency-specific precision (JPY has no minor unit) needs the resolved
currency and is checked in services/allocation.py.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import ValidationError, fields, validate

from splitbook.app.errors import ErrorCode


MAX_AMOUNT = Decimal("999999999999.99")


def _check_scale(value: Decimal) -> None:
    # Decimal("10.123").as_tuple().exponent == -3 → 3 dp → reject
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)
    if value > MAX_AMOUNT:
        raise ValidationError("Amount is too large.")


def validate_monetary_amount(value: Decimal) -> None:
    """> 0 and at most 2 dp."""
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    _check_scale(value)


def validate_share_amount(value: Decimal) -> None:
    """>= 0 and at most 2 dp. A custom split may give a participant nothing."""
    if value < Decimal("0"):
        raise ValidationError(ErrorCode.NEGATIVE_AMOUNT)
    _check_scale(value)


def validate_non_empty_after_trim(value: str) -> None:
    """
    validate.Length(min=1) lets "   " through. Mirrors the
    CHECK(LENGTH(TRIM(...)) > 0) constraints on the tables.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def currency_field(**kwargs) -> fields.Str:
    """ISO 4217 alphabetic code. Normalised to upper case by the service."""
    return fields.Str(
        validate=validate.Regexp(r"^[A-Za-z]{3}$", error=ErrorCode.INVALID_CURRENCY),
        **kwargs,
    )


def id_field(**kwargs) -> fields.Int:
    """Positive integer id. strict=True rejects 1.0 and "1"."""
    return fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="Must be a positive integer id."),
        **kwargs,
    )


def name_field(max_length: int = 100, **kwargs) -> fields.Str:
    return fields.Str(
        validate=[
            validate.Length(
                min=1,
                max=max_length,
                error=f"Must be between 1 and {max_length} characters.",
            ),
            validate_non_empty_after_trim,
        ],
        **kwargs,
    )
