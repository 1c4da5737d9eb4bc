"""
schemas/split_schema.py — Marshmallow schemas for split endpoints.

Validation responsibility:
  - This file: request shape. splitType is one of equal / percentage /
    custom, personIds is non-empty with no duplicates, percentages and
    customAmounts are decimals.
  - services/allocation.py: everything that needs arithmetic —
      SHARE_COUNT_MISMATCH, PERCENTAGE_OUT_OF_RANGE, PERCENTAGE_SUM_MISMATCH,
      SPLIT_SUM_MISMATCH, currency minor-unit precision.
  - services/split_service.py: everything that needs the DB —
      ownership of people / account / group, CURRENCY_MISMATCH,
      TRANSFER_NOT_SPLITTABLE, TRANSACTION_ALREADY_SPLIT.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from splitbook.app.errors import ErrorCode
from splitbook.app.models.transaction import SplitType, TransactionType
from splitbook.app.schemas.common import (
    id_field,
    validate_monetary_amount,
    validate_share_amount,
)
from splitbook.app.schemas.transaction_schema import TransactionFieldsSchema


def _validate_percentage_scale(value: Decimal) -> None:
    # percentage column is NUMERIC(7, 4)
    if value.as_tuple().exponent < -4:
        raise ValidationError("Percentages may have at most 4 decimal places.")


class SplitPolicySchema(Schema):
    """
    The allocation policy on its own.
    Used as-is by POST /transactions/{id}/split.

      splitType     : equal | percentage | custom
      personIds     : >= 1 person, input order is the remainder order
      percentages   : parallel to personIds (percentage only)
      customAmounts : parallel to personIds (custom only), each >= 0
    """

    split_type = fields.Enum(
        SplitType,
        required=True,
        by_value=True,
        data_key="splitType",
        validate=validate.OneOf(
            [SplitType.EQUAL, SplitType.PERCENTAGE, SplitType.CUSTOM],
            error=ErrorCode.INVALID_SPLIT_TYPE,
        ),
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_TYPE},
    )

    person_ids = fields.List(
        id_field(),
        required=True,
        data_key="personIds",
        validate=validate.Length(min=1, error=ErrorCode.EMPTY_PARTICIPANTS),
    )

    percentages = fields.List(
        fields.Decimal(validate=_validate_percentage_scale),
        load_default=None,
    )

    custom_amounts = fields.List(
        fields.Decimal(validate=validate_share_amount),
        load_default=None,
        data_key="customAmounts",
    )

    @validates_schema
    def validate_participants(self, data: dict, **kwargs) -> None:
        person_ids = data.get("person_ids") or []
        if len(person_ids) != len(set(person_ids)):
            raise ValidationError({"personIds": [ErrorCode.DUPLICATE_SPLIT_PERSON]})


class CreateSplitSchema(TransactionFieldsSchema, SplitPolicySchema):
    """
    POST /splits — a new split parent plus its allocation.

    type defaults to expense here. idempotencyKey is optional; when given,
    a retried request returns the split it already created.
    """

    transaction_type = fields.Enum(
        TransactionType,
        load_default=TransactionType.EXPENSE,
        by_value=True,
        data_key="type",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    idempotency_key = fields.Str(
        load_default=None,
        allow_none=True,
        data_key="idempotencyKey",
        validate=validate.Length(min=1, max=64),
    )


class UpdateSplitSchema(SplitPolicySchema):
    """
    PUT /splits/{id} — re-allocate an existing split.

    amount and personId (the payer) are optional; when omitted the parent
    keeps its current values. An explicit personId: null makes the owner
    the payer again.
    """

    amount = fields.Decimal(validate=validate_monetary_amount)

    person_id = id_field(allow_none=True, data_key="personId")
