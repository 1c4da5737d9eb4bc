"""
schemas/transaction_schema.py — Marshmallow schemas for the transaction ledger.

Validation responsibility:
  - This file: field types, enum values, decimal precision, date-range shape.
  - services/transaction_service.py (need the DB):
      - ACCOUNT_NOT_FOUND / PERSON_NOT_FOUND / GROUP_NOT_FOUND (404)
      - CURRENCY_MISMATCH      — currency differs from the account / group
      - ACCOUNT_TYPE_MISMATCH  — accountType differs from the account
      - SPLIT_AMOUNT_LOCKED    — PUT changes the amount of a split parent

TransactionFieldsSchema is reused by split_schema.CreateSplitSchema: a split
parent is created from exactly the same fields as a plain transaction.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from splitbook.app.errors import ErrorCode
from splitbook.app.models.account import AccountType
from splitbook.app.models.transaction import TransactionStatus, TransactionType
from splitbook.app.schemas.common import (
    currency_field,
    id_field,
    name_field,
    validate_monetary_amount,
)


class TransactionFieldsSchema(Schema):
    """
    Shared by POST /transactions and POST /splits.

      accountId   : required
      accountType : optional; must match the account when given
      type        : income | expense | transfer
      amount      : > 0, max 2 dp
      currency    : optional; defaults to the account currency
      personId    : optional; for a split parent this is the payer
      date        : optional; defaults to today
    """

    account_id = id_field(required=True, data_key="accountId")

    account_type = fields.Enum(
        AccountType,
        load_default=None,
        by_value=True,
        data_key="accountType",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    transaction_type = fields.Enum(
        TransactionType,
        required=True,
        by_value=True,
        data_key="type",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    amount = fields.Decimal(required=True, validate=validate_monetary_amount)

    currency = currency_field(load_default=None)

    description = name_field(max_length=255, required=True)

    category = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=100))

    notes = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))

    person_id = id_field(load_default=None, allow_none=True, data_key="personId")

    transaction_date = fields.Date(load_default=None, data_key="date")

    status = fields.Enum(
        TransactionStatus,
        load_default=TransactionStatus.COMPLETED,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    group_id = id_field(load_default=None, allow_none=True, data_key="groupId")


class CreateTransactionSchema(TransactionFieldsSchema):
    """POST /transactions — a plain (unsplit) ledger entry."""


class UpdateTransactionSchema(TransactionFieldsSchema):
    """
    PUT /transactions/{id} — loaded with partial=True.

    On a split parent the shared fields (account, type, date, description,
    category, currency, status) are copied to the children by the service.
    """


class TransactionQuerySchema(Schema):
    """
    GET /transactions query string. Values arrive as strings, so the int
    fields are not strict here.
    """

    class Meta:
        unknown = EXCLUDE

    account_id = fields.Int(load_default=None, data_key="accountId", validate=validate.Range(min=1))
    transaction_type = fields.Enum(
        TransactionType,
        load_default=None,
        by_value=True,
        data_key="type",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )
    person_id = fields.Int(load_default=None, data_key="personId", validate=validate.Range(min=1))
    group_id = fields.Int(load_default=None, data_key="groupId", validate=validate.Range(min=1))
    status = fields.Enum(
        TransactionStatus,
        load_default=None,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )
    start_date = fields.Date(load_default=None, data_key="startDate")
    end_date = fields.Date(load_default=None, data_key="endDate")
    include_deleted = fields.Bool(load_default=False, data_key="includeDeleted")
    limit = fields.Int(load_default=None, validate=validate.Range(min=1))
    skip = fields.Int(load_default=0, validate=validate.Range(min=0))

    @validates_schema
    def validate_date_range(self, data: dict, **kwargs) -> None:
        start, end = data.get("start_date"), data.get("end_date")
        if start is not None and end is not None and start > end:
            raise ValidationError({"startDate": [ErrorCode.INVALID_DATE_RANGE]})
