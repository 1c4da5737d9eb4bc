"""
schemas/settlement_schema.py — Marshmallow schemas for settlement endpoints.

Validation responsibility:
  - This file: field types, positive amount, decimal precision, enums.
  - services/settlement_service.py:
      - SELF_SETTLEMENT (400)   — fromPersonId == toPersonId
      - PERSON_NOT_FOUND (404)  — either person unknown or foreign
      - ACCOUNT_REQUIRED (400)  — createTransaction without accountId
      - CURRENCY_MISMATCH (400) — account currency differs
      - OVERPAYMENT warning     — needs the pair balance; never blocks

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from splitbook.app.errors import ErrorCode
from splitbook.app.models.account import AccountType
from splitbook.app.models.settlement import SettlementMethod, SettlementStatus
from splitbook.app.schemas.common import currency_field, id_field, validate_monetary_amount


class CreateSettlementSchema(Schema):
    """
    POST /settlements

    Records that fromPersonId pays toPersonId. The new settlement is
    pending and does not touch balances until it is settled.

    createTransaction=true also books the payment as a cash-flow
    transaction against accountId.
    """

    from_person_id = id_field(required=True, data_key="fromPersonId")
    to_person_id = id_field(required=True, data_key="toPersonId")

    amount = fields.Decimal(required=True, validate=validate_monetary_amount)

    # Defaults to the owner's default currency.
    currency = currency_field(load_default=None)

    method = fields.Enum(
        SettlementMethod,
        load_default=SettlementMethod.CASH,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    notes = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))

    create_transaction = fields.Bool(load_default=False, data_key="createTransaction")

    account_id = id_field(load_default=None, allow_none=True, data_key="accountId")

    account_type = fields.Enum(
        AccountType,
        load_default=None,
        by_value=True,
        data_key="accountType",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )


class SettleSchema(Schema):
    """PUT /settlements/{id}/settle — settlementDate defaults to now (UTC)."""

    settlement_date = fields.DateTime(load_default=None, data_key="settlementDate")


class SettlementHistoryQuerySchema(Schema):
    """GET /settlements/history query string."""

    class Meta:
        unknown = EXCLUDE

    limit = fields.Int(load_default=None, validate=validate.Range(min=1))
    skip = fields.Int(load_default=0, validate=validate.Range(min=0))
    status = fields.Enum(
        SettlementStatus,
        load_default=None,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )
