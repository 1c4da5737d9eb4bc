"""
schemas/account_schema.py — Marshmallow schema for account creation.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from splitbook.app.errors import ErrorCode
from splitbook.app.models.account import AccountType
from splitbook.app.schemas.common import currency_field, name_field


class CreateAccountSchema(Schema):
    """
    POST /accounts

    currency is optional; the owner's default currency is used when absent.
    """

    name = name_field(required=True)

    account_type = fields.Enum(
        AccountType,
        required=True,
        by_value=True,
        data_key="accountType",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    currency = currency_field(load_default=None)

    institution = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=100),
    )
