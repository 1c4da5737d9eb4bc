"""
schemas/person_schema.py — Marshmallow schemas for people.

PUT /people/{id} loads PersonSchema with partial=True: only the keys the
client sent are returned, and load_default values are NOT applied.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from splitbook.app.errors import ErrorCode
from splitbook.app.models.person import LimitPeriod, PersonType
from splitbook.app.schemas.common import (
    currency_field,
    name_field,
    validate_monetary_amount,
    validate_share_amount,
)


class CategoryLimitSchema(Schema):
    category = name_field(required=True)
    amount = fields.Decimal(required=True, validate=validate_monetary_amount)
    period = fields.Enum(
        LimitPeriod,
        load_default=LimitPeriod.MONTHLY,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )


class PersonSchema(Schema):
    """
    POST /people, PUT /people/{id}

    overallLimit and limitPeriod go together: a limit without a period is
    meaningless, and a period without a limit is rejected too.
    """

    name = name_field(required=True)

    person_type = fields.Enum(
        PersonType,
        load_default=PersonType.OTHER,
        by_value=True,
        data_key="type",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    notes = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))

    overall_limit = fields.Decimal(
        load_default=None,
        allow_none=True,
        data_key="overallLimit",
        validate=validate_monetary_amount,
    )

    limit_period = fields.Enum(
        LimitPeriod,
        load_default=None,
        allow_none=True,
        by_value=True,
        data_key="limitPeriod",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    category_limits = fields.List(
        fields.Nested(CategoryLimitSchema),
        load_default=list,
        data_key="categoryLimits",
    )

    @validates_schema
    def validate_limit_pair(self, data: dict, **kwargs) -> None:
        if "overall_limit" not in data and "limit_period" not in data:
            return  # partial update that does not touch the limit
        has_limit = data.get("overall_limit") is not None
        has_period = data.get("limit_period") is not None
        if has_limit != has_period:
            raise ValidationError(
                {"limitPeriod": ["overallLimit and limitPeriod must be set together."]}
            )

    @validates_schema
    def validate_unique_categories(self, data: dict, **kwargs) -> None:
        categories = [c["category"].strip().lower() for c in data.get("category_limits") or []]
        if len(categories) != len(set(categories)):
            raise ValidationError(
                {"categoryLimits": ["Each category may only have one limit."]}
            )


class PeopleQuerySchema(Schema):
    """GET /people query string."""

    class Meta:
        unknown = EXCLUDE

    include_inactive = fields.Bool(load_default=False, data_key="includeInactive")


class SpendingQuerySchema(Schema):
    """GET /people/{id}/spending query string. Missing dates default in the service."""

    class Meta:
        unknown = EXCLUDE

    start_date = fields.Date(load_default=None, data_key="startDate")
    end_date = fields.Date(load_default=None, data_key="endDate")
    currency = currency_field(load_default=None)

    @validates_schema
    def validate_date_range(self, data: dict, **kwargs) -> None:
        start, end = data.get("start_date"), data.get("end_date")
        if start is not None and end is not None and start > end:
            raise ValidationError({"startDate": [ErrorCode.INVALID_DATE_RANGE]})


class LimitCheckQuerySchema(Schema):
    """
    GET /people/{id}/spending/limits query string.

      amount   : a prospective spend added on top of what is already spent
      category : only report this category's limit
      currency : defaults to the owner's default currency
    """

    class Meta:
        unknown = EXCLUDE

    amount = fields.Decimal(load_default=Decimal("0"), validate=validate_share_amount)
    category = fields.Str(load_default=None, validate=validate.Length(min=1, max=100))
    currency = currency_field(load_default=None)
