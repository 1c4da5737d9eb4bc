"""
schemas/group_schema.py — Marshmallow schemas for group endpoints.

PUT /groups/{id} loads GroupSchema with partial=True. The date-range rule is
re-checked by group_service.py against the stored dates, since a partial
update may send only one side.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from splitbook.app.errors import ErrorCode
from splitbook.app.models.group import GroupType
from splitbook.app.schemas.common import (
    currency_field,
    id_field,
    name_field,
    validate_monetary_amount,
)


class GroupSchema(Schema):

    name = name_field(required=True)

    group_type = fields.Enum(
        GroupType,
        load_default=GroupType.CUSTOM,
        by_value=True,
        data_key="type",
        error_messages={"unknown": ErrorCode.INVALID_FIELD},
    )

    start_date = fields.Date(load_default=None, allow_none=True, data_key="startDate")
    end_date = fields.Date(load_default=None, allow_none=True, data_key="endDate")

    budget = fields.Decimal(load_default=None, allow_none=True, validate=validate_monetary_amount)

    # Defaults to the owner's default currency on create.
    currency = currency_field(load_default=None)

    notes = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))

    @validates_schema
    def validate_date_range(self, data: dict, **kwargs) -> None:
        start, end = data.get("start_date"), data.get("end_date")
        if start is not None and end is not None and start > end:
            raise ValidationError({"startDate": [ErrorCode.INVALID_DATE_RANGE]})


class CreateGroupSchema(GroupSchema):
    """POST /groups — memberIds adds people in one call."""

    member_ids = fields.List(id_field(), load_default=list, data_key="memberIds")

    @validates_schema
    def validate_unique_members(self, data: dict, **kwargs) -> None:
        member_ids = data.get("member_ids") or []
        if len(member_ids) != len(set(member_ids)):
            raise ValidationError({"memberIds": ["The same person appears more than once."]})


class AddMemberSchema(Schema):
    """POST /groups/{id}/members"""

    person_id = id_field(required=True, data_key="personId")


class GroupsQuerySchema(Schema):
    """GET /groups query string."""

    class Meta:
        unknown = EXCLUDE

    include_inactive = fields.Bool(load_default=False, data_key="includeInactive")
