"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/auth_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME (need a
    DB lookup).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — see extensions.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from splitbook.app.schemas.common import currency_field


class RegisterSchema(Schema):
    """
    POST /auth/register

      username        : 3–50 chars, letters, digits and underscore
      email           : valid email, max 255
      password        : min 8 chars, at least one letter and one digit
      defaultCurrency : optional ISO 4217 code (default INR)
    """

    username = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=3,
                max=50,
                error="Username must be between 3 and 50 characters.",
            ),
            validate.Regexp(
                r"^[a-zA-Z0-9_]+$",
                error="Username may only contain letters, numbers, and underscores.",
            ),
        ],
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(required=True, load_only=True)

    default_currency = currency_field(data_key="defaultCurrency", load_default="INR")

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")


class LoginSchema(Schema):
    """POST /auth/login — presence only; the service gives one error for both bad fields."""

    username = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=1))
