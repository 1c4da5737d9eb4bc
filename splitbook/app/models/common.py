"""
models/common.py — Column helpers shared by every model.

Enums are stored as VARCHAR + CHECK (native_enum=False) so the same models
run on PostgreSQL and on the in-memory SQLite used by the test suite.
"""

from __future__ import annotations

import enum

from sqlalchemy import Enum, Numeric


# NUMERIC(14, 2). Never Float.
Money = Numeric(14, 2)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'equal'), not names ('EQUAL')."""
    return [member.value for member in enum_cls]


def enum_column_type(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Portable Enum column type storing the member value."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=_enum_values,
        length=max(len(v) for v in _enum_values(enum_cls)),
    )
