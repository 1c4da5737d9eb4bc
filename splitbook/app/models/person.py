"""
models/person.py — Person table definition.

A person is a party who can owe or be owed money. People are not system
users; they belong to exactly one owner.

Every owner has exactly one person with is_self = True, created at
registration. It stands in for the owner whenever a transaction has no
explicit payer, so balances are always person-to-person.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    false,
    func,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db
from splitbook.app.models.common import Money, enum_column_type


class PersonType(str, enum.Enum):
    CHILD    = "child"
    FRIEND   = "friend"
    EMPLOYEE = "employee"
    FAMILY   = "family"
    OTHER    = "other"


class LimitPeriod(str, enum.Enum):
    DAILY   = "daily"
    WEEKLY  = "weekly"
    MONTHLY = "monthly"
    YEARLY  = "yearly"


class Person(db.Model):
    __tablename__ = "people"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_people_name_nonempty",
        ),
        CheckConstraint(
            "overall_limit IS NULL OR overall_limit > 0",
            name="ck_people_overall_limit_positive",
        ),
        Index(
            "uq_people_one_self_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_self"),
            sqlite_where=text("is_self = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    person_type: Mapped[PersonType] = mapped_column(
        "type",
        enum_column_type(PersonType, "person_type_enum"),
        nullable=False,
        default=PersonType.OTHER,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    overall_limit: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    limit_period: Mapped[LimitPeriod | None] = mapped_column(
        enum_column_type(LimitPeriod, "limit_period_enum"),
        nullable=True,
    )

    # [{"category": "food", "amount": "500.00", "period": "monthly"}, ...]
    # Amounts are stored as strings to keep them exact inside JSON.
    category_limits: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    is_self: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    owner: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="people",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Person id={self.id} name={self.name!r} self={self.is_self}>"
