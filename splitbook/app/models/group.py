"""
models/group.py — Group table definition.

A group is a tag over transactions (a trip, a school fee pool, an event)
with an optional budget. It holds no money of its own.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db
from splitbook.app.models.common import Money, enum_column_type


class GroupType(str, enum.Enum):
    TRIP   = "trip"
    FEES   = "fees"
    EVENT  = "event"
    CUSTOM = "custom"


class Group(db.Model):
    # 'groups' is a reserved word in some SQL dialects; SQLAlchemy quotes it.
    __tablename__ = "groups"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
        CheckConstraint(
            "budget IS NULL OR budget > 0",
            name="ck_groups_budget_positive",
        ),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_groups_date_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    group_type: Mapped[GroupType] = mapped_column(
        "type",
        enum_column_type(GroupType, "group_type_enum"),
        nullable=False,
        default=GroupType.CUSTOM,
    )

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    budget: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

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

    memberships: Mapped[list["GroupMember"]] = relationship(  # noqa: F821
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"
