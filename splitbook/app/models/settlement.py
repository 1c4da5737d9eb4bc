"""
models/settlement.py — Settlement table definition.

No business logic. No imports from services or routes.

Key design points:
  - `amount` uses Numeric(14, 2) — never Float — and must be positive.
  - CHECK(from_person_id <> to_person_id) is enforced here AND in
    settlement_service.py (SELF_SETTLEMENT, 400). The DB constraint is the
    last line of defence.
  - status moves pending → settled or pending → cancelled, never back.
    Transitions are conditional UPDATEs in settlement_service.py.
  - transaction_id links the optional cash-flow transaction written when the
    settlement was created with createTransaction=true.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db
from splitbook.app.models.common import Money, enum_column_type


class SettlementStatus(str, enum.Enum):
    PENDING   = "pending"
    SETTLED   = "settled"
    CANCELLED = "cancelled"


class SettlementMethod(str, enum.Enum):
    BANK  = "bank"
    CASH  = "cash"
    OTHER = "other"


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        CheckConstraint(
            "from_person_id <> to_person_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    from_person_id: Mapped[int] = mapped_column(
        ForeignKey("people.id", ondelete="RESTRICT"),
        nullable=False,
    )

    to_person_id: Mapped[int] = mapped_column(
        ForeignKey("people.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[SettlementStatus] = mapped_column(
        enum_column_type(SettlementStatus, "settlement_status_enum"),
        nullable=False,
        default=SettlementStatus.PENDING,
        index=True,
    )

    method: Mapped[SettlementMethod] = mapped_column(
        enum_column_type(SettlementMethod, "settlement_method_enum"),
        nullable=False,
        default=SettlementMethod.CASH,
    )

    settlement_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
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

    from_person: Mapped["Person"] = relationship(  # noqa: F821
        "Person",
        foreign_keys=[from_person_id],
    )

    to_person: Mapped["Person"] = relationship(  # noqa: F821
        "Person",
        foreign_keys=[to_person_id],
    )

    transaction: Mapped["Transaction | None"] = relationship("Transaction")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement id={self.id} "
            f"from={self.from_person_id} "
            f"to={self.to_person_id} "
            f"amount={self.amount} "
            f"status={self.status.value}>"
        )
