"""
models/split_share.py — Split breakdown row definition.

One row per participant of a split parent transaction.

Key design points:
  - `amount` uses Numeric(14, 2) — never Float. Zero is allowed (a custom
    split may give someone nothing); the matching child transaction is
    then not created.
  - transaction_id is ON DELETE CASCADE — shares are owned by the parent.
  - UNIQUE(transaction_id, person_id): a person appears once per split.

sum(shares.amount) == parent.amount is enforced in split_service.py and,
on PostgreSQL, re-checked at commit by the deferred trigger in
migrations/versions/002_add_split_sum_trigger.py.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db
from splitbook.app.models.common import Money


class SplitShare(db.Model):
    __tablename__ = "split_shares"

    __table_args__ = (
        UniqueConstraint("transaction_id", "person_id", name="uq_split_shares_transaction_person"),
        CheckConstraint("amount >= 0", name="ck_split_shares_amount_non_negative"),
        CheckConstraint(
            "percentage IS NULL OR (percentage >= 0 AND percentage <= 100)",
            name="ck_split_shares_percentage_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    person_id: Mapped[int] = mapped_column(
        ForeignKey("people.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # Only set for percentage splits.
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────

    transaction: Mapped["Transaction"] = relationship(  # noqa: F821
        "Transaction",
        back_populates="shares",
    )

    person: Mapped["Person"] = relationship("Person")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<SplitShare id={self.id} "
            f"transaction_id={self.transaction_id} "
            f"person_id={self.person_id} "
            f"amount={self.amount}>"
        )
