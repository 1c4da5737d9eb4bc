"""
models/transaction.py — Transaction table definition (the ledger).

No business logic. No imports from services or routes.

Key design points:
  - `amount` uses Numeric(14, 2) — never Float — and is always positive;
    `type` carries the direction.
  - `deleted_at` is NULL for active rows, non-null for soft-deleted ones.
    Soft-deleted rows are retained for audit and excluded from aggregation.
  - A row with split_type != 'none' and no parent_transaction_id is a
    *split parent*. Its breakdown lives in split_shares and each non-zero
    share is mirrored by a *child* row pointing back via
    parent_transaction_id.
  - `person_id` on a split parent is the payer. NULL means the owner's
    self person.
  - (user_id, idempotency_key) is unique so a retried POST /splits cannot
    create a second split.
  - The settlement link is owned by settlements.transaction_id; this table
    exposes it read-only through the `settlement` relationship.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db
from splitbook.app.models.account import AccountType
from splitbook.app.models.common import Money, enum_column_type


# ── Enum Definitions ───────────────────────────────────────────────────────
# Defined here so they can be imported by schemas and services without
# repeating string literals.

class TransactionType(str, enum.Enum):
    INCOME   = "income"
    EXPENSE  = "expense"
    TRANSFER = "transfer"


class TransactionStatus(str, enum.Enum):
    PENDING   = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SplitType(str, enum.Enum):
    NONE       = "none"
    EQUAL      = "equal"
    PERCENTAGE = "percentage"
    CUSTOM     = "custom"


# ── Model ──────────────────────────────────────────────────────────────────

class Transaction(db.Model):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_transactions_description_nonempty",
        ),
        # A child never carries its own split.
        CheckConstraint(
            "parent_transaction_id IS NULL OR split_type = 'none'",
            name="ck_transactions_child_not_split",
        ),
        UniqueConstraint(
            "user_id",
            "idempotency_key",
            name="uq_transactions_user_idempotency_key",
        ),
        # Aggregation reads active rows only.
        Index(
            "idx_transactions_active",
            "user_id",
            postgresql_where="deleted_at IS NULL",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    account_type: Mapped[AccountType] = mapped_column(
        enum_column_type(AccountType, "account_type_enum"),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        "type",
        enum_column_type(TransactionType, "transaction_type_enum"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    person_id: Mapped[int | None] = mapped_column(
        ForeignKey("people.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    transaction_date: Mapped[date] = mapped_column("date", Date, nullable=False)

    status: Mapped[TransactionStatus] = mapped_column(
        enum_column_type(TransactionStatus, "transaction_status_enum"),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )

    # CASCADE — children are owned by their parent.
    parent_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    split_type: Mapped[SplitType] = mapped_column(
        enum_column_type(SplitType, "split_type_enum"),
        nullable=False,
        default=SplitType.NONE,
    )

    idempotency_key: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # NULL = active; NOT NULL = soft-deleted. Never hard-delete via the API.
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    person: Mapped["Person | None"] = relationship("Person")  # noqa: F821

    parent: Mapped["Transaction | None"] = relationship(
        "Transaction",
        remote_side="Transaction.id",
        back_populates="children",
    )

    children: Mapped[list["Transaction"]] = relationship(
        "Transaction",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Transaction.id",
    )

    # The breakdown. Ordered by insertion, which is participant input order.
    shares: Mapped[list["SplitShare"]] = relationship(  # noqa: F821
        "SplitShare",
        back_populates="transaction",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SplitShare.id",
    )

    settlement: Mapped["Settlement | None"] = relationship(  # noqa: F821
        "Settlement",
        uselist=False,
        viewonly=True,
    )

    # ── Convenience properties ─────────────────────────────────────────────

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_split_parent(self) -> bool:
        return self.split_type != SplitType.NONE and self.parent_transaction_id is None

    @property
    def is_split_child(self) -> bool:
        return self.parent_transaction_id is not None

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Transaction id={self.id} "
            f"type={self.transaction_type.value} "
            f"amount={self.amount} "
            f"split={self.split_type.value} "
            f"deleted={self.is_deleted}>"
        )
