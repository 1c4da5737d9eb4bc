"""
models/account.py — Bank account / cash wallet table definition.

Transactions are booked against an account. Running balances are not
stored here; the account only fixes the currency a transaction must use.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, func, true
from sqlalchemy.orm import Mapped, mapped_column

from splitbook.app.extensions import db
from splitbook.app.models.common import enum_column_type


class AccountType(str, enum.Enum):
    BANK = "bank"
    CASH = "cash"


class Account(db.Model):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_accounts_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(
        enum_column_type(AccountType, "account_type_enum"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Bank name for bank accounts; unused for cash wallets.
    institution: Mapped[str | None] = mapped_column(String(100), nullable=True)

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

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Account id={self.id} "
            f"type={self.account_type.value} "
            f"currency={self.currency}>"
        )
