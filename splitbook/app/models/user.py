"""
models/user.py — The owning account. Every other table carries user_id and
a user never sees another user's rows.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db


class User(db.Model):
    __tablename__ = "users"

    # Mirrors RegisterSchema so rows written outside the API hold the same rules.
    __table_args__ = (
        CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    # bcrypt output, never the password.
    password_hash: Mapped[str] = mapped_column(String(255))

    # ISO 4217 code used when a request omits currency.
    default_currency: Mapped[str] = mapped_column(
        String(3), default="INR", server_default="INR",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )

    people: Mapped[list["Person"]] = relationship(  # noqa: F821
        "Person", back_populates="owner",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.id} {self.username!r} ({self.default_currency})>"
