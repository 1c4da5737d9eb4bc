"""Initial schema: all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Enums:
  Stored as VARCHAR plus a CHECK constraint listing the allowed values,
  matching models/common.enum_column_type (native_enum=False). The same
  models then run unchanged on the in-memory SQLite used by the tests.

Creation order (FK dependencies):
  users → accounts, people, groups → group_members → transactions
  → split_shares → settlements

ON DELETE policies:
  *.user_id                        → RESTRICT
  group_members.group_id           → CASCADE   (membership owned by group)
  transactions.parent_transaction_id → CASCADE (children owned by parent)
  split_shares.transaction_id      → CASCADE   (breakdown owned by parent)
  settlements.transaction_id       → SET NULL  (cash flow may be purged)
  everything else                  → RESTRICT
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _one_of(column: str, values: tuple[str, ...], name: str) -> sa.CheckConstraint:
    allowed = ", ".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} IN ({allowed})", name=name)


_ACCOUNT_TYPES = ("bank", "cash")
_PERSON_TYPES = ("child", "friend", "employee", "family", "other")
_LIMIT_PERIODS = ("daily", "weekly", "monthly", "yearly")
_GROUP_TYPES = ("trip", "fees", "event", "custom")
_TRANSACTION_TYPES = ("income", "expense", "transfer")
_TRANSACTION_STATUSES = ("pending", "completed", "cancelled")
_SPLIT_TYPES = ("none", "equal", "percentage", "custom")
_SETTLEMENT_STATUSES = ("pending", "settled", "cancelled")
_SETTLEMENT_METHODS = ("bank", "cash", "other")


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("default_currency", sa.String(3), nullable=False, server_default="INR"),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    # ── accounts ───────────────────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("account_type", sa.String(4), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("institution", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_accounts"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT",
                                name="fk_accounts_user_id"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_accounts_name_nonempty"),
        _one_of("account_type", _ACCOUNT_TYPES, "ck_accounts_account_type"),
    )
    op.create_index("ix_accounts_user_id", "accounts", ["user_id"])

    # ── people ─────────────────────────────────────────────────────────────
    # Every user has exactly one is_self row, created at registration.
    op.create_table(
        "people",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(8), nullable=False, server_default="other"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("overall_limit", sa.Numeric(14, 2), nullable=True),
        sa.Column("limit_period", sa.String(7), nullable=True),
        sa.Column("category_limits", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_self", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_people"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT",
                                name="fk_people_user_id"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_people_name_nonempty"),
        sa.CheckConstraint("overall_limit IS NULL OR overall_limit > 0",
                           name="ck_people_overall_limit_positive"),
        _one_of("type", _PERSON_TYPES, "ck_people_type"),
        _one_of("limit_period", _LIMIT_PERIODS, "ck_people_limit_period"),
    )
    op.create_index("ix_people_user_id", "people", ["user_id"])
    op.create_index(
        "uq_people_one_self_per_user",
        "people",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_self"),
    )

    # ── groups ─────────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(6), nullable=False, server_default="custom"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT",
                                name="fk_groups_user_id"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
        sa.CheckConstraint("budget IS NULL OR budget > 0", name="ck_groups_budget_positive"),
        sa.CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_groups_date_range",
        ),
        _one_of("type", _GROUP_TYPES, "ck_groups_type"),
    )
    op.create_index("ix_groups_user_id", "groups", ["user_id"])

    # ── group_members ──────────────────────────────────────────────────────
    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE",
                                name="fk_group_members_group_id"),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"], ondelete="RESTRICT",
                                name="fk_group_members_person_id"),
        sa.UniqueConstraint("group_id", "person_id", name="uq_group_members_group_person"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_person_id", "group_members", ["person_id"])

    # ── transactions ───────────────────────────────────────────────────────
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("account_type", sa.String(4), nullable=False),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("person_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(9), nullable=False, server_default="completed"),
        sa.Column("parent_transaction_id", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("split_type", sa.String(10), nullable=False, server_default="none"),
        sa.Column("idempotency_key", sa.String(64), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT",
                                name="fk_transactions_user_id"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="RESTRICT",
                                name="fk_transactions_account_id"),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"], ondelete="RESTRICT",
                                name="fk_transactions_person_id"),
        sa.ForeignKeyConstraint(["parent_transaction_id"], ["transactions.id"],
                                ondelete="CASCADE",
                                name="fk_transactions_parent_transaction_id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="RESTRICT",
                                name="fk_transactions_group_id"),
        sa.UniqueConstraint("user_id", "idempotency_key",
                            name="uq_transactions_user_idempotency_key"),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint("LENGTH(TRIM(description)) > 0",
                           name="ck_transactions_description_nonempty"),
        sa.CheckConstraint("parent_transaction_id IS NULL OR split_type = 'none'",
                           name="ck_transactions_child_not_split"),
        _one_of("account_type", _ACCOUNT_TYPES, "ck_transactions_account_type"),
        _one_of("type", _TRANSACTION_TYPES, "ck_transactions_type"),
        _one_of("status", _TRANSACTION_STATUSES, "ck_transactions_status"),
        _one_of("split_type", _SPLIT_TYPES, "ck_transactions_split_type"),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_account_id", "transactions", ["account_id"])
    op.create_index("ix_transactions_person_id", "transactions", ["person_id"])
    op.create_index("ix_transactions_parent_transaction_id", "transactions",
                    ["parent_transaction_id"])
    op.create_index("ix_transactions_group_id", "transactions", ["group_id"])
    # Partial index: balance and summary queries read active rows only.
    op.create_index(
        "idx_transactions_active",
        "transactions",
        ["user_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    # ── split_shares ───────────────────────────────────────────────────────
    op.create_table(
        "split_shares",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("percentage", sa.Numeric(7, 4), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_split_shares"),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"], ondelete="CASCADE",
                                name="fk_split_shares_transaction_id"),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"], ondelete="RESTRICT",
                                name="fk_split_shares_person_id"),
        sa.UniqueConstraint("transaction_id", "person_id",
                            name="uq_split_shares_transaction_person"),
        sa.CheckConstraint("amount >= 0", name="ck_split_shares_amount_non_negative"),
        sa.CheckConstraint(
            "percentage IS NULL OR (percentage >= 0 AND percentage <= 100)",
            name="ck_split_shares_percentage_range",
        ),
    )
    op.create_index("ix_split_shares_transaction_id", "split_shares", ["transaction_id"])

    # ── settlements ────────────────────────────────────────────────────────
    op.create_table(
        "settlements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("from_person_id", sa.Integer(), nullable=False),
        sa.Column("to_person_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(9), nullable=False, server_default="pending"),
        sa.Column("method", sa.String(5), nullable=False, server_default="cash"),
        sa.Column("settlement_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_settlements"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT",
                                name="fk_settlements_user_id"),
        sa.ForeignKeyConstraint(["from_person_id"], ["people.id"], ondelete="RESTRICT",
                                name="fk_settlements_from_person_id"),
        sa.ForeignKeyConstraint(["to_person_id"], ["people.id"], ondelete="RESTRICT",
                                name="fk_settlements_to_person_id"),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"], ondelete="SET NULL",
                                name="fk_settlements_transaction_id"),
        sa.UniqueConstraint("transaction_id", name="uq_settlements_transaction_id"),
        sa.CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint("from_person_id <> to_person_id",
                           name="ck_settlements_no_self_settlement"),
        _one_of("status", _SETTLEMENT_STATUSES, "ck_settlements_status"),
        _one_of("method", _SETTLEMENT_METHODS, "ck_settlements_method"),
    )
    op.create_index("ix_settlements_user_id", "settlements", ["user_id"])
    op.create_index("ix_settlements_status", "settlements", ["status"])


def downgrade() -> None:
    """Drops every table in reverse FK order."""
    op.drop_table("settlements")
    op.drop_table("split_shares")
    op.drop_index("idx_transactions_active", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_index("uq_people_one_self_per_user", table_name="people")
    op.drop_table("people")
    op.drop_table("accounts")
    op.drop_table("users")
