"""
services/transaction_service.py — The transaction ledger.

Handles plain ledger entries and the parts of a split parent that are not
the allocation itself (description, date, category, ...). Allocation lives
in split_service.py.

Rules enforced here:
  - The account, person and group must belong to the caller (404 otherwise).
  - currency must equal the account currency, and the group currency when
    the transaction is tagged (CURRENCY_MISMATCH). Nothing is converted.
  - accountType, when sent, must match the account (ACCOUNT_TYPE_MISMATCH).
  - Split children are derived rows. They cannot be edited, deleted or
    restored on their own (SPLIT_CHILD_READ_ONLY); they follow their parent.
  - The amount of a split parent only changes through PUT /splits/{id}
    (SPLIT_AMOUNT_LOCKED), so the breakdown always sums to it.
  - The cash flow written for a settlement keeps its amount, currency and
    type, and is never split (SETTLEMENT_TRANSACTION_LOCKED).
  - Delete is soft: deleted_at is stamped on the parent and every child,
    and the rows drop out of balances and group summaries.

Layer rules: no Flask imports; only flush, the route commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from splitbook.app.errors import ErrorCode, InputValidationError
from splitbook.app.models.account import Account
from splitbook.app.models.group import Group
from splitbook.app.models.person import Person
from splitbook.app.models.transaction import Transaction, TransactionType
from splitbook.app.services.allocation import check_amount
from splitbook.app.services.ownership import get_owned

logger = logging.getLogger(__name__)

# Copied from a split parent onto its children on every change.
SHARED_WITH_CHILDREN = (
    "account_id",
    "account_type",
    "transaction_type",
    "currency",
    "description",
    "category",
    "transaction_date",
    "status",
)

_UPDATABLE = SHARED_WITH_CHILDREN + ("amount", "notes", "person_id", "group_id")

# null clears these; for the rest null means "leave as is".
_NULLABLE = ("category", "notes", "person_id", "group_id")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_parent_or_plain(txn: Transaction) -> None:
    if txn.is_split_child:
        raise InputValidationError(
            ErrorCode.SPLIT_CHILD_READ_ONLY,
            f"Transaction {txn.id} is part of split {txn.parent_transaction_id}; "
            f"change the split instead.",
        )


def _require_settlement_terms_kept(txn: Transaction, data: dict, currency: str) -> None:
    """The cash flow of a settlement keeps the settlement's amount, currency and direction."""
    changed = []
    if "amount" in data and data["amount"] != txn.amount:
        changed.append("amount")
    if currency != txn.currency:
        changed.append("currency")
    if "transaction_type" in data and data["transaction_type"] != txn.transaction_type:
        changed.append("type")
    if changed:
        raise InputValidationError(
            ErrorCode.SETTLEMENT_TRANSACTION_LOCKED,
            f"Transaction {txn.id} records settlement {txn.settlement.id}; "
            f"its {', '.join(changed)} cannot change.",
            field=changed[0],
        )


def resolve_booking(user_id: int, values: dict, session: Session) -> dict:
    """
    Checks the references a transaction is booked with and fills the derived
    values.

    values keys: account_id, account_type (or None), currency (or None),
                 amount, person_id (or None), group_id (or None)

    Returns {"account_type": AccountType, "currency": str}.
    """
    account = get_owned(Account, values["account_id"], user_id, session, field="accountId")

    account_type = values.get("account_type") or account.account_type
    if account_type != account.account_type:
        raise InputValidationError(
            ErrorCode.ACCOUNT_TYPE_MISMATCH,
            f"Account {account.id} is a {account.account_type.value} account, "
            f"not {account_type.value}.",
            field="accountType",
        )

    currency = (values.get("currency") or account.currency).upper()
    if currency != account.currency:
        raise InputValidationError(
            ErrorCode.CURRENCY_MISMATCH,
            f"Currency {currency} does not match account currency {account.currency}.",
            field="currency",
            details={"expected": account.currency, "actual": currency},
        )

    check_amount(values["amount"], currency)

    if values.get("person_id") is not None:
        get_owned(Person, values["person_id"], user_id, session, field="personId")

    if values.get("group_id") is not None:
        group = get_owned(Group, values["group_id"], user_id, session, field="groupId")
        if group.currency != currency:
            raise InputValidationError(
                ErrorCode.CURRENCY_MISMATCH,
                f"Currency {currency} does not match group currency {group.currency}.",
                field="currency",
                details={"expected": group.currency, "actual": currency},
            )

    return {"account_type": account_type, "currency": currency}


def build_transaction(user_id: int, data: dict, session: Session) -> Transaction:
    """
    Validates `data` (CreateTransactionSchema / CreateSplitSchema fields) and
    returns an unsaved Transaction. The caller adds it to the session.
    """
    resolved = resolve_booking(user_id, data, session)
    return Transaction(
        user_id=user_id,
        account_id=data["account_id"],
        account_type=resolved["account_type"],
        transaction_type=data["transaction_type"],
        amount=data["amount"],
        currency=resolved["currency"],
        description=data["description"].strip(),
        category=data.get("category"),
        notes=data.get("notes"),
        person_id=data.get("person_id"),
        transaction_date=data.get("transaction_date") or _now().date(),
        status=data["status"],
        group_id=data.get("group_id"),
    )


# ── Public service functions ───────────────────────────────────────────────

def create_transaction(user_id: int, data: dict, session: Session) -> Transaction:
    txn = build_transaction(user_id, data, session)
    session.add(txn)
    session.flush()
    session.refresh(txn)
    return txn


def list_transactions(
        user_id: int,
        filters: dict,
        session: Session,
        limit: int,
        skip: int = 0,
) -> tuple[list[Transaction], int]:
    """
    filters: validated dict from TransactionQuerySchema.
    Newest first. Returns (page, total matching rows).
    """
    stmt = select(Transaction).where(Transaction.user_id == user_id)

    if not filters.get("include_deleted"):
        stmt = stmt.where(Transaction.deleted_at.is_(None))
    if filters.get("account_id") is not None:
        stmt = stmt.where(Transaction.account_id == filters["account_id"])
    if filters.get("transaction_type") is not None:
        stmt = stmt.where(Transaction.transaction_type == filters["transaction_type"])
    if filters.get("person_id") is not None:
        stmt = stmt.where(Transaction.person_id == filters["person_id"])
    if filters.get("group_id") is not None:
        stmt = stmt.where(Transaction.group_id == filters["group_id"])
    if filters.get("status") is not None:
        stmt = stmt.where(Transaction.status == filters["status"])
    if filters.get("start_date") is not None:
        stmt = stmt.where(Transaction.transaction_date >= filters["start_date"])
    if filters.get("end_date") is not None:
        stmt = stmt.where(Transaction.transaction_date <= filters["end_date"])

    total = session.execute(
        select(func.count()).select_from(stmt.subquery())
    ).scalar_one()

    page = session.execute(
        stmt.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .limit(limit)
        .offset(skip)
    ).scalars().all()

    return list(page), total


def get_transaction(transaction_id: int, user_id: int, session: Session) -> Transaction:
    """Soft-deleted rows are returned too; deletedAt tells them apart."""
    return get_owned(Transaction, transaction_id, user_id, session)


def update_transaction(
        transaction_id: int,
        user_id: int,
        data: dict,
        session: Session,
) -> Transaction:
    """
    data: partial dict from UpdateTransactionSchema.

    Changing the account without sending accountType / currency re-derives
    them from the new account.
    """
    txn = get_owned(Transaction, transaction_id, user_id, session)

    if txn.is_deleted:
        raise InputValidationError(
            ErrorCode.TRANSACTION_DELETED,
            f"Transaction {txn.id} is deleted. Restore it before editing.",
        )
    _require_parent_or_plain(txn)

    if txn.is_split_parent:
        if "amount" in data and data["amount"] != txn.amount:
            raise InputValidationError(
                ErrorCode.SPLIT_AMOUNT_LOCKED,
                f"Transaction {txn.id} is split. Change its amount with PUT /splits/{txn.id}.",
                field="amount",
            )
        if data.get("transaction_type") == TransactionType.TRANSFER:
            raise InputValidationError(
                ErrorCode.TRANSFER_NOT_SPLITTABLE,
                "A split transaction cannot become a transfer.",
                field="type",
            )

    account_changed = "account_id" in data and data["account_id"] != txn.account_id
    merged = {
        "account_id": data.get("account_id", txn.account_id),
        "account_type": data.get("account_type", None if account_changed else txn.account_type),
        "currency": data.get("currency", None if account_changed else txn.currency),
        "amount": data.get("amount", txn.amount),
        "person_id": data.get("person_id", txn.person_id),
        "group_id": data.get("group_id", txn.group_id),
    }
    resolved = resolve_booking(user_id, merged, session)
    if txn.settlement is not None:
        _require_settlement_terms_kept(txn, data, resolved["currency"])

    for key in _UPDATABLE:
        if key in data and (data[key] is not None or key in _NULLABLE):
            setattr(txn, key, data[key])
    if "description" in data:
        txn.description = data["description"].strip()
    txn.account_type = resolved["account_type"]
    txn.currency = resolved["currency"]
    txn.updated_at = _now()

    for child in txn.children:
        for key in SHARED_WITH_CHILDREN:
            setattr(child, key, getattr(txn, key))
        child.updated_at = txn.updated_at

    session.flush()
    return txn


def delete_transaction(transaction_id: int, user_id: int, session: Session) -> Transaction:
    """Soft delete. A split parent takes its children with it."""
    txn = get_owned(Transaction, transaction_id, user_id, session)
    _require_parent_or_plain(txn)
    if txn.is_deleted:
        raise InputValidationError(
            ErrorCode.TRANSACTION_DELETED,
            f"Transaction {txn.id} is already deleted.",
        )

    stamp = _now()
    txn.deleted_at = stamp
    for child in txn.children:
        if child.deleted_at is None:
            child.deleted_at = stamp

    session.flush()
    logger.info(
        "Soft-deleted transaction %s (%d children) for user %s",
        txn.id, len(txn.children), user_id,
    )
    return txn


def restore_transaction(transaction_id: int, user_id: int, session: Session) -> Transaction:
    """Undoes a soft delete, children included."""
    txn = get_owned(Transaction, transaction_id, user_id, session)
    _require_parent_or_plain(txn)
    if not txn.is_deleted:
        raise InputValidationError(
            ErrorCode.TRANSACTION_NOT_DELETED,
            f"Transaction {txn.id} is not deleted.",
        )

    txn.deleted_at = None
    for child in txn.children:
        child.deleted_at = None
    txn.updated_at = _now()

    session.flush()
    logger.info("Restored transaction %s for user %s", txn.id, user_id)
    return txn
