"""
services/split_service.py — Split parents, their breakdown and children.

A split is stored as:
  - the parent transaction (split_type != 'none'), amount = the full bill,
    person_id = the payer (NULL → the owner's self person);
  - one split_shares row per participant, in input order;
  - one child transaction per NON-ZERO share, person_id = participant,
    parent_transaction_id = parent. Children copy the parent's account,
    type, date, description, category, currency and status.

INV-SUM: parent.amount == sum(shares.amount) == sum(children.amount).
allocation.py guarantees it for every allocation; this module writes parent,
shares and children in one DB transaction so no partial split is visible.
On PostgreSQL a deferred trigger re-checks it at commit.

Concurrency:
  - split_existing(): conditional UPDATE ... WHERE split_type = 'none'.
    Exactly one of two concurrent calls wins; the other gets
    TRANSACTION_ALREADY_SPLIT (409).
  - create_split() with an idempotency key: a replay returns the split the
    key already produced. A concurrent duplicate that loses the
    UNIQUE(user_id, idempotency_key) race gets DUPLICATE_REQUEST (409).

Layer rules: no Flask imports; only flush, the route commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from splitbook.app.errors import ConflictError, ErrorCode, InputValidationError, NotFoundError
from splitbook.app.models.split_share import SplitShare
from splitbook.app.models.transaction import SplitType, Transaction, TransactionType
from splitbook.app.services import transaction_service
from splitbook.app.services.allocation import allocate
from splitbook.app.services.ownership import get_owned, get_owned_people

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _now() -> datetime:
    return datetime.now(timezone.utc)


def _reject_transfer(transaction_type: TransactionType) -> None:
    if transaction_type == TransactionType.TRANSFER:
        raise InputValidationError(
            ErrorCode.TRANSFER_NOT_SPLITTABLE,
            "Transfers move money between your own accounts and cannot be split.",
            field="type",
        )


def _allocate_for(
        amount: Decimal,
        currency: str,
        policy: dict,
        user_id: int,
        session: Session,
) -> list[dict]:
    """Allocates `amount`, then checks the participants belong to the caller."""
    # Shape errors (empty, duplicates, share counts) come before lookups.
    allocation = allocate(
        policy["split_type"],
        amount,
        policy["person_ids"],
        currency,
        percentages=policy.get("percentages"),
        custom_amounts=policy.get("custom_amounts"),
    )
    get_owned_people(policy["person_ids"], user_id, session)
    return allocation


def _write_breakdown(parent: Transaction, allocation: list[dict]) -> None:
    """
    Appends shares and children to a flushed parent. Zero shares are kept in
    the breakdown but produce no child.
    """
    for row in allocation:
        parent.shares.append(SplitShare(
            person_id=row["person_id"],
            amount=row["amount"],
            percentage=row["percentage"],
        ))
        if row["amount"] == 0:
            continue
        child = Transaction(
            user_id=parent.user_id,
            amount=row["amount"],
            person_id=row["person_id"],
            notes=None,
            split_type=SplitType.NONE,
        )
        for key in transaction_service.SHARED_WITH_CHILDREN:
            setattr(child, key, getattr(parent, key))
        parent.children.append(child)


def _clear_breakdown(parent: Transaction, session: Session) -> None:
    # Children are derived rows; they are replaced, not soft-deleted.
    parent.children.clear()
    parent.shares.clear()
    # UNIQUE(transaction_id, person_id) — old rows must be gone before new ones.
    session.flush()


def _get_split_parent(transaction_id: int, user_id: int, session: Session) -> Transaction:
    txn = get_owned(Transaction, transaction_id, user_id, session)
    if not txn.is_split_parent:
        raise NotFoundError(
            ErrorCode.SPLIT_NOT_FOUND,
            f"Transaction {transaction_id} is not split.",
        )
    return txn


def _require_not_deleted(txn: Transaction) -> None:
    if txn.is_deleted:
        raise InputValidationError(
            ErrorCode.TRANSACTION_DELETED,
            f"Transaction {txn.id} is deleted. Restore it first.",
        )


def _find_by_idempotency_key(user_id: int, key: str, session: Session) -> Transaction | None:
    return session.execute(
        select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.idempotency_key == key,
        )
    ).scalar_one_or_none()


# ── Public service functions ───────────────────────────────────────────────

def create_split(user_id: int, data: dict, session: Session) -> tuple[Transaction, bool]:
    """
    Creates a split parent with its breakdown and children.

    Args:
        data: validated dict from CreateSplitSchema.

    Returns:
        (parent, replayed). replayed is True when the idempotency key had
        already produced this split; nothing new was written.

    Raises (all before any write):
      TRANSFER_NOT_SPLITTABLE, CURRENCY_MISMATCH, ACCOUNT_TYPE_MISMATCH (400)
      allocation errors (400), see allocation.py
      ACCOUNT_NOT_FOUND / PERSON_NOT_FOUND / GROUP_NOT_FOUND (404)
    Raises at the write:
      DUPLICATE_REQUEST (409)
    """
    key = data.get("idempotency_key")
    if key:
        existing = _find_by_idempotency_key(user_id, key, session)
        if existing is not None:
            logger.info("Idempotent replay of split %s (key %s)", existing.id, key)
            return existing, True

    _reject_transfer(data["transaction_type"])

    parent = transaction_service.build_transaction(user_id, data, session)
    parent.split_type = data["split_type"]
    parent.idempotency_key = key
    allocation = _allocate_for(parent.amount, parent.currency, data, user_id, session)

    # Savepoint: a lost key race rolls back only this split.
    try:
        with session.begin_nested():
            session.add(parent)
            session.flush()
            _write_breakdown(parent, allocation)
            session.flush()
    except IntegrityError:
        if not key:
            raise
        logger.warning("Concurrent duplicate split for key %s rejected", key)
        raise ConflictError(
            ErrorCode.DUPLICATE_REQUEST,
            "A split with this idempotencyKey is being created by another request.",
        )

    session.refresh(parent)
    logger.info(
        "Created %s split %s: %s %s across %d people",
        parent.split_type.value, parent.id, parent.amount, parent.currency, len(allocation),
    )
    return parent, False


def split_existing(transaction_id: int, user_id: int, data: dict, session: Session) -> Transaction:
    """
    Splits a plain, undeleted, non-child transaction.

    Args:
        data: validated dict from SplitPolicySchema.

    Raises:
      TRANSACTION_NOT_FOUND (404)
      TRANSACTION_DELETED, SPLIT_CHILD_NOT_SPLITTABLE, TRANSFER_NOT_SPLITTABLE,
      SETTLEMENT_TRANSACTION_LOCKED, allocation errors (400)
      TRANSACTION_ALREADY_SPLIT (409) — also when a concurrent call won
    """
    txn = get_owned(Transaction, transaction_id, user_id, session)
    _require_not_deleted(txn)
    if txn.is_split_child:
        raise InputValidationError(
            ErrorCode.SPLIT_CHILD_NOT_SPLITTABLE,
            f"Transaction {txn.id} is already a share of split {txn.parent_transaction_id}.",
        )
    if txn.split_type != SplitType.NONE:
        raise ConflictError(
            ErrorCode.TRANSACTION_ALREADY_SPLIT,
            f"Transaction {txn.id} is already split.",
        )
    if txn.settlement is not None:
        raise InputValidationError(
            ErrorCode.SETTLEMENT_TRANSACTION_LOCKED,
            f"Transaction {txn.id} records settlement {txn.settlement.id} and cannot be split.",
        )
    _reject_transfer(txn.transaction_type)

    allocation = _allocate_for(txn.amount, txn.currency, data, user_id, session)

    result = session.execute(
        update(Transaction)
        .where(
            Transaction.id == txn.id,
            Transaction.split_type == SplitType.NONE,
            Transaction.deleted_at.is_(None),
        )
        .values(split_type=data["split_type"], updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Split of transaction %s rejected: already split", txn.id)
        raise ConflictError(
            ErrorCode.TRANSACTION_ALREADY_SPLIT,
            f"Transaction {txn.id} is already split.",
        )

    session.refresh(txn)
    _write_breakdown(txn, allocation)
    session.flush()

    logger.info("Split existing transaction %s (%s)", txn.id, txn.split_type.value)
    return txn


def get_split(transaction_id: int, user_id: int, session: Session) -> Transaction:
    """SPLIT_NOT_FOUND (404) when the transaction exists but is not a split parent."""
    return _get_split_parent(transaction_id, user_id, session)


def update_split(transaction_id: int, user_id: int, data: dict, session: Session) -> Transaction:
    """
    Re-allocates a split: new policy, participants, and optionally a new
    amount or payer. Old shares and children are replaced in the same DB
    transaction.

    Args:
        data: validated dict from UpdateSplitSchema.
    """
    parent = _get_split_parent(transaction_id, user_id, session)
    _require_not_deleted(parent)

    amount = data.get("amount", parent.amount)
    allocation = _allocate_for(amount, parent.currency, data, user_id, session)
    if data.get("person_id") is not None:
        get_owned_people([data["person_id"]], user_id, session, field="personId")

    _clear_breakdown(parent, session)
    parent.amount = amount
    if "person_id" in data:
        parent.person_id = data["person_id"]
    parent.split_type = data["split_type"]
    parent.updated_at = _now()
    _write_breakdown(parent, allocation)
    session.flush()

    logger.info("Re-allocated split %s (%s)", parent.id, parent.split_type.value)
    return parent


def remove_split(transaction_id: int, user_id: int, session: Session) -> Transaction:
    """
    Deletes the breakdown and children. The parent stays as a plain
    transaction with split_type 'none'.

    The idempotency key is released with the split, so a later POST /splits
    with the same key creates a new split instead of replaying this one.
    """
    parent = _get_split_parent(transaction_id, user_id, session)
    _require_not_deleted(parent)

    _clear_breakdown(parent, session)
    parent.split_type = SplitType.NONE
    parent.idempotency_key = None
    parent.updated_at = _now()
    session.flush()

    logger.info("Removed split from transaction %s", parent.id)
    return parent
