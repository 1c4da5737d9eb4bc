"""
services/group_service.py — Groups, membership and the group accounting view.

A group tags transactions (a trip, a fee pool, an event). It holds no money;
its summary is derived on every read from the tagged transactions.

Rules enforced here:
  - Members are the owner's people (PERSON_NOT_FOUND otherwise), each at
    most once (ALREADY_MEMBER, 409).
  - Changing the group currency is refused while tagged transactions use
    another currency (CURRENCY_MISMATCH). Nothing is converted.
  - DELETE deactivates; tagged transactions keep their group_id.

Layer rules: no Flask imports; only flush, the route commits.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.errors import AppError, ErrorCode, InputValidationError, NotFoundError
from splitbook.app.models.group import Group
from splitbook.app.models.group_member import GroupMember
from splitbook.app.models.transaction import Transaction, TransactionType
from splitbook.app.services.balance_service import get_person_names
from splitbook.app.services.ownership import (
    get_owned,
    get_owned_people,
    get_self_person,
    get_user,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

_UPDATABLE = ("group_type", "start_date", "end_date", "budget", "notes")


# ── Private helpers ────────────────────────────────────────────────────────

def _build_group_dict(group: Group) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "type": group.group_type.value,
        "startDate": group.start_date.isoformat() if group.start_date else None,
        "endDate": group.end_date.isoformat() if group.end_date else None,
        "budget": group.budget,
        "currency": group.currency,
        "notes": group.notes,
        "isActive": group.is_active,
        "members": [
            {
                "personId": m.person_id,
                "personName": m.person.name,
                "joinedAt": m.joined_at.isoformat() if m.joined_at else None,
            }
            for m in group.memberships
        ],
        "createdAt": group.created_at.isoformat() if group.created_at else None,
        "updatedAt": group.updated_at.isoformat() if group.updated_at else None,
    }


def _check_date_range(group: Group) -> None:
    if group.start_date and group.end_date and group.start_date > group.end_date:
        raise InputValidationError(
            ErrorCode.INVALID_DATE_RANGE,
            "startDate must not be after endDate.",
            field="startDate",
        )


def get_group_transactions(group_id: int, user_id: int, session: Session) -> list[Transaction]:
    """Non-deleted, top-level (never split children) transactions tagged with the group."""
    stmt = (
        select(Transaction)
        .where(
            Transaction.user_id == user_id,
            Transaction.group_id == group_id,
            Transaction.parent_transaction_id.is_(None),
            Transaction.deleted_at.is_(None),
        )
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Public service functions ───────────────────────────────────────────────

def create_group(user_id: int, data: dict, session: Session) -> dict:
    """data: validated dict from CreateGroupSchema."""
    member_ids = data.get("member_ids") or []
    if member_ids:
        get_owned_people(member_ids, user_id, session, field="memberIds")

    currency = data.get("currency") or get_user(user_id, session).default_currency

    group = Group(
        user_id=user_id,
        name=data["name"].strip(),
        group_type=data["group_type"],
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
        budget=data.get("budget"),
        currency=currency.upper(),
        notes=data.get("notes"),
    )
    for person_id in member_ids:
        group.memberships.append(GroupMember(person_id=person_id))

    session.add(group)
    session.flush()
    session.refresh(group)

    return _build_group_dict(group)


def list_groups(user_id: int, session: Session, include_inactive: bool = False) -> list[dict]:
    stmt = select(Group).where(Group.user_id == user_id)
    if not include_inactive:
        stmt = stmt.where(Group.is_active.is_(True))
    stmt = stmt.order_by(Group.created_at.desc(), Group.id.desc())
    return [_build_group_dict(g) for g in session.execute(stmt).scalars().all()]


def get_group(group_id: int, user_id: int, session: Session) -> dict:
    return _build_group_dict(get_owned(Group, group_id, user_id, session))


def update_group(group_id: int, user_id: int, data: dict, session: Session) -> dict:
    """data: partial dict from GroupSchema."""
    group = get_owned(Group, group_id, user_id, session)

    if "currency" in data and data["currency"] is not None:
        currency = data["currency"].upper()
        if currency != group.currency:
            clash = session.execute(
                select(Transaction.id).where(
                    Transaction.group_id == group.id,
                    Transaction.currency != currency,
                ).limit(1)
            ).first()
            if clash is not None:
                raise InputValidationError(
                    ErrorCode.CURRENCY_MISMATCH,
                    f"Group {group.id} has transactions in {group.currency}; "
                    f"its currency cannot change to {currency}.",
                    field="currency",
                    details={"expected": group.currency, "actual": currency},
                )
            group.currency = currency

    if "name" in data:
        group.name = data["name"].strip()
    for key in _UPDATABLE:
        if key in data:
            setattr(group, key, data[key])
    _check_date_range(group)

    group.updated_at = datetime.now(timezone.utc)
    session.flush()
    return _build_group_dict(group)


def deactivate_group(group_id: int, user_id: int, session: Session) -> dict:
    group = get_owned(Group, group_id, user_id, session)
    if group.is_active:
        group.is_active = False
        group.updated_at = datetime.now(timezone.utc)
        session.flush()
        logger.info("Deactivated group %s for user %s", group.id, user_id)
    return _build_group_dict(group)


def add_member(group_id: int, person_id: int, user_id: int, session: Session) -> dict:
    """
    Raises:
      GROUP_NOT_FOUND / PERSON_NOT_FOUND (404)
      ALREADY_MEMBER (409)
    """
    group = get_owned(Group, group_id, user_id, session)
    get_owned_people([person_id], user_id, session, field="personId")

    if any(m.person_id == person_id for m in group.memberships):
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"Person {person_id} is already a member of group {group_id}.",
            409,
            field="personId",
        )

    group.memberships.append(GroupMember(person_id=person_id))
    session.flush()
    session.refresh(group)
    return _build_group_dict(group)


def remove_member(group_id: int, person_id: int, user_id: int, session: Session) -> dict:
    """
    Removes the membership row. Transactions and splits mentioning the
    person are untouched. NOT_A_MEMBER (404) if they were not a member.
    """
    group = get_owned(Group, group_id, user_id, session)

    membership = next((m for m in group.memberships if m.person_id == person_id), None)
    if membership is None:
        raise NotFoundError(
            ErrorCode.NOT_A_MEMBER,
            f"Person {person_id} is not a member of group {group_id}.",
        )

    group.memberships.remove(membership)  # delete-orphan
    session.flush()
    return _build_group_dict(group)


def list_group_transactions(group_id: int, user_id: int, session: Session) -> list[Transaction]:
    get_owned(Group, group_id, user_id, session)
    return get_group_transactions(group_id, user_id, session)


def get_group_summary(group_id: int, user_id: int, session: Session) -> dict:
    """
    Read-only accounting view of a group.

    Over the group's non-deleted, top-level transactions:
      totalSpent       = sum of expense amounts
      transactionCount = number of such transactions (every type)
      perPersonShare   = for each member, plus anyone appearing in a group
                         split or paying a group expense:
                           share   = their breakdown amounts; for an unsplit
                                     expense the payer carries all of it
                           paid    = expenses they paid
                           balance = share − paid (positive: owes the group)
      budgetVsActual   = {budget, actual, difference, percentage}, only when
                         a budget is set. percentage = actual / budget × 100,
                         2 dp.

    Per-person figures use expenses only, so sum(share) == totalSpent.
    """
    group = get_owned(Group, group_id, user_id, session)
    transactions = get_group_transactions(group_id, user_id, session)
    self_person_id = get_self_person(user_id, session).id

    expenses = [t for t in transactions if t.transaction_type == TransactionType.EXPENSE]
    total_spent = sum((t.amount for t in expenses), ZERO)

    share: dict[int, Decimal] = defaultdict(lambda: ZERO)
    paid: dict[int, Decimal] = defaultdict(lambda: ZERO)

    for txn in expenses:
        payer_id = txn.person_id if txn.person_id is not None else self_person_id
        paid[payer_id] += txn.amount
        if txn.is_split_parent:
            for s in txn.shares:
                share[s.person_id] += s.amount
        else:
            share[payer_id] += txn.amount

    member_ids = [m.person_id for m in group.memberships]
    others = sorted((set(share) | set(paid)) - set(member_ids))
    person_ids = member_ids + others
    names = get_person_names(person_ids, session)

    per_person = [
        {
            "personId": pid,
            "personName": names.get(pid, f"person_{pid}"),
            "isMember": pid in member_ids,
            "share": share[pid],
            "paid": paid[pid],
            "balance": share[pid] - paid[pid],
        }
        for pid in person_ids
    ]

    summary = {
        "groupId": group.id,
        "name": group.name,
        "currency": group.currency,
        "totalSpent": total_spent,
        "transactionCount": len(transactions),
        "perPersonShare": per_person,
    }

    if group.budget is not None:
        summary["budgetVsActual"] = {
            "budget": group.budget,
            "actual": total_spent,
            "difference": group.budget - total_spent,
            "percentage": (total_spent / group.budget * 100).quantize(CENT, rounding=ROUND_HALF_UP),
        }

    return summary
