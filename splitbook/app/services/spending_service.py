"""
services/spending_service.py — What a person spends, and how that stands
against the limits set on them.

Spending is derived on every read. A person's spending is each expense
booked against them:
  - plain expenses with person_id = the person (the self person also owns
    expenses with no person),
  - split children, which carry the participant's share.
Split parents are left out because their children already carry the
amounts. Deleted and cancelled rows are left out, and so is the cash flow
of a settlement, which repays a debt rather than spending.

One currency at a time; nothing is converted. Limits are read in the
owner's default currency unless the caller names another.

Periods are calendar periods ending on the reference day:
  daily   → that day
  weekly  → since the Monday of that week
  monthly → since the 1st of that month
  yearly  → since 1 January

Layer rules: no Flask imports; read-only.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from splitbook.app.errors import ErrorCode, InputValidationError
from splitbook.app.models.person import LimitPeriod, Person
from splitbook.app.models.transaction import (
    SplitType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from splitbook.app.services.ownership import get_owned, get_user

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
UNCATEGORISED = "Uncategorised"

# (transaction_date, category, amount)
SpendingRow = tuple[date, str | None, Decimal]


def _today() -> date:
    return datetime.now(timezone.utc).date()


def period_start(period: LimitPeriod, day: date) -> date:
    """First day of the calendar `period` that contains `day`."""
    if period == LimitPeriod.DAILY:
        return day
    if period == LimitPeriod.WEEKLY:
        return day - timedelta(days=day.weekday())
    if period == LimitPeriod.MONTHLY:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def _earliest_period_start(day: date) -> date:
    # A week can reach back into the previous year.
    return min(period_start(p, day) for p in LimitPeriod)


# ── Data access ────────────────────────────────────────────────────────────

def get_spending_rows(
        person: Person,
        currency: str,
        start: date,
        end: date,
        session: Session,
) -> list[SpendingRow]:
    if person.is_self:
        booked_to = or_(Transaction.person_id == person.id, Transaction.person_id.is_(None))
    else:
        booked_to = Transaction.person_id == person.id

    stmt = (
        select(Transaction.transaction_date, Transaction.category, Transaction.amount)
        .where(
            Transaction.user_id == person.user_id,
            booked_to,
            Transaction.transaction_type == TransactionType.EXPENSE,
            Transaction.split_type == SplitType.NONE,
            Transaction.currency == currency,
            Transaction.deleted_at.is_(None),
            Transaction.status != TransactionStatus.CANCELLED,
            ~Transaction.settlement.has(),
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        )
        .order_by(Transaction.transaction_date, Transaction.id)
    )
    return [tuple(row) for row in session.execute(stmt).all()]


# ── Core algorithms ────────────────────────────────────────────────────────

def spent_between(
        rows: Iterable[SpendingRow],
        start: date,
        end: date,
        category: str | None = None,
) -> Decimal:
    """Sum of rows dated within [start, end]; category compares case-insensitively."""
    wanted = category.strip().lower() if category is not None else None
    total = ZERO
    for txn_date, txn_category, amount in rows:
        if not start <= txn_date <= end:
            continue
        if wanted is not None and (txn_category or "").strip().lower() != wanted:
            continue
        total += amount
    return total


def summarize(rows: list[SpendingRow], start: date, end: date) -> dict:
    """
    total and byCategory cover [start, end]; byPeriod covers the calendar
    periods that end on `end`.
    """
    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn_date, category, amount in rows:
        if start <= txn_date <= end:
            by_category[category or UNCATEGORISED] += amount

    return {
        "total": spent_between(rows, start, end),
        "byCategory": [
            {"category": name, "amount": amount}
            for name, amount in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        "byPeriod": {
            p.value: spent_between(rows, period_start(p, end), end) for p in LimitPeriod
        },
    }


def limit_status(limit: Decimal, period: LimitPeriod, spent: Decimal) -> dict:
    """limit is always > 0; the schemas reject anything else."""
    return {
        "limit": limit,
        "spent": spent,
        "remaining": limit - spent,
        "period": period.value,
        "isBreached": spent > limit,
        "percentage": (spent / limit * 100).quantize(CENT, rounding=ROUND_HALF_UP),
    }


# ── Public service functions ───────────────────────────────────────────────

def get_spending_summary(
        person_id: int,
        user_id: int,
        session: Session,
        start_date: date | None = None,
        end_date: date | None = None,
        currency: str | None = None,
        today: date | None = None,
) -> dict:
    """
    Spending of one person. endDate defaults to today, startDate to the 1st
    of endDate's month.

    Raises:
      PERSON_NOT_FOUND (404)
      INVALID_DATE_RANGE (400) — startDate after the defaulted endDate
    """
    person = get_owned(Person, person_id, user_id, session)
    currency = (currency or get_user(user_id, session).default_currency).upper()

    end = end_date or today or _today()
    start = start_date or end.replace(day=1)
    if start > end:
        raise InputValidationError(
            ErrorCode.INVALID_DATE_RANGE,
            "startDate must not be after endDate.",
            field="startDate",
        )

    rows = get_spending_rows(person, currency, min(start, _earliest_period_start(end)), end, session)
    summary = summarize(rows, start, end)

    return {
        "personId": person.id,
        "personName": person.name,
        "currency": currency,
        **summary,
        "period": {"startDate": start.isoformat(), "endDate": end.isoformat()},
    }


def check_limits(
        person_id: int,
        user_id: int,
        session: Session,
        amount: Decimal = ZERO,
        category: str | None = None,
        currency: str | None = None,
        today: date | None = None,
) -> dict:
    """
    Where the person stands against their overall and category limits in
    the current periods, if `amount` were spent now.

    `amount` counts towards the overall limit, and towards a category limit
    only when `category` names it. With `category`, only that category's
    limit is listed.
    """
    person = get_owned(Person, person_id, user_id, session)
    currency = (currency or get_user(user_id, session).default_currency).upper()
    day = today or _today()

    rows = get_spending_rows(person, currency, _earliest_period_start(day), day, session)

    overall = None
    if person.overall_limit is not None and person.limit_period is not None:
        spent = spent_between(rows, period_start(person.limit_period, day), day) + amount
        overall = limit_status(person.overall_limit, person.limit_period, spent)

    wanted = category.strip().lower() if category is not None else None
    category_limits = []
    for item in person.category_limits or []:
        if wanted is not None and item["category"].strip().lower() != wanted:
            continue
        period = LimitPeriod(item["period"])
        spent = spent_between(rows, period_start(period, day), day, category=item["category"])
        if wanted is not None:
            spent += amount
        category_limits.append({
            "category": item["category"],
            **limit_status(Decimal(item["amount"]), period, spent),
        })

    breached = [c["category"] for c in category_limits if c["isBreached"]]
    if (overall and overall["isBreached"]) or breached:
        logger.info("Person %s is over a limit (categories: %s)", person.id, breached or "-")

    return {
        "personId": person.id,
        "currency": currency,
        "amount": amount,
        "overallLimit": overall,
        "categoryLimits": category_limits,
    }
