"""
services/balance_service.py — Pending balances between people.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
Balances are never stored; every read derives them from:

  1. Active split children — child and parent not soft-deleted, neither
     cancelled. For each child of amount X:
       expense parent: participant owes payer X
       income parent:  payer owes participant X (the payer holds their share)
     The payer is parent.person_id, or the owner's self person when NULL.
     A participant who is also the payer contributes nothing.
  2. SETTLED settlements — from → to of amount X reduces "from owes to" by X.
     Pending and cancelled settlements never count.

Totals are kept per (unordered pair, currency) as one signed Decimal, so
opposing debts net into a single record in the direction of the larger
side. Zero pairs are dropped. Currencies are never mixed.

Snapshot: compute_pending_balances() opens its DB transaction at the
configured isolation level (REPEATABLE READ on PostgreSQL), so every read
sees the same state and a settlement cannot be half-counted.

Layer rules:
  - No Flask imports. The isolation level is passed in by the route.
  - The core algorithms below take plain tuples and are unit-tested
    without a session.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from splitbook.app.models.person import Person
from splitbook.app.models.settlement import Settlement, SettlementStatus
from splitbook.app.models.transaction import Transaction, TransactionStatus, TransactionType
from splitbook.app.services.ownership import get_self_person

logger = logging.getLogger(__name__)

# (debtor_id, creditor_id, currency, amount). A negative amount reduces the debt.
Obligation = tuple[int, int, str, Decimal]


# ── Snapshot ───────────────────────────────────────────────────────────────

def begin_snapshot(session: Session, isolation_level: str | None) -> None:
    """
    Starts the session's transaction at `isolation_level`. A session that
    already has a transaction open keeps it (and its level) so callers
    inside a write, like the overpayment check, read their own changes.
    """
    if isolation_level and not session.in_transaction():
        session.connection(execution_options={"isolation_level": isolation_level})


# ── Data access helpers ────────────────────────────────────────────────────
# The ONLY sanctioned ways to read rows for balance purposes. The active
# filters live here and nowhere else.

def get_active_split_children(user_id: int, session: Session) -> list:
    """
    Rows of (participant_id, payer_id, parent_type, amount, currency) for
    every split child that counts towards balances.
    """
    parent = aliased(Transaction)
    stmt = (
        select(
            Transaction.person_id,
            parent.person_id,
            parent.transaction_type,
            Transaction.amount,
            Transaction.currency,
        )
        .join(parent, Transaction.parent_transaction_id == parent.id)
        .where(
            Transaction.user_id == user_id,
            Transaction.deleted_at.is_(None),
            parent.deleted_at.is_(None),
            Transaction.status != TransactionStatus.CANCELLED,
            parent.status != TransactionStatus.CANCELLED,
        )
        .order_by(Transaction.id)
    )
    return list(session.execute(stmt).all())


def get_settled_settlements(user_id: int, session: Session) -> list:
    """Rows of (from_person_id, to_person_id, amount, currency), settled only."""
    stmt = (
        select(
            Settlement.from_person_id,
            Settlement.to_person_id,
            Settlement.amount,
            Settlement.currency,
        )
        .where(
            Settlement.user_id == user_id,
            Settlement.status == SettlementStatus.SETTLED,
        )
        .order_by(Settlement.id)
    )
    return list(session.execute(stmt).all())


def get_person_names(person_ids: Iterable[int], session: Session) -> dict[int, str]:
    ids = set(person_ids)
    if not ids:
        return {}
    rows = session.execute(select(Person.id, Person.name).where(Person.id.in_(ids))).all()
    return {pid: name for pid, name in rows}


# ── Core algorithms ────────────────────────────────────────────────────────

def split_obligations(rows: Iterable, self_person_id: int) -> Iterator[Obligation]:
    """Turns split-child rows into obligations. See the module docstring for direction."""
    for participant_id, payer_id, parent_type, amount, currency in rows:
        payer_id = payer_id if payer_id is not None else self_person_id
        if participant_id == payer_id:
            continue
        if parent_type == TransactionType.INCOME:
            yield payer_id, participant_id, currency, amount
        else:
            yield participant_id, payer_id, currency, amount


def settlement_obligations(rows: Iterable) -> Iterator[Obligation]:
    """A settled payment from → to reduces what `from` owes `to`."""
    for from_id, to_id, amount, currency in rows:
        yield from_id, to_id, currency, -amount


def net_pairs(obligations: Iterable[Obligation]) -> dict[tuple[int, int, str], Decimal]:
    """
    Nets obligations per (unordered pair, currency).

    Returns {(debtor_id, creditor_id, currency): amount > 0}. At most one
    direction per pair and currency; zero balances are omitted.

    The result depends only on the multiset of obligations, never on their
    order: Decimal addition of 2-dp values is exact.
    """
    totals: dict[tuple[int, int, str], Decimal] = defaultdict(Decimal)

    for debtor_id, creditor_id, currency, amount in obligations:
        if debtor_id == creditor_id:
            continue
        # Positive total: lower id owes higher id.
        if debtor_id < creditor_id:
            totals[(debtor_id, creditor_id, currency)] += amount
        else:
            totals[(creditor_id, debtor_id, currency)] -= amount

    result: dict[tuple[int, int, str], Decimal] = {}
    for (low_id, high_id, currency), net in totals.items():
        if net > 0:
            result[(low_id, high_id, currency)] = net
        elif net < 0:
            result[(high_id, low_id, currency)] = -net
    return result


def _compute_net(user_id: int, session: Session) -> dict[tuple[int, int, str], Decimal]:
    self_person_id = get_self_person(user_id, session).id
    obligations = list(split_obligations(get_active_split_children(user_id, session), self_person_id))
    obligations.extend(settlement_obligations(get_settled_settlements(user_id, session)))
    return net_pairs(obligations)


# ── Public service functions ───────────────────────────────────────────────

def compute_pending_balances(
        user_id: int,
        session: Session,
        isolation_level: str | None = None,
) -> list[dict]:
    """
    Every non-zero pending balance of the owner's people.

    Returns a list sorted by (from name, to name, currency):
        [{"fromPersonId", "fromPersonName", "toPersonId", "toPersonName",
          "amount": Decimal, "currency"}, ...]
    """
    begin_snapshot(session, isolation_level)
    net = _compute_net(user_id, session)

    names = get_person_names(
        [pid for debtor, creditor, _ in net for pid in (debtor, creditor)],
        session,
    )

    balances = [
        {
            "fromPersonId": debtor_id,
            "fromPersonName": names.get(debtor_id, f"person_{debtor_id}"),
            "toPersonId": creditor_id,
            "toPersonName": names.get(creditor_id, f"person_{creditor_id}"),
            "amount": amount,
            "currency": currency,
        }
        for (debtor_id, creditor_id, currency), amount in net.items()
    ]
    balances.sort(key=lambda b: (
        b["fromPersonName"], b["toPersonName"], b["currency"], b["fromPersonId"], b["toPersonId"],
    ))

    logger.debug("Computed %d pending balances for user %s", len(balances), user_id)
    return balances


def pair_balance(
        user_id: int,
        debtor_id: int,
        creditor_id: int,
        currency: str,
        session: Session,
) -> Decimal:
    """What debtor_id currently owes creditor_id in `currency`; 0.00 when nothing or the reverse."""
    net = _compute_net(user_id, session)
    return net.get((debtor_id, creditor_id, currency), Decimal("0.00"))
