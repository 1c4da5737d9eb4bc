"""
services/settlement_service.py — The settlement ledger.

A settlement records that one person pays another. State machine:

    pending ──settle──▶ settled     (terminal)
       │
       └────cancel───▶ cancelled   (terminal)

Only settled settlements reduce balances (balance_service.py).

Concurrency: settle and cancel are conditional UPDATEs
(... WHERE status = 'pending'). Of two concurrent calls exactly one changes
the row; the other gets SETTLEMENT_NOT_PENDING (409) and the row keeps the
winner's state.

Overpayment: a settlement larger than what `from` currently owes `to` is
still recorded (pre-payment is valid). The response carries an OVERPAYMENT
warning alongside the 201.

createTransaction: also books the payment as a plain cash-flow transaction
on the given account (income when the owner's self person receives,
expense otherwise). It is linked through settlements.transaction_id, is
never a split child, and so never enters the balance computation.
Cancelling the settlement soft-deletes it.

Layer rules: no Flask imports; only flush, the route commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from splitbook.app.errors import ConflictError, ErrorCode, InputValidationError, WarningCode
from splitbook.app.models.person import Person
from splitbook.app.models.settlement import Settlement, SettlementStatus
from splitbook.app.models.transaction import Transaction, TransactionStatus, TransactionType
from splitbook.app.services import balance_service, transaction_service
from splitbook.app.services.allocation import check_amount
from splitbook.app.services.ownership import get_owned, get_self_person, get_user

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _now() -> datetime:
    return datetime.now(timezone.utc)


def _build_cash_flow(
        user_id: int,
        payer: Person,
        payee: Person,
        amount: Decimal,
        currency: str,
        data: dict,
        session: Session,
) -> Transaction:
    """Validates and returns the unsaved cash-flow transaction for a settlement."""
    if data.get("account_id") is None:
        raise InputValidationError(
            ErrorCode.ACCOUNT_REQUIRED,
            "accountId is required when createTransaction is true.",
            field="accountId",
        )

    self_person = get_self_person(user_id, session)
    if payee.id == self_person.id:
        transaction_type, counterparty = TransactionType.INCOME, payer
    else:
        transaction_type, counterparty = TransactionType.EXPENSE, payee

    return transaction_service.build_transaction(
        user_id,
        {
            "account_id": data["account_id"],
            "account_type": data.get("account_type"),
            "transaction_type": transaction_type,
            "amount": amount,
            "currency": currency,
            "description": f"Settlement: {payer.name} → {payee.name}",
            "category": "Settlement",
            "notes": data.get("notes"),
            "person_id": counterparty.id,
            "status": TransactionStatus.COMPLETED,
        },
        session,
    )


def _transition(
        settlement: Settlement,
        target: SettlementStatus,
        session: Session,
        **values,
) -> None:
    """
    Compare-and-swap pending → target. Raises SETTLEMENT_NOT_PENDING (409)
    when the row is no longer pending, leaving it untouched.
    """
    result = session.execute(
        update(Settlement)
        .where(
            Settlement.id == settlement.id,
            Settlement.status == SettlementStatus.PENDING,
        )
        .values(status=target, updated_at=_now(), **values)
        .execution_options(synchronize_session=False)
    )
    # Current state either way: ours after a win, the winner's after a loss.
    session.refresh(settlement)

    if result.rowcount == 0:
        logger.warning(
            "Settlement %s: %s rejected, status is %s",
            settlement.id, target.value, settlement.status.value,
        )
        raise ConflictError(
            ErrorCode.SETTLEMENT_NOT_PENDING,
            f"Settlement {settlement.id} is {settlement.status.value}; "
            f"only pending settlements can be {target.value}.",
            details={"status": settlement.status.value},
        )


# ── Public service functions ───────────────────────────────────────────────

def create_settlement(
        user_id: int,
        data: dict,
        session: Session,
) -> tuple[Settlement, list[dict]]:
    """
    Records a pending settlement from fromPersonId to toPersonId.

    Args:
        data: validated dict from CreateSettlementSchema.

    Raises:
      SELF_SETTLEMENT (400), ACCOUNT_REQUIRED (400), CURRENCY_MISMATCH (400)
      PERSON_NOT_FOUND / ACCOUNT_NOT_FOUND (404)

    Returns:
        (Settlement, warnings). warnings is empty or holds one OVERPAYMENT entry.
    """
    from_id: int = data["from_person_id"]
    to_id: int = data["to_person_id"]
    amount: Decimal = data["amount"]

    if from_id == to_id:
        raise InputValidationError(
            ErrorCode.SELF_SETTLEMENT,
            "A person cannot settle with themselves.",
            field="toPersonId",
        )

    payer = get_owned(Person, from_id, user_id, session, field="fromPersonId")
    payee = get_owned(Person, to_id, user_id, session, field="toPersonId")

    currency = (data.get("currency") or get_user(user_id, session).default_currency).upper()
    check_amount(amount, currency)

    warnings: list[dict] = []
    outstanding = balance_service.pair_balance(user_id, from_id, to_id, currency, session)
    if amount > outstanding:
        warnings.append({
            "code": WarningCode.OVERPAYMENT,
            "message": (
                f"Settlement of {amount} {currency} exceeds the {outstanding} {currency} "
                f"{payer.name} currently owes {payee.name}. Recording anyway."
            ),
        })

    cash_flow = None
    if data.get("create_transaction"):
        cash_flow = _build_cash_flow(user_id, payer, payee, amount, currency, data, session)

    settlement = Settlement(
        user_id=user_id,
        from_person_id=from_id,
        to_person_id=to_id,
        amount=amount,
        currency=currency,
        method=data["method"],
        notes=data.get("notes"),
    )
    session.add(settlement)
    session.flush()

    if cash_flow is not None:
        session.add(cash_flow)
        session.flush()
        settlement.transaction_id = cash_flow.id
        session.flush()

    session.refresh(settlement)
    logger.info(
        "Recorded settlement %s: person %s → person %s, %s %s",
        settlement.id, from_id, to_id, amount, currency,
    )
    return settlement, warnings


def settle_settlement(
        settlement_id: int,
        user_id: int,
        data: dict,
        session: Session,
) -> Settlement:
    """
    pending → settled, stamping settlementDate (default now).

    Raises:
      SETTLEMENT_NOT_FOUND (404)
      SETTLEMENT_NOT_PENDING (409) — already settled or cancelled
    """
    settlement = get_owned(Settlement, settlement_id, user_id, session)

    settled_at = data.get("settlement_date") or _now()
    if settled_at.tzinfo is None:
        settled_at = settled_at.replace(tzinfo=timezone.utc)

    _transition(settlement, SettlementStatus.SETTLED, session, settlement_date=settled_at)

    logger.info("Settled settlement %s for user %s", settlement.id, user_id)
    return settlement


def cancel_settlement(settlement_id: int, user_id: int, session: Session) -> Settlement:
    """
    pending → cancelled. A linked cash-flow transaction is soft-deleted.

    Raises:
      SETTLEMENT_NOT_FOUND (404)
      SETTLEMENT_NOT_PENDING (409)
    """
    settlement = get_owned(Settlement, settlement_id, user_id, session)

    _transition(settlement, SettlementStatus.CANCELLED, session)

    txn = settlement.transaction
    if txn is not None and txn.deleted_at is None:
        txn.deleted_at = _now()
        session.flush()

    logger.info("Cancelled settlement %s for user %s", settlement.id, user_id)
    return settlement


def get_settlement(settlement_id: int, user_id: int, session: Session) -> Settlement:
    return get_owned(Settlement, settlement_id, user_id, session)


def list_history(
        user_id: int,
        session: Session,
        limit: int,
        skip: int = 0,
        status: SettlementStatus | None = None,
) -> tuple[list[Settlement], int]:
    """Newest first. Returns (page, total matching rows)."""
    stmt = select(Settlement).where(Settlement.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Settlement.status == status)

    total = session.execute(
        select(func.count()).select_from(stmt.subquery())
    ).scalar_one()

    page = session.execute(
        stmt.order_by(Settlement.created_at.desc(), Settlement.id.desc())
        .limit(limit)
        .offset(skip)
    ).scalars().all()

    return list(page), total


def list_pending(user_id: int, session: Session) -> list[Settlement]:
    """Pending settlements, oldest first (the order they should be settled in)."""
    stmt = (
        select(Settlement)
        .where(
            Settlement.user_id == user_id,
            Settlement.status == SettlementStatus.PENDING,
        )
        .order_by(Settlement.created_at, Settlement.id)
    )
    return list(session.execute(stmt).scalars().all())
