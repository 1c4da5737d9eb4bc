"""
routes/serializers.py — ORM objects → JSON-ready dicts.

Pure data-shape helpers shared by the route modules; no business logic.
Keys are camelCase. Decimal values are left as Decimal and rendered as
strings by DecimalJSONProvider (app/__init__.py).

References are always resolved here into an id plus a display name
(personId + personName), never an embedded object in one response and a
bare id in another.
"""

from __future__ import annotations

from decimal import Decimal

from splitbook.app.models.account import Account
from splitbook.app.models.person import Person
from splitbook.app.models.settlement import Settlement
from splitbook.app.models.transaction import Transaction


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _percentage(value: Decimal | None) -> Decimal | None:
    # NUMERIC(7, 4) comes back as 40.0000; show 40.00 unless the extra places matter.
    if value is None:
        return None
    two_dp = value.quantize(Decimal("0.01"))
    return two_dp if two_dp == value else value.normalize()


def serialize_account(account: Account) -> dict:
    return {
        "id": account.id,
        "name": account.name,
        "accountType": account.account_type.value,
        "currency": account.currency,
        "institution": account.institution,
        "isActive": account.is_active,
        "createdAt": _iso(account.created_at),
    }


def serialize_person(person: Person) -> dict:
    return {
        "id": person.id,
        "name": person.name,
        "type": person.person_type.value,
        "notes": person.notes,
        "overallLimit": person.overall_limit,
        "limitPeriod": person.limit_period.value if person.limit_period else None,
        "categoryLimits": person.category_limits or [],
        "isSelf": person.is_self,
        "isActive": person.is_active,
        "createdAt": _iso(person.created_at),
        "updatedAt": _iso(person.updated_at),
    }


def serialize_transaction(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "accountId": txn.account_id,
        "accountType": txn.account_type.value,
        "type": txn.transaction_type.value,
        "amount": txn.amount,
        "currency": txn.currency,
        "description": txn.description,
        "category": txn.category,
        "notes": txn.notes,
        "personId": txn.person_id,
        "personName": txn.person.name if txn.person is not None else None,
        "date": _iso(txn.transaction_date),
        "status": txn.status.value,
        "parentTransactionId": txn.parent_transaction_id,
        "groupId": txn.group_id,
        "settlementId": txn.settlement.id if txn.settlement is not None else None,
        "splitType": txn.split_type.value,
        "idempotencyKey": txn.idempotency_key,
        "createdAt": _iso(txn.created_at),
        "updatedAt": _iso(txn.updated_at),
        "deletedAt": _iso(txn.deleted_at),
    }


def serialize_split(parent: Transaction) -> dict:
    """{parentTransaction, childTransactions, splitBreakdown}; breakdown in input order."""
    return {
        "parentTransaction": serialize_transaction(parent),
        "childTransactions": [serialize_transaction(c) for c in parent.children],
        "splitBreakdown": [
            {
                "personId": share.person_id,
                "personName": share.person.name,
                "amount": share.amount,
                "percentage": _percentage(share.percentage),
            }
            for share in parent.shares
        ],
    }


def serialize_settlement(settlement: Settlement) -> dict:
    return {
        "id": settlement.id,
        "fromPersonId": settlement.from_person_id,
        "fromPersonName": settlement.from_person.name,
        "toPersonId": settlement.to_person_id,
        "toPersonName": settlement.to_person.name,
        "amount": settlement.amount,
        "currency": settlement.currency,
        "status": settlement.status.value,
        "method": settlement.method.value,
        "settlementDate": _iso(settlement.settlement_date),
        "notes": settlement.notes,
        "transactionId": settlement.transaction_id,
        "createdAt": _iso(settlement.created_at),
        "updatedAt": _iso(settlement.updated_at),
    }
