"""
services/person_service.py — People: the parties who owe and are owed.

People are never hard-deleted; transactions, split shares and settlements
reference them with ON DELETE RESTRICT. DELETE /people/{id} deactivates.

The self person (is_self) represents the owner and cannot be deactivated
(SELF_PERSON_LOCKED, 400). It may be renamed.

Layer rules: no Flask imports; only flush, the route commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.errors import ErrorCode, InputValidationError
from splitbook.app.models.person import Person
from splitbook.app.services.ownership import get_owned

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "person_type", "notes", "overall_limit", "limit_period")


def _category_limits_to_json(limits: list[dict]) -> list[dict]:
    # Amounts as strings keep them exact inside the JSON column.
    return [
        {
            "category": item["category"].strip(),
            "amount": str(item["amount"]),
            "period": item["period"].value,
        }
        for item in limits
    ]


def create_person(user_id: int, data: dict, session: Session) -> Person:
    person = Person(
        user_id=user_id,
        name=data["name"].strip(),
        person_type=data["person_type"],
        notes=data.get("notes"),
        overall_limit=data.get("overall_limit"),
        limit_period=data.get("limit_period"),
        category_limits=_category_limits_to_json(data.get("category_limits") or []),
    )
    session.add(person)
    session.flush()
    session.refresh(person)
    return person


def list_people(user_id: int, session: Session, include_inactive: bool = False) -> list[Person]:
    """Self person first, then by name."""
    stmt = select(Person).where(Person.user_id == user_id)
    if not include_inactive:
        stmt = stmt.where(Person.is_active.is_(True))
    stmt = stmt.order_by(Person.is_self.desc(), Person.name, Person.id)
    return list(session.execute(stmt).scalars().all())


def get_person(person_id: int, user_id: int, session: Session) -> Person:
    return get_owned(Person, person_id, user_id, session)


def update_person(person_id: int, user_id: int, data: dict, session: Session) -> Person:
    """data: partial dict from PersonSchema; only the keys present are applied."""
    person = get_owned(Person, person_id, user_id, session)

    for key in _UPDATABLE:
        if key in data:
            value = data[key]
            setattr(person, key, value.strip() if key == "name" else value)

    if "category_limits" in data:
        person.category_limits = _category_limits_to_json(data["category_limits"] or [])

    person.updated_at = datetime.now(timezone.utc)
    session.flush()
    return person


def deactivate_person(person_id: int, user_id: int, session: Session) -> Person:
    """
    Marks the person inactive. Existing transactions, splits and balances
    that mention them are untouched. Deactivating twice is a no-op.
    """
    person = get_owned(Person, person_id, user_id, session)
    if person.is_self:
        raise InputValidationError(
            ErrorCode.SELF_PERSON_LOCKED,
            "The person representing you cannot be deleted.",
        )

    if person.is_active:
        person.is_active = False
        person.updated_at = datetime.now(timezone.utc)
        session.flush()
        logger.info("Deactivated person %s for user %s", person.id, user_id)
    return person
