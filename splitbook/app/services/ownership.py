"""
services/ownership.py — Owner-scoped lookups shared by the services.

Every row belongs to one user. A row owned by someone else is reported
exactly like a missing row (404), so ids of other users' data cannot be
discovered by guessing.
"""

from __future__ import annotations

from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.errors import AppError, ErrorCode, NotFoundError
from splitbook.app.models.account import Account
from splitbook.app.models.group import Group
from splitbook.app.models.person import Person
from splitbook.app.models.settlement import Settlement
from splitbook.app.models.transaction import Transaction
from splitbook.app.models.user import User

T = TypeVar("T")

_NOT_FOUND = {
    Account:     (ErrorCode.ACCOUNT_NOT_FOUND,     "Account"),
    Group:       (ErrorCode.GROUP_NOT_FOUND,       "Group"),
    Person:      (ErrorCode.PERSON_NOT_FOUND,      "Person"),
    Settlement:  (ErrorCode.SETTLEMENT_NOT_FOUND,  "Settlement"),
    Transaction: (ErrorCode.TRANSACTION_NOT_FOUND, "Transaction"),
}


def get_owned(model: type[T], entity_id: int, user_id: int, session: Session,
              field: str | None = None) -> T:
    """Returns the row or raises the model's *_NOT_FOUND error (404)."""
    obj = session.get(model, entity_id)
    if obj is None or obj.user_id != user_id:
        code, label = _NOT_FOUND[model]
        raise NotFoundError(code, f"{label} {entity_id} not found.", field=field)
    return obj


def get_user(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        # Token outlived its user.
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")
    return user


def get_self_person(user_id: int, session: Session) -> Person:
    """The person that stands in for the owner. Created at registration."""
    person = session.execute(
        select(Person).where(Person.user_id == user_id, Person.is_self.is_(True))
    ).scalar_one_or_none()
    if person is None:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"User {user_id} has no self person.",
            500,
        )
    return person


def get_owned_people(person_ids: list[int], user_id: int, session: Session,
                     field: str = "personIds") -> dict[int, Person]:
    """
    Loads every id in one query. The first unknown or foreign id (in input
    order) raises PERSON_NOT_FOUND.
    """
    rows = session.execute(
        select(Person).where(Person.id.in_(person_ids), Person.user_id == user_id)
    ).scalars().all()
    people = {p.id: p for p in rows}

    for pid in person_ids:
        if pid not in people:
            raise NotFoundError(ErrorCode.PERSON_NOT_FOUND, f"Person {pid} not found.", field=field)
    return people
