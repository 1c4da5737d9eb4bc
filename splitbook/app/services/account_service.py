"""
services/account_service.py — Bank accounts and cash wallets.

Layer rules: no Flask imports; only flush, the route commits.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.models.account import Account
from splitbook.app.services.ownership import get_owned, get_user


def create_account(user_id: int, data: dict, session: Session) -> Account:
    """
    data: validated dict from CreateAccountSchema.
    A missing currency falls back to the owner's default currency.
    """
    currency = data.get("currency") or get_user(user_id, session).default_currency

    account = Account(
        user_id=user_id,
        name=data["name"].strip(),
        account_type=data["account_type"],
        currency=currency.upper(),
        institution=data.get("institution"),
    )
    session.add(account)
    session.flush()
    session.refresh(account)
    return account


def list_accounts(user_id: int, session: Session) -> list[Account]:
    stmt = (
        select(Account)
        .where(Account.user_id == user_id)
        .order_by(Account.name, Account.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_account(account_id: int, user_id: int, session: Session) -> Account:
    return get_owned(Account, account_id, user_id, session)
