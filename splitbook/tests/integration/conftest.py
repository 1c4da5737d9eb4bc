"""
Shared fixtures for the HTTP tests.

One app per test session on TestingConfig (in-memory SQLite, or whatever
TEST_DATABASE_URL names). The schema is built with db.create_all(); every
test ends by emptying the tables, dependants first.

The make_* and register helpers are plain functions that drive the API the
way a client would and fail loudly on an unexpected status.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from splitbook.app import create_app
from splitbook.app.extensions import db as _db


@pytest.fixture(scope="session")
def app():
    test_app = create_app("testing")
    with test_app.app_context():
        _db.create_all()

    yield test_app

    with test_app.app_context():
        _db.session.remove()
        _db.drop_all()


_TABLES_IN_DELETE_ORDER = (
    "settlements",
    "split_shares",
    "transactions",
    "group_members",
    "groups",
    "accounts",
    "people",
    "users",
)


@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after EVERY test. Children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()
        # Split children reference their parent in the same table.
        _db.session.execute(text("UPDATE settlements SET transaction_id = NULL"))
        _db.session.execute(text("DELETE FROM transactions WHERE parent_transaction_id IS NOT NULL"))
        for table in _TABLES_IN_DELETE_ORDER:
            _db.session.execute(text(f"DELETE FROM {table}"))
        _db.session.commit()


@pytest.fixture
def client(app):
    return app.test_client()


# ── API helpers ────────────────────────────────────────────────────────────

def register(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    default_currency: str = "INR",
) -> dict:
    """Registers a user. Returns {"user": {..., "selfPersonId"}, "accessToken", ...}."""
    if email is None:
        email = f"{username}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "defaultCurrency": default_currency,
        },
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_account(
    client,
    token: str,
    name: str = "Wallet",
    account_type: str = "cash",
    currency: str | None = None,
) -> dict:
    payload = {"name": name, "accountType": account_type}
    if currency is not None:
        payload["currency"] = currency
    resp = client.post("/api/v1/accounts", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_account failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_person(client, token: str, name: str = "Bob", person_type: str = "friend") -> dict:
    resp = client.post(
        "/api/v1/people",
        json={"name": name, "type": person_type},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_person failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_transaction(
    client,
    token: str,
    account_id: int,
    amount: str,
    txn_type: str = "expense",
    description: str = "Groceries",
    **extra,
):
    """POST /transactions. extra is merged into the body as-is (camelCase keys)."""
    payload = {
        "accountId": account_id,
        "type": txn_type,
        "amount": amount,
        "description": description,
        **extra,
    }
    return client.post("/api/v1/transactions", json=payload, headers=auth_headers(token))


def make_split(
    client,
    token: str,
    account_id: int,
    amount: str,
    person_ids: list[int],
    split_type: str = "equal",
    description: str = "Dinner",
    **extra,
):
    """
    POST /splits. extra is merged into the body as-is, e.g.
    percentages=["50", "50"], customAmounts=[...], personId=<payer>,
    idempotencyKey="k1", groupId=3, type="income".
    """
    payload = {
        "accountId": account_id,
        "amount": amount,
        "description": description,
        "splitType": split_type,
        "personIds": person_ids,
        **extra,
    }
    return client.post("/api/v1/splits", json=payload, headers=auth_headers(token))


def pending_balances(client, token: str) -> list[dict]:
    resp = client.get("/api/v1/settlements/pending", headers=auth_headers(token))
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]
