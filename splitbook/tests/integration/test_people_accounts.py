"""
tests/integration/test_people_accounts.py — People and accounts.

Endpoints covered:
  POST/GET      /accounts, GET /accounts/:id
  POST/GET/PUT  /people, DELETE /people/:id (deactivate)
  GET           /people/:id/spending, /people/:id/spending/limits

Owner scoping: another user's ids answer 404, never 403.
"""

from __future__ import annotations

import pytest

from .conftest import (
    auth_headers,
    make_account,
    make_person,
    make_split,
    make_transaction,
    register,
)


class TestAccounts:

    def test_currency_defaults_to_owner_currency(self, client):
        alice = register(client, "alice", default_currency="EUR")
        account = make_account(client, alice["accessToken"])
        assert account["currency"] == "EUR"
        assert account["accountType"] == "cash"

    def test_explicit_currency_is_upper_cased(self, client):
        alice = register(client, "alice")
        account = make_account(client, alice["accessToken"], account_type="bank", currency="usd")
        assert account["currency"] == "USD"

    def test_foreign_account_is_404(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        account = make_account(client, alice["accessToken"])
        resp = client.get(
            f"/api/v1/accounts/{account['id']}",
            headers=auth_headers(bob["accessToken"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "ACCOUNT_NOT_FOUND"


class TestPeople:

    def test_create_with_limits(self, client):
        alice = register(client, "alice")
        resp = client.post(
            "/api/v1/people",
            json={
                "name": "Riya",
                "type": "child",
                "overallLimit": "500.00",
                "limitPeriod": "monthly",
                "categoryLimits": [{"category": "Snacks", "amount": "50"}],
            },
            headers=auth_headers(alice["accessToken"]),
        )
        assert resp.status_code == 201
        person = resp.get_json()["data"]
        assert person["overallLimit"] == "500.00"
        assert person["categoryLimits"] == [
            {"category": "Snacks", "amount": "50", "period": "monthly"}
        ]

    def test_partial_update_keeps_other_fields(self, client):
        alice = register(client, "alice")
        bob = make_person(client, alice["accessToken"], "Bob", "friend")
        resp = client.put(
            f"/api/v1/people/{bob['id']}",
            json={"notes": "flatmate"},
            headers=auth_headers(alice["accessToken"]),
        )
        assert resp.status_code == 200
        person = resp.get_json()["data"]
        assert person["notes"] == "flatmate"
        assert person["name"] == "Bob"
        assert person["type"] == "friend"

    def test_deactivated_person_hidden_by_default(self, client):
        alice = register(client, "alice")
        token = alice["accessToken"]
        bob = make_person(client, token, "Bob")
        resp = client.delete(f"/api/v1/people/{bob['id']}", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["isActive"] is False

        listed = client.get("/api/v1/people", headers=auth_headers(token)).get_json()["data"]
        assert bob["id"] not in [p["id"] for p in listed]

        everyone = client.get(
            "/api/v1/people?includeInactive=true", headers=auth_headers(token),
        ).get_json()["data"]
        assert bob["id"] in [p["id"] for p in everyone]

    def test_self_person_cannot_be_deleted(self, client):
        alice = register(client, "alice")
        resp = client.delete(
            f"/api/v1/people/{alice['user']['selfPersonId']}",
            headers=auth_headers(alice["accessToken"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "SELF_PERSON_LOCKED"

    def test_foreign_person_is_404(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        carol = make_person(client, alice["accessToken"], "Carol")
        resp = client.get(
            f"/api/v1/people/{carol['id']}",
            headers=auth_headers(bob["accessToken"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PERSON_NOT_FOUND"


class TestSpending:

    @pytest.fixture
    def setup(self, client):
        alice = register(client, "alice")
        token = alice["accessToken"]
        return {
            "token": token,
            "self_id": alice["user"]["selfPersonId"],
            "bob_id": make_person(client, token, "Bob")["id"],
            "account_id": make_account(client, token)["id"],
        }

    def _spending(self, client, setup, person_id, query=""):
        resp = client.get(
            f"/api/v1/people/{person_id}/spending{query}", headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()["data"]

    def test_summary_counts_plain_expenses_and_split_shares(self, client, setup):
        token, bob, acc = setup["token"], setup["bob_id"], setup["account_id"]
        make_transaction(client, token, acc, "100.00", personId=bob, category="Food", date="2025-03-10")
        make_transaction(client, token, acc, "30.00", personId=bob, date="2025-03-31")
        make_transaction(client, token, acc, "40.00", personId=bob, category="Food", date="2025-02-28")
        make_split(client, token, acc, "90.00", [setup["self_id"], bob],
                   category="Food", date="2025-03-31")
        # Neither income nor deleted rows are spending.
        make_transaction(client, token, acc, "500.00", "income", personId=bob, date="2025-03-15")
        deleted = make_transaction(client, token, acc, "20.00", personId=bob, date="2025-03-15")
        client.delete(
            f"/api/v1/transactions/{deleted.get_json()['data']['id']}", headers=auth_headers(token),
        )

        summary = self._spending(client, setup, bob, "?startDate=2025-03-01&endDate=2025-03-31")

        assert summary["personName"] == "Bob"
        assert summary["currency"] == "INR"
        assert summary["total"] == "175.00"
        assert summary["byCategory"] == [
            {"category": "Food", "amount": "145.00"},
            {"category": "Uncategorised", "amount": "30.00"},
        ]
        # 2025-03-31 is a Monday.
        assert summary["byPeriod"] == {
            "daily": "75.00",
            "weekly": "75.00",
            "monthly": "175.00",
            "yearly": "215.00",
        }
        assert summary["period"] == {"startDate": "2025-03-01", "endDate": "2025-03-31"}

    def test_self_person_owns_expenses_without_a_person(self, client, setup):
        token, acc = setup["token"], setup["account_id"]
        make_transaction(client, token, acc, "60.00", date="2025-03-31")
        make_split(client, token, acc, "90.00", [setup["self_id"], setup["bob_id"]], date="2025-03-31")

        summary = self._spending(
            client, setup, setup["self_id"], "?startDate=2025-03-01&endDate=2025-03-31",
        )
        # The split parent is not counted; only alice's 45.00 share is.
        assert summary["total"] == "105.00"

    def test_other_currencies_are_reported_separately(self, client, setup):
        token, bob = setup["token"], setup["bob_id"]
        usd = make_account(client, token, "Travel card", currency="USD")["id"]
        make_transaction(client, token, setup["account_id"], "10.00", personId=bob, date="2025-03-05")
        make_transaction(client, token, usd, "7.00", personId=bob, date="2025-03-05")

        query = "?startDate=2025-03-01&endDate=2025-03-31"
        assert self._spending(client, setup, bob, query)["total"] == "10.00"
        usd_summary = self._spending(client, setup, bob, query + "&currency=usd")
        assert usd_summary["currency"] == "USD"
        assert usd_summary["total"] == "7.00"

    def test_start_after_end_is_rejected(self, client, setup):
        resp = client.get(
            f"/api/v1/people/{setup['bob_id']}/spending?startDate=2025-04-01&endDate=2025-03-01",
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_DATE_RANGE"

    def test_foreign_person_is_404(self, client, setup):
        other = register(client, "bob")
        resp = client.get(
            f"/api/v1/people/{setup['bob_id']}/spending",
            headers=auth_headers(other["accessToken"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PERSON_NOT_FOUND"


class TestSpendingLimits:

    @pytest.fixture
    def setup(self, client):
        alice = register(client, "alice")
        token = alice["accessToken"]
        riya = client.post(
            "/api/v1/people",
            json={
                "name": "Riya",
                "type": "child",
                "overallLimit": "100.00",
                "limitPeriod": "monthly",
                "categoryLimits": [{"category": "Snacks", "amount": "50", "period": "weekly"}],
            },
            headers=auth_headers(token),
        ).get_json()["data"]
        account_id = make_account(client, token)["id"]
        # Dated today by default.
        make_transaction(client, token, account_id, "40.00", personId=riya["id"], category="snacks")
        make_transaction(client, token, account_id, "30.00", personId=riya["id"], category="Books")
        return {"token": token, "riya_id": riya["id"]}

    def _limits(self, client, setup, query=""):
        resp = client.get(
            f"/api/v1/people/{setup['riya_id']}/spending/limits{query}",
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()["data"]

    def test_current_standing(self, client, setup):
        status = self._limits(client, setup)

        assert status["overallLimit"] == {
            "limit": "100.00",
            "spent": "70.00",
            "remaining": "30.00",
            "period": "monthly",
            "isBreached": False,
            "percentage": "70.00",
        }
        assert status["categoryLimits"] == [{
            "category": "Snacks",
            "limit": "50",
            "spent": "40.00",
            "remaining": "10.00",
            "period": "weekly",
            "isBreached": False,
            "percentage": "80.00",
        }]

    def test_prospective_amount_in_a_category(self, client, setup):
        status = self._limits(client, setup, "?amount=15.00&category=SNACKS")

        assert status["amount"] == "15.00"
        assert status["overallLimit"]["spent"] == "85.00"
        assert status["overallLimit"]["isBreached"] is False
        [snacks] = status["categoryLimits"]
        assert snacks["spent"] == "55.00"
        assert snacks["remaining"] == "-5.00"
        assert snacks["isBreached"] is True
        assert snacks["percentage"] == "110.00"

    def test_category_without_a_limit_lists_none(self, client, setup):
        status = self._limits(client, setup, "?amount=40.00&category=Toys")
        assert status["categoryLimits"] == []
        assert status["overallLimit"]["spent"] == "110.00"
        assert status["overallLimit"]["isBreached"] is True

    def test_person_without_limits(self, client, setup):
        bob = make_person(client, setup["token"], "Bob")
        resp = client.get(
            f"/api/v1/people/{bob['id']}/spending/limits",
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["overallLimit"] is None
        assert data["categoryLimits"] == []

    def test_negative_amount_is_rejected(self, client, setup):
        resp = client.get(
            f"/api/v1/people/{setup['riya_id']}/spending/limits?amount=-1",
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "NEGATIVE_AMOUNT"
