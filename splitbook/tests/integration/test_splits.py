"""
tests/integration/test_splits.py — Split creation, re-allocation and removal.

Endpoints covered:
  POST   /splits                   → 201 / 200 on idempotent replay
  POST   /transactions/:id/split   → 201
  GET    /splits/:id               → 200
  PUT    /splits/:id               → 200
  DELETE /splits/:id               → 200

Invariants verified:
  - parent amount == sum(breakdown) == sum(children), exactly
  - a rejected split writes nothing (no parent, no shares, no children)
  - children are derived rows: read-only, deleted and restored with the parent
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from .conftest import (
    auth_headers,
    make_account,
    make_person,
    make_split,
    make_transaction,
    register,
)


@pytest.fixture
def setup(client):
    """Alice with a wallet, Bob and Carol. Returns a dict of ids and the token."""
    data = register(client, "alice")
    token = data["accessToken"]
    return {
        "token": token,
        "account_id": make_account(client, token)["id"],
        "self_id": data["user"]["selfPersonId"],
        "bob_id": make_person(client, token, "Bob")["id"],
        "carol_id": make_person(client, token, "Carol")["id"],
    }


def _total_transactions(client, token) -> int:
    resp = client.get("/api/v1/transactions?includeDeleted=true", headers=auth_headers(token))
    return resp.get_json()["total"]


def _assert_reconciles(split: dict) -> None:
    parent_amount = Decimal(split["parentTransaction"]["amount"])
    assert sum(Decimal(s["amount"]) for s in split["splitBreakdown"]) == parent_amount
    assert sum(Decimal(c["amount"]) for c in split["childTransactions"]) == parent_amount


# ═══════════════════════════════════════════════════════════════════════════
# POST /splits
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateEqualSplit:

    def test_remainder_goes_to_first_participants(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "100.00",
            [setup["self_id"], setup["bob_id"], setup["carol_id"]],
        )
        assert resp.status_code == 201
        split = resp.get_json()["data"]
        assert [s["amount"] for s in split["splitBreakdown"]] == ["33.34", "33.33", "33.33"]
        assert [s["personName"] for s in split["splitBreakdown"]] == ["alice", "Bob", "Carol"]
        assert split["parentTransaction"]["splitType"] == "equal"
        assert len(split["childTransactions"]) == 3
        _assert_reconciles(split)

    def test_children_copy_the_parent(self, client, setup):
        split = make_split(
            client, setup["token"], setup["account_id"], "60.00",
            [setup["bob_id"], setup["carol_id"]],
            category="Food", date="2026-03-01",
        ).get_json()["data"]
        parent = split["parentTransaction"]
        for child in split["childTransactions"]:
            assert child["parentTransactionId"] == parent["id"]
            assert child["splitType"] == "none"
            assert child["category"] == "Food"
            assert child["date"] == "2026-03-01"
            assert child["groupId"] is None
        assert [c["personId"] for c in split["childTransactions"]] == [
            setup["bob_id"], setup["carol_id"],
        ]


class TestCreatePercentageSplit:

    def test_shares_round_to_nearest_and_reconcile(self, client, setup):
        """49.995, 29.997, 19.998 round to 50.00, 30.00, 20.00; the extra cent comes off the first."""
        resp = make_split(
            client, setup["token"], setup["account_id"], "99.99",
            [setup["self_id"], setup["bob_id"], setup["carol_id"]],
            split_type="percentage", percentages=["50", "30", "20"],
        )
        assert resp.status_code == 201
        split = resp.get_json()["data"]
        assert [s["amount"] for s in split["splitBreakdown"]] == ["49.99", "30.00", "20.00"]
        assert [s["percentage"] for s in split["splitBreakdown"]] == ["50.00", "30.00", "20.00"]
        _assert_reconciles(split)

    def test_tolerance_gap_spread_in_proportion(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "1000000.00",
            [setup["bob_id"], setup["carol_id"]],
            split_type="percentage", percentages=["99.99", "0.02"],
        )
        assert resp.status_code == 201
        split = resp.get_json()["data"]
        assert [s["amount"] for s in split["splitBreakdown"]] == ["999800.02", "199.98"]
        _assert_reconciles(split)

    def test_sum_mismatch_writes_nothing(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "100.00",
            [setup["self_id"], setup["bob_id"], setup["carol_id"]],
            split_type="percentage", percentages=["40", "40", "15"],
        )
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "PERCENTAGE_SUM_MISMATCH"
        assert "95.00" in error["message"] and "100.00" in error["message"]
        assert _total_transactions(client, setup["token"]) == 0

    def test_share_count_mismatch(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "100.00",
            [setup["bob_id"], setup["carol_id"]],
            split_type="percentage", percentages=["100"],
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "SHARE_COUNT_MISMATCH"


class TestCreateCustomSplit:

    def test_mismatch_cites_both_totals(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "500.00",
            [setup["self_id"], setup["bob_id"], setup["carol_id"]],
            split_type="custom", customAmounts=["200.00", "200.00", "50.00"],
        )
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "SPLIT_SUM_MISMATCH"
        assert error["details"] == {"expected": "500.00", "actual": "450.00"}
        assert _total_transactions(client, setup["token"]) == 0

    def test_exact_amounts_accepted(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "500.00",
            [setup["self_id"], setup["bob_id"], setup["carol_id"]],
            split_type="custom", customAmounts=["200.00", "200.00", "100.00"],
        )
        assert resp.status_code == 201
        split = resp.get_json()["data"]
        assert [s["amount"] for s in split["splitBreakdown"]] == ["200.00", "200.00", "100.00"]
        _assert_reconciles(split)

    def test_zero_share_has_no_child(self, client, setup):
        split = make_split(
            client, setup["token"], setup["account_id"], "50.00",
            [setup["bob_id"], setup["carol_id"]],
            split_type="custom", customAmounts=["50.00", "0.00"],
        ).get_json()["data"]
        assert len(split["splitBreakdown"]) == 2
        assert [c["personId"] for c in split["childTransactions"]] == [setup["bob_id"]]

    def test_negative_share_message(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "50.00",
            [setup["bob_id"], setup["carol_id"]],
            split_type="custom", customAmounts=["60.00", "-10.00"],
        )
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "NEGATIVE_AMOUNT"
        assert error["field"] == "customAmounts"
        assert error["message"] == "Amount must not be negative."


class TestCreateSplitRejections:

    def test_transfer_cannot_be_split(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "10.00",
            [setup["bob_id"]], type="transfer",
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "TRANSFER_NOT_SPLITTABLE"

    def test_duplicate_participant(self, client, setup):
        resp = make_split(
            client, setup["token"], setup["account_id"], "10.00",
            [setup["bob_id"], setup["bob_id"]],
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "DUPLICATE_SPLIT_PERSON"

    def test_foreign_participant_writes_nothing(self, client, setup):
        stranger = register(client, "mallory")
        resp = make_split(
            client, setup["token"], setup["account_id"], "10.00",
            [setup["bob_id"], stranger["user"]["selfPersonId"]],
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PERSON_NOT_FOUND"
        assert _total_transactions(client, setup["token"]) == 0


class TestIdempotency:

    def test_replay_returns_the_same_split(self, client, setup):
        args = (client, setup["token"], setup["account_id"], "90.00",
                [setup["bob_id"], setup["carol_id"]])

        first = make_split(*args, idempotencyKey="dinner-42")
        assert first.status_code == 201
        assert first.get_json()["warnings"] == []

        second = make_split(*args, idempotencyKey="dinner-42")
        assert second.status_code == 200
        assert second.get_json()["warnings"][0]["code"] == "IDEMPOTENT_REPLAY"
        assert (second.get_json()["data"]["parentTransaction"]["id"]
                == first.get_json()["data"]["parentTransaction"]["id"])

        # one parent + two children
        assert _total_transactions(client, setup["token"]) == 3

    def test_key_is_released_when_split_is_removed(self, client, setup):
        args = (client, setup["token"], setup["account_id"], "90.00",
                [setup["bob_id"], setup["carol_id"]])
        first_id = make_split(*args, idempotencyKey="cab-7").get_json()["data"]["parentTransaction"]["id"]
        resp = client.delete(f"/api/v1/splits/{first_id}", headers=auth_headers(setup["token"]))
        assert resp.status_code == 200

        again = make_split(*args, idempotencyKey="cab-7")
        assert again.status_code == 201
        assert again.get_json()["warnings"] == []
        assert again.get_json()["data"]["parentTransaction"]["id"] != first_id
        assert again.get_json()["data"]["parentTransaction"]["splitType"] == "equal"


# ═══════════════════════════════════════════════════════════════════════════
# POST /transactions/:id/split
# ═══════════════════════════════════════════════════════════════════════════

class TestSplitExisting:

    def test_split_plain_transaction(self, client, setup):
        txn = make_transaction(client, setup["token"], setup["account_id"], "30.00").get_json()["data"]
        resp = client.post(
            f"/api/v1/transactions/{txn['id']}/split",
            json={"splitType": "equal", "personIds": [setup["bob_id"], setup["carol_id"]]},
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 201
        split = resp.get_json()["data"]
        assert split["parentTransaction"]["id"] == txn["id"]
        assert [s["amount"] for s in split["splitBreakdown"]] == ["15.00", "15.00"]

    def test_second_split_is_409(self, client, setup):
        txn = make_transaction(client, setup["token"], setup["account_id"], "30.00").get_json()["data"]
        url = f"/api/v1/transactions/{txn['id']}/split"
        body = {"splitType": "equal", "personIds": [setup["bob_id"]]}
        assert client.post(url, json=body, headers=auth_headers(setup["token"])).status_code == 201

        resp = client.post(url, json=body, headers=auth_headers(setup["token"]))
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "TRANSACTION_ALREADY_SPLIT"

    def test_transfer_is_not_splittable(self, client, setup):
        txn = make_transaction(
            client, setup["token"], setup["account_id"], "30.00", txn_type="transfer",
        ).get_json()["data"]
        resp = client.post(
            f"/api/v1/transactions/{txn['id']}/split",
            json={"splitType": "equal", "personIds": [setup["bob_id"]]},
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "TRANSFER_NOT_SPLITTABLE"

    def test_child_is_not_splittable(self, client, setup):
        split = make_split(
            client, setup["token"], setup["account_id"], "30.00", [setup["bob_id"], setup["carol_id"]],
        ).get_json()["data"]
        child_id = split["childTransactions"][0]["id"]
        resp = client.post(
            f"/api/v1/transactions/{child_id}/split",
            json={"splitType": "equal", "personIds": [setup["bob_id"]]},
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "SPLIT_CHILD_NOT_SPLITTABLE"


# ═══════════════════════════════════════════════════════════════════════════
# Reading, re-allocating and removing a split
# ═══════════════════════════════════════════════════════════════════════════

class TestSplitLifecycle:

    def _split(self, client, setup, amount="100.00"):
        return make_split(
            client, setup["token"], setup["account_id"], amount,
            [setup["self_id"], setup["bob_id"]],
        ).get_json()["data"]

    def test_get_split_of_plain_transaction_is_404(self, client, setup):
        txn = make_transaction(client, setup["token"], setup["account_id"], "30.00").get_json()["data"]
        resp = client.get(f"/api/v1/splits/{txn['id']}", headers=auth_headers(setup["token"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "SPLIT_NOT_FOUND"

    def test_reallocate_with_new_amount(self, client, setup):
        parent_id = self._split(client, setup)["parentTransaction"]["id"]
        resp = client.put(
            f"/api/v1/splits/{parent_id}",
            json={
                "splitType": "custom",
                "amount": "120.00",
                "personIds": [setup["bob_id"], setup["carol_id"]],
                "customAmounts": ["70.00", "50.00"],
            },
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 200
        split = resp.get_json()["data"]
        assert split["parentTransaction"]["amount"] == "120.00"
        assert split["parentTransaction"]["splitType"] == "custom"
        assert [s["personId"] for s in split["splitBreakdown"]] == [setup["bob_id"], setup["carol_id"]]
        _assert_reconciles(split)

    def test_failed_reallocation_keeps_old_split(self, client, setup):
        parent_id = self._split(client, setup)["parentTransaction"]["id"]
        resp = client.put(
            f"/api/v1/splits/{parent_id}",
            json={"splitType": "custom", "personIds": [setup["bob_id"]], "customAmounts": ["10.00"]},
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 400
        current = client.get(
            f"/api/v1/splits/{parent_id}", headers=auth_headers(setup["token"]),
        ).get_json()["data"]
        assert [s["amount"] for s in current["splitBreakdown"]] == ["50.00", "50.00"]

    def test_parent_amount_is_locked(self, client, setup):
        parent_id = self._split(client, setup)["parentTransaction"]["id"]
        resp = client.put(
            f"/api/v1/transactions/{parent_id}",
            json={"amount": "150.00"},
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "SPLIT_AMOUNT_LOCKED"

    def test_parent_edit_reaches_children(self, client, setup):
        parent_id = self._split(client, setup)["parentTransaction"]["id"]
        resp = client.put(
            f"/api/v1/transactions/{parent_id}",
            json={"description": "Team lunch"},
            headers=auth_headers(setup["token"]),
        )
        assert resp.status_code == 200
        split = client.get(
            f"/api/v1/splits/{parent_id}", headers=auth_headers(setup["token"]),
        ).get_json()["data"]
        assert {c["description"] for c in split["childTransactions"]} == {"Team lunch"}

    def test_children_are_read_only(self, client, setup):
        child_id = self._split(client, setup)["childTransactions"][0]["id"]
        headers = auth_headers(setup["token"])
        edit = client.put(f"/api/v1/transactions/{child_id}", json={"notes": "x"}, headers=headers)
        assert edit.status_code == 400
        assert edit.get_json()["error"]["code"] == "SPLIT_CHILD_READ_ONLY"
        delete = client.delete(f"/api/v1/transactions/{child_id}", headers=headers)
        assert delete.get_json()["error"]["code"] == "SPLIT_CHILD_READ_ONLY"

    def test_delete_parent_takes_children(self, client, setup):
        split = self._split(client, setup)
        parent_id = split["parentTransaction"]["id"]
        headers = auth_headers(setup["token"])

        assert client.delete(f"/api/v1/transactions/{parent_id}", headers=headers).status_code == 200
        assert client.get("/api/v1/transactions", headers=headers).get_json()["total"] == 0
        for child in split["childTransactions"]:
            row = client.get(f"/api/v1/transactions/{child['id']}", headers=headers).get_json()["data"]
            assert row["deletedAt"] is not None

        assert client.post(f"/api/v1/transactions/{parent_id}/restore", headers=headers).status_code == 200
        assert client.get("/api/v1/transactions", headers=headers).get_json()["total"] == 3

    def test_remove_split_keeps_parent(self, client, setup):
        parent_id = self._split(client, setup)["parentTransaction"]["id"]
        headers = auth_headers(setup["token"])
        resp = client.delete(f"/api/v1/splits/{parent_id}", headers=headers)
        assert resp.status_code == 200
        txn = resp.get_json()["data"]
        assert txn["splitType"] == "none"
        assert txn["amount"] == "100.00"
        assert client.get("/api/v1/transactions", headers=headers).get_json()["total"] == 1
        assert client.get(f"/api/v1/splits/{parent_id}", headers=headers).status_code == 404
