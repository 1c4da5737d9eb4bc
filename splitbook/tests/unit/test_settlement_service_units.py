"""
Unit tests for settlement_service with a MagicMock session.

The compare-and-swap itself needs a database; here the UPDATE's rowcount is
faked to prove what the service does with a lost race.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.settlement import SettlementMethod, SettlementStatus
from splitbook.app.services import settlement_service


def _settlement(status: SettlementStatus, user_id: int = 1) -> MagicMock:
    settlement = MagicMock()
    settlement.id = 5
    settlement.user_id = user_id
    settlement.status = status
    settlement.transaction = None
    return settlement


def _session_returning(settlement, rowcount: int) -> MagicMock:
    session = MagicMock()
    session.get.return_value = settlement
    session.execute.return_value.rowcount = rowcount
    return session


def _create_data(**overrides) -> dict:
    data = {
        "from_person_id": 2,
        "to_person_id": 3,
        "amount": Decimal("50.00"),
        "currency": "INR",
        "method": SettlementMethod.CASH,
        "notes": None,
        "create_transaction": False,
        "account_id": None,
        "account_type": None,
    }
    data.update(overrides)
    return data


def test_self_settlement_rejected_before_any_lookup():
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        settlement_service.create_settlement(
            user_id=1,
            data=_create_data(to_person_id=2),
            session=session,
        )

    err = exc_info.value
    assert err.code == ErrorCode.SELF_SETTLEMENT
    assert err.http_status == 400
    session.get.assert_not_called()
    session.add.assert_not_called()


def test_create_transaction_without_account_writes_nothing(monkeypatch):
    person = MagicMock()
    person.user_id = 1
    session = MagicMock()
    session.get.return_value = person
    monkeypatch.setattr(
        settlement_service.balance_service, "pair_balance",
        lambda *args, **kwargs: Decimal("50.00"),
    )

    with pytest.raises(AppError) as exc_info:
        settlement_service.create_settlement(
            user_id=1,
            data=_create_data(create_transaction=True),
            session=session,
        )

    assert exc_info.value.code == ErrorCode.ACCOUNT_REQUIRED
    session.add.assert_not_called()
    session.flush.assert_not_called()


def test_create_settlement_unknown_person_is_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        settlement_service.create_settlement(user_id=1, data=_create_data(), session=session)

    err = exc_info.value
    assert err.code == ErrorCode.PERSON_NOT_FOUND
    assert err.http_status == 404
    assert err.field == "fromPersonId"


def test_get_settlement_of_another_owner_is_not_found():
    session = _session_returning(_settlement(SettlementStatus.PENDING, user_id=2), rowcount=0)

    with pytest.raises(AppError) as exc_info:
        settlement_service.get_settlement(5, user_id=1, session=session)

    assert exc_info.value.code == ErrorCode.SETTLEMENT_NOT_FOUND


def test_settle_pending_settlement():
    settlement = _settlement(SettlementStatus.PENDING)
    session = _session_returning(settlement, rowcount=1)

    result = settlement_service.settle_settlement(5, user_id=1, data={}, session=session)

    assert result is settlement
    session.execute.assert_called_once()
    session.refresh.assert_called_once_with(settlement)


def test_settle_lost_race_is_conflict():
    """The UPDATE matched nothing: someone else settled or cancelled first."""
    settlement = _settlement(SettlementStatus.SETTLED)
    session = _session_returning(settlement, rowcount=0)

    with pytest.raises(AppError) as exc_info:
        settlement_service.settle_settlement(5, user_id=1, data={}, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.SETTLEMENT_NOT_PENDING
    assert err.http_status == 409
    assert err.details == {"status": "settled"}


def test_cancel_soft_deletes_linked_cash_flow():
    settlement = _settlement(SettlementStatus.PENDING)
    settlement.transaction = MagicMock(deleted_at=None)
    session = _session_returning(settlement, rowcount=1)

    settlement_service.cancel_settlement(5, user_id=1, session=session)

    assert settlement.transaction.deleted_at is not None
    session.flush.assert_called_once()


def test_cancel_settled_is_conflict():
    settlement = _settlement(SettlementStatus.SETTLED)
    session = _session_returning(settlement, rowcount=0)

    with pytest.raises(AppError) as exc_info:
        settlement_service.cancel_settlement(5, user_id=1, session=session)

    assert exc_info.value.code == ErrorCode.SETTLEMENT_NOT_PENDING
    session.flush.assert_not_called()
