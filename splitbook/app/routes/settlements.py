"""
routes/settlements.py — Settlement and pending-balance route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

GET /settlements/pending is the balance read. It runs its queries inside
one snapshot so a split written mid-request cannot be half-counted; the
isolation level comes from BALANCE_SNAPSHOT_ISOLATION (None on SQLite).

Endpoints (url_prefix=/api/v1/settlements):
  GET    /settlements/pending        → 200  computed net balances
  GET    /settlements/pending-list   → 200  recorded settlements still pending
  GET    /settlements/history        → 200  paged; includes "total"
  POST   /settlements                → 201  record; may warn OVERPAYMENT
  GET    /settlements/:id            → 200
  PUT    /settlements/:id/settle     → 200  pending → settled
  DELETE /settlements/:id            → 200  pending → cancelled
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.routes.paging import page_window
from splitbook.app.routes.serializers import serialize_settlement
from splitbook.app.schemas.settlement_schema import (
    CreateSettlementSchema,
    SettleSchema,
    SettlementHistoryQuerySchema,
)
from splitbook.app.services import balance_service, settlement_service

settlements_bp = Blueprint("settlements", __name__)


@settlements_bp.route("/pending", methods=["GET"])
@require_auth
def get_pending_balances():
    """
    GET /settlements/pending — Who owes whom, netted per pair and currency.
    Each entry: {fromPersonId, fromPersonName, toPersonId, toPersonName,
    amount, currency}. Zero balances are omitted.
    """
    balances = balance_service.compute_pending_balances(
        g.user_id,
        db.session,
        isolation_level=current_app.config["BALANCE_SNAPSHOT_ISOLATION"],
    )
    # Read-only; ends the snapshot transaction.
    db.session.commit()
    return jsonify({"data": balances, "warnings": []}), 200


@settlements_bp.route("/pending-list", methods=["GET"])
@require_auth
def list_pending_settlements():
    rows = settlement_service.list_pending(g.user_id, db.session)
    return jsonify({"data": [serialize_settlement(s) for s in rows], "warnings": []}), 200


@settlements_bp.route("/history", methods=["GET"])
@require_auth
def list_history():
    args = SettlementHistoryQuerySchema().load(request.args)
    limit, skip = page_window(args)
    rows, total = settlement_service.list_history(
        g.user_id, db.session, limit=limit, skip=skip, status=args["status"],
    )
    return jsonify({
        "data": [serialize_settlement(s) for s in rows],
        "total": total,
        "warnings": [],
    }), 200


@settlements_bp.route("", methods=["POST"])
@require_auth
def create_settlement():
    """
    POST /settlements — Records a pending settlement.
    Paying more than is owed is allowed and reported as an OVERPAYMENT warning.
    """
    data = CreateSettlementSchema().load(request.get_json(force=True) or {})
    settlement, warnings = settlement_service.create_settlement(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_settlement(settlement), "warnings": warnings}), 201


@settlements_bp.route("/<int:settlement_id>", methods=["GET"])
@require_auth
def get_settlement(settlement_id: int):
    settlement = settlement_service.get_settlement(settlement_id, g.user_id, db.session)
    return jsonify({"data": serialize_settlement(settlement), "warnings": []}), 200


@settlements_bp.route("/<int:settlement_id>/settle", methods=["PUT"])
@require_auth
def settle_settlement(settlement_id: int):
    data = SettleSchema().load(request.get_json(silent=True) or {})
    settlement = settlement_service.settle_settlement(settlement_id, g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_settlement(settlement), "warnings": []}), 200


@settlements_bp.route("/<int:settlement_id>", methods=["DELETE"])
@require_auth
def cancel_settlement(settlement_id: int):
    settlement = settlement_service.cancel_settlement(settlement_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": serialize_settlement(settlement), "warnings": []}), 200
