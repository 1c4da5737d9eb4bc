"""
routes/transactions.py — Ledger route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.
  - Split parents and children are served here as ordinary rows; the split
    view (breakdown + children) lives in routes/splits.py.

Endpoints (url_prefix=/api/v1/transactions):
  POST   /transactions               → 201  create plain transaction
  GET    /transactions               → 200  filtered, paged; includes "total"
  GET    /transactions/:id           → 200
  PUT    /transactions/:id           → 200  partial update
  DELETE /transactions/:id           → 200  soft-delete (children follow)
  POST   /transactions/:id/restore   → 200  undo soft-delete
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.routes.paging import page_window
from splitbook.app.routes.serializers import serialize_transaction
from splitbook.app.schemas.transaction_schema import (
    CreateTransactionSchema,
    TransactionQuerySchema,
    UpdateTransactionSchema,
)
from splitbook.app.services import transaction_service

transactions_bp = Blueprint("transactions", __name__)


@transactions_bp.route("", methods=["POST"])
@require_auth
def create_transaction():
    data = CreateTransactionSchema().load(request.get_json(force=True) or {})
    txn = transaction_service.create_transaction(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_transaction(txn), "warnings": []}), 201


@transactions_bp.route("", methods=["GET"])
@require_auth
def list_transactions():
    """
    GET /transactions — Newest first.
    Query: accountId, type, personId, groupId, status, startDate, endDate,
           includeDeleted, limit, skip.
    """
    filters = TransactionQuerySchema().load(request.args)
    limit, skip = page_window(filters)
    rows, total = transaction_service.list_transactions(
        g.user_id, filters, db.session, limit=limit, skip=skip,
    )
    return jsonify({
        "data": [serialize_transaction(t) for t in rows],
        "total": total,
        "warnings": [],
    }), 200


@transactions_bp.route("/<int:transaction_id>", methods=["GET"])
@require_auth
def get_transaction(transaction_id: int):
    txn = transaction_service.get_transaction(transaction_id, g.user_id, db.session)
    return jsonify({"data": serialize_transaction(txn), "warnings": []}), 200


@transactions_bp.route("/<int:transaction_id>", methods=["PUT"])
@require_auth
def update_transaction(transaction_id: int):
    """
    PUT /transactions/:id — Only the fields sent are changed.
    On a split parent the amount is locked; use PUT /splits/:id.
    """
    data = UpdateTransactionSchema().load(request.get_json(force=True) or {}, partial=True)
    txn = transaction_service.update_transaction(transaction_id, g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_transaction(txn), "warnings": []}), 200


@transactions_bp.route("/<int:transaction_id>", methods=["DELETE"])
@require_auth
def delete_transaction(transaction_id: int):
    txn = transaction_service.delete_transaction(transaction_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": serialize_transaction(txn), "warnings": []}), 200


@transactions_bp.route("/<int:transaction_id>/restore", methods=["POST"])
@require_auth
def restore_transaction(transaction_id: int):
    txn = transaction_service.restore_transaction(transaction_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": serialize_transaction(txn), "warnings": []}), 200
