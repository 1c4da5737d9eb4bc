"""
routes/splits.py — Split route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/splits) because this blueprint
owns both /splits/:id and /transactions/:id/split.

Every response carries the full split view:
    {"parentTransaction", "childTransactions", "splitBreakdown"}

Endpoints:
  POST   /splits                     → 201  create transaction + split
                                       200  same idempotencyKey replayed
  POST   /transactions/:id/split     → 201  split an existing transaction
  GET    /splits/:id                 → 200
  PUT    /splits/:id                 → 200  re-allocate
  DELETE /splits/:id                 → 200  un-split; parent kept
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.errors import WarningCode
from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.routes.serializers import serialize_split, serialize_transaction
from splitbook.app.schemas.split_schema import (
    CreateSplitSchema,
    SplitPolicySchema,
    UpdateSplitSchema,
)
from splitbook.app.services import split_service

splits_bp = Blueprint("splits", __name__)


@splits_bp.route("/splits", methods=["POST"])
@require_auth
def create_split():
    data = CreateSplitSchema().load(request.get_json(force=True) or {})
    parent, replayed = split_service.create_split(g.user_id, data, db.session)
    db.session.commit()

    if replayed:
        warnings = [{
            "code": WarningCode.IDEMPOTENT_REPLAY,
            "message": "A split with this idempotencyKey already exists; returning it.",
        }]
        return jsonify({"data": serialize_split(parent), "warnings": warnings}), 200
    return jsonify({"data": serialize_split(parent), "warnings": []}), 201


@splits_bp.route("/transactions/<int:transaction_id>/split", methods=["POST"])
@require_auth
def split_existing(transaction_id: int):
    data = SplitPolicySchema().load(request.get_json(force=True) or {})
    parent = split_service.split_existing(transaction_id, g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_split(parent), "warnings": []}), 201


@splits_bp.route("/splits/<int:transaction_id>", methods=["GET"])
@require_auth
def get_split(transaction_id: int):
    parent = split_service.get_split(transaction_id, g.user_id, db.session)
    return jsonify({"data": serialize_split(parent), "warnings": []}), 200


@splits_bp.route("/splits/<int:transaction_id>", methods=["PUT"])
@require_auth
def update_split(transaction_id: int):
    data = UpdateSplitSchema().load(request.get_json(force=True) or {})
    parent = split_service.update_split(transaction_id, g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_split(parent), "warnings": []}), 200


@splits_bp.route("/splits/<int:transaction_id>", methods=["DELETE"])
@require_auth
def remove_split(transaction_id: int):
    """DELETE /splits/:id — Returns the parent, now a plain transaction."""
    txn = split_service.remove_split(transaction_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": serialize_transaction(txn), "warnings": []}), 200
