"""
routes/groups.py — Group route handlers.

Group responses are built as dicts by group_service (members resolved to
personId + personName); transactions reuse serialize_transaction.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups                              → 201
  GET    /groups?includeInactive=true         → 200
  GET    /groups/:id                          → 200
  PUT    /groups/:id                          → 200  partial update
  DELETE /groups/:id                          → 200  deactivate
  POST   /groups/:id/members                  → 201  {personId}
  DELETE /groups/:id/members/:personId        → 200
  GET    /groups/:id/transactions             → 200
  GET    /groups/:id/summary                  → 200  totals, per-person, budget
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.routes.serializers import serialize_transaction
from splitbook.app.schemas.group_schema import (
    AddMemberSchema,
    CreateGroupSchema,
    GroupSchema,
    GroupsQuerySchema,
)
from splitbook.app.services import group_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("", methods=["POST"])
@require_auth
def create_group():
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("", methods=["GET"])
@require_auth
def list_groups():
    args = GroupsQuerySchema().load(request.args)
    result = group_service.list_groups(
        g.user_id, db.session, include_inactive=args["include_inactive"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    result = group_service.get_group(group_id, g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["PUT"])
@require_auth
def update_group(group_id: int):
    data = GroupSchema().load(request.get_json(force=True) or {}, partial=True)
    result = group_service.update_group(group_id, g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
@require_auth
def deactivate_group(group_id: int):
    result = group_service.deactivate_group(group_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    result = group_service.add_member(group_id, data["person_id"], g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members/<int:person_id>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, person_id: int):
    result = group_service.remove_member(group_id, person_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/transactions", methods=["GET"])
@require_auth
def list_group_transactions(group_id: int):
    rows = group_service.list_group_transactions(group_id, g.user_id, db.session)
    return jsonify({"data": [serialize_transaction(t) for t in rows], "warnings": []}), 200


@groups_bp.route("/<int:group_id>/summary", methods=["GET"])
@require_auth
def get_group_summary(group_id: int):
    """
    GET /groups/:id/summary — totalSpent, transactionCount, perPersonShare
    and, when the group has a budget, budgetVsActual.
    """
    result = group_service.get_group_summary(group_id, g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200
