"""
routes/accounts.py — Account route handlers.

Endpoints (url_prefix=/api/v1/accounts):
  POST   /accounts       → 201
  GET    /accounts       → 200
  GET    /accounts/:id   → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.routes.serializers import serialize_account
from splitbook.app.schemas.account_schema import CreateAccountSchema
from splitbook.app.services import account_service

accounts_bp = Blueprint("accounts", __name__)


@accounts_bp.route("", methods=["POST"])
@require_auth
def create_account():
    data = CreateAccountSchema().load(request.get_json(force=True) or {})
    account = account_service.create_account(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_account(account), "warnings": []}), 201


@accounts_bp.route("", methods=["GET"])
@require_auth
def list_accounts():
    accounts = account_service.list_accounts(g.user_id, db.session)
    return jsonify({"data": [serialize_account(a) for a in accounts], "warnings": []}), 200


@accounts_bp.route("/<int:account_id>", methods=["GET"])
@require_auth
def get_account(account_id: int):
    account = account_service.get_account(account_id, g.user_id, db.session)
    return jsonify({"data": serialize_account(account), "warnings": []}), 200
