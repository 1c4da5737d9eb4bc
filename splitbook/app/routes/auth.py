"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse the request body and validate it with a schema
  - Call exactly ONE service function
  - Commit the DB session
  - Return the envelope: {"data": {...}, "warnings": []}

No business logic, no queries. AppError propagates to the global handler in
app/__init__.py; routes never catch it.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.schemas.auth_schema import LoginSchema, RegisterSchema
from splitbook.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create the account and its self person; return a token."""
    data = RegisterSchema().load(request.get_json(force=True) or {})
    result = auth_service.register_user(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        default_currency=data["default_currency"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login_user(
        username=data["username"],
        password=data["password"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    result = auth_service.get_current_user(user_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200
