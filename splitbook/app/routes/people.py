"""
routes/people.py — Person route handlers.

DELETE deactivates; people are never removed because ledger rows reference
them.

Endpoints (url_prefix=/api/v1/people):
  POST   /people                       → 201
  GET    /people?includeInactive=true  → 200
  GET    /people/:id                   → 200
  PUT    /people/:id                   → 200  partial update
  DELETE /people/:id                   → 200  deactivate (self person → 400)
  GET    /people/:id/spending          → 200  ?startDate&endDate&currency
  GET    /people/:id/spending/limits   → 200  ?amount&category&currency
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.routes.serializers import serialize_person
from splitbook.app.schemas.person_schema import (
    LimitCheckQuerySchema,
    PeopleQuerySchema,
    PersonSchema,
    SpendingQuerySchema,
)
from splitbook.app.services import person_service, spending_service

people_bp = Blueprint("people", __name__)


@people_bp.route("", methods=["POST"])
@require_auth
def create_person():
    data = PersonSchema().load(request.get_json(force=True) or {})
    person = person_service.create_person(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_person(person), "warnings": []}), 201


@people_bp.route("", methods=["GET"])
@require_auth
def list_people():
    args = PeopleQuerySchema().load(request.args)
    people = person_service.list_people(
        g.user_id,
        db.session,
        include_inactive=args["include_inactive"],
    )
    return jsonify({"data": [serialize_person(p) for p in people], "warnings": []}), 200


@people_bp.route("/<int:person_id>", methods=["GET"])
@require_auth
def get_person(person_id: int):
    person = person_service.get_person(person_id, g.user_id, db.session)
    return jsonify({"data": serialize_person(person), "warnings": []}), 200


@people_bp.route("/<int:person_id>", methods=["PUT"])
@require_auth
def update_person(person_id: int):
    data = PersonSchema().load(request.get_json(force=True) or {}, partial=True)
    person = person_service.update_person(person_id, g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": serialize_person(person), "warnings": []}), 200


@people_bp.route("/<int:person_id>", methods=["DELETE"])
@require_auth
def delete_person(person_id: int):
    person = person_service.deactivate_person(person_id, g.user_id, db.session)
    db.session.commit()
    return jsonify({"data": serialize_person(person), "warnings": []}), 200


@people_bp.route("/<int:person_id>/spending", methods=["GET"])
@require_auth
def get_spending(person_id: int):
    args = SpendingQuerySchema().load(request.args)
    summary = spending_service.get_spending_summary(
        person_id,
        g.user_id,
        db.session,
        start_date=args["start_date"],
        end_date=args["end_date"],
        currency=args["currency"],
    )
    return jsonify({"data": summary, "warnings": []}), 200


@people_bp.route("/<int:person_id>/spending/limits", methods=["GET"])
@require_auth
def get_limit_status(person_id: int):
    args = LimitCheckQuerySchema().load(request.args)
    status = spending_service.check_limits(
        person_id,
        g.user_id,
        db.session,
        amount=args["amount"],
        category=args["category"],
        currency=args["currency"],
    )
    return jsonify({"data": status, "warnings": []}), 200
