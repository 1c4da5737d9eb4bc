"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which allows:
           - Multiple isolated test app instances
           - `alembic` to load metadata without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging (LOG_LEVEL) for the app and service loggers
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers:
       AppError → JSON, ValidationError → 400, SQLAlchemyError → 503/409,
       Exception → 500
  6. Register a custom JSON provider to serialise Decimal as string
     (monetary amounts are transmitted as strings, never JS numbers)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here; the import side-effect is sufficient.
"""

from __future__ import annotations

import logging.config
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from splitbook.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Serialises Decimal as str so jsonify() produces string amounts.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from splitbook.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from splitbook.app.models import (  # noqa: F401
            account,
            group,
            group_member,
            person,
            settlement,
            split_share,
            transaction,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    One stderr handler shared by the Flask app logger and the service
    loggers (logging.getLogger(__name__) under splitbook.*).
    """
    level = app.config["LOG_LEVEL"].upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "splitbook": {"level": level, "handlers": ["stderr"], "propagate": False},
        },
    })
    app.logger.setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "" and "/<int:id>").
    """
    from splitbook.app.routes.accounts import accounts_bp
    from splitbook.app.routes.auth import auth_bp
    from splitbook.app.routes.groups import groups_bp
    from splitbook.app.routes.people import people_bp
    from splitbook.app.routes.settlements import settlements_bp
    from splitbook.app.routes.splits import splits_bp
    from splitbook.app.routes.transactions import transactions_bp

    app.register_blueprint(auth_bp,         url_prefix="/api/v1/auth")
    app.register_blueprint(accounts_bp,     url_prefix="/api/v1/accounts")
    app.register_blueprint(people_bp,       url_prefix="/api/v1/people")
    app.register_blueprint(transactions_bp, url_prefix="/api/v1/transactions")
    # splits_bp owns /splits/<id> AND /transactions/<id>/split.
    app.register_blueprint(splits_bp,       url_prefix="/api/v1")
    app.register_blueprint(settlements_bp,  url_prefix="/api/v1/settlements")
    app.register_blueprint(groups_bp,       url_prefix="/api/v1/groups")


def _first_error(messages) -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages down to the first (field, message).

        {"percentages": {1: ["Not a valid number."]}} → ("percentages", "Not a valid number.")
    """
    field = None
    while isinstance(messages, dict) and messages:
        key, messages = next(iter(messages.items()))
        if field is None and isinstance(key, str) and key != "_schema":
            field = key
    if isinstance(messages, list):
        messages = messages[0] if messages else "Invalid value."
        if isinstance(messages, (dict, list)):
            return field, _first_error(messages)[1]
    return field, str(messages)


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with its HTTP status
      ValidationError → first schema error as MISSING_FIELD / INVALID_FIELD /
                        the registered code the schema raised (400)
      IntegrityError  → CONFLICT (409) after rollback
      SQLAlchemyError → PERSISTENCE_ERROR (503) after rollback
      Exception       → INTERNAL_ERROR (500); traceback to the app logger

    Stack traces never leave the server.
    """
    from splitbook.app.errors import AppError, ErrorCode, PersistenceError
    from splitbook.app.extensions import db

    known_codes = set(vars(ErrorCode).values())

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        # Nothing half-written may be committed by a later request.
        db.session.rollback()
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST error only, keyed by the request field name.
        """
        field, raw_message = _first_error(error.messages)

        if raw_message in known_codes:
            code, message = raw_message, _code_to_message(raw_message)
        elif raw_message.startswith("Missing data for required field"):
            code, message = ErrorCode.MISSING_FIELD, raw_message
        else:
            code, message = ErrorCode.INVALID_FIELD, raw_message

        response_body = {"error": {"code": code, "message": message}}
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error: IntegrityError):
        """A constraint the services did not pre-check lost a race."""
        db.session.rollback()
        app.logger.warning("Integrity error: %s", error.orig)
        return jsonify({
            "error": {
                "code": ErrorCode.CONFLICT,
                "message": "The request conflicts with a concurrent change. Please retry.",
            }
        }), 409

    @app.errorhandler(SQLAlchemyError)
    def handle_persistence_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.error("Storage failure: %s\n%s", error, traceback.format_exc())
        persistence_error = PersistenceError()
        return jsonify(persistence_error.to_dict()), persistence_error.http_status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        HTTP errors raised by Flask itself (404 on an unknown URL, 405) keep
        their status.
        """
        from werkzeug.exceptions import HTTPException

        if isinstance(error, HTTPException):
            # e.g. "Method Not Allowed" → METHOD_NOT_ALLOWED
            return jsonify({
                "error": {
                    "code": error.name.upper().replace(" ", "_"),
                    "message": error.description,
                }
            }), error.code

        db.session.rollback()
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Human-readable default message for a code raised as a ValidationError
    message by a schema.
    """
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
        "INVALID_CURRENCY": "currency must be a 3-letter ISO 4217 code.",
        "INVALID_SPLIT_TYPE": "splitType must be 'equal', 'percentage' or 'custom'.",
        "DUPLICATE_SPLIT_PERSON": "The same person appears more than once in personIds.",
        "EMPTY_PARTICIPANTS": "A split needs at least one participant.",
        "INVALID_DATE_RANGE": "The start date must not be after the end date.",
        "NEGATIVE_AMOUNT": "Amount must not be negative.",
    }
    return _messages.get(code, "Invalid input.")
