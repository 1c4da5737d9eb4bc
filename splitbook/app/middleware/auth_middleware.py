"""
middleware/auth_middleware.py — Bearer-token authentication.

@require_auth verifies the HS256 access token issued by auth_service.py and
puts the owner's id on flask.g.user_id. Nothing else.

Authentication only. Ownership of accounts, people, transactions and
settlements is checked in the services, which receive user_id as a plain
int and never touch flask.g. A foreign id there is a 404, not a 403.

Error codes (all 401):
  TOKEN_MISSING  — no Authorization header
  TOKEN_INVALID  — not "Bearer <token>", bad signature, or bad `sub`
  TOKEN_EXPIRED  — signature fine, `exp` in the past; log in again
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from splitbook.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Route decorator. The wrapped view only runs with a verified g.user_id.

        @people_bp.route("/", methods=["GET"])
        @require_auth
        def list_people():
            ... g.user_id ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.user_id = _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    scheme, _, token = auth_header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )
    return token


def _authenticate_request() -> int:
    """
    Decodes the bearer token and returns the owner id from its `sub` claim.

    Kept apart from the decorator so tests can call it inside a
    test_request_context without a view function.
    """
    token = _bearer_token()

    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, missing required claim.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
            401,
        )
