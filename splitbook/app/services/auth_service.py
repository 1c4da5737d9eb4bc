"""
services/auth_service.py — Registration, login and access tokens.

Responsibilities:
  - User registration, including the owner's self person
  - Credential validation (bcrypt)
  - JWT access token creation (HS256, sub = user id)

Token lifecycle (refresh, rotation, revocation) is out of scope: a client
whose token expires logs in again.

Layer rules:
  - No imports from routes or schemas.
  - current_app.config is read for the JWT secret, TTL and bcrypt cost only.
    This service is integration-tested inside an app context.
  - Only flush; the route commits.

Password storage: bcrypt, cost BCRYPT_LOG_ROUNDS. The raw password is never
stored and never logged.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.person import Person, PersonType
from splitbook.app.models.user import User
from splitbook.app.services.ownership import get_self_person, get_user

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _create_access_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        # Two tokens issued in the same second still differ.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _token_payload(user_id: int) -> dict:
    return {
        "accessToken": _create_access_token(user_id),
        "tokenType": "Bearer",
        "expiresIn": int(current_app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds()),
    }


def _build_user_dict(user: User, self_person: Person) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "defaultCurrency": user.default_currency,
        "selfPersonId": self_person.id,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        username: str,
        email: str,
        password: str,
        session: Session,
        default_currency: str = "INR",
) -> dict:
    """
    Creates the user and the user's self person, then issues an access token.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)
      AppError(DUPLICATE_USERNAME, 409)

    Returns: {"user": {...}, "accessToken": "...", "tokenType": "Bearer", "expiresIn": int}
    """
    if session.execute(select(User.id).where(User.email == email)).first() is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    if session.execute(select(User.id).where(User.username == username)).first() is not None:
        raise AppError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            409,
            field="username",
        )

    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    password_hash = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")

    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        default_currency=default_currency.upper(),
    )
    session.add(user)
    session.flush()  # user.id is needed for the self person

    self_person = Person(
        user_id=user.id,
        name=username,
        person_type=PersonType.OTHER,
        is_self=True,
        category_limits=[],
    )
    session.add(self_person)
    session.flush()

    # Populates server defaults (created_at) for the response.
    session.refresh(user)

    logger.info("Registered user %s (self person %s)", user.id, self_person.id)

    return {
        "user": _build_user_dict(user, self_person),
        **_token_payload(user.id),
    }


def login_user(
        username: str,
        password: str,
        session: Session,
) -> dict:
    """
    Raises AppError(INVALID_CREDENTIALS, 401) for an unknown username or a
    wrong password alike, so usernames cannot be enumerated.
    """
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )

    return {
        "user": _build_user_dict(user, get_self_person(user.id, session)),
        **_token_payload(user.id),
    }


def get_current_user(user_id: int, session: Session) -> dict:
    """Profile of the authenticated user. USER_NOT_FOUND (404) if the user is gone."""
    user = get_user(user_id, session)
    return _build_user_dict(user, get_self_person(user_id, session))
