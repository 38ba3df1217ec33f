# tasktracker/auth.py
"""Password hashing, token issuance, and the current-user dependency."""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from sqlmodel import Session

from tasktracker.config import Settings
from tasktracker.database import get_session
from tasktracker.errors import AuthorizationError
from tasktracker.models import User

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
SALT_BYTES = 16
TOKEN_HEADER = "x-auth-token"


def hash_password(password: str) -> str:
    """Return ``salt:hash`` using PBKDF2-HMAC-SHA512 with a random salt."""
    salt = secrets.token_hex(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha512", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"{salt}:{digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, sep, expected = stored.partition(":")
    if not sep:
        return False
    digest = hashlib.pbkdf2_hmac("sha512", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest.hex(), expected)


def issue_token(user_id: int, settings: Settings, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "user": {"id": user_id},
        "iat": now,
        "exp": now + timedelta(minutes=settings.token_ttl_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> int:
    """Return the user id carried by ``token``.

    Raises:
        AuthorizationError: If the token is malformed, expired, or signed
            with another secret.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return int(payload["user"]["id"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
        logger.info("Rejected token: %s", e)
        raise AuthorizationError("Token is not valid") from None


def _token_from_request(request: Request) -> Optional[str]:
    token = request.headers.get(TOKEN_HEADER)
    if token:
        return token.strip()
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the authenticated user from the request's token."""
    token = _token_from_request(request)
    if not token:
        raise AuthorizationError("No token, authorization denied")
    user = session.get(User, decode_token(token, settings))
    if user is None:
        raise AuthorizationError("Token is not valid")
    return user
