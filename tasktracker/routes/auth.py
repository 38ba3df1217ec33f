# tasktracker/routes/auth.py
"""Registration and login endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tasktracker.auth import get_settings, hash_password, issue_token, verify_password
from tasktracker.config import Settings
from tasktracker.database import get_session
from tasktracker.errors import AuthorizationError, ValidationError
from tasktracker.models import TokenResponse, User, UserLogin, UserRegister

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/register", status_code=201, response_model=TokenResponse)
def register(
    body: UserRegister,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """Create an account and return a token for it."""
    existing = session.exec(select(User).where(User.email == body.email)).first()
    if existing is not None:
        raise ValidationError("User already exists")

    user = User(username=body.username, email=body.email, password=hash_password(body.password))
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationError("User already exists") from None
    session.refresh(user)
    logger.info("Registered user %s", user.id)
    return TokenResponse(token=issue_token(user.id, settings))


@router.post("/login", response_model=TokenResponse)
def login(
    body: UserLogin,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """Exchange email and password for a token."""
    user = session.exec(select(User).where(User.email == body.email)).first()
    if user is None or not verify_password(body.password, user.password):
        logger.info("Failed login attempt")
        raise AuthorizationError("Invalid credentials")
    return TokenResponse(token=issue_token(user.id, settings))
