from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth.jwt import InvalidTokenError, decode_access_token
from app.core.config import settings
from app.db import get_db
from app.models import User
from app.models.user import UserRole

DBSession = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "UNAUTHORIZED", "reason": "INVALID_CREDENTIALS", "message": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.removeprefix("Bearer ").strip() or None


def _dev_user(db: Session, token: str) -> User:
    prefix = settings.dev_auth_prefix
    if not token.startswith(prefix):
        raise _unauthorized(f"invalid dev token (expected prefix {prefix})")

    email = token.removeprefix(prefix).strip().lower()
    if "@" not in email:
        raise _unauthorized("invalid email in token")

    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(email=email, name=None)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def _resolve_user(db: Session, token: str) -> User:
    # Local dev auth only
    if settings.auth_mode == "dev" and settings.env == "local":
        return _dev_user(db, token)

    if settings.auth_mode == "jwt":
        try:
            user_id = decode_access_token(token).user_id
        except InvalidTokenError:
            raise _unauthorized("invalid access token") from None
        user = db.get(User, user_id)
        if not user:
            raise _unauthorized("user not found")
        return user

    raise _unauthorized("auth not configured")


def get_current_user(request: Request, db: DBSession) -> User:
    token = _bearer_token(request)
    if token is None:
        raise _unauthorized("missing bearer token")
    return _resolve_user(db, token)


def get_optional_user(request: Request, db: DBSession) -> User | None:
    token = _bearer_token(request)
    if token is None:
        return None
    return _resolve_user(db, token)


def require_role(*roles: UserRole):
    def _dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail={"code": "FORBIDDEN", "reason": "INSUFFICIENT_ROLE", "message": "insufficient role"},
            )
        return user

    return _dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
