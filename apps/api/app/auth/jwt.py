from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from jwt import PyJWTError

from app.core.config import settings

REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud"]


class InvalidTokenError(ValueError):
    pass


@dataclass(frozen=True)
class AccessClaims:
    user_id: uuid.UUID
    role: str
    expires_at: datetime


def create_access_token(user_id: uuid.UUID, role: str, ttl_seconds: int | None = None) -> str:
    issued = datetime.now(timezone.utc)
    ttl = timedelta(seconds=ttl_seconds or settings.access_token_ttl_seconds)
    return jwt.encode(
        {
            "sub": str(user_id),
            "role": role,
            "iat": issued,
            "exp": issued + ttl,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> AccessClaims:
    """Validate signature, issuer, audience and expiry, then unpack the claims.

    The identity provider owns user records; all the API needs from a token
    is who the caller is and which role it was issued for.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": REQUIRED_CLAIMS},
        )
        user_id = uuid.UUID(str(payload["sub"]))
    except (PyJWTError, ValueError) as exc:
        raise InvalidTokenError("invalid access token") from exc

    return AccessClaims(
        user_id=user_id,
        role=str(payload.get("role", "user")),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
