"""Password hashing (bcrypt) and signed bearer tokens (JWT)."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Literal

import bcrypt
import jwt

from payrun.config import settings
from payrun.domain.clock import utcnow
from payrun.domain.exceptions import AuthError

logger = logging.getLogger(__name__)

TokenKind = Literal["access", "refresh"]

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(raw, password_hash.encode("ascii"))
    except ValueError:
        logger.error("Stored password hash is malformed")
        return False


def _secret(kind: TokenKind) -> str:
    secret = settings.JWT_SECRET if kind == "access" else settings.REFRESH_TOKEN_SECRET
    return secret.get_secret_value()


def _ttl(kind: TokenKind) -> timedelta:
    if kind == "access":
        return timedelta(minutes=settings.ACCESS_TOKEN_TTL_MINUTES)
    return timedelta(days=settings.REFRESH_TOKEN_TTL_DAYS)


def issue_token(
    user_id: int | str,
    email: str | None,
    role: str,
    kind: TokenKind = "access",
    issued_at: datetime | None = None,
) -> str:
    """Sign a token for *user_id*. ``sub`` is always a string."""
    issued = issued_at or utcnow()
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": kind,
        "iat": issued,
        "exp": issued + _ttl(kind),
    }
    return jwt.encode(claims, _secret(kind), algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, kind: TokenKind = "access") -> dict[str, Any]:
    """Verify signature, expiry and token type; raise ``AuthError`` otherwise."""
    try:
        claims = jwt.decode(
            token,
            _secret(kind),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired, please login again") from None
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token, please login again") from None
    if claims.get("type") != kind or not claims.get("role"):
        raise AuthError("Invalid token, please login again")
    return claims
