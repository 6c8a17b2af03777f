"""JWT access tokens.

A token identifies both the auth identity (``sub``) and the player profile
(``pid``), so HTTP routes and the WebSocket endpoint resolve the caller
without a lookup. HS* algorithms sign with ``jwt_secret``; RS*/ES*
algorithms read PEM key files named in settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path

import jwt

from wordduel.config import get_settings

ACCESS = "access"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    profile_id: int
    expires_at: datetime


@lru_cache
def _keys() -> tuple[str, str]:
    """(signing key, verification key)."""
    settings = get_settings()
    if settings.jwt_algorithm.startswith("HS"):
        return settings.jwt_secret, settings.jwt_secret
    return (
        Path(settings.jwt_private_key_path).read_text(),
        Path(settings.jwt_public_key_path).read_text(),
    )


def reset_keys() -> None:
    """Forget cached keys after settings change."""
    _keys.cache_clear()


def create_access_token(user_id: int, profile_id: int, now: datetime | None = None) -> str:
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "pid": profile_id,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": ACCESS,
    }
    return jwt.encode(payload, _keys()[0], algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """
    Verify an access token and return its claims.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, expired, signed
            with another key, or not an access token.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            _keys()[1],
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "pid", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != ACCESS:
        msg = f"Expected an access token, got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    try:
        return TokenClaims(
            user_id=int(payload["sub"]),
            profile_id=int(payload["pid"]),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (TypeError, ValueError) as e:
        msg = "Malformed token claims"
        raise jwt.InvalidTokenError(msg) from e
