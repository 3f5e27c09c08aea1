"""
core/security.py
----------------
JWT token utilities.

Design decisions:
  - The service does not run a login flow. Callers arrive with a bearer
    token issued by the identity provider; we only validate it and pull
    out the principal (user principal name / email).
  - The principal is probed from PRINCIPAL_CLAIMS in order and lower-cased,
    so access entries can be matched case-insensitively.
  - Tokens are signed with HS256 by default; swap ALGORITHM/SECRET_KEY for
    the identity provider's verification key in production.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from letter_numbering.core.config import settings


def create_access_token(
    principal: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Mint a JWT access token for a principal.

    Used by tooling and tests; production tokens come from the identity
    provider.

    Args:
        principal: User principal name (stored in 'preferred_username').
        expires_delta: Optional custom expiry; defaults to settings value.
        extra_claims: Additional claims merged into the payload.

    Returns:
        Signed JWT string.
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": principal,
        "preferred_username": principal,
        "exp": expire,
        "iat": now,
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.

    Returns:
        Raw payload dict.
    """
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        options={"verify_aud": False},
    )


def principal_from_claims(claims: Dict[str, Any]) -> str:
    """Return the lower-cased principal name, or "" if no claim carries one."""
    for claim in settings.PRINCIPAL_CLAIMS:
        value = claims.get(claim)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return ""
