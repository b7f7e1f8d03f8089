"""
Bearer token authentication for WebSocket connections.

Tokens are HS256 JWTs issued by the lobby's login endpoint. The claim
`userId` carries the numeric user ID; `nickname` is optional. A connection
presents its token either as the `token` query parameter or as an
`Authorization: Bearer <token>` header.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from config import config
from errors import AuthFailure, INVALID_TOKEN


@dataclass
class AuthenticatedUser:
    """Identity extracted from a verified token."""

    user_id: int
    nickname: Optional[str] = None


def extract_token(raw: Optional[str]) -> Optional[str]:
    """Strip an optional "Bearer " prefix from a credential."""
    if not raw:
        return None
    parts = raw.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if len(parts) == 1:
        return parts[0]
    return None


def create_access_token(
    user_id: int,
    nickname: Optional[str] = None,
    secret: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Issue a signed token for a user.

    Args:
        user_id: Numeric user ID.
        nickname: Optional display name to embed.
        secret: Signing secret (defaults to config.JWT_SECRET).
        expires_minutes: Lifetime (defaults to config.JWT_EXPIRE_MINUTES).

    Returns:
        Encoded JWT.
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else config.JWT_EXPIRE_MINUTES
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    if nickname:
        payload["nickname"] = nickname
    return jwt.encode(payload, secret or config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_token(raw: Optional[str], secret: Optional[str] = None) -> AuthenticatedUser:
    """
    Verify a bearer credential and extract the user identity.

    Raises:
        AuthFailure: If the token is missing, expired, badly signed, or
            carries no numeric userId.
    """
    token = extract_token(raw)
    if not token:
        raise AuthFailure(INVALID_TOKEN, "No token provided")

    try:
        claims = jwt.decode(token, secret or config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthFailure(INVALID_TOKEN, "Token has expired")
    except jwt.InvalidTokenError:
        raise AuthFailure(INVALID_TOKEN, "Invalid token")

    user_id = claims.get("userId")
    if isinstance(user_id, bool):
        raise AuthFailure(INVALID_TOKEN, "Invalid userId")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise AuthFailure(INVALID_TOKEN, "Invalid userId")

    nickname = claims.get("nickname")
    return AuthenticatedUser(user_id=user_id, nickname=nickname if isinstance(nickname, str) else None)
