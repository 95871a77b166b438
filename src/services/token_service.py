"""Access token issuance and verification.

Tokens are stateless HS256 JWTs carrying ``userId``, ``iat`` and ``exp``.
Validity depends only on the signature and expiry; no storage is consulted.
"""

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from domain.model.errors import AuthenticationError, ConfigurationError
from domain.model.token import TokenClaims

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def _require_secret(secret: str | None) -> str:
    if not secret:
        raise ConfigurationError("JWT secret key is not configured")
    return secret


def create_access_token(
    user_id: str,
    secret: str | None,
    ttl_seconds: int = 3600,
    algorithm: str = JWT_ALGORITHM,
) -> str:
    """Create a signed access token for user_id, expiring after ttl_seconds."""
    secret = _require_secret(secret)
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret: str | None,
    algorithm: str = JWT_ALGORITHM,
) -> TokenClaims:
    """Verify token and return its claims.

    Raises:
        ConfigurationError: no signing secret configured
        AuthenticationError: bad signature, expired, or malformed claims
    """
    secret = _require_secret(secret)
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        logger.debug(f"JWT verification failed: {e}")
        raise AuthenticationError("Invalid or expired token") from e

    user_id = payload.get("userId")
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")
    if not isinstance(user_id, str) or not user_id or issued_at is None or expires_at is None:
        raise AuthenticationError("Invalid or expired token")

    try:
        return TokenClaims(
            user_id=user_id,
            issued_at=datetime.fromtimestamp(int(issued_at), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(expires_at), tz=timezone.utc),
        )
    except (TypeError, ValueError, OverflowError) as e:
        raise AuthenticationError("Invalid or expired token") from e
