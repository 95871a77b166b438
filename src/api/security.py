"""Bearer-token authentication dependency for protected routes."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_request_logger, get_settings
from domain.model.errors import AuthenticationError, ConfigurationError
from domain.model.token import TokenClaims
from services.token_service import decode_access_token
from utils.logging import ContextLogger
from utils.settings import Settings

TOKEN_HINT = "Use Authorization: Bearer <token> or X-API-Key: <token> header"

bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


def extract_token(
    bearer: Optional[HTTPAuthorizationCredentials],
    api_key: Optional[str],
) -> tuple[str | None, str | None]:
    """Pick the presented token and its source. Bearer wins over X-API-Key."""
    if bearer and bearer.credentials:
        return bearer.credentials, "Authorization"
    if api_key:
        return api_key, "X-API-Key"
    return None, None


def require_auth(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    api_key: Optional[str] = Depends(api_key_scheme),
    settings: Settings = Depends(get_settings),
    log: ContextLogger = Depends(get_request_logger),
) -> TokenClaims:
    """Verify the presented token and attach its claims to request.state.user.

    Authenticity is purely cryptographic; no user lookup happens here.

    Raises:
        ConfigurationError: signing secret not configured (500)
        AuthenticationError: no token, or invalid/expired token (401)
    """
    if not settings.jwt_secret_key:
        log.error("JWT secret key not configured")
        raise ConfigurationError("JWT secret key is not configured")

    token, source = extract_token(bearer, api_key)
    if not token:
        log.warning(
            "No token provided in any header",
            extra={
                "hasAuthHeader": "authorization" in request.headers,
                "hasApiKeyHeader": "x-api-key" in request.headers,
            },
        )
        raise AuthenticationError("Access denied. No token provided.", hint=TOKEN_HINT)

    try:
        claims = decode_access_token(token, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    except AuthenticationError:
        log.warning("Token verification failed", extra={"tokenSource": source})
        raise

    request.state.user = claims
    log.debug("User authenticated", extra={"userId": claims.user_id, "tokenSource": source})
    return claims
