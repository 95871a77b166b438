"""Application settings loaded from environment variables."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Built once at startup and passed explicitly to the components that need
    it. A missing ``jwt_secret_key`` is tolerated here; protected routes fail
    closed with a configuration error instead.
    """
    environment: str = "development"
    jwt_secret_key: str | None = None
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 3600
    bcrypt_rounds: int = 12
    default_user_credits: int = 1000
    mongo_url: str | None = None
    database_name: str = "identity"
    mongo_timeout_ms: int = 5000
    api_prefix: str = ""
    cors_origins: str = "*"
    log_level: str = "INFO"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Settings":
        """Load settings from the process environment (and a .env file if present)."""
        load_dotenv(env_file)
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY") or None,
            token_ttl_seconds=_int_env("JWT_EXPIRATION_SECONDS", 3600),
            bcrypt_rounds=_int_env("BCRYPT_ROUNDS", 12),
            default_user_credits=_int_env("DEFAULT_USER_CREDITS", 1000),
            mongo_url=os.getenv("MONGO_URL") or None,
            database_name=os.getenv("MONGODB_DATABASE", "identity"),
            mongo_timeout_ms=_int_env("MONGO_TIMEOUT_MS", 5000),
            api_prefix=os.getenv("API_PREFIX", "").rstrip("/"),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=_int_env("PORT", 8000),
        )
