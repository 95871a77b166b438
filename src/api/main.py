"""FastAPI application entry point."""

import logging
import time
import tomllib
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from adapter.mongodb.connection import MongoConnection
from adapter.mongodb.indexes import ensure_all_indexes
from api.error_handlers import register_error_handlers
from api.routes import auth, health
from utils.logging import setup_structured_logging
from utils.settings import Settings

logger = logging.getLogger(__name__)

# main.py is at <root>/src/api/main.py
_project_root = Path(__file__).resolve().parent.parent.parent

SERVICE_NAME = "Identity API"


def _read_version() -> str:
    """Read version from pyproject.toml (single source of truth)."""
    try:
        with open(_project_root / "pyproject.toml", "rb") as f:
            return tomllib.load(f)["project"]["version"]
    except (OSError, KeyError, tomllib.TOMLDecodeError):
        return "0.0.0"


VERSION = _read_version()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: open the MongoDB connection, ensure indexes, close on shutdown."""
    settings: Settings = app.state.settings

    if settings.mongo_url and getattr(app.state, "mongo", None) is None:
        app.state.mongo = MongoConnection(
            settings.mongo_url, settings.database_name, timeout_ms=settings.mongo_timeout_ms,
        )

    mongo: MongoConnection | None = getattr(app.state, "mongo", None)
    if mongo is None:
        logger.warning("MONGO_URL not configured, user routes will answer 503")
    elif mongo.ping():
        if ensure_all_indexes(mongo.database()):
            logger.info("MongoDB indexes verified/created successfully")
        else:
            logger.warning("Failed to create some MongoDB indexes")
    else:
        logger.warning("MongoDB unavailable, skipping index creation")

    if not settings.jwt_secret_key:
        logger.error(
            "JWT_SECRET_KEY is not set; protected routes will fail closed. "
            "Generate a secure key with: openssl rand -hex 32"
        )

    yield  # App runs here

    if mongo is not None:
        mongo.close()


def _configure_cors(app: FastAPI, settings: Settings) -> None:
    # Browsers don't support credentials with a wildcard origin
    if settings.cors_origins == "*":
        cors_origins = ["*"]
        allow_credentials = False
        if settings.is_production:
            logger.warning(
                "CORS configured with wildcard origin ('*'). "
                "For production, set CORS_ORIGINS to specific domains (e.g., 'https://app.example.com')"
            )
    else:
        cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]
        allow_credentials = True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Requested-With"],
    )


def create_app(settings: Settings | None = None, mongo: MongoConnection | None = None) -> FastAPI:
    """Build the application with explicit settings and storage connection."""
    settings = settings or Settings.from_env()

    app = FastAPI(
        title=SERVICE_NAME,
        description="User identity service - account creation, lookup and token authentication",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.mongo = mongo
    app.state.started_at = time.monotonic()

    _configure_cors(app, settings)
    register_error_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(
            f"{request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path},
        )
        return await call_next(request)

    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "status": "running"
        }

    return app


_settings = Settings.from_env()
setup_structured_logging(_settings.log_level)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn
    # Application logs go through structured logging; uvicorn access log is redundant
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=_settings.port,
        access_log=False
    )
