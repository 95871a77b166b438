from fastapi import Depends, HTTPException, Request

from adapter.mongodb.connection import MongoConnection
from adapter.mongodb.user_repository import MongoUserRepository
from port.user_repository import UserRepository
from utils.logging import ContextLogger, get_context_logger
from utils.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mongo(request: Request) -> MongoConnection | None:
    return getattr(request.app.state, "mongo", None)


def _get_db(mongo: MongoConnection | None):
    """Get MongoDB database, raising 503 if unavailable."""
    if mongo is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return mongo.database()


def get_user_repo(mongo: MongoConnection | None = Depends(get_mongo)) -> UserRepository:
    return MongoUserRepository(_get_db(mongo))


def get_request_logger(request: Request) -> ContextLogger:
    """Logger bound to the current request's method and path."""
    return get_context_logger("api.request", method=request.method, path=request.url.path)
