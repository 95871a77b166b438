"""User identity routes.

Endpoints:
- POST /auth: Create a user (public)
- GET /auth: List active users
- GET /auth/{access_type}/{user_id}: Get a user by id, email or phone
- PATCH /auth/{user_id}: Partially update a user
- DELETE /auth/{user_id}: Soft-delete a user

Service calls run in the threadpool: they block on MongoDB and bcrypt.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.concurrency import run_in_threadpool
from pydantic import validate_email
from pydantic_core import PydanticCustomError

from api.dependencies import get_request_logger, get_settings, get_user_repo
from api.models import (
    AuthData,
    AuthResponse,
    MessageResponse,
    UserEnvelope,
    PhoneResponse,
    UserListEnvelope,
    UserResponse,
)
from api.security import require_auth
from api.validators import validate_create_user, validate_update_user
from domain.model.errors import NotFoundError, ValidationError
from domain.model.token import TokenClaims
from domain.model.user import AccessType, UserDTO
from port.user_repository import UserRepository
from services import auth_service
from utils.logging import ContextLogger
from utils.settings import Settings

router = APIRouter(prefix="/auth", tags=["auth"])

_ACCESS_TYPES = ', '.join(f'"{a.value}"' for a in AccessType)


def _lookup_value(kind: AccessType, value: str) -> str:
    """Normalize an email the way sign-up stored it. Other kinds pass through."""
    if kind is not AccessType.EMAIL:
        return value
    try:
        _, normalized = validate_email(value)
    except PydanticCustomError:
        return value
    return normalized


def _to_response(user: UserDTO) -> UserResponse:
    """Convert a UserDTO to the API UserResponse."""
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        is_verified=user.is_verified,
        phone=PhoneResponse(country_code=user.phone.country_code, number=user.phone.number),
        credits=user.credits,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


@router.post("", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: Any = Body(None),
    repo: UserRepository = Depends(get_user_repo),
    settings: Settings = Depends(get_settings),
    log: ContextLogger = Depends(get_request_logger),
):
    """Create a user. Password accounts receive an access token.

    Raises:
        ValidationError: 400 with every failed field rule
        DuplicateError: 409 if email or phone number is taken
    """
    new_user = validate_create_user(payload)
    result = await run_in_threadpool(auth_service.create_user, repo, new_user, settings, log)

    return AuthResponse(
        message="User created successfully",
        data=AuthData(user=_to_response(result.user), token=result.token),
    )


@router.get("", response_model=UserListEnvelope)
async def get_all_users(
    claims: TokenClaims = Depends(require_auth),
    repo: UserRepository = Depends(get_user_repo),
    log: ContextLogger = Depends(get_request_logger),
):
    """List active users, newest first."""
    users = await run_in_threadpool(auth_service.get_all_users, repo, log)
    return UserListEnvelope(
        message="Users retrieved successfully",
        data=[_to_response(u) for u in users],
    )


@router.get("/{access_type}/{user_id}", response_model=UserEnvelope)
async def get_user_by_attribute(
    access_type: str,
    user_id: str,
    claims: TokenClaims = Depends(require_auth),
    repo: UserRepository = Depends(get_user_repo),
    log: ContextLogger = Depends(get_request_logger),
):
    """Get an active user by id, email or phone number."""
    try:
        kind = AccessType(access_type)
    except ValueError:
        raise ValidationError(f"Invalid access type. Must be {_ACCESS_TYPES}.") from None

    value = _lookup_value(kind, user_id)
    user = await run_in_threadpool(auth_service.get_user_by_attribute, repo, kind, value, log)
    if not user:
        raise NotFoundError("User")

    return UserEnvelope(message="User retrieved successfully", data=_to_response(user))


@router.patch("/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: str,
    payload: Any = Body(None),
    claims: TokenClaims = Depends(require_auth),
    repo: UserRepository = Depends(get_user_repo),
    settings: Settings = Depends(get_settings),
    log: ContextLogger = Depends(get_request_logger),
):
    """Apply the supplied fields to a user."""
    changes = validate_update_user(payload)
    user = await run_in_threadpool(auth_service.update_user, repo, user_id, changes, settings, log)
    if not user:
        raise NotFoundError("User")

    return UserEnvelope(message="User updated successfully", data=_to_response(user))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    claims: TokenClaims = Depends(require_auth),
    repo: UserRepository = Depends(get_user_repo),
    log: ContextLogger = Depends(get_request_logger),
):
    """Soft-delete a user. A second delete of the same user is a 404."""
    deleted = await run_in_threadpool(auth_service.delete_user, repo, user_id, log)
    if not deleted:
        raise NotFoundError("User")

    return MessageResponse(message="User deleted successfully")
