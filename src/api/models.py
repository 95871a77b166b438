"""Pydantic models for API request/response."""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool, field_validator
from pydantic_core import PydanticCustomError

from domain.model.user import Role

EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
COUNTRY_CODE_PATTERN = r'^\+\d{1,3}$'
PHONE_NUMBER_PATTERN = r'^\d{4,14}$'
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def _check_email_pattern(value: str) -> str:
    if not EMAIL_REGEX.match(value):
        raise PydanticCustomError('email_pattern', 'Email format is invalid')
    return value


class _RequestModel(BaseModel):
    """Base for inbound payloads: unknown fields are rejected."""
    model_config = ConfigDict(extra='forbid', populate_by_name=True)


# ── Requests ─────────────────────────────────────────────


class PhoneRequest(_RequestModel):
    country_code: str = Field(..., alias='countryCode', pattern=COUNTRY_CODE_PATTERN)
    number: str = Field(..., pattern=PHONE_NUMBER_PATTERN)


class PhoneUpdateRequest(_RequestModel):
    country_code: Optional[str] = Field(None, alias='countryCode', pattern=COUNTRY_CODE_PATTERN)
    number: Optional[str] = Field(None, pattern=PHONE_NUMBER_PATTERN)


class CreateUserRequest(_RequestModel):
    """Request model for user creation.

    The password/provider exclusivity is checked by api.validators, which
    turns the flat payload into a tagged credential.
    """
    email: EmailStr
    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    role: Role
    is_verified: StrictBool = Field(..., alias='isVerified')
    phone: PhoneRequest
    password: Optional[str] = Field(None, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    provider: Optional[str] = Field(None, min_length=1)
    provider_id: Optional[str] = Field(None, alias='providerId', min_length=1)

    @field_validator('email')
    @classmethod
    def email_matches_pattern(cls, v: str) -> str:
        return _check_email_pattern(v)


class UpdateUserRequest(_RequestModel):
    """Request model for partial user update. Every field is optional."""
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    role: Optional[Role] = None
    is_verified: Optional[StrictBool] = Field(None, alias='isVerified')
    phone: Optional[PhoneUpdateRequest] = None
    password: Optional[str] = Field(None, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)

    @field_validator('email')
    @classmethod
    def email_matches_pattern(cls, v: Optional[str]) -> Optional[str]:
        return _check_email_pattern(v) if v is not None else v


# ── Responses ────────────────────────────────────────────


class PhoneResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    country_code: str = Field(..., alias='countryCode')
    number: str


class UserResponse(BaseModel):
    """Response model for a user. Never carries credential material."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="User ID")
    email: str
    name: str
    role: Role
    is_verified: bool = Field(..., alias='isVerified')
    phone: PhoneResponse
    credits: int
    created_at: datetime = Field(..., alias='createdAt')
    updated_at: datetime = Field(..., alias='updatedAt')


class AuthData(BaseModel):
    user: UserResponse
    token: Optional[str] = Field(None, description="Access token; null for federated accounts")


class AuthResponse(BaseModel):
    """Response model for user creation."""
    success: bool = True
    message: str
    data: AuthData


class UserEnvelope(BaseModel):
    success: bool = True
    message: str
    data: UserResponse


class UserListEnvelope(BaseModel):
    success: bool = True
    message: str
    data: list[UserResponse]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    uptime: float = Field(..., description="Seconds since the application started")
