# domain/model/user.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

DEFAULT_USER_CREDITS = 1000


class Role(str, Enum):
    """Roles a user record can carry."""
    ADMIN = 'ADMIN'
    USER = 'USER'


class AccessType(str, Enum):
    """Attribute used to key a single-user lookup."""
    ID = 'id'
    EMAIL = 'email'
    PHONE = 'phone'


# ── Value Objects ────────────────────────────────────────


@dataclass(frozen=True)
class Phone:
    country_code: str
    number: str


@dataclass(frozen=True)
class LocalCredential:
    """Stored credential of a password account."""
    password_hash: str = field(repr=False)


@dataclass(frozen=True)
class FederatedCredential:
    """External provider identity of a federated account."""
    provider: str
    provider_id: str


@dataclass(frozen=True)
class PasswordCredential:
    """Plaintext password submitted at sign-up. Never persisted."""
    password: str = field(repr=False)


Credential = LocalCredential | FederatedCredential
SignUpCredential = PasswordCredential | FederatedCredential


# ── Entities ─────────────────────────────────────────────


@dataclass
class User:
    """Domain model representing a stored user record."""
    id: str
    email: str
    name: str
    role: Role
    is_verified: bool
    phone: Phone
    credential: Credential
    created_at: datetime
    updated_at: datetime
    credits: int = DEFAULT_USER_CREDITS
    is_deleted: bool = False

    @property
    def is_local(self) -> bool:
        return isinstance(self.credential, LocalCredential)


@dataclass(frozen=True)
class NewUser:
    """Validated sign-up input."""
    email: str
    name: str
    role: Role
    is_verified: bool
    phone: Phone
    credential: SignUpCredential | None
    credits: int | None = None


@dataclass(frozen=True)
class UserChanges:
    """Partial update of a user. None means "leave unchanged"."""
    email: str | None = None
    name: str | None = None
    role: Role | None = None
    is_verified: bool | None = None
    country_code: str | None = None
    phone_number: str | None = None
    password: str | None = field(default=None, repr=False)
    password_hash: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class UserDTO:
    """Wire-safe view of a user. Carries no credential material."""
    id: str
    email: str
    name: str
    role: Role
    is_verified: bool
    phone: Phone
    credits: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a sign-up: the created user and its access token."""
    user: UserDTO
    token: str | None
