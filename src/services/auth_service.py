"""Auth service — user identity business logic.

Pure business logic with no HTTP dependencies.
Raises domain errors that the API layer maps to HTTP status codes.
Absence is not an error here: lookups return None and delete returns False.
"""

import logging
from dataclasses import replace

import bcrypt

from domain.model.errors import ConfigurationError, DuplicateError, ValidationError
from domain.model.user import (
    AccessType,
    AuthResult,
    FederatedCredential,
    LocalCredential,
    NewUser,
    PasswordCredential,
    User,
    UserChanges,
    UserDTO,
)
from port.user_repository import UserRepository
from services.token_service import create_access_token
from utils.settings import Settings

logger = logging.getLogger(__name__)

Log = logging.Logger | logging.LoggerAdapter

# bcrypt only reads the first 72 bytes; newer releases reject longer input
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def _hash_password(password: str, rounds: int) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))


def to_user_dto(user: User) -> UserDTO:
    """Convert a stored User into its wire-safe view."""
    return UserDTO(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        is_verified=user.is_verified,
        phone=user.phone,
        credits=user.credits,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _ensure_unique(
    repo: UserRepository,
    email: str | None,
    phone_number: str | None,
    exclude_id: str | None = None,
) -> None:
    """Raise DuplicateError if another active user holds email or phone_number."""
    if email is not None:
        holder = repo.get_by_attribute(AccessType.EMAIL, email)
        if holder and holder.id != exclude_id:
            raise DuplicateError("User already exists.")
    if phone_number is not None:
        holder = repo.get_by_attribute(AccessType.PHONE, phone_number)
        if holder and holder.id != exclude_id:
            raise DuplicateError("User already exists.")


def create_user(
    repo: UserRepository,
    new_user: NewUser,
    settings: Settings,
    log: Log = logger,
) -> AuthResult:
    """Create a user and, for password accounts, issue an access token.

    Federated accounts are stored but receive no token here.

    Raises:
        DuplicateError: email or phone number already held by an active user
        ValidationError: no credential (neither password nor provider)
        ConfigurationError: password account but no signing secret configured
    """
    log.info("Processing request to create a new user", extra={"email": new_user.email})

    try:
        _ensure_unique(repo, new_user.email, new_user.phone.number)
    except DuplicateError:
        log.warning("User already exists", extra={"email": new_user.email})
        raise

    credential = new_user.credential
    if credential is None:
        raise ValidationError("Password is required for local users")

    if isinstance(credential, PasswordCredential):
        if not settings.jwt_secret_key:
            raise ConfigurationError("JWT secret key is not configured")
        stored = LocalCredential(password_hash=_hash_password(credential.password, settings.bcrypt_rounds))
    else:
        stored = FederatedCredential(provider=credential.provider, provider_id=credential.provider_id)

    credits = new_user.credits if new_user.credits is not None else settings.default_user_credits
    user = repo.create(
        email=new_user.email,
        name=new_user.name,
        role=new_user.role,
        is_verified=new_user.is_verified,
        phone=new_user.phone,
        credential=stored,
        credits=credits,
    )

    token = None
    if user.is_local:
        token = create_access_token(
            user.id,
            settings.jwt_secret_key,
            ttl_seconds=settings.token_ttl_seconds,
            algorithm=settings.jwt_algorithm,
        )

    provider = stored.provider if isinstance(stored, FederatedCredential) else None
    log.info(
        "User created successfully",
        extra={"userId": user.id, "email": user.email, "provider": provider},
    )
    return AuthResult(user=to_user_dto(user), token=token)


def get_user_by_attribute(
    repo: UserRepository,
    kind: AccessType,
    value: str,
    log: Log = logger,
) -> UserDTO | None:
    """Find an active user by id, email or phone number."""
    user = repo.get_by_attribute(kind, value)
    if not user:
        log.warning("User not found", extra={"accessType": kind.value, "value": value})
        return None
    return to_user_dto(user)


def get_all_users(repo: UserRepository, log: Log = logger) -> list[UserDTO]:
    users = repo.find_all()
    log.info("Users listed", extra={"count": len(users)})
    return [to_user_dto(u) for u in users]


def update_user(
    repo: UserRepository,
    user_id: str,
    changes: UserChanges,
    settings: Settings,
    log: Log = logger,
) -> UserDTO | None:
    """Apply the provided fields to an active user.

    Returns None if user_id does not resolve to an active user.

    Raises:
        DuplicateError: new email or phone number held by another active user
        ValidationError: password change requested on a federated account
    """
    existing = repo.get_by_attribute(AccessType.ID, user_id)
    if not existing:
        log.warning("User not found for update", extra={"userId": user_id})
        return None

    _ensure_unique(repo, changes.email, changes.phone_number, exclude_id=user_id)

    if changes.password is not None:
        if not existing.is_local:
            raise ValidationError("Password cannot be set on a federated account")
        changes = replace(
            changes,
            password=None,
            password_hash=_hash_password(changes.password, settings.bcrypt_rounds),
        )

    user = repo.update(user_id, changes)
    if not user:
        log.warning("User not found for update", extra={"userId": user_id})
        return None

    log.info("User updated successfully", extra={"userId": user_id})
    return to_user_dto(user)


def delete_user(repo: UserRepository, user_id: str, log: Log = logger) -> bool:
    """Soft-delete an active user. Returns False if unknown or already deleted."""
    user = repo.soft_delete(user_id)
    if not user:
        log.warning("User not found for deletion", extra={"userId": user_id})
        return False

    log.info("User deleted successfully", extra={"userId": user_id})
    return True
