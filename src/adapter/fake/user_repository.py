"""In-memory implementation of UserRepository for testing."""

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from domain.model.errors import DuplicateError
from domain.model.user import (
    AccessType,
    Credential,
    LocalCredential,
    Phone,
    Role,
    User,
    UserChanges,
)


class FakeUserRepository:
    def __init__(self):
        self.store: dict[str, User] = {}

    def _active(self) -> list[User]:
        return [u for u in self.store.values() if not u.is_deleted]

    def _check_unique(self, email: str, phone_number: str, exclude_id: str | None = None) -> None:
        # Mirrors the partial unique indexes of the MongoDB adapter
        for u in self._active():
            if u.id == exclude_id:
                continue
            if u.email == email or u.phone.number == phone_number:
                raise DuplicateError("User already exists.")

    # ── write operations ─────────────────────────────────────

    def create(
        self,
        email: str,
        name: str,
        role: Role,
        is_verified: bool,
        phone: Phone,
        credential: Credential,
        credits: int,
    ) -> User:
        self._check_unique(email, phone.number)

        user_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)

        user = User(
            id=user_id,
            email=email,
            name=name,
            role=role,
            is_verified=is_verified,
            phone=phone,
            credential=credential,
            created_at=now,
            updated_at=now,
            credits=credits,
        )
        self.store[user_id] = user
        return replace(user)

    def update(self, user_id: str, changes: UserChanges) -> User | None:
        user = self.store.get(user_id)
        if not user or user.is_deleted:
            return None

        phone = Phone(
            country_code=changes.country_code or user.phone.country_code,
            number=changes.phone_number or user.phone.number,
        )
        self._check_unique(changes.email or user.email, phone.number, exclude_id=user_id)

        if changes.email is not None:
            user.email = changes.email
        if changes.name is not None:
            user.name = changes.name
        if changes.role is not None:
            user.role = changes.role
        if changes.is_verified is not None:
            user.is_verified = changes.is_verified
        user.phone = phone
        if changes.password_hash is not None:
            user.credential = LocalCredential(password_hash=changes.password_hash)

        now = datetime.now(timezone.utc)
        # updated_at must advance even within one clock tick
        if now <= user.updated_at:
            now = user.updated_at + timedelta(microseconds=1)
        user.updated_at = now
        return replace(user)

    def soft_delete(self, user_id: str) -> User | None:
        user = self.store.get(user_id)
        if not user or user.is_deleted:
            return None

        user.is_deleted = True
        user.updated_at = datetime.now(timezone.utc)
        return replace(user)

    # ── read operations ──────────────────────────────────────

    def get_by_attribute(self, kind: AccessType, value: str) -> User | None:
        for user in self._active():
            if kind == AccessType.ID and user.id == value:
                return replace(user)
            if kind == AccessType.EMAIL and user.email == value:
                return replace(user)
            if kind == AccessType.PHONE and user.phone.number == value:
                return replace(user)
        return None

    def find_all(self) -> list[User]:
        # Insertion order breaks created_at ties
        ordered = sorted(enumerate(self._active()), key=lambda p: (p[1].created_at, p[0]), reverse=True)
        return [replace(u) for _, u in ordered]
