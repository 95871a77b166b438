from typing import Protocol

from domain.model.user import AccessType, Credential, Phone, Role, User, UserChanges


class UserRepository(Protocol):
    """Protocol defining the interface for user data access.

    Every read excludes soft-deleted records.
    """
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
        """Create a new user and return it.

        Raises DuplicateError if the store rejects a duplicate email or phone.
        """
        ...

    def get_by_attribute(self, kind: AccessType, value: str) -> User | None:
        """Find an active user by id, email or phone number. Return None if not found."""
        ...

    def find_all(self) -> list[User]:
        """Return all active users, newest first."""
        ...

    def update(self, user_id: str, changes: UserChanges) -> User | None:
        """Apply the provided fields. Return the updated User or None if not found."""
        ...

    def soft_delete(self, user_id: str) -> User | None:
        """Flag an active user as deleted. Return the user or None if not found."""
        ...
