"""MongoDB implementation of UserRepository."""

import uuid
from datetime import datetime, timezone
from logging import getLogger

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from adapter.mongodb.connection import USERS_COLLECTION_NAME
from domain.model.errors import DuplicateError
from domain.model.user import (
    DEFAULT_USER_CREDITS,
    AccessType,
    Credential,
    FederatedCredential,
    LocalCredential,
    Phone,
    Role,
    User,
    UserChanges,
)

logger = getLogger(__name__)

_ACTIVE = {'is_deleted': False}

_LOOKUP_FIELDS = {
    AccessType.ID: '_id',
    AccessType.EMAIL: 'email',
    AccessType.PHONE: 'phone.number',
}


def _as_utc(value: datetime) -> datetime:
    """BSON dates carry no offset; stored values are always UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class MongoUserRepository:
    def __init__(self, db: Database):
        self.collection = db[USERS_COLLECTION_NAME]

    def ensure_indexes(self) -> bool:
        """Create indexes for users collection.

        Email and phone number are unique among non-deleted users only, so a
        deleted user's email or phone can be reused.
        """
        from adapter.mongodb.indexes import create_index_safe

        try:
            create_index_safe(
                self.collection, [('email', 1)], 'idx_users_email_active',
                unique=True, partialFilterExpression=_ACTIVE,
            )
            create_index_safe(
                self.collection, [('phone.number', 1)], 'idx_users_phone_active',
                unique=True, partialFilterExpression=_ACTIVE,
            )
            create_index_safe(self.collection, [('created_at', -1)], 'idx_users_created_at')
            return True
        except PyMongoError as e:
            logger.error("Failed to create users indexes", extra={"error": str(e)})
            return False

    def _to_domain(self, doc: dict) -> User:
        """Convert MongoDB document to User domain model."""
        credential: Credential
        if doc.get('password_hash'):
            credential = LocalCredential(password_hash=doc['password_hash'])
        elif doc.get('provider') and doc.get('provider_id'):
            credential = FederatedCredential(provider=doc['provider'], provider_id=doc['provider_id'])
        else:
            raise ValueError(f"User document {doc.get('_id')} carries no credential")

        phone = doc.get('phone') or {}
        return User(
            id=doc['_id'],
            email=doc['email'],
            name=doc['name'],
            role=Role(doc['role']),
            is_verified=doc.get('is_verified', False),
            phone=Phone(country_code=phone.get('country_code', ''), number=phone.get('number', '')),
            credential=credential,
            created_at=_as_utc(doc['created_at']),
            updated_at=_as_utc(doc['updated_at']),
            credits=doc.get('credits', DEFAULT_USER_CREDITS),
            is_deleted=doc.get('is_deleted', False),
        )

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
        """Create a new user and return the User object."""
        user_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        user_doc = {
            '_id': user_id,
            'email': email,
            'name': name,
            'role': role.value,
            'is_verified': is_verified,
            'phone': {'country_code': phone.country_code, 'number': phone.number},
            'credits': credits,
            'is_deleted': False,
            'created_at': now,
            'updated_at': now,
        }
        if isinstance(credential, LocalCredential):
            user_doc['password_hash'] = credential.password_hash
        else:
            user_doc['provider'] = credential.provider
            user_doc['provider_id'] = credential.provider_id

        try:
            self.collection.insert_one(user_doc)
        except DuplicateKeyError as e:
            # Lost the look-then-write race against a concurrent create
            logger.warning("User creation failed: email or phone already exists", extra={"email": email})
            raise DuplicateError("User already exists.") from e
        except PyMongoError as e:
            logger.error("Failed to create user", extra={"email": email, "error": str(e)})
            raise

        logger.info("User created", extra={"userId": user_id, "email": email})
        return self._to_domain(user_doc)

    def get_by_attribute(self, kind: AccessType, value: str) -> User | None:
        """Find an active user by id, email or phone number."""
        query = {_LOOKUP_FIELDS[kind]: value, **_ACTIVE}
        try:
            doc = self.collection.find_one(query)
        except PyMongoError as e:
            logger.error("Failed to get user", extra={"accessType": kind.value, "error": str(e)})
            raise
        return self._to_domain(doc) if doc else None

    def find_all(self) -> list[User]:
        """Return all active users, newest first."""
        try:
            docs = list(self.collection.find(dict(_ACTIVE)).sort('created_at', DESCENDING))
        except PyMongoError as e:
            logger.error("Failed to list users", extra={"error": str(e)})
            raise
        return [self._to_domain(doc) for doc in docs]

    def update(self, user_id: str, changes: UserChanges) -> User | None:
        """Apply the provided fields. Return the updated User or None if not found."""
        fields = {
            'email': changes.email,
            'name': changes.name,
            'role': changes.role.value if changes.role is not None else None,
            'is_verified': changes.is_verified,
            'phone.country_code': changes.country_code,
            'phone.number': changes.phone_number,
            'password_hash': changes.password_hash,
        }
        update_set = {k: v for k, v in fields.items() if v is not None}
        update_set['updated_at'] = datetime.now(timezone.utc)

        try:
            doc = self.collection.find_one_and_update(
                {'_id': user_id, **_ACTIVE},
                {'$set': update_set},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning("User update failed: email or phone already exists", extra={"userId": user_id})
            raise DuplicateError("User already exists.") from e
        except PyMongoError as e:
            logger.error("Failed to update user", extra={"userId": user_id, "error": str(e)})
            raise

        if not doc:
            return None
        logger.debug("User updated", extra={"userId": user_id, "fields": sorted(update_set)})
        return self._to_domain(doc)

    def soft_delete(self, user_id: str) -> User | None:
        """Flag an active user as deleted. The document is kept."""
        now = datetime.now(timezone.utc)
        try:
            doc = self.collection.find_one_and_update(
                {'_id': user_id, **_ACTIVE},
                {'$set': {'is_deleted': True, 'deleted_at': now, 'updated_at': now}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Failed to delete user", extra={"userId": user_id, "error": str(e)})
            raise

        if not doc:
            return None
        logger.info("User soft-deleted", extra={"userId": user_id})
        return self._to_domain(doc)
