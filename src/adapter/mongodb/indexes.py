"""MongoDB index management utilities.

Index creation that survives definition changes between releases, e.g. a
plain unique email index becoming a partial one scoped to active users.
"""

from logging import getLogger

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import OperationFailure

logger = getLogger(__name__)

# Server codes for "an index with this name or these keys already exists
# with a different definition"
_CONFLICT_CODES = {85, 86}


def _is_conflict(error: OperationFailure) -> bool:
    return error.code in _CONFLICT_CODES or "already exists" in str(error)


def create_index_safe(collection: Collection, keys: list, name: str, **options) -> bool:
    """Create an index, replacing an existing one that clashes with it.

    A clash is an index with the same name but another definition, or the
    same keys under another name. The old index is dropped and the requested
    one created. Other failures propagate.
    """
    try:
        collection.create_index(keys, name=name, **options)
        return True
    except OperationFailure as e:
        if not _is_conflict(e):
            raise
        return _replace_conflicting(collection, keys, name, **options)


def _replace_conflicting(collection: Collection, keys: list, name: str, **options) -> bool:
    wanted_keys = dict(keys)

    for existing_name, info in collection.index_information().items():
        if existing_name == '_id_':
            continue
        if existing_name != name and dict(info.get('key', [])) != wanted_keys:
            continue

        logger.warning(
            "Replacing conflicting index",
            extra={"collection": collection.name, "dropped": existing_name, "index": name},
        )
        collection.drop_index(existing_name)
        collection.create_index(keys, name=name, **options)
        return True

    logger.error("Index conflict could not be resolved", extra={"collection": collection.name, "index": name})
    return False


def ensure_all_indexes(db: Database) -> bool:
    """Ensure indexes for every collection the service owns. Called at startup."""
    from adapter.mongodb.user_repository import MongoUserRepository

    return MongoUserRepository(db).ensure_indexes()
