"""Tests for MongoUserRepository against a mocked collection."""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from adapter.mongodb.connection import USERS_COLLECTION_NAME
from adapter.mongodb.indexes import create_index_safe
from adapter.mongodb.user_repository import MongoUserRepository
from domain.model.errors import DuplicateError
from domain.model.user import (
    DEFAULT_USER_CREDITS,
    AccessType,
    FederatedCredential,
    LocalCredential,
    Phone,
    Role,
    UserChanges,
)


def _doc(**overrides) -> dict:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    doc = {
        '_id': 'user-1',
        'email': 'a@x.com',
        'name': 'Ann',
        'role': 'USER',
        'is_verified': False,
        'phone': {'country_code': '+1', 'number': '5551234567'},
        'credits': 1000,
        'is_deleted': False,
        'created_at': now,
        'updated_at': now,
        'password_hash': '$2b$04$hash',
    }
    doc.update(overrides)
    return doc


class MongoRepoTestCase(unittest.TestCase):

    def setUp(self):
        self.collection = MagicMock()
        db = MagicMock()
        db.__getitem__.return_value = self.collection
        self.repo = MongoUserRepository(db)
        db.__getitem__.assert_called_with(USERS_COLLECTION_NAME)


class TestCreate(MongoRepoTestCase):
    """Test MongoUserRepository.create()."""

    def _create(self, credential):
        return self.repo.create(
            email='a@x.com',
            name='Ann',
            role=Role.USER,
            is_verified=False,
            phone=Phone(country_code='+1', number='5551234567'),
            credential=credential,
            credits=1000,
        )

    def test_local_credential_document(self):
        user = self._create(LocalCredential(password_hash='$2b$04$hash'))

        doc = self.collection.insert_one.call_args[0][0]
        self.assertEqual(doc['password_hash'], '$2b$04$hash')
        self.assertNotIn('provider', doc)
        self.assertFalse(doc['is_deleted'])
        self.assertEqual(doc['role'], 'USER')
        self.assertEqual(doc['phone'], {'country_code': '+1', 'number': '5551234567'})
        self.assertEqual(doc['created_at'], doc['updated_at'])
        self.assertEqual(user.id, doc['_id'])
        self.assertEqual(user.credential, LocalCredential(password_hash='$2b$04$hash'))

    def test_federated_credential_document(self):
        user = self._create(FederatedCredential(provider='google', provider_id='g-1'))

        doc = self.collection.insert_one.call_args[0][0]
        self.assertEqual(doc['provider'], 'google')
        self.assertEqual(doc['provider_id'], 'g-1')
        self.assertNotIn('password_hash', doc)
        self.assertEqual(user.credential, FederatedCredential(provider='google', provider_id='g-1'))

    def test_duplicate_key_becomes_duplicate_error(self):
        self.collection.insert_one.side_effect = DuplicateKeyError('E11000 duplicate key')

        with self.assertRaises(DuplicateError):
            self._create(LocalCredential(password_hash='h'))

    def test_other_errors_propagate(self):
        self.collection.insert_one.side_effect = PyMongoError('connection reset')

        with self.assertRaises(PyMongoError):
            self._create(LocalCredential(password_hash='h'))


class TestReads(MongoRepoTestCase):
    """Test get_by_attribute() and find_all()."""

    def test_lookup_fields_filter_active(self):
        self.collection.find_one.return_value = _doc()

        for kind, field in [(AccessType.ID, '_id'), (AccessType.EMAIL, 'email'), (AccessType.PHONE, 'phone.number')]:
            with self.subTest(kind=kind):
                user = self.repo.get_by_attribute(kind, 'value')
                self.collection.find_one.assert_called_with({field: 'value', 'is_deleted': False})
                self.assertEqual(user.id, 'user-1')

    def test_lookup_not_found(self):
        self.collection.find_one.return_value = None
        self.assertIsNone(self.repo.get_by_attribute(AccessType.EMAIL, 'z@x.com'))

    def test_document_mapped_to_domain(self):
        self.collection.find_one.return_value = _doc(password_hash=None, provider='github', provider_id='gh-9')

        user = self.repo.get_by_attribute(AccessType.ID, 'user-1')

        self.assertEqual(user.role, Role.USER)
        self.assertEqual(user.phone, Phone(country_code='+1', number='5551234567'))
        self.assertEqual(user.credential, FederatedCredential(provider='github', provider_id='gh-9'))
        self.assertFalse(user.is_local)

    def test_naive_stored_dates_read_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 30)
        self.collection.find_one.return_value = _doc(created_at=naive, updated_at=naive)

        user = self.repo.get_by_attribute(AccessType.ID, 'user-1')

        self.assertEqual(user.created_at, datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc))
        self.assertEqual(user.updated_at.utcoffset(), timedelta(0))

    def test_missing_credits_get_default_allowance(self):
        doc = _doc()
        del doc['credits']
        self.collection.find_one.return_value = doc

        user = self.repo.get_by_attribute(AccessType.ID, 'user-1')

        self.assertEqual(user.credits, DEFAULT_USER_CREDITS)

    def test_document_without_credential_rejected(self):
        self.collection.find_one.return_value = _doc(password_hash=None)

        with self.assertRaises(ValueError):
            self.repo.get_by_attribute(AccessType.ID, 'user-1')

    def test_find_all_sorted_newest_first(self):
        cursor = MagicMock()
        cursor.sort.return_value = [_doc(_id='b'), _doc(_id='a')]
        self.collection.find.return_value = cursor

        users = self.repo.find_all()

        self.collection.find.assert_called_once_with({'is_deleted': False})
        cursor.sort.assert_called_once_with('created_at', -1)
        self.assertEqual([u.id for u in users], ['b', 'a'])


class TestUpdate(MongoRepoTestCase):
    """Test update()."""

    def test_sets_only_supplied_fields(self):
        self.collection.find_one_and_update.return_value = _doc(name='Annie')

        user = self.repo.update('user-1', UserChanges(name='Annie', phone_number='5550000000'))

        query, update = self.collection.find_one_and_update.call_args[0]
        self.assertEqual(query, {'_id': 'user-1', 'is_deleted': False})
        self.assertEqual(set(update['$set']), {'name', 'phone.number', 'updated_at'})
        self.assertEqual(user.name, 'Annie')

    def test_password_hash_and_role_written(self):
        self.collection.find_one_and_update.return_value = _doc()

        self.repo.update('user-1', UserChanges(role=Role.ADMIN, password_hash='new-hash'))

        fields = self.collection.find_one_and_update.call_args[0][1]['$set']
        self.assertEqual(fields['role'], 'ADMIN')
        self.assertEqual(fields['password_hash'], 'new-hash')

    def test_not_found_returns_none(self):
        self.collection.find_one_and_update.return_value = None
        self.assertIsNone(self.repo.update('missing', UserChanges(name='X')))

    def test_duplicate_key_becomes_duplicate_error(self):
        self.collection.find_one_and_update.side_effect = DuplicateKeyError('E11000 duplicate key')

        with self.assertRaises(DuplicateError):
            self.repo.update('user-1', UserChanges(email='b@x.com'))


class TestSoftDelete(MongoRepoTestCase):
    """Test soft_delete()."""

    def test_flags_active_user(self):
        self.collection.find_one_and_update.return_value = _doc(is_deleted=True)

        user = self.repo.soft_delete('user-1')

        query, update = self.collection.find_one_and_update.call_args[0]
        self.assertEqual(query, {'_id': 'user-1', 'is_deleted': False})
        self.assertTrue(update['$set']['is_deleted'])
        self.assertIn('deleted_at', update['$set'])
        self.assertTrue(user.is_deleted)
        self.collection.delete_one.assert_not_called()

    def test_already_deleted_returns_none(self):
        self.collection.find_one_and_update.return_value = None
        self.assertIsNone(self.repo.soft_delete('user-1'))


class TestIndexes(MongoRepoTestCase):
    """Test ensure_indexes() and create_index_safe()."""

    def test_partial_unique_indexes(self):
        self.assertTrue(self.repo.ensure_indexes())

        calls = {c.kwargs['name']: c for c in self.collection.create_index.call_args_list}
        email = calls['idx_users_email_active']
        self.assertEqual(email.args[0], [('email', 1)])
        self.assertTrue(email.kwargs['unique'])
        self.assertEqual(email.kwargs['partialFilterExpression'], {'is_deleted': False})
        self.assertEqual(calls['idx_users_phone_active'].args[0], [('phone.number', 1)])
        self.assertIn('idx_users_created_at', calls)

    def test_failure_reported_as_false(self):
        self.collection.create_index.side_effect = PyMongoError('unreachable')
        self.assertFalse(self.repo.ensure_indexes())

    def test_conflicting_index_dropped_and_recreated(self):
        collection = MagicMock()
        collection.create_index.side_effect = [OperationFailure('IndexOptionsConflict', code=85), None]
        collection.index_information.return_value = {
            '_id_': {'key': [('_id', 1)]},
            'email_1': {'key': [('email', 1)]},
        }

        self.assertTrue(create_index_safe(collection, [('email', 1)], 'idx_users_email_active', unique=True))

        collection.drop_index.assert_called_once_with('email_1')
        self.assertEqual(collection.create_index.call_count, 2)

    @patch('adapter.mongodb.indexes.logger')
    def test_unresolvable_conflict_returns_false(self, mock_logger):
        collection = MagicMock()
        collection.create_index.side_effect = OperationFailure('Index already exists')
        collection.index_information.return_value = {'_id_': {'key': [('_id', 1)]}}

        self.assertFalse(create_index_safe(collection, [('email', 1)], 'idx_users_email_active'))
        mock_logger.error.assert_called_once()


if __name__ == '__main__':
    unittest.main()
