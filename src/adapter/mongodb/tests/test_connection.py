"""Tests for MongoConnection."""

import unittest
from datetime import timezone
from unittest.mock import MagicMock, patch

from pymongo.errors import ServerSelectionTimeoutError

from adapter.mongodb.connection import MongoConnection


@patch('adapter.mongodb.connection.MongoClient')
class TestMongoConnection(unittest.TestCase):

    def test_client_created_once_and_timezone_aware(self, mock_client_cls):
        conn = MongoConnection('mongodb://db:27017', 'identity', timeout_ms=1000)

        first = conn.client()
        second = conn.client()

        self.assertIs(first, second)
        mock_client_cls.assert_called_once()
        kwargs = mock_client_cls.call_args.kwargs
        self.assertTrue(kwargs['tz_aware'])
        self.assertEqual(kwargs['tzinfo'], timezone.utc)
        self.assertEqual(kwargs['serverSelectionTimeoutMS'], 1000)

    def test_database_uses_configured_name(self, mock_client_cls):
        conn = MongoConnection('mongodb://db:27017', 'identity')

        conn.database()

        mock_client_cls.return_value.__getitem__.assert_called_once_with('identity')

    def test_ping_failure_returns_false(self, mock_client_cls):
        mock_client_cls.return_value.admin.command.side_effect = ServerSelectionTimeoutError('no servers')

        self.assertFalse(MongoConnection('mongodb://db:27017', 'identity').ping())

    def test_close_releases_client(self, mock_client_cls):
        client = MagicMock()
        mock_client_cls.return_value = client
        conn = MongoConnection('mongodb://db:27017', 'identity')
        conn.client()

        conn.close()
        conn.close()

        client.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
