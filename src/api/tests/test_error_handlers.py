"""Tests for the global error envelope."""

import unittest
from unittest.mock import patch

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from api.error_handlers import format_stack, register_error_handlers, sanitize_message
from domain.model.errors import (
    AuthenticationError,
    ConfigurationError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from utils.settings import Settings


def _app(environment: str) -> FastAPI:
    app = FastAPI()
    app.state.settings = Settings(environment=environment)
    register_error_handlers(app)

    @app.get('/validation')
    async def validation():
        raise ValidationError(['Name is required', 'Role is required'])

    @app.get('/auth-failure')
    async def auth_failure():
        raise AuthenticationError('Invalid or expired token')

    @app.get('/missing')
    async def missing():
        raise NotFoundError('User')

    @app.get('/conflict')
    async def conflict():
        raise DuplicateError('User already exists.')

    @app.get('/config')
    async def config():
        raise ConfigurationError('JWT_SECRET_KEY is not set')

    @app.get('/http')
    async def http():
        raise HTTPException(status_code=503, detail='Database unavailable')

    @app.get('/boom')
    async def boom():
        raise RuntimeError('\x1b[31mdisk\x1b[0m on fire\r\n')

    return app


class TestSanitize(unittest.TestCase):
    """Test sanitize_message() and format_stack()."""

    def test_strips_ansi_and_control_characters(self):
        self.assertEqual(sanitize_message('\x1b[1;31mbad\x1b[0m\x07 input\n'), 'bad input')

    def test_plain_text_unchanged(self):
        self.assertEqual(sanitize_message('User not found'), 'User not found')

    def test_non_string_coerced(self):
        self.assertEqual(sanitize_message(404), '404')

    def test_stack_keeps_newlines(self):
        try:
            raise ValueError('\x1b[31mred\x1b[0m')
        except ValueError as exc:
            stack = format_stack(exc)

        self.assertIn('\n', stack)
        self.assertIn('ValueError: red', stack)
        self.assertNotIn('\x1b', stack)


class TestErrorEnvelope(unittest.TestCase):
    """Every failure shares one envelope."""

    def setUp(self):
        self.client = TestClient(_app('production'), raise_server_exceptions=False)

    def _assert_envelope(self, response, status_code, message):
        self.assertEqual(response.status_code, status_code)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['message'], message)
        self.assertTrue(body['timestamp'].endswith('Z'))
        self.assertEqual(body['method'], 'GET')
        self.assertEqual(body['path'], response.request.url.path)
        return body

    def test_validation_lists_details(self):
        body = self._assert_envelope(self.client.get('/validation'), 400, 'Validation Error')
        self.assertEqual(body['details'], ['Name is required', 'Role is required'])

    def test_authentication(self):
        response = self.client.get('/auth-failure')
        body = self._assert_envelope(response, 401, 'Invalid or expired token')
        self.assertNotIn('details', body)

    def test_not_found_names_resource(self):
        body = self._assert_envelope(self.client.get('/missing'), 404, 'User not found')
        self.assertEqual(body['error'], 'The requested user could not be found')

    def test_conflict(self):
        self._assert_envelope(self.client.get('/conflict'), 409, 'User already exists.')

    def test_configuration_error_hides_setting_name(self):
        response = self.client.get('/config')
        self._assert_envelope(response, 500, 'Server configuration error')
        self.assertNotIn('JWT_SECRET_KEY', response.text)

    def test_http_exception_keeps_status(self):
        body = self._assert_envelope(self.client.get('/http'), 503, 'Database unavailable')
        self.assertEqual(body['error'], 'Service Unavailable')

    def test_unknown_route(self):
        self._assert_envelope(self.client.get('/nowhere'), 404, 'Not Found')

    def test_unhandled_error_sanitized_without_stack(self):
        body = self._assert_envelope(self.client.get('/boom'), 500, 'Internal Server Error')
        self.assertEqual(body['error'], 'disk on fire')
        self.assertNotIn('stack', body)

    @patch('api.error_handlers.get_context_logger', side_effect=RuntimeError('log sink down'))
    def test_logging_failure_still_returns_envelope(self, _):
        body = self._assert_envelope(self.client.get('/missing'), 404, 'User not found')
        self.assertEqual(body['error'], 'The requested user could not be found')

    @patch('api.error_handlers.get_context_logger')
    def test_failing_log_call_still_returns_envelope(self, mock_get_logger):
        mock_get_logger.return_value.log.side_effect = ValueError('unserializable')

        body = self._assert_envelope(self.client.get('/validation'), 400, 'Validation Error')
        self.assertEqual(body['details'], ['Name is required', 'Role is required'])

    def test_stack_included_in_development(self):
        client = TestClient(_app('development'), raise_server_exceptions=False)

        body = client.get('/boom').json()

        self.assertIn('RuntimeError', body['stack'])
        self.assertNotIn('\x1b', body['stack'])


if __name__ == '__main__':
    unittest.main()
