"""
Tests for the mTLS HTTP client error mapping.
"""
import ssl
import unittest
from unittest.mock import MagicMock, Mock, patch

import requests

from mtls_hello.security.errors import NetworkError, ProtocolError
from mtls_hello.services.client_service import MTLSAdapter, MTLSClient


class TestMTLSClient(unittest.TestCase):
    """Test cases for MTLSClient."""

    def setUp(self):
        self.context = ssl.create_default_context()
        self.policy = Mock(context=self.context, timeout_seconds=180)
        self.client = MTLSClient(self.policy)
        self.url = "https://localhost:1443/"

    def tearDown(self):
        self.client.close()

    def test_session_uses_policy_context(self):
        adapter = self.client.session.get_adapter(self.url)

        self.assertIsInstance(adapter, MTLSAdapter)
        self.assertIs(adapter.ssl_context, self.context)
        self.assertIs(adapter.poolmanager.connection_pool_kw['ssl_context'], self.context)
        self.assertEqual(adapter.max_retries.total, 0)

    def test_session_ignores_environment(self):
        self.assertFalse(self.client.session.trust_env)

    def test_fetch_text(self):
        response = Mock(ok=True, status_code=200, text='{"hello":"world"}')
        with patch.object(self.client.session, 'get', return_value=response) as mock_get:
            body = self.client.fetch_text(self.url)

        self.assertEqual(body, '{"hello":"world"}')
        mock_get.assert_called_once_with(self.url, timeout=180)

    def test_error_mapping(self):
        cases = [
            (requests.exceptions.SSLError("bad certificate"), "tls handshake"),
            (requests.exceptions.ConnectTimeout("timed out"), "request timeout"),
            (requests.exceptions.ReadTimeout("timed out"), "request timeout"),
            (requests.exceptions.ConnectionError("refused"), "client.get"),
        ]
        for error, operation in cases:
            with self.subTest(operation=operation, error=type(error).__name__):
                with patch.object(self.client.session, 'get', side_effect=error):
                    with self.assertRaises(NetworkError) as cm:
                        self.client.get(self.url)

                self.assertEqual(cm.exception.operation, operation)
                self.assertEqual(cm.exception.target, self.url)
                self.assertIs(cm.exception.__cause__, error)

    def test_non_success_status(self):
        response = Mock(ok=False, status_code=404, reason="NOT FOUND")
        with patch.object(self.client.session, 'get', return_value=response):
            with self.assertRaises(ProtocolError) as cm:
                self.client.get(self.url)

        self.assertIn("unexpected status 404", str(cm.exception))

    def test_request_is_measured(self):
        logging_service = MagicMock()
        client = MTLSClient(self.policy, logging_service)
        response = Mock(ok=True, status_code=200, text="{}")

        with patch.object(client.session, 'get', return_value=response):
            client.get(self.url)
        client.close()

        logging_service.measure_performance.assert_called_once_with("client_get", self.url)

    def test_context_manager_closes_session(self):
        client = MTLSClient(self.policy)

        with patch.object(client.session, 'close') as mock_close:
            with client:
                pass

        mock_close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
