"""
Tests for the Flask application and its typed response.
"""
import json
import unittest

from mtls_hello.app import HelloFlaskApp
from mtls_hello.models.config import Config
from mtls_hello.models.response import HelloResponse
from mtls_hello.security.errors import ProtocolError


class TestHelloFlaskApp(unittest.TestCase):
    """Test cases for HelloFlaskApp routes."""

    def setUp(self):
        self.flask_app = HelloFlaskApp(Config())
        self.client = self.flask_app.get_app().test_client()

    def test_index_returns_hello_world(self):
        response = self.client.get('/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, 'application/json')
        self.assertEqual(response.get_data(as_text=True), '{"hello":"world"}')

    def test_unknown_route(self):
        response = self.client.get('/missing')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'Not found')

    def test_method_not_allowed(self):
        response = self.client.post('/')

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.get_json()['error'], 'Method not allowed')

    def test_requests_are_logged(self):
        with self.assertLogs('mtls_hello.app', level='INFO') as logs:
            self.client.get('/')

        self.assertTrue(any("GET / 200" in line for line in logs.output))


class TestHelloResponse(unittest.TestCase):
    """Test cases for the typed response record."""

    def test_serialization(self):
        self.assertEqual(HelloResponse().to_dict(), {"hello": "world"})
        self.assertEqual(HelloResponse().to_json(), '{"hello":"world"}')

    def test_parse(self):
        self.assertEqual(HelloResponse.from_json('{"hello": "world"}'), HelloResponse())
        self.assertEqual(HelloResponse.from_json('{"hello":"there"}').hello, "there")

    def test_parse_rejects_unexpected_keys(self):
        for body in ('{"helo":"world"}', '{"hello":"world","extra":1}', '{}', '["hello"]'):
            with self.subTest(body=body):
                with self.assertRaises(ProtocolError):
                    HelloResponse.from_json(body)

    def test_parse_rejects_wrong_types(self):
        with self.assertRaises(ProtocolError):
            HelloResponse.from_json(json.dumps({"hello": 1}))

    def test_parse_rejects_non_json(self):
        with self.assertRaises(ProtocolError) as cm:
            HelloResponse.from_json('<html>')

        self.assertEqual(cm.exception.operation, "decode response")


if __name__ == '__main__':
    unittest.main()
