"""
HTTP client bound to a client TLS policy.
"""
import logging
from contextlib import nullcontext
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from ..models.config import Config
from ..security.errors import NetworkError, ProtocolError
from ..security.models import ClientTlsPolicy
from ..security.security_service import SecurityService


class MTLSAdapter(HTTPAdapter):
    """Transport adapter that hands a prepared SSL context to urllib3."""

    def __init__(self, ssl_context, **kwargs):
        # HTTPAdapter.__init__ builds the pool manager, so set this first
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs['ssl_context'] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)


class MTLSClient:
    """HTTPS client that presents a client certificate and trusts only the policy's CA."""

    def __init__(self, policy: ClientTlsPolicy, logging_service=None):
        """
        Initialize the client.

        Args:
            policy: Client TLS policy (trust store, identity, timeout)
            logging_service: Optional service used to time requests
        """
        self.policy = policy
        self.timeout = policy.timeout_seconds
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)
        self.session = self._create_session()

    @classmethod
    def from_config(cls, config: Config, logging_service=None) -> 'MTLSClient':
        """Build the client TLS policy from configuration and wrap it in a client."""
        security_service = SecurityService(config, logging_service)
        policy = security_service.build_client_policy().unwrap()
        return cls(policy, logging_service)

    def _create_session(self) -> requests.Session:
        """Create a requests session that uses the policy's SSL context."""
        session = requests.Session()
        # Trust and routing come from the policy only, never from
        # REQUESTS_CA_BUNDLE, CURL_CA_BUNDLE or proxy variables
        session.trust_env = False

        # No retries: every failure is reported to the caller as-is
        adapter = MTLSAdapter(self.policy.context, max_retries=0)
        session.mount("https://", adapter)
        return session

    def get(self, url: str) -> requests.Response:
        """
        Perform one GET request.

        Raises:
            NetworkError: If the connection, TLS handshake or read fails, or times out
            ProtocolError: If the server answers with a non-2xx status
        """
        measure = (self.logging_service.measure_performance("client_get", url)
                   if self.logging_service else nullcontext())

        with measure:
            try:
                self.logger.info(f"GET {url}")
                response = self.session.get(url, timeout=self.timeout)
            except requests.exceptions.SSLError as e:
                raise NetworkError("tls handshake", url, e) from e
            except requests.exceptions.Timeout as e:
                raise NetworkError("request timeout", url, e) from e
            except requests.exceptions.RequestException as e:
                raise NetworkError("client.get", url, e) from e

            if not response.ok:
                raise ProtocolError(
                    "client.get", url,
                    message=f"unexpected status {response.status_code} {response.reason}"
                )

        self.logger.info(f"GET {url} -> {response.status_code}")
        return response

    def fetch_text(self, url: str) -> str:
        """Perform one GET request and return the full response body."""
        response = self.get(url)
        try:
            return response.text
        except requests.exceptions.RequestException as e:
            raise NetworkError("read body", url, e) from e

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
