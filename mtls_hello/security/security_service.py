"""
Security service for building mTLS trust stores, identities and TLS policies.
"""
import re
import ssl
import logging
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Optional, List

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization

from .errors import MTLSError, CertFileError, CertError
from .models import (
    CertificateInfo, TrustStore, Identity, ServerTlsPolicy, ClientTlsPolicy, TLSBuildResult,
    SERVER_CIPHER_SUITES, SERVER_CURVE_PREFERENCES, SERVER_MINIMUM_VERSION,
    CLIENT_REQUEST_TIMEOUT_SECONDS,
)
from ..models.config import Config


PEM_CERTIFICATE_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----\s.+?\s-----END CERTIFICATE-----",
    re.DOTALL,
)


class SecurityService:
    """Service for loading certificates and building mTLS policies."""

    def __init__(self, config: Optional[Config] = None, logging_service=None):
        """Initialize the security service with configuration."""
        self.config = config or Config()
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

    def load_trust_store(self, ca_cert_path: str) -> TrustStore:
        """
        Load a PEM bundle of CA certificates into a trust store.

        Blocks that fail to parse are skipped. A bundle without a single
        usable certificate is rejected rather than producing a trust store
        that silently trusts nothing.

        Raises:
            CertFileError: If the file cannot be read
            CertError: If the file holds no valid PEM certificate
        """
        data = self._read_file(ca_cert_path)

        certificates: List[x509.Certificate] = []
        for index, block in enumerate(PEM_CERTIFICATE_RE.findall(data)):
            try:
                certificates.append(x509.load_pem_x509_certificate(block))
            except ValueError as e:
                self.logger.warning(f"Skipping malformed certificate #{index} in {ca_cert_path}: {e}")

        if not certificates:
            raise CertError("parse CA bundle", ca_cert_path, message="no valid PEM certificates found")

        pem = "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in certificates
        )
        self.logger.info(f"Loaded {len(certificates)} CA certificate(s) from {ca_cert_path}")
        return TrustStore(source_path=ca_cert_path, certificates=tuple(certificates), pem=pem)

    def load_identity(self, cert_path: str, key_path: str) -> Identity:
        """
        Load a certificate/private key pair and check that they belong together.

        Raises:
            CertFileError: If either file cannot be read
            CertError: If either file does not parse, or the key does not match
        """
        cert_data = self._read_file(cert_path)
        key_data = self._read_file(key_path)

        try:
            certificate = x509.load_pem_x509_certificate(cert_data)
        except ValueError as e:
            raise CertError("parse certificate", cert_path, e) from e

        try:
            private_key = serialization.load_pem_private_key(key_data, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CertError("parse private key", key_path, e) from e

        if self._public_key_bytes(certificate.public_key()) != self._public_key_bytes(private_key.public_key()):
            raise CertError(
                "match key pair", f"{cert_path} {key_path}",
                message="private key does not match certificate public key"
            )

        info = self._get_certificate_info(certificate)
        if not info.is_valid:
            self.logger.warning(f"Certificate {cert_path} is outside its validity window")

        return Identity(cert_path=cert_path, key_path=key_path, certificate=certificate, info=info)

    def build_server_policy(self,
                            ca_cert_path: Optional[str] = None,
                            server_cert_path: Optional[str] = None,
                            server_key_path: Optional[str] = None) -> TLSBuildResult:
        """
        Build the server TLS policy: trust store, server identity, TLS 1.2+,
        fixed cipher suites and curve preference, client certificates required.

        Paths default to the configured ones.
        """
        ca_cert_path = ca_cert_path or self.config.ca_cert_path
        server_cert_path = server_cert_path or self.config.server_cert_path
        server_key_path = server_key_path or self.config.server_key_path

        try:
            with self._measure("server"):
                trust_store = self.load_trust_store(ca_cert_path)
                identity = self.load_identity(server_cert_path, server_key_path)
                context = self._create_server_context(trust_store, identity)
                policy = ServerTlsPolicy(trust_store=trust_store, identity=identity, context=context)
        except MTLSError as e:
            self.logger.error(f"Failed to build server TLS policy: {e}")
            return TLSBuildResult.error_result(self._wrap_error("build_server_policy", e))

        self.logger.info(f"Server TLS policy ready for {identity.info.subject}")
        return TLSBuildResult.success_result(policy)

    def build_client_policy(self,
                            ca_cert_path: Optional[str] = None,
                            client_cert_path: Optional[str] = None,
                            client_key_path: Optional[str] = None) -> TLSBuildResult:
        """
        Build the client TLS policy: trust store and client identity, with
        the platform's default protocol versions and ciphers.

        Paths default to the configured ones.
        """
        ca_cert_path = ca_cert_path or self.config.ca_cert_path
        client_cert_path = client_cert_path or self.config.client_cert_path
        client_key_path = client_key_path or self.config.client_key_path

        try:
            with self._measure("client"):
                trust_store = self.load_trust_store(ca_cert_path)
                identity = self.load_identity(client_cert_path, client_key_path)
                context = self._create_client_context(trust_store, identity)
                policy = ClientTlsPolicy(
                    trust_store=trust_store,
                    identity=identity,
                    context=context,
                    timeout_seconds=getattr(self.config, 'request_timeout_seconds', CLIENT_REQUEST_TIMEOUT_SECONDS)
                )
        except MTLSError as e:
            self.logger.error(f"Failed to build client TLS policy: {e}")
            return TLSBuildResult.error_result(self._wrap_error("build_client_policy", e))

        self.logger.info(f"Client TLS policy ready for {identity.info.subject}")
        return TLSBuildResult.success_result(policy)

    def _create_server_context(self, trust_store: TrustStore, identity: Identity) -> ssl.SSLContext:
        """Create SSL context configured for mTLS on the server side."""
        # cadata keeps the system CA store out of client verification
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH, cadata=trust_store.pem)
        context.minimum_version = SERVER_MINIMUM_VERSION
        context.verify_mode = ssl.CERT_REQUIRED
        self._load_cert_chain(context, identity)

        try:
            context.set_ciphers(":".join(openssl_name for _, openssl_name in SERVER_CIPHER_SUITES))
        except ssl.SSLError as e:
            raise CertError("set_ciphers", cause=e) from e

        self._set_curve_preferences(context)

        self.logger.debug("SSL context configured for mTLS server")
        return context

    def _set_curve_preferences(self, context: ssl.SSLContext):
        """
        Restrict key exchange to the preferred curves, in order, where the
        runtime can set a group list. Otherwise OpenSSL's default groups,
        which include all three curves, stay in effect.
        """
        if not hasattr(context, "set_groups"):
            self.logger.debug("ssl has no group list setter; keeping default key exchange groups")
            return

        groups = ":".join(SERVER_CURVE_PREFERENCES)
        try:
            context.set_groups(groups)
        except (ValueError, ssl.SSLError) as e:
            raise CertError("set_groups", groups, e) from e

    def _create_client_context(self, trust_store: TrustStore, identity: Identity) -> ssl.SSLContext:
        """Create SSL context that trusts the CA and presents the client identity."""
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cadata=trust_store.pem)
        self._load_cert_chain(context, identity)
        self.logger.debug("SSL context configured for mTLS client")
        return context

    def _load_cert_chain(self, context: ssl.SSLContext, identity: Identity):
        try:
            context.load_cert_chain(certfile=identity.cert_path, keyfile=identity.key_path)
        except ssl.SSLError as e:
            raise CertError("load_cert_chain", f"{identity.cert_path} {identity.key_path}", e) from e
        except OSError as e:
            raise CertFileError("load_cert_chain", f"{identity.cert_path} {identity.key_path}", e) from e

    def _read_file(self, path: str) -> bytes:
        """Read a certificate or key file in one go."""
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise CertFileError("read", path, e) from e

    def _measure(self, kind: str):
        if self.logging_service:
            return self.logging_service.measure_performance("build_policy", kind)
        return nullcontext()

    @staticmethod
    def _wrap_error(builder: str, error: MTLSError) -> MTLSError:
        wrapped = type(error)(f"{builder}: {error.operation}", error.target, error.cause, error.message)
        wrapped.__cause__ = error
        return wrapped

    @staticmethod
    def _public_key_bytes(public_key) -> bytes:
        return public_key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo
        )

    def _get_certificate_info(self, cert: x509.Certificate) -> CertificateInfo:
        """Extract information from a certificate."""
        now = datetime.now(timezone.utc)
        not_before = cert.not_valid_before_utc
        not_after = cert.not_valid_after_utc

        return CertificateInfo(
            subject=cert.subject.rfc4514_string(),
            issuer=cert.issuer.rfc4514_string(),
            serial_number=str(cert.serial_number),
            not_before=not_before,
            not_after=not_after,
            is_valid=not_before <= now <= not_after,
            fingerprint=cert.fingerprint(hashes.SHA256()).hex()
        )
