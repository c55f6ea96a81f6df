"""
Security models for mTLS trust stores, identities and TLS policies.
"""
import ssl
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from .errors import MTLSError


# IANA cipher suite name -> OpenSSL name, in server preference order.
SERVER_CIPHER_SUITES: Tuple[Tuple[str, str], ...] = (
    ("TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384", "ECDHE-RSA-AES256-GCM-SHA384"),
    ("TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA", "ECDHE-RSA-AES256-SHA"),
    ("TLS_RSA_WITH_AES_256_GCM_SHA384", "AES256-GCM-SHA384"),
    ("TLS_RSA_WITH_AES_256_CBC_SHA", "AES256-SHA"),
    ("TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256", "ECDHE-RSA-AES128-GCM-SHA256"),
    ("TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256", "ECDHE-ECDSA-AES128-GCM-SHA256"),
)

# P-521, P-384, P-256 (strongest first), as OpenSSL curve names.
SERVER_CURVE_PREFERENCES: Tuple[str, ...] = ("secp521r1", "secp384r1", "prime256v1")

SERVER_MINIMUM_VERSION = ssl.TLSVersion.TLSv1_2

CLIENT_REQUEST_TIMEOUT_SECONDS = 180


@dataclass(frozen=True)
class CertificateInfo:
    """Information about a certificate."""
    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime
    is_valid: bool
    fingerprint: str


@dataclass(frozen=True)
class TrustStore:
    """Set of trusted CA certificates parsed from a PEM bundle."""
    source_path: str
    certificates: Tuple[x509.Certificate, ...]
    pem: str

    def __len__(self) -> int:
        return len(self.certificates)

    def contains(self, cert: x509.Certificate) -> bool:
        """Check whether ``cert`` is one of the trusted CA certificates."""
        fingerprint = cert.fingerprint(hashes.SHA256())
        return any(c.fingerprint(hashes.SHA256()) == fingerprint for c in self.certificates)


@dataclass(frozen=True)
class Identity:
    """A certificate and its matching private key, loaded from two files."""
    cert_path: str
    key_path: str
    certificate: x509.Certificate
    info: CertificateInfo


@dataclass(frozen=True)
class ServerTlsPolicy:
    """Server-side TLS configuration that mandates client certificates."""
    trust_store: TrustStore
    identity: Identity
    context: ssl.SSLContext = field(compare=False, repr=False)
    minimum_version: ssl.TLSVersion = SERVER_MINIMUM_VERSION
    curve_preferences: Tuple[str, ...] = SERVER_CURVE_PREFERENCES
    cipher_suites: Tuple[str, ...] = tuple(name for name, _ in SERVER_CIPHER_SUITES)
    client_auth: ssl.VerifyMode = ssl.CERT_REQUIRED

    def __post_init__(self):
        if self.client_auth != ssl.CERT_REQUIRED:
            raise ValueError("server policy must require and verify client certificates")
        if self.context.verify_mode != ssl.CERT_REQUIRED:
            raise ValueError("server SSL context must use CERT_REQUIRED")


@dataclass(frozen=True)
class ClientTlsPolicy:
    """Client-side TLS configuration presenting an identity to the server."""
    trust_store: TrustStore
    identity: Identity
    context: ssl.SSLContext = field(compare=False, repr=False)
    timeout_seconds: int = CLIENT_REQUEST_TIMEOUT_SECONDS


Policy = Union[ServerTlsPolicy, ClientTlsPolicy]


@dataclass
class TLSBuildResult:
    """Result of building a TLS policy."""
    success: bool
    policy: Optional[Policy] = None
    error: Optional[MTLSError] = None

    @classmethod
    def success_result(cls, policy: Policy) -> 'TLSBuildResult':
        """Create a successful build result."""
        return cls(success=True, policy=policy)

    @classmethod
    def error_result(cls, error: MTLSError) -> 'TLSBuildResult':
        """Create a failed build result. No policy is attached."""
        return cls(success=False, error=error)

    def unwrap(self) -> Policy:
        """Return the policy, or raise the classified error."""
        if not self.success:
            raise self.error
        return self.policy
