"""
Security package for mTLS trust stores, identities and TLS policies.
"""
from .errors import MTLSError, CertFileError, CertError, NetworkError, ProtocolError, UsageError
from .models import (
    CertificateInfo, TrustStore, Identity, ServerTlsPolicy, ClientTlsPolicy, TLSBuildResult
)
from .security_service import SecurityService

__all__ = [
    'MTLSError',
    'CertFileError',
    'CertError',
    'NetworkError',
    'ProtocolError',
    'UsageError',
    'CertificateInfo',
    'TrustStore',
    'Identity',
    'ServerTlsPolicy',
    'ClientTlsPolicy',
    'TLSBuildResult',
    'SecurityService'
]
