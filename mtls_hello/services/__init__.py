"""
Services package for the mTLS hello application.
"""

from .config_service import ConfigService
from .logging_service import LoggingService
from .client_service import MTLSClient
from .pki_service import PKIService, CertificateAuthority

__all__ = [
    'ConfigService',
    'LoggingService',
    'MTLSClient',
    'PKIService',
    'CertificateAuthority'
]
