"""
Error taxonomy for TLS policy construction and the mTLS exchange.

Every error carries the operation that failed and the file, address or
argument it was working on, so callers can diagnose a failure without
tracing into ``ssl``, ``cryptography`` or ``requests``.
"""
from typing import Optional


class MTLSError(Exception):
    """Base class for all classified mTLS errors."""

    kind = "error"

    def __init__(self, operation: str, target: Optional[str] = None,
                 cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.operation = operation
        self.target = target
        self.cause = cause
        self.message = message
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.operation]
        if self.target:
            parts.append(self.target)
        detail = self.message or (str(self.cause) if self.cause is not None else None)
        if detail:
            parts.append(detail)
        return ": ".join(parts)


class CertFileError(MTLSError):
    """A certificate or key file could not be read."""
    kind = "io"


class CertError(MTLSError):
    """Malformed certificate or key, key mismatch, unusable trust store or rejected TLS parameters."""
    kind = "cert"


class NetworkError(MTLSError):
    """Listener bind failure, refused connection, handshake failure or timeout."""
    kind = "network"


class ProtocolError(MTLSError):
    """The peer answered with something other than the expected response."""
    kind = "protocol"


class UsageError(MTLSError):
    """Unrecognized command-line argument."""
    kind = "usage"
