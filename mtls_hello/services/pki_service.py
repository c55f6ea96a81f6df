"""
Offline certificate provisioning: a CA plus server and client identities
signed by it, written as PEM files.
"""
import os
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID, ExtendedKeyUsageOID

from ..security.errors import CertFileError


DEFAULT_VALIDITY_DAYS = 3650
DEFAULT_KEY_SIZE = 2048
DEFAULT_DNS_NAMES = ("localhost",)

SUBJECT_ATTRIBUTES = (
    (NameOID.COUNTRY_NAME, "SO"),
    (NameOID.STATE_OR_PROVINCE_NAME, "Earth"),
    (NameOID.LOCALITY_NAME, "MyLocation"),
    (NameOID.ORGANIZATION_NAME, "MyOrganiz"),
    (NameOID.ORGANIZATIONAL_UNIT_NAME, "MyOrgUnit"),
)


def build_name(common_name: str) -> x509.Name:
    """Build the subject name used for every generated certificate."""
    attributes = [x509.NameAttribute(oid, value) for oid, value in SUBJECT_ATTRIBUTES]
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attributes)


def generate_private_key(key_size: int = DEFAULT_KEY_SIZE) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


@dataclass
class IssuedCertificate:
    """A certificate and the private key it was issued for."""
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey

    def cert_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    def key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )

    def write(self, cert_path: str, key_path: str):
        """Write the certificate and key as PEM; the key is only readable by its owner."""
        write_file(cert_path, self.cert_pem(), 0o644)
        write_file(key_path, self.key_pem(), 0o600)


class CertificateAuthority(IssuedCertificate):
    """Self-signed CA able to issue server and client certificates."""

    @classmethod
    def create(cls,
               common_name: str = "MyOrganiz Root CA",
               validity_days: int = DEFAULT_VALIDITY_DAYS,
               key_size: int = DEFAULT_KEY_SIZE) -> 'CertificateAuthority':
        """Generate a new CA key pair and self-signed certificate."""
        private_key = generate_private_key(key_size)
        subject = issuer = build_name(common_name)
        now = datetime.now(timezone.utc)

        cert = x509.CertificateBuilder().subject_name(
            subject
        ).issuer_name(
            issuer
        ).public_key(
            private_key.public_key()
        ).serial_number(
            x509.random_serial_number()
        ).not_valid_before(
            now - timedelta(minutes=1)
        ).not_valid_after(
            now + timedelta(days=validity_days)
        ).add_extension(
            x509.BasicConstraints(ca=True, path_length=None),
            critical=True,
        ).add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False
            ),
            critical=True,
        ).add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        ).sign(private_key, hashes.SHA256())

        return cls(certificate=cert, private_key=private_key)

    def issue(self,
              common_name: str,
              client: bool = False,
              dns_names: Iterable[str] = DEFAULT_DNS_NAMES,
              validity_days: int = DEFAULT_VALIDITY_DAYS,
              key_size: int = DEFAULT_KEY_SIZE) -> IssuedCertificate:
        """
        Issue a leaf certificate signed by this CA.

        Args:
            common_name: Subject common name
            client: Issue for client authentication instead of server authentication
            dns_names: Subject alternative names
            validity_days: Lifetime of the certificate
            key_size: RSA key size of the new key
        """
        private_key = generate_private_key(key_size)
        now = datetime.now(timezone.utc)
        usage = ExtendedKeyUsageOID.CLIENT_AUTH if client else ExtendedKeyUsageOID.SERVER_AUTH

        cert = x509.CertificateBuilder().subject_name(
            build_name(common_name)
        ).issuer_name(
            self.certificate.subject
        ).public_key(
            private_key.public_key()
        ).serial_number(
            x509.random_serial_number()
        ).not_valid_before(
            now - timedelta(minutes=1)
        ).not_valid_after(
            now + timedelta(days=validity_days)
        ).add_extension(
            x509.BasicConstraints(ca=False, path_length=None),
            critical=True,
        ).add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=True,
                data_encipherment=False, key_agreement=False, key_cert_sign=False,
                crl_sign=False, encipher_only=False, decipher_only=False
            ),
            critical=True,
        ).add_extension(
            x509.ExtendedKeyUsage([usage]),
            critical=False,
        ).add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_names]),
            critical=False,
        ).add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        ).add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(self.private_key.public_key()),
            critical=False,
        ).sign(self.private_key, hashes.SHA256())

        return IssuedCertificate(certificate=cert, private_key=private_key)


def write_file(path: str, data: bytes, mode: int):
    """Write ``data`` to ``path`` with the given permissions."""
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
    except OSError as e:
        raise CertFileError("write", path, e) from e


class PKIService:
    """Generates the CA, server and client certificate files the application expects."""

    FILE_NAMES = ("ca.crt", "ca.key", "server.crt", "server.key", "client.crt", "client.key")

    def __init__(self, key_size: int = DEFAULT_KEY_SIZE, validity_days: int = DEFAULT_VALIDITY_DAYS):
        self.key_size = key_size
        self.validity_days = validity_days
        self.logger = logging.getLogger(__name__)

    def generate(self, cert_dir: str, force: bool = False,
                 authority: Optional[CertificateAuthority] = None) -> Dict[str, str]:
        """
        Generate CA, server and client certificates into ``cert_dir``.

        Args:
            cert_dir: Output directory, created if missing
            force: Overwrite existing files
            authority: Sign with this CA instead of generating a new one

        Returns:
            Mapping of file name to written path

        Raises:
            CertFileError: If a file already exists and ``force`` is not set,
                or a file cannot be written
        """
        paths = {name: os.path.join(cert_dir, name) for name in self.FILE_NAMES}

        if not force:
            existing = [path for path in paths.values() if os.path.exists(path)]
            if existing:
                raise CertFileError(
                    "generate certificates", existing[0],
                    message="file exists (use --force to overwrite)"
                )

        try:
            os.makedirs(cert_dir, exist_ok=True)
        except OSError as e:
            raise CertFileError("create directory", cert_dir, e) from e

        self.logger.info("Generating CA root")
        ca = authority or CertificateAuthority.create(
            validity_days=self.validity_days, key_size=self.key_size
        )
        ca.write(paths["ca.crt"], paths["ca.key"])

        self.logger.info("Generating server certificate")
        server = ca.issue("localhost", client=False,
                          validity_days=self.validity_days, key_size=self.key_size)
        server.write(paths["server.crt"], paths["server.key"])

        self.logger.info("Generating client certificate")
        client = ca.issue("localhost", client=True,
                          validity_days=self.validity_days, key_size=self.key_size)
        client.write(paths["client.crt"], paths["client.key"])

        self.logger.info(f"Wrote certificates to {cert_dir}")
        return paths
