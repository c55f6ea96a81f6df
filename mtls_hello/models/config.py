"""
Configuration data models for the mTLS hello application.
"""
import os
from dataclasses import dataclass, replace
from typing import Optional


@dataclass
class Config:
    """Main configuration class containing all application settings."""

    # Certificate settings
    ca_cert_path: str = "./ca.crt"
    server_cert_path: str = "./server.crt"
    server_key_path: str = "./server.key"
    client_cert_path: str = "./client.crt"
    client_key_path: str = "./client.key"

    # Server settings
    bind_host: str = "0.0.0.0"
    port: int = 1443

    # Client settings
    server_host: str = "localhost"
    request_timeout_seconds: int = 180

    # Application settings
    log_level: str = "INFO"
    log_file_path: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError("port must be an integer between 1 and 65535")

        if not isinstance(self.request_timeout_seconds, int) or self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be a positive integer")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @property
    def server_url(self) -> str:
        """URL the client requests."""
        return f"https://{self.server_host}:{self.port}/"

    def with_cert_dir(self, cert_dir: str) -> 'Config':
        """Return a copy with every certificate path re-rooted under ``cert_dir``."""
        return replace(
            self,
            ca_cert_path=os.path.join(cert_dir, os.path.basename(self.ca_cert_path)),
            server_cert_path=os.path.join(cert_dir, os.path.basename(self.server_cert_path)),
            server_key_path=os.path.join(cert_dir, os.path.basename(self.server_key_path)),
            client_cert_path=os.path.join(cert_dir, os.path.basename(self.client_cert_path)),
            client_key_path=os.path.join(cert_dir, os.path.basename(self.client_key_path)),
        )

    def cert_paths_for(self, mode: str) -> dict:
        """Certificate files a mode needs, keyed by config field name."""
        if mode == "server":
            return {
                "ca_cert_path": self.ca_cert_path,
                "server_cert_path": self.server_cert_path,
                "server_key_path": self.server_key_path,
            }
        if mode == "client":
            return {
                "ca_cert_path": self.ca_cert_path,
                "client_cert_path": self.client_cert_path,
                "client_key_path": self.client_key_path,
            }
        raise ValueError(f"unknown mode: {mode}")


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: list[ConfigValidationError]
    warnings: list[ConfigValidationError]

    def __post_init__(self):
        """Separate errors and warnings."""
        all_issues = self.errors + self.warnings
        self.errors = [e for e in all_issues if e.severity == "error"]
        self.warnings = [e for e in all_issues if e.severity == "warning"]

    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        """Check if there are any validation warnings."""
        return len(self.warnings) > 0

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines) if lines else "Configuration is valid"
