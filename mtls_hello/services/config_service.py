"""
Configuration service for loading and validating application settings.
"""
import os
import configparser
from typing import Optional, Dict, Any
import logging

from ..models.config import Config, ConfigValidationError, ConfigValidationResult


class ConfigService:
    """Service for loading and validating application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config = None
        if config_path:
            self._config = self.load_config(config_path)

    def get_config(self) -> Config:
        """
        Get the loaded configuration, falling back to the defaults.

        Returns:
            Config object
        """
        if self._config is None:
            self._config = Config()
        return self._config

    def load_config(self, config_path: str) -> Config:
        """
        Load configuration from a property file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Config object with loaded settings

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = self._load_config_file(config_path)
        config = self._create_config_from_data(config_data)

        self._config = config
        self.logger.info(f"Loaded configuration from {config_path}")
        return config

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Load configuration data from file."""
        config_parser = configparser.ConfigParser()

        try:
            config_parser.read(config_path)
        except configparser.Error as e:
            raise ValueError(f"Failed to parse configuration file: {e}")

        # Flatten to section.key
        config_data = {}
        for section in config_parser.sections():
            for key, value in config_parser.items(section):
                config_data[f"{section}.{key}"] = value

        for key, value in config_parser.defaults().items():
            config_data.setdefault(key, value)

        return config_data

    def _create_config_from_data(self, config_data: Dict[str, Any]) -> Config:
        """Create Config object from configuration data."""
        config_mapping = {
            # Certificate settings
            "tls.ca_cert_path": ("ca_cert_path", str),
            "ca_cert_path": ("ca_cert_path", str),
            "tls.server_cert_path": ("server_cert_path", str),
            "server_cert_path": ("server_cert_path", str),
            "tls.server_key_path": ("server_key_path", str),
            "server_key_path": ("server_key_path", str),
            "tls.client_cert_path": ("client_cert_path", str),
            "client_cert_path": ("client_cert_path", str),
            "tls.client_key_path": ("client_key_path", str),
            "client_key_path": ("client_key_path", str),

            # Server settings
            "server.bind_host": ("bind_host", str),
            "bind_host": ("bind_host", str),
            "server.port": ("port", int),
            "port": ("port", int),

            # Client settings
            "client.server_host": ("server_host", str),
            "server_host": ("server_host", str),
            "client.request_timeout_seconds": ("request_timeout_seconds", int),
            "request_timeout_seconds": ("request_timeout_seconds", int),

            # Application settings
            "app.log_level": ("log_level", str),
            "log_level": ("log_level", str),
            "app.log_file_path": ("log_file_path", str),
            "log_file_path": ("log_file_path", str),
        }

        config_kwargs = {}
        for config_key, raw_value in config_data.items():
            if config_key not in config_mapping:
                self.logger.debug(f"Ignoring unknown configuration key: {config_key}")
                continue

            field_name, field_type = config_mapping[config_key]
            try:
                if field_type == int:
                    value = int(raw_value)
                else:
                    value = str(raw_value).strip() or None
                config_kwargs[field_name] = value
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid value for {config_key}: {raw_value} ({e})")

        # Empty strings mean "keep the default" except for the optional log file
        config_kwargs = {
            k: v for k, v in config_kwargs.items() if v is not None or k == "log_file_path"
        }
        if "log_level" in config_kwargs:
            config_kwargs["log_level"] = config_kwargs["log_level"].upper()

        return Config(**config_kwargs)

    def validate_config(self, config: Config, mode: str) -> ConfigValidationResult:
        """
        Validate configuration settings for a run mode.

        Args:
            config: Configuration object to validate
            mode: "server" or "client"

        Returns:
            ConfigValidationResult with validation results
        """
        errors = []
        warnings = []

        for field_name, cert_path in config.cert_paths_for(mode).items():
            if not cert_path:
                errors.append(ConfigValidationError(
                    field_name,
                    f"{field_name} is required in {mode} mode"
                ))
            elif not os.path.exists(cert_path):
                errors.append(ConfigValidationError(
                    field_name,
                    f"Certificate file not found: {cert_path}"
                ))

        if config.log_file_path:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                warnings.append(ConfigValidationError(
                    "log_file_path",
                    f"Log directory does not exist: {log_dir}",
                    "warning"
                ))

        if mode == "server" and config.port < 1024:
            warnings.append(ConfigValidationError(
                "port",
                f"Port {config.port} is privileged and may need elevated permissions",
                "warning"
            ))

        all_issues = errors + warnings
        return ConfigValidationResult(
            is_valid=len(errors) == 0,
            errors=all_issues,
            warnings=[]
        )

    def create_default_config_file(self, config_path: str) -> None:
        """
        Create a default configuration file.

        Args:
            config_path: Path where to create the config file
        """
        config_content = """# mTLS hello configuration file

[tls]
ca_cert_path = ./ca.crt
server_cert_path = ./server.crt
server_key_path = ./server.key
client_cert_path = ./client.crt
client_key_path = ./client.key

[server]
bind_host = 0.0.0.0
port = 1443

[client]
server_host = localhost
request_timeout_seconds = 180

[app]
log_level = INFO
log_file_path =
"""

        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(config_path, 'w') as f:
            f.write(config_content)

        self.logger.info(f"Created default configuration file: {config_path}")
