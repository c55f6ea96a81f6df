"""
Command-line entry point for the mTLS hello server and client.

    mtls-hello              serve GET / over mTLS on port 1443
    mtls-hello client       request https://localhost:1443/ and print the body
    mtls-hello gen-certs    write ca/server/client certificates
    mtls-hello init-config  write a default configuration file
"""

import sys
import logging
import argparse
from dataclasses import replace
from typing import Optional, List

from .app import HelloFlaskApp
from .models.config import Config
from .models.response import HelloResponse
from .security.errors import MTLSError, UsageError
from .security.security_service import SecurityService
from .services.client_service import MTLSClient
from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .services.pki_service import PKIService


SERVER_COMMAND = None
COMMANDS = ("client", "gen-certs", "init-config")
DEFAULT_CONFIG_FILE = "mtls-hello.properties"


class MTLSHelloApplication:
    """Wires configuration, TLS policies and the HTTP layer together for one run mode."""

    def __init__(self, config: Config, logging_service: Optional[LoggingService] = None):
        self.config = config
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)
        self.security_service = SecurityService(config, logging_service)
        self.server = None

    def create_server(self):
        """Build the server TLS policy and bind the HTTPS listener."""
        policy = self.security_service.build_server_policy().unwrap()
        flask_app = HelloFlaskApp(self.config)
        self.server = flask_app.create_server(policy)
        return self.server

    def run_server(self):
        """Serve until interrupted."""
        server = self.server or self.create_server()
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")
        finally:
            self.shutdown()

    def shutdown(self):
        if self.server is not None:
            self.server.server_close()
            self.server = None
            self.logger.info("Server stopped")

    def run_client(self, url: Optional[str] = None) -> str:
        """
        Perform exactly one request against the server and return the body.

        Raises:
            ProtocolError: If the body is not a hello response
        """
        url = url or self.config.server_url
        policy = self.security_service.build_client_policy().unwrap()
        with MTLSClient(policy, self.logging_service) as client:
            body = client.fetch_text(url)

        HelloResponse.from_json(body)
        return body

    def generate_certificates(self, cert_dir: str, force: bool = False) -> dict:
        return PKIService().generate(cert_dir, force=force)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='mtls-hello', description='mTLS hello-world server and client')
    parser.add_argument('command', nargs='?', default=SERVER_COMMAND,
                        help='"client", "gen-certs" or "init-config"; omit to run the server')
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--cert-dir', help='Directory holding ca/server/client certificate files')
    parser.add_argument('--bind-host', help='Address the server listens on (default: 0.0.0.0)')
    parser.add_argument('--server-host', help='Host name the client connects to (default: localhost)')
    parser.add_argument('--port', type=int, help='Server port (default: 1443)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument('--log-file', help='Also write JSON logs to this file')
    parser.add_argument('--force', action='store_true', help='Overwrite existing files')
    return parser


def resolve_command(command: Optional[str]) -> Optional[str]:
    """Reject unknown commands before any file or network access."""
    if command is not SERVER_COMMAND and command not in COMMANDS:
        raise UsageError("main", message=f"unknown command: {command}")
    return command


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file, if any, and apply command-line overrides."""
    config_service = ConfigService()
    config = config_service.load_config(args.config) if args.config else config_service.get_config()

    if args.cert_dir:
        config = config.with_cert_dir(args.cert_dir)

    overrides = {
        'bind_host': args.bind_host,
        'server_host': args.server_host,
        'port': args.port,
        'log_level': args.log_level,
        'log_file_path': args.log_file,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return replace(config, **overrides) if overrides else config


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    logger = logging.getLogger(__name__)

    try:
        command = resolve_command(args.command)

        if command == "init-config":
            ConfigService().create_default_config_file(args.config or DEFAULT_CONFIG_FILE)
            print(f"Wrote {args.config or DEFAULT_CONFIG_FILE}")
            return

        config = load_config(args)
        logging_service = LoggingService(config)
        app = MTLSHelloApplication(config, logging_service)

        if command == "gen-certs":
            paths = app.generate_certificates(args.cert_dir or ".", force=args.force)
            for path in paths.values():
                print(path)
            return

        mode = "client" if command == "client" else "server"
        validation = ConfigService().validate_config(config, mode)
        if validation.has_errors() or validation.has_warnings():
            logger.warning(validation.get_error_summary())

        if mode == "client":
            print(app.run_client())
        else:
            app.create_server()
            app.run_server()

    except MTLSError as e:
        if logging.getLogger().handlers:
            logger.error(f"{e.kind} error: {e}")
        print(f"fatal: {e}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"fatal: configuration: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
