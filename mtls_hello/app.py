"""
Flask application served behind the mTLS listener.
"""
from flask import Flask, request, jsonify
import logging
import socket
import time
from typing import Optional

from werkzeug.serving import make_server, select_address_family, BaseWSGIServer

from .models.config import Config
from .models.response import HelloResponse
from .security.errors import NetworkError
from .security.models import ServerTlsPolicy


class HelloFlaskApp:
    """Flask application with a single JSON route."""

    def __init__(self, config: Optional[Config] = None):
        """Initialize the Flask application."""
        self.app = Flask(__name__)
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

        self._setup_routes()
        self._setup_error_handlers()
        self._setup_request_logging()

    def _setup_routes(self):
        """Set up routes."""

        @self.app.route('/', methods=['GET'])
        def index():
            return self.app.response_class(
                HelloResponse().to_json(),
                status=200,
                mimetype='application/json'
            )

    def _setup_error_handlers(self):
        """Set up error handlers."""

        @self.app.errorhandler(404)
        def not_found(error):
            return jsonify({
                'error': 'Not found',
                'message': 'The requested endpoint does not exist'
            }), 404

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return jsonify({
                'error': 'Method not allowed',
                'message': 'The requested method is not allowed for this endpoint'
            }), 405

        @self.app.errorhandler(500)
        def internal_error(error):
            self.logger.error(f"Internal server error: {error}")
            return jsonify({
                'error': 'Internal server error',
                'message': 'An unexpected error occurred'
            }), 500

    def _setup_request_logging(self):
        """Log one line per request."""

        @self.app.before_request
        def start_timer():
            request.environ['mtls_hello.start'] = time.time()

        @self.app.after_request
        def log_request(response):
            started = request.environ.get('mtls_hello.start', time.time())
            duration_ms = (time.time() - started) * 1000
            self.logger.info(
                f"{request.remote_addr} {request.method} {request.path} "
                f"{response.status_code} {duration_ms:.1f}ms"
            )
            return response

    def create_server(self, policy: ServerTlsPolicy, host: Optional[str] = None,
                      port: Optional[int] = None) -> BaseWSGIServer:
        """
        Open a TCP listener and attach a threaded WSGI server to it.

        Accepted connections are wrapped with the policy's SSL context but
        complete the handshake on first read, inside the request thread,
        so a peer that never sends a ClientHello holds only its own thread.

        Raises:
            NetworkError: If the listener cannot be bound
        """
        host = self.config.bind_host if host is None else host
        port = self.config.port if port is None else port

        try:
            listener = socket.create_server((host, port), family=select_address_family(host, port))
        except OSError as e:
            raise NetworkError("listen", f"{host}:{port}", e) from e

        # werkzeug duplicates the descriptor, so the listener is closed either way
        with listener:
            try:
                server = make_server(host, port, self.app, threaded=True, fd=listener.fileno())
            except OSError as e:
                raise NetworkError("attach listener", f"{host}:{port}", e) from e

        server.socket = policy.context.wrap_socket(
            server.socket, server_side=True, do_handshake_on_connect=False
        )
        # werkzeug reads this for the https scheme and to log handshake failures
        server.ssl_context = policy.context

        bound_port = server.socket.getsockname()[1]
        self.logger.info(f"Listening for mTLS connections on https://{host}:{bound_port}")
        return server

    def get_app(self) -> Flask:
        """Get the Flask application instance."""
        return self.app
