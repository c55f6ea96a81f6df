"""
Logging setup and operation timing for the mTLS hello application.
"""
import json
import logging
import logging.handlers
import sys
import time
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager


CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the optional log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'thread': record.threadName,
        }

        timing = getattr(record, 'timing', None)
        if timing is not None:
            entry['timing'] = timing

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry['exception'] = {
                'type': exc_type.__name__ if exc_type else None,
                'kind': getattr(exc_value, 'kind', None),
                'message': str(exc_value) if exc_value else None,
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


@dataclass
class TimedOperation:
    """Outcome of one timed policy build or request."""
    operation: str
    target: Optional[str]
    duration_ms: float
    success: bool
    error_kind: Optional[str] = None


class PerformanceMonitor:
    """Times operations and logs one record per measurement."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def measure_operation(self, operation: str, target: Optional[str] = None):
        """
        Time the enclosed block. Exceptions propagate unchanged; the record
        notes the error kind (``MTLSError.kind`` or the exception class).
        """
        start_time = time.perf_counter()
        timed = TimedOperation(operation=operation, target=target, duration_ms=0.0, success=True)

        try:
            yield timed
        except Exception as e:
            timed.success = False
            timed.error_kind = getattr(e, 'kind', type(e).__name__)
            raise
        finally:
            timed.duration_ms = (time.perf_counter() - start_time) * 1000
            outcome = "ok" if timed.success else f"failed ({timed.error_kind})"
            self.logger.debug(
                f"{operation} {target or '-'} {outcome} in {timed.duration_ms:.1f}ms",
                extra={'timing': asdict(timed)}
            )


class LoggingService:
    """Configures the root logger and times TLS operations."""

    def __init__(self, config):
        """
        Initialize logging from configuration.

        Raises:
            OSError: If the log file cannot be opened
        """
        self.config = config
        self.performance_monitor = PerformanceMonitor()
        self._setup_logging()
        self.logger = logging.getLogger(__name__)
        self.logger.debug("Logging service initialized")

    def _setup_logging(self):
        """Configure the root logger."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger.setLevel(log_level)

        # stdout carries the client's response body, so logs go to stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console_handler.setLevel(log_level)
        root_logger.addHandler(console_handler)

        if self.config.log_file_path:
            Path(self.config.log_file_path).parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                filename=self.config.log_file_path,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setFormatter(JSONFormatter())
            file_handler.setLevel(log_level)
            root_logger.addHandler(file_handler)

    def measure_performance(self, operation: str, target: Optional[str] = None):
        """Timing context for a policy build or a client request."""
        return self.performance_monitor.measure_operation(operation, target)
