"""Structured logging utilities for Argo Bridge.

This module provides a structured logger that outputs JSON-formatted logs
for production environments and human-readable logs for development.
"""
import os
import sys
import json
import traceback
from datetime import datetime, timezone
from typing import Any, Optional, TextIO


class StructuredLogger:
    """Structured logger that outputs JSON in production, readable text in dev."""

    def __init__(
        self,
        level: str = 'INFO',
        json_output: Optional[bool] = None,
        stream: Optional[TextIO] = None,
        err_stream: Optional[TextIO] = None,
    ):
        """Initialize logger.

        Args:
            level: Minimum log level (DEBUG, INFO, WARN, ERROR, FATAL)
            json_output: Force JSON (True) or readable (False) output.
                None picks JSON when stdout is not a TTY.
            stream: Destination for DEBUG/INFO (default: sys.stdout)
            err_stream: Destination for WARN and above (default: sys.stderr)
        """
        self.level = level.upper()
        self.levels = {'DEBUG': 0, 'INFO': 1, 'WARN': 2, 'ERROR': 3, 'FATAL': 4}
        self._stream = stream
        self._err_stream = err_stream
        if json_output is None:
            json_output = not sys.stdout.isatty()
        self._json = json_output

    def _should_log(self, level: str) -> bool:
        """Check if message at given level should be logged."""
        level_num = self.levels.get(level.upper(), 1)
        min_level_num = self.levels.get(self.level, 1)
        return level_num >= min_level_num

    def _log(self, level: str, message: str, **kwargs) -> None:
        """Internal logging method.

        Args:
            level: Log level (DEBUG, INFO, WARN, ERROR, FATAL)
            message: Log message
            **kwargs: Additional structured fields
        """
        if not self._should_log(level):
            return

        entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level.upper(),
            'msg': message,
            **kwargs
        }

        # Output to stderr for WARN and above, stdout for DEBUG/INFO
        if level.upper() in ('WARN', 'ERROR', 'FATAL'):
            output_stream = self._err_stream or sys.stderr
        else:
            output_stream = self._stream or sys.stdout

        if not self._json:
            # Human-readable format for development
            level_color = {
                'DEBUG': '\033[36m',  # Cyan
                'INFO': '\033[32m',   # Green
                'WARN': '\033[33m',   # Yellow
                'ERROR': '\033[31m',  # Red
                'FATAL': '\033[35m',  # Magenta
            }.get(level.upper(), '')
            reset = '\033[0m'

            parts = [f"{level_color}[{level.upper()}]{reset} {message}"]
            if kwargs:
                kv_parts = []
                for k, v in kwargs.items():
                    if isinstance(v, (dict, list)):
                        v = json.dumps(v, default=str)[:100]  # Truncate long values
                    kv_parts.append(f"{k}={v}")
                if kv_parts:
                    parts.append(" | " + " ".join(kv_parts))

            print(" ".join(parts), file=output_stream)
        else:
            # JSON format for production (parseable by log aggregators)
            print(json.dumps(entry, default=str), file=output_stream)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._log('INFO', message, **kwargs)

    def warn(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._log('WARN', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self._log('ERROR', message, **kwargs)

    def fatal(self, message: str, **kwargs) -> None:
        """Log a non-crashing failure that needs operator attention."""
        self._log('FATAL', message, **kwargs)


def log_exception(log: StructuredLogger, exc: BaseException, **kwargs) -> None:
    """Log an exception with its traceback at FATAL level."""
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log.fatal(str(exc) or exc.__class__.__name__, error=exc.__class__.__name__, trace=trace, **kwargs)


def level_from_setting(value: Optional[str]) -> str:
    """Map ARGO_BRIDGE_LOGGING_LEVEL to a logger level: 'debug' enables DEBUG, anything else is INFO."""
    return 'DEBUG' if (value or '').strip().lower() == 'debug' else 'INFO'


def create_logger(level: Optional[str] = None, json_logging: Optional[bool] = None) -> StructuredLogger:
    return StructuredLogger(level=level_from_setting(level), json_output=json_logging)


# Fallback logger for components constructed without one.
# Log level can be set via ARGO_BRIDGE_LOGGING_LEVEL environment variable
logger = create_logger(os.getenv('ARGO_BRIDGE_LOGGING_LEVEL', 'debug'))
