"""Logging module for Waypoint.

Provides structured logging with JSON format, navigation IDs, and sensitive
data redaction.
"""

import contextvars
import json
import logging
import sys
import uuid
from datetime import UTC, datetime
from typing import Any

from waypoint.core.config import LoggingConfig

_navigation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "waypoint_navigation_id", default=None
)

_STANDARD_RECORD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "navigation_id",
        "extra_fields",
    }
)


class NavigationIdFilter(logging.Filter):
    """Logging filter that adds the current navigation ID to log records.

    The ID lives in a context variable, so concurrent navigations running as
    separate tasks each see their own.
    """

    def set_navigation_id(self, navigation_id: str) -> contextvars.Token:
        """Set the navigation ID for the current context.

        Args:
            navigation_id: The navigation ID to use

        Returns:
            Token that restores the previous value
        """
        return _navigation_id.set(navigation_id)

    def clear_navigation_id(self, token: contextvars.Token | None = None) -> None:
        """Clear the navigation ID, or restore the value saved in ``token``."""
        if token is not None:
            _navigation_id.reset(token)
        else:
            _navigation_id.set(None)

    def filter(self, record: logging.LogRecord) -> bool:
        """Add navigation ID to the log record.

        Args:
            record: The log record to filter

        Returns:
            True to include the record
        """
        record.navigation_id = _navigation_id.get() or "none"  # type: ignore
        return True


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def __init__(self, redact_patterns: list[str] | None = None):
        """Initialize the JSON formatter.

        Args:
            redact_patterns: List of field names to redact from logs
        """
        super().__init__()
        self.redact_patterns = redact_patterns or []

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "navigation_id": getattr(record, "navigation_id", "none"),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            log_data.update(self._redact_sensitive_data(extra))

        custom = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_FIELDS
        }
        log_data.update(self._redact_sensitive_data(custom))

        return json.dumps(log_data, default=str)

    def _redact_sensitive_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive data from log fields.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            Dictionary with sensitive fields redacted
        """
        redacted: dict[str, Any] = {}
        for key, value in data.items():
            if any(pattern.lower() in str(key).lower() for pattern in self.redact_patterns):
                redacted[key] = "***REDACTED***"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive_data(value)
            else:
                redacted[key] = value
        return redacted


class TextFormatter(logging.Formatter):
    """Custom text formatter for human-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as text.

        Args:
            record: The log record to format

        Returns:
            Formatted log string
        """
        timestamp = datetime.now(UTC).isoformat()
        navigation_id = getattr(record, "navigation_id", "none")

        base = (
            f"{timestamp} [{record.levelname}] "
            f"[{navigation_id}] "
            f"{record.name}: {record.getMessage()}"
        )

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class RouterLogger:
    """Router logger with structured navigation events and navigation IDs."""

    def __init__(self, config: LoggingConfig | None = None, configure_handlers: bool = True):
        """Initialize the router logger.

        Args:
            config: Logging configuration
            configure_handlers: Install a handler on the ``waypoint`` logger;
                pass False to leave handler setup to the application
        """
        self.config = config or LoggingConfig()
        self.navigation_filter = NavigationIdFilter()
        if configure_handlers:
            self._setup_logging()

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        logger = logging.getLogger("waypoint")
        logger.setLevel(getattr(logging, self.config.level))
        logger.handlers.clear()

        handler: logging.Handler
        if self.config.output == "stdout":
            handler = logging.StreamHandler(sys.stdout)
        elif self.config.output == "stderr":
            handler = logging.StreamHandler(sys.stderr)
        else:
            # Anything else is a file path
            handler = logging.FileHandler(self.config.output)

        formatter: logging.Formatter
        if self.config.format.lower() == "json":
            formatter = JsonFormatter(redact_patterns=self.config.redact_fields)
        else:
            formatter = TextFormatter()

        handler.setFormatter(formatter)
        handler.addFilter(self.navigation_filter)
        logger.addHandler(handler)

        logger.propagate = False

    def set_navigation_id(self, navigation_id: str | None = None) -> str:
        """Set or generate a navigation ID for the current context.

        Args:
            navigation_id: Optional navigation ID. If None, generates a new one.

        Returns:
            The navigation ID that was set
        """
        if navigation_id is None:
            navigation_id = self.generate_navigation_id()
        self.navigation_filter.set_navigation_id(navigation_id)
        return navigation_id

    def clear_navigation_id(self) -> None:
        """Clear the current navigation ID."""
        self.navigation_filter.clear_navigation_id()

    @staticmethod
    def current_navigation_id() -> str | None:
        return _navigation_id.get()

    @staticmethod
    def generate_navigation_id() -> str:
        """Generate a unique navigation ID.

        Returns:
            A unique navigation ID
        """
        return f"nav-{uuid.uuid4().hex[:16]}"

    def get_logger(self, name: str = "waypoint.navigation") -> logging.Logger:
        """Get a logger instance.

        Args:
            name: Logger name (default: "waypoint.navigation")

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    def log_navigation(
        self,
        action: str,
        path: str,
        outcome: str,
        duration_ms: float | None = None,
        from_path: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log the outcome of a navigation.

        Args:
            action: Navigation action (push, replace, ...)
            path: Requested path
            outcome: completed, cancelled, not_found, redirect_loop or error
            duration_ms: Pipeline duration in milliseconds
            from_path: Path of the route that was current before
            **kwargs: Additional fields to log
        """
        logger = self.get_logger()
        extra_fields: dict[str, Any] = {
            "event_type": "navigation",
            "navigation": {
                "action": action,
                "path": path,
                "from": from_path,
                "outcome": outcome,
                "duration_ms": duration_ms,
            },
        }
        extra_fields.update(kwargs)

        if outcome in ("redirect_loop", "error"):
            log_level = logging.ERROR
        elif outcome in ("cancelled", "not_found"):
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        message = f"{action} {path} -> {outcome}"
        if duration_ms is not None:
            message += f" ({duration_ms:.2f}ms)"
        logger.log(log_level, message, extra={"extra_fields": extra_fields})

    def log_guard_event(
        self,
        guard: str,
        path: str,
        result: str,
        reason: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a guard decision that stopped a navigation.

        Args:
            guard: Guard name
            path: Target path
            result: deny or redirect
            reason: Deny reason or redirect target
            **kwargs: Additional fields to log
        """
        logger = self.get_logger()
        guard_data: dict[str, Any] = {"name": guard, "result": result}
        if reason:
            guard_data["reason"] = reason

        extra_fields: dict[str, Any] = {"event_type": "guard", "path": path, "guard": guard_data}
        extra_fields.update(kwargs)

        message = f"Guard {guard} returned {result} for {path}"
        if reason:
            message += f" - {reason}"
        logger.log(logging.INFO, message, extra={"extra_fields": extra_fields})

    def log_middleware_event(
        self,
        middleware: str,
        path: str,
        result: str,
        reason: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a middleware result that stopped a navigation.

        Args:
            middleware: Middleware name
            path: Target path
            result: abort or redirect
            reason: Abort reason or redirect target
            **kwargs: Additional fields to log
        """
        logger = self.get_logger()
        middleware_data: dict[str, Any] = {"name": middleware, "result": result}
        if reason:
            middleware_data["reason"] = reason

        extra_fields: dict[str, Any] = {
            "event_type": "middleware",
            "path": path,
            "middleware": middleware_data,
        }
        extra_fields.update(kwargs)

        message = f"Middleware {middleware} returned {result} for {path}"
        if reason:
            message += f" - {reason}"
        logger.log(logging.INFO, message, extra={"extra_fields": extra_fields})

    def log_redirect(
        self,
        source: str,
        from_path: str,
        to_path: str,
        hop: int,
        **kwargs: Any,
    ) -> None:
        """Log one redirect hop.

        Args:
            source: rule, guard or middleware
            from_path: Path being redirected
            to_path: Redirect target
            hop: Hop number within the navigation
            **kwargs: Additional fields to log
        """
        logger = self.get_logger()
        extra_fields: dict[str, Any] = {
            "event_type": "redirect",
            "redirect": {"source": source, "from": from_path, "to": to_path, "hop": hop},
        }
        extra_fields.update(kwargs)

        logger.log(
            logging.DEBUG,
            f"Redirect ({source}) {from_path} -> {to_path} [hop {hop}]",
            extra={"extra_fields": extra_fields},
        )


def setup_logging(config: LoggingConfig) -> RouterLogger:
    """Configure the ``waypoint`` logger (convenience function).

    Args:
        config: Logging configuration

    Returns:
        Configured RouterLogger instance
    """
    return RouterLogger(config)
