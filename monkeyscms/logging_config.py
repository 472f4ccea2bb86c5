"""
Logging configuration for MonkeysCMS.

Sets up one root handler with either JSON lines (production, log shipping)
or colored console output (development). A request id and the id of the
authenticated user are kept in context variables so every record emitted
while serving a request can be correlated.
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional
from uuid import uuid4

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_context: ContextVar[Optional[int]] = ContextVar("user_id", default=None)

_security_logger_name = "monkeyscms.security"


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON encoded log line
        """
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_context.get()
        if request_id:
            payload["request_id"] = request_id

        user_id = user_id_context.get()
        if user_id is not None:
            payload["user_id"] = user_id

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            payload.update(extra_fields)

        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Colored single-line output for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record with level color, logger name and request id.

        Args:
            record: Log record to format

        Returns:
            Formatted log line
        """
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        parts = [f"{color}{record.levelname:8}{reset}", f"[{record.name}]"]

        request_id = request_id_context.get()
        if request_id:
            parts.append(f"[req:{request_id[:8]}]")

        user_id = user_id_context.get()
        if user_id is not None:
            parts.append(f"[user:{user_id}]")

        parts.append(f"[{record.filename}:{record.lineno}]")
        parts.append(record.getMessage())

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            parts.append(" ".join(f"{key}={value}" for key, value in extra_fields.items()))

        message = " ".join(parts)
        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(
    log_level: str = "INFO",
    service_name: str = "monkeyscms",
    use_json: bool = False,
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Name of the application logger
        use_json: Emit JSON lines instead of colored console output

    Returns:
        The application logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    formatter: logging.Formatter
    if use_json:
        formatter = StructuredFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    else:
        formatter = HumanReadableFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for noisy in ("sqlalchemy.engine", "multipart", "uvicorn.access", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name, typically the module's __name__

    Returns:
        Logger instance
    """
    return logging.getLogger(name or "monkeyscms")


def log_security_event(
    event: str,
    success: bool = True,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Log an authentication or authorization event on the security logger.

    Args:
        event: Dotted event name such as ``login.failed``
        success: Outcome of the event
        level: Logging level for the record
        **fields: Additional structured fields
    """
    logging.getLogger(_security_logger_name).log(
        level,
        f"Security event: {event}",
        extra={"extra_fields": {"event": event, "success": success, **fields}},
    )


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set request ID in context.

    Args:
        request_id: Request ID to set, generates a new UUID if None

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid4())
    request_id_context.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_context.get()


def clear_request_id() -> None:
    """Clear request ID and user ID from context."""
    request_id_context.set(None)
    user_id_context.set(None)


def set_user_id(user_id: Optional[int]) -> None:
    """Attach the authenticated user id to log records of this context."""
    user_id_context.set(user_id)
