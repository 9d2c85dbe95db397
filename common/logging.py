"""
Structured logging for the handler toolkit.

Log records are emitted as one JSON object per line (or a plain text line with
``format_type="simple"``). The request id and client address of the request
being served are attached to every record through context variables.
"""

import json
import logging
import sys
import uuid
from typing import Any, Dict, List, Optional
from contextvars import ContextVar
from datetime import datetime, timezone

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
client_ip_var: ContextVar[Optional[str]] = ContextVar('client_ip', default=None)

SIMPLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Attributes every LogRecord carries; anything else came in through `extra=`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {'message', 'asctime'}

# Third-party loggers that are only interesting when something is wrong
_QUIET_LOGGERS = ("uvicorn", "fastapi", "multipart", "python_multipart", "slowapi")


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single-line JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for key, var in (("request_id", request_id_var), ("client_ip", client_ip_var)):
            value = var.get()
            if value:
                entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        )

        try:
            return json.dumps(entry, default=str, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            return f"LOG_SERIALIZATION_ERROR: {e} | Original message: {entry['message']}"


class RequestContextLogger:
    """Bind a request id (generated when absent) and client address for the
    duration of a ``with`` block."""

    def __init__(self, request_id: Optional[str] = None, client_ip: Optional[str] = None):
        self.request_id = request_id or uuid.uuid4().hex
        self.client_ip = client_ip
        self._tokens = []

    def __enter__(self) -> "RequestContextLogger":
        self._tokens.append(request_id_var.set(self.request_id))
        self._tokens.append(client_ip_var.set(self.client_ip))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        while self._tokens:
            token = self._tokens.pop()
            token.var.reset(token)


def _build_handlers(formatter: logging.Formatter, log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    log_file: Optional[str] = None
) -> None:
    """
    Replace the root logger's handlers with stdout (and optionally file) output.

    Args:
        level: Logging level name; unknown names fall back to INFO
        format_type: 'structured' for JSON lines, anything else for plain text
        log_file: Optional path that receives the same records as stdout
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    formatter = StructuredFormatter() if format_type == "structured" else logging.Formatter(SIMPLE_FORMAT)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(numeric_level)
    for handler in _build_handlers(formatter, log_file):
        root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def _emit(channel: str, level: int, message: str, **fields: Any) -> None:
    get_logger(channel).log(level, message, extra=fields)


def log_security_event(
    event_type: str,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Log a security-relevant event on the ``security`` channel (WARNING)."""
    _emit(
        "security", logging.WARNING, f"Security event: {event_type}",
        event_type=event_type,
        ip_address=ip_address or client_ip_var.get(),
        details=details or {},
    )


def log_upload_event(
    action: str,
    original_name: str,
    stored_name: str,
    size_bytes: int,
    destination: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    _emit(
        "uploads", logging.INFO, f"Upload {action}: {original_name} -> {stored_name}",
        action=action,
        original_name=original_name,
        stored_name=stored_name,
        size_bytes=size_bytes,
        destination=destination,
        details=details or {},
    )


def log_api_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_agent: Optional[str] = None
) -> None:
    """Access log line; 5xx responses are logged at ERROR."""
    level = logging.ERROR if status_code >= 500 else logging.INFO
    _emit(
        "api", level, f"{method} {path} {status_code}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        user_agent=user_agent,
    )


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log an unexpected exception with its traceback and any toolkit context."""
    fields: Dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **(context or {}),
    }
    for attr, key in (("context", "exception_context"), ("error_code", "error_code")):
        if hasattr(error, attr):
            fields[key] = getattr(error, attr)

    get_logger("error").error(
        f"Unhandled {type(error).__name__}",
        extra=fields,
        exc_info=error,
    )
