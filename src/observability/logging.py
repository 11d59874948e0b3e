"""
Structured Logging Configuration.

structlog setup for benchmark runs:
- JSON lines for collected runs, colored console output while developing
- Query name and phase bound through LogContext
- Latency fields rounded to microsecond precision
- Credentials censored, including passwords inside connection strings
"""

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SERVICE_NAME = "docbench"

_bound_context: ContextVar[dict[str, Any]] = ContextVar("benchmark_log_context", default={})

# user:password@ in mongodb:// and mongodb+srv:// URIs
_URI_CREDENTIALS = re.compile(r"(mongodb(?:\+srv)?://)([^:@/]+):([^@/]+)@")

_REDACTED = "***REDACTED***"

SENSITIVE_KEYS = ("password", "secret", "token", "api_key", "apikey", "credential", "private_key")


class LogContext:
    """
    Bind key/values to every log event emitted inside the block.

    Usage:
        with LogContext(query="uc1_phone_ssn", phase="warmup"):
            logger.info("Running warmup iterations")
    """

    def __init__(self, **values: Any):
        self._values = values
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _bound_context.set({**_bound_context.get(), **self._values})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._token is not None:
            _bound_context.reset(self._token)
        return False


def add_log_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Merge bound context into an event; explicit event fields take precedence."""
    for key, value in _bound_context.get().items():
        event_dict.setdefault(key, value)
    return event_dict


def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def round_latencies(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Round float ``*_ms`` fields to three decimals (one microsecond)."""
    for key, value in event_dict.items():
        if key.endswith("_ms") and isinstance(value, float):
            event_dict[key] = round(value, 3)
    return event_dict


def redact_uri(value: str) -> str:
    """Replace the password of a connection string with a placeholder."""
    return _URI_CREDENTIALS.sub(rf"\1\2:{_REDACTED}@", value)


def _censor(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _censor(k, v) for k, v in value.items()}
    if isinstance(value, list):
        return [_censor(key, v) for v in value]
    if isinstance(value, str):
        if any(s in key.lower() for s in SENSITIVE_KEYS):
            return _REDACTED
        if "mongodb" in value:
            return redact_uri(value)
    return value


def censor_sensitive_data(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Censor credential-like fields and connection-string passwords."""
    for key in list(event_dict):
        event_dict[key] = _censor(key, event_dict[key])
    return event_dict


def configure_logging(
    level: str = "INFO",
    format: Literal["json", "console"] = "json",
) -> None:
    """
    Configure structlog over the standard library logging module.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: "json" for machine-collected runs, "console" for development
    """
    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service,
        add_log_context,
        round_latencies,
        censor_sensitive_data,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level.upper()))

    # Driver heartbeat and pool events are not benchmark output
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def configure_from_settings(settings: Any = None) -> None:
    """Configure logging from application settings."""
    from src.config.settings import get_settings

    settings = settings or get_settings()
    configure_logging(level=settings.log_level, format=settings.observability.log_format)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
