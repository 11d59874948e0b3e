"""
Observability Module.

Structured logging with JSON or console output and bound benchmark context.
"""

from src.observability.logging import (
    LogContext,
    configure_from_settings,
    configure_logging,
    get_logger,
)

__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "LogContext",
]
