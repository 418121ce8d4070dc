"""Logging configuration.

Owns the application logger configuration (handlers, formatters).
Modules log through child loggers of the "thinkgate" logger:
    _logger = logging.getLogger(f"{APP_NAME}.proxy")

or through log_event() with a SystemEvent. Python loggers are singletons by
name, so child loggers share the handlers configured here.

Destinations:
- stderr: INFO+ in human-readable form
- <log_dir>/system.jsonl: WARNING+ as JSONL (added by configure_logging)
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_logging",
    "log_event",
]

import logging

from thinkgate.config import AppConfig, get_system_log_path
from thinkgate.constants import APP_NAME
from thinkgate.models import SystemEvent
from thinkgate.utils.logging.iso_formatter import ISO8601Formatter

# Root of the application's logger tree - stderr only until configured
_app_logger = logging.getLogger(APP_NAME)
_app_logger.setLevel(logging.INFO)
_app_logger.propagate = False

_logger = logging.getLogger(f"{APP_NAME}.system")

# Track if file logging has been configured
_file_handler_configured: bool = False


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' from dict messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


if not _app_logger.handlers:
    _stderr_handler = logging.StreamHandler()
    _stderr_handler.setFormatter(ConsoleFormatter())
    _app_logger.addHandler(_stderr_handler)


def configure_logging(config: AppConfig, debug: bool = False) -> None:
    """Configure application logging with a file handler.

    Sets up:
    - stderr handler: INFO+ (DEBUG+ with debug=True)
    - file handler: WARNING+ only

    Args:
        config: Settings with the log directory.
        debug: Lower the console threshold to DEBUG.
    """
    global _file_handler_configured

    if _file_handler_configured:
        return

    for handler in _app_logger.handlers:
        handler.close()
    _app_logger.handlers.clear()

    _app_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    stderr_handler.setFormatter(ConsoleFormatter())
    _app_logger.addHandler(stderr_handler)

    log_path = get_system_log_path(config)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="file_logging_failed",
                message="Failed to configure file logging",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return

    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ISO8601Formatter())
    _app_logger.addHandler(file_handler)
    _file_handler_configured = True


def log_event(level: int, event: SystemEvent) -> None:
    """Log a SystemEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.
    The ISO8601Formatter adds the timestamp during serialization.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
    """
    _logger.log(level, event.model_dump(exclude_none=True))
