"""JSONL log formatting with ISO 8601 timestamps."""

from __future__ import annotations

__all__ = ["ISO8601Formatter"]

import json
import logging
from datetime import datetime, timezone


class ISO8601Formatter(logging.Formatter):
    """Formatter producing one JSON object per line with a UTC timestamp.

    Format: {"time": "YYYY-MM-DDTHH:MM:SS.sssZ", "level": "WARNING", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSONL.

        Dict messages are merged into the entry as-is; anything else is
        stored under "message".

        Args:
            record: The log record to format

        Returns:
            str: JSON-formatted log entry
        """
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = {k: v for k, v in record.msg.items() if k != "time"}
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {"time": timestamp, "level": record.levelname, **log_data}
        return json.dumps(log_entry, default=str)
