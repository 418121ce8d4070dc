"""Logging utilities.

- iso_formatter: ISO 8601 timestamped JSONL formatting for the system log

Import directly from submodules:
    from thinkgate.utils.logging.iso_formatter import ISO8601Formatter
"""

__all__: list[str] = []
