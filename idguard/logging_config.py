"""
Logging Configuration

Provides:
- JSON formatting for machine parsing
- Human-readable console formatting
- Size-based rotation for the application log file

The security event log (idguard.audit) is separate and has its own
rotating writer; this module only configures ordinary diagnostic logging.

Usage:
    from idguard.logging_config import setup_logging

    setup_logging(level="DEBUG", log_file="/var/log/idguard/idguard.log")
"""

import json
import logging
import logging.handlers
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

_HANDLER_MARKER = "_idguard_handler"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_traceback: bool = True, extra_fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.include_traceback = include_traceback
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        log_data.update(self.extra_fields)

        if record.exc_info and self.include_traceback:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable single-line formatter."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] [{record.levelname}] [{record.name}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


def _parse_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: Union[str, int] = logging.INFO,
    json_format: bool = False,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    console_output: bool = True,
    extra_fields: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """
    Configure logging for the ``idguard`` logger tree.

    Handlers installed by an earlier call are replaced; handlers added by
    the host application are left alone.

    Args:
        level: Logging level name or number
        json_format: Use JSONFormatter instead of ConsoleFormatter
        log_file: Optional path of a size-rotated log file
        max_bytes: Max size of log file before rotation
        backup_count: Number of rotated files to keep
        console_output: Log to stderr
        extra_fields: Additional fields added to every JSON record

    Returns:
        The configured ``idguard`` logger
    """
    level = _parse_level(level)
    package_logger = logging.getLogger("idguard")
    package_logger.setLevel(level)

    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            package_logger.removeHandler(handler)
            handler.close()

    formatter = JSONFormatter(extra_fields=extra_fields) if json_format else ConsoleFormatter()

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        setattr(console_handler, _HANDLER_MARKER, True)
        package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARKER, True)
        package_logger.addHandler(file_handler)

    return package_logger
