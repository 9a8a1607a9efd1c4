"""
Types shared by the security logger and the file writer.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SECURITY = "SECURITY"

    @property
    def priority(self) -> int:
        return LOG_LEVEL_PRIORITY[self]

    @property
    def stdlib_level(self) -> int:
        return _STDLIB_LEVELS[self]


LOG_LEVEL_PRIORITY: Dict[LogLevel, int] = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
    LogLevel.SECURITY: 4,
}

_STDLIB_LEVELS: Dict[LogLevel, int] = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.SECURITY: logging.CRITICAL,
}


class WriterState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    ROTATING = "rotating"
    DISABLED = "disabled"


@dataclass
class LogEntry:
    """One structured line in the security log file."""
    timestamp: str
    level: LogLevel
    category: str
    message: str
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "category": self.category,
            "message": self.message,
        }
        if self.metadata is not None:
            d["metadata"] = self.metadata
        return d


# Alias kept for callers that use the structured-log name
StructuredLog = LogEntry

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_MAX_FILES = 5


@dataclass
class FileLoggingConfig:
    enabled: bool = False
    file_path: str = ""
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    max_files: int = DEFAULT_MAX_FILES
    level: LogLevel = field(default=LogLevel.INFO)


_SEVERITY_LEVELS = {
    "info": LogLevel.INFO,
    "warning": LogLevel.WARN,
    "error": LogLevel.ERROR,
}


def severity_to_log_level(severity: str) -> LogLevel:
    return _SEVERITY_LEVELS.get(severity, LogLevel.INFO)


def should_log(level: LogLevel, min_level: LogLevel) -> bool:
    """SECURITY entries are always written; others must meet min_level."""
    if level is LogLevel.SECURITY:
        return True
    return level.priority >= min_level.priority


def parse_log_level(value: str, default: LogLevel = LogLevel.INFO) -> LogLevel:
    try:
        return LogLevel[value.upper()]
    except (KeyError, AttributeError):
        return default
