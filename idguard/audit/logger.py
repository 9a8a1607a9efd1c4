"""
Security Event Logger

Records security-relevant events raised by the command and path layers:
- Identity switches and SSH key load/remove
- Validation failures
- Blocked, timed-out and failed commands
- Configuration changes and activation/deactivation

Features:
- Every detail value is sanitized (paths redacted, secrets removed, long
  strings truncated) before it is stored or written anywhere
- In-memory ring buffer of recent events for inspection and tests
- Mirrors each event to the ``idguard.audit`` stdlib logger
- Optional rotating file at ``<storage_root>/logs/security.log``

Usage:
    security_logger = SecurityLogger(storage_root="/var/lib/idguard")
    security_logger.configure_file_logging(enabled=True)
    security_logger.log_command_blocked("git", ["push"], "Git subcommand 'push' is not in the allowlist")
"""

import json
import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from idguard.audit.file_writer import FileLogWriter, utc_timestamp
from idguard.audit.log_types import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILES,
    FileLoggingConfig,
    LogEntry,
    LogLevel,
    parse_log_level,
    severity_to_log_level,
    should_log,
)
from idguard.audit.path_sanitizer import sanitize_path
from idguard.audit.sensitive_data import sanitize_details, sanitize_message, sanitize_value
from idguard.security.path_validator import (
    NormalizedPathResult,
    is_within_boundary,
    validate_workspace_path,
)

logger = logging.getLogger(__name__)
audit_channel = logging.getLogger("idguard.audit")

MAX_EVENTS = 1000
MAX_MESSAGE_SIZE = 10000
ARGS_PREVIEW = 3
LOG_CATEGORY = "SECURITY"


class SecurityEventType(Enum):
    IDENTITY_SWITCH = "IDENTITY_SWITCH"
    SSH_KEY_LOAD = "SSH_KEY_LOAD"
    SSH_KEY_REMOVE = "SSH_KEY_REMOVE"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    COMMAND_BLOCKED = "COMMAND_BLOCKED"
    COMMAND_TIMEOUT = "COMMAND_TIMEOUT"
    COMMAND_ERROR = "COMMAND_ERROR"
    CONFIG_CHANGE = "CONFIG_CHANGE"
    EXTENSION_ACTIVATE = "EXTENSION_ACTIVATE"
    EXTENSION_DEACTIVATE = "EXTENSION_DEACTIVATE"


@dataclass
class SecurityEvent:
    """A single recorded event. details are already sanitized."""

    timestamp: str
    type: SecurityEventType
    severity: str
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "severity": self.severity,
            "details": self.details,
        }


class SecurityLogger:
    """
    Sanitizing security event logger.

    Logging never raises to the caller; file and channel failures are
    reported on the module logger and otherwise ignored.
    """

    def __init__(
        self,
        storage_root: Optional[str] = None,
        config: Optional[FileLoggingConfig] = None,
        path_validator: Callable[[str], NormalizedPathResult] = validate_workspace_path,
        redact_all_sensitive: bool = False,
        version: str = "unknown",
    ):
        """
        Args:
            storage_root: Directory that will hold ``logs/security.log``
            config: File logging settings; file output is off when omitted
            path_validator: Validator applied to storage_root before use
            redact_all_sensitive: Replace every string detail value
            version: Reported by log_activation
        """
        self.storage_root = storage_root
        self.path_validator = path_validator
        self.redact_all_sensitive = redact_all_sensitive
        self.version = version
        self.min_level = LogLevel.INFO
        self._events: deque = deque(maxlen=MAX_EVENTS)
        self._lock = threading.Lock()
        self._file_writer: Optional[FileLogWriter] = None

        if config is not None and config.enabled:
            self.configure_file_logging(
                enabled=True,
                max_file_size=config.max_file_size_bytes,
                max_files=config.max_files,
                level=config.level,
            )

    # ------------------------------------------------------------------
    # File logging
    # ------------------------------------------------------------------

    @property
    def file_writer(self) -> Optional[FileLogWriter]:
        return self._file_writer

    def log_file_path(self) -> Optional[str]:
        """Validated ``<storage_root>/logs/security.log``, or None if unusable."""
        if not self.storage_root:
            return None
        root = self.path_validator(self.storage_root)
        if not root.valid:
            logger.error(f"Invalid security log storage root: {root.reason}")
            return None
        file_path = os.path.join(root.normalized_path, "logs", "security.log")
        if not is_within_boundary(file_path, root.normalized_path):
            logger.error("Security log path escapes storage root")
            return None
        return file_path

    def configure_file_logging(
        self,
        enabled: bool = True,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        max_files: int = DEFAULT_MAX_FILES,
        level: Any = LogLevel.INFO,
        redact_all_sensitive: Optional[bool] = None,
    ) -> bool:
        """(Re)configure file output. Returns True if a file writer is active."""
        if redact_all_sensitive is not None:
            self.redact_all_sensitive = redact_all_sensitive
        self.min_level = level if isinstance(level, LogLevel) else parse_log_level(str(level))

        if self._file_writer is not None:
            self._file_writer.close()
            self._file_writer = None

        if not enabled:
            return False

        file_path = self.log_file_path()
        if file_path is None:
            return False

        self._file_writer = FileLogWriter(
            FileLoggingConfig(
                enabled=True,
                file_path=file_path,
                max_file_size_bytes=max_file_size,
                max_files=max_files,
                level=self.min_level,
            )
        )
        logger.info(f"Security file logging enabled: {sanitize_path(file_path)}")
        return True

    def close(self) -> None:
        if self._file_writer is not None:
            self._file_writer.close()
            self._file_writer = None

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    def _record(self, event_type: SecurityEventType, severity: str, details: Dict[str, Any]) -> SecurityEvent:
        event = SecurityEvent(
            timestamp=utc_timestamp(),
            type=event_type,
            severity=severity,
            details={k: v for k, v in details.items() if v is not None},
        )
        with self._lock:
            self._events.append(event)

        level = severity_to_log_level(severity)
        if self._file_writer is not None and should_log(level, self.min_level):
            self._file_writer.write(
                LogEntry(
                    timestamp=event.timestamp,
                    level=level,
                    category=LOG_CATEGORY,
                    message=event_type.value,
                    metadata=event.details,
                )
            )

        self._write_channel(event, level)
        return event

    def _write_channel(self, event: SecurityEvent, level: LogLevel) -> None:
        try:
            payload = json.dumps(event.details, default=str)
        except (TypeError, ValueError) as e:
            payload = f"[Failed to serialize: {e}]"
        if len(payload) > MAX_MESSAGE_SIZE:
            payload = payload[:MAX_MESSAGE_SIZE] + "...[truncated]"
        audit_channel.log(
            level.stdlib_level,
            f"[{event.severity.upper()}] {event.type.value}: {payload}",
        )

    def _value(self, value: Any) -> Any:
        return sanitize_value(value, self.redact_all_sensitive)

    def _message(self, text: str) -> str:
        return sanitize_message(text, self.redact_all_sensitive)

    def _args_details(self, args: Sequence[str]) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "count": len(args),
            "firstFew": [self._value(arg) for arg in list(args)[:ARGS_PREVIEW]],
        }
        if len(args) > ARGS_PREVIEW:
            details["more"] = f"... and {len(args) - ARGS_PREVIEW} more"
        return details

    def log_event(self, event_type: SecurityEventType, severity: str, details: Dict[str, Any]) -> SecurityEvent:
        """Record an event with caller-supplied details (sanitized here)."""
        return self._record(event_type, severity, sanitize_details(details, self.redact_all_sensitive))

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    def log_identity_switch(self, from_id: Optional[str], to_id: str) -> None:
        self._record(
            SecurityEventType.IDENTITY_SWITCH,
            "info",
            {"from": self._value(from_id if from_id is not None else "none"), "to": self._value(to_id)},
        )

    def log_ssh_key_load(self, key_path: str, success: bool) -> None:
        self._record(
            SecurityEventType.SSH_KEY_LOAD,
            "info" if success else "warning",
            {"keyPath": sanitize_path(key_path), "success": success},
        )

    def log_ssh_key_remove(self, key_path: str) -> None:
        self._record(SecurityEventType.SSH_KEY_REMOVE, "info", {"keyPath": sanitize_path(key_path)})

    def log_validation_failure(self, field: str, reason: str, value: Any = None) -> None:
        self._record(
            SecurityEventType.VALIDATION_FAILURE,
            "warning",
            {
                "field": self._message(field),
                "reason": self._message(reason),
                "value": self._value(value),
                "valueType": type(value).__name__,
            },
        )

    def log_command_blocked(self, command: str, args: Sequence[str], reason: str) -> None:
        self._record(
            SecurityEventType.COMMAND_BLOCKED,
            "error",
            {"command": self._value(command), "args": self._args_details(args), "reason": self._message(reason)},
        )

    def log_command_timeout(
        self,
        command: str,
        args: Sequence[str],
        timeout_ms: int,
        cwd: Optional[str] = None,
    ) -> None:
        self._record(
            SecurityEventType.COMMAND_TIMEOUT,
            "warning",
            {
                "command": self._value(command),
                "args": self._args_details(args),
                "timeoutMs": timeout_ms,
                "cwd": sanitize_path(cwd) if cwd else None,
            },
        )

    def log_command_error(
        self,
        command: str,
        args: Sequence[str],
        error: BaseException,
        cwd: Optional[str] = None,
    ) -> None:
        message = getattr(error, "message", None) or str(error)
        self._record(
            SecurityEventType.COMMAND_ERROR,
            "warning",
            {
                "command": self._value(command),
                "args": self._args_details(args),
                "errorName": type(error).__name__,
                "errorMessage": self._value(message),
                "cwd": sanitize_path(cwd) if cwd else None,
            },
        )

    def log_config_change(self, config_key: str, previous_value: Any = None, new_value: Any = None) -> None:
        details: Dict[str, Any] = {"configKey": self._message(config_key)}
        if previous_value is not None or new_value is not None:
            details["previousValue"] = self._value(previous_value)
            details["newValue"] = self._value(new_value)
        self._record(SecurityEventType.CONFIG_CHANGE, "info", details)

    def log_activation(self) -> None:
        self._record(SecurityEventType.EXTENSION_ACTIVATE, "info", {"version": self.version})

    def log_deactivation(self) -> None:
        self._record(SecurityEventType.EXTENSION_DEACTIVATE, "info", {})

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_events(self, event_type: Optional[SecurityEventType] = None) -> List[SecurityEvent]:
        with self._lock:
            events = list(self._events)
        if event_type is not None:
            events = [e for e in events if e.type is event_type]
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
