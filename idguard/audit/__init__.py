"""
Security audit logging.

Example usage:
    from idguard.audit import SecurityLogger, SecurityEventType

    security_logger = SecurityLogger(storage_root=storage_dir)
    security_logger.log_identity_switch(None, "work")
"""

from idguard.audit.log_types import FileLoggingConfig, LogEntry, LogLevel, WriterState
from idguard.audit.file_writer import FileLogWriter
from idguard.audit.path_sanitizer import sanitize_path
from idguard.audit.sensitive_data import sanitize_details, sanitize_message, sanitize_value
from idguard.audit.logger import SecurityEvent, SecurityEventType, SecurityLogger

__all__ = [
    "FileLoggingConfig", "LogEntry", "LogLevel", "WriterState",
    "FileLogWriter",
    "sanitize_path", "sanitize_details", "sanitize_message", "sanitize_value",
    "SecurityEvent", "SecurityEventType", "SecurityLogger",
]
