"""Pydantic settings models for the security subsystem."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from idguard.audit.log_types import DEFAULT_MAX_FILE_SIZE, DEFAULT_MAX_FILES, LogLevel

MIN_LOG_FILE_SIZE = 1024
MAX_LOG_FILE_SIZE = 100 * 1024 * 1024
MAX_LOG_FILES = 20
MAX_SUBMODULE_DEPTH = 5


class LogLevelName(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SECURITY = "SECURITY"


class FileLoggingSettings(BaseModel):
    """Security log file output."""
    enabled: bool = Field(default=False, description="Write security events to a file")
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE,
        ge=MIN_LOG_FILE_SIZE,
        le=MAX_LOG_FILE_SIZE,
        description="Rotate when the file would exceed this many bytes",
    )
    max_files: int = Field(
        default=DEFAULT_MAX_FILES,
        ge=1,
        le=MAX_LOG_FILES,
        description="Total files kept, including the active one",
    )
    level: LogLevelName = Field(default=LogLevelName.INFO, description="Minimum level written")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def log_level(self) -> LogLevel:
        return LogLevel[self.level.value]


class TimeoutSettings(BaseModel):
    """User timeout overrides, ``command -> milliseconds``.

    Entries are kept raw here; the execution layer drops invalid ones and
    reports them to the security log so a typo never disables a timeout.
    """
    overrides: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("overrides", mode="before")
    @classmethod
    def require_mapping(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("Timeout overrides must be an object mapping command to milliseconds")
        return v


class SecuritySettings(BaseModel):
    """Top-level settings consumed by build_runtime."""
    git_path: Optional[str] = Field(default=None, description="Absolute path of the git binary")
    storage_root: Optional[str] = Field(default=None, description="Directory holding logs/security.log")
    include_icon_in_git_config: bool = False
    apply_to_submodules: bool = True
    submodule_depth: int = Field(default=1, description="Nesting depth for submodule propagation")
    redact_all_sensitive: bool = False
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    file_logging: FileLoggingSettings = Field(default_factory=FileLoggingSettings)

    @field_validator("submodule_depth", mode="before")
    @classmethod
    def clamp_depth(cls, v):
        if isinstance(v, bool) or not isinstance(v, int):
            return v
        return min(max(0, v), MAX_SUBMODULE_DEPTH)

    @field_validator("git_path", "storage_root", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
