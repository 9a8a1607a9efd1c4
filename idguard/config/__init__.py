"""
Settings and runtime wiring.

Example usage:
    from idguard.config import load_settings, build_runtime

    runtime = build_runtime(load_settings(".env"))
    ok = await runtime.executor.git_exec(["--version"])
    runtime.close()
"""

import logging
from dataclasses import dataclass
from typing import Optional

from idguard import __version__
from idguard.audit import SecurityLogger
from idguard.config.env_loader import load_settings, settings_from_env
from idguard.config.schema import (
    FileLoggingSettings,
    LogLevelName,
    SecuritySettings,
    TimeoutSettings,
)
from idguard.security.binary_resolver import BinaryResolver
from idguard.security.secure_exec import SecureExecutor

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Logger, resolver and executor built from one SecuritySettings."""
    settings: SecuritySettings
    security_logger: SecurityLogger
    resolver: BinaryResolver
    executor: SecureExecutor

    def apply_git_path(self, git_path: Optional[str]) -> None:
        """Switch the configured git binary and drop the cached lookup."""
        previous = self.settings.git_path
        self.settings = self.settings.model_copy(update={"git_path": git_path})
        self.resolver.set_configured_git_path(git_path)
        if previous != git_path:
            self.security_logger.log_config_change("gitPath", previous, git_path)

    def close(self) -> None:
        self.security_logger.log_deactivation()
        self.security_logger.close()


def build_runtime(settings: Optional[SecuritySettings] = None) -> Runtime:
    settings = settings or SecuritySettings()

    security_logger = SecurityLogger(
        storage_root=settings.storage_root,
        redact_all_sensitive=settings.redact_all_sensitive,
        version=__version__,
    )
    file_cfg = settings.file_logging
    if file_cfg.enabled:
        if not security_logger.configure_file_logging(
            enabled=True,
            max_file_size=file_cfg.max_file_size,
            max_files=file_cfg.max_files,
            level=file_cfg.log_level(),
        ):
            logger.warning("Security file logging requested but storage root is missing or invalid")

    resolver = BinaryResolver(configured_git_path=settings.git_path, security_logger=security_logger)
    executor = SecureExecutor(
        resolver=resolver,
        security_logger=security_logger,
        timeout_overrides=settings.timeouts.overrides,
    )
    security_logger.log_activation()
    return Runtime(settings=settings, security_logger=security_logger, resolver=resolver, executor=executor)


__all__ = [
    "FileLoggingSettings", "LogLevelName", "SecuritySettings", "TimeoutSettings",
    "load_settings", "settings_from_env",
    "Runtime", "build_runtime",
]
