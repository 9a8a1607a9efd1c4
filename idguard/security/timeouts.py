"""
Per-command timeout configuration.

Resolution order for a command's effective timeout (milliseconds):
1. per-call override (ignored when <= 0)
2. user-configured entry for the command
3. built-in default for the command
4. DEFAULT_TIMEOUT

Every candidate is checked for finiteness and range before use, so a bad
configuration value can never produce an unbounded or zero timeout.
"""

import logging
import math
import re
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

COMMAND_TIMEOUTS: Dict[str, int] = {
    "git": 10000,
    "ssh-add": 5000,
    "ssh-keygen": 5000,
}

DEFAULT_TIMEOUT = 30000

TIMEOUT_LIMITS = {
    "MIN": 1000,
    "MAX": 300000,
}

COMMAND_NAME_LIMITS = {
    "MAX_LENGTH": 64,
    "MAX_ENTRIES": 100,
}

_COMMAND_NAME = re.compile(r"[a-zA-Z0-9._-]+")


def is_valid_command_name(name: Any) -> bool:
    if not isinstance(name, str) or not name:
        return False
    if len(name) > COMMAND_NAME_LIMITS["MAX_LENGTH"]:
        return False
    if not _COMMAND_NAME.fullmatch(name):
        return False
    return not name.startswith((".", "-", "_"))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _in_range(value: float) -> bool:
    return TIMEOUT_LIMITS["MIN"] <= value <= TIMEOUT_LIMITS["MAX"]


class TimeoutPolicy:
    """Computes effective timeouts from built-ins and a user override map.

    Args:
        user_timeouts: Raw ``command -> milliseconds`` map from configuration.
            Invalid entries are dropped and reported.
        security_logger: Optional SecurityLogger for validation failures
    """

    def __init__(self, user_timeouts: Optional[Mapping[str, Any]] = None, security_logger=None):
        self.security_logger = security_logger
        self.user_timeouts = self.sanitize(user_timeouts or {})

    def _report(self, field: str, message: str, value: Any) -> None:
        logger.warning(f"Timeout configuration: {message}")
        if self.security_logger is None:
            return
        try:
            self.security_logger.log_validation_failure(field, message, value)
        except Exception as e:  # noqa: BLE001 - logging must not break timeout resolution
            logger.debug(f"Security log write failed: {e}")

    def sanitize(self, raw: Mapping[str, Any]) -> Dict[str, int]:
        """Validate a user timeout map, keeping at most MAX_ENTRIES valid entries."""
        max_entries = COMMAND_NAME_LIMITS["MAX_ENTRIES"]
        if len(raw) > max_entries:
            self._report(
                "commandTimeouts",
                f"Too many timeout entries ({len(raw)}), limiting to {max_entries}",
                len(raw),
            )

        sanitized: Dict[str, int] = {}
        for command, timeout in raw.items():
            if len(sanitized) >= max_entries:
                break
            value = self._validate_entry(command, timeout)
            if value is not None:
                sanitized[command] = value
        return sanitized

    def _validate_entry(self, command: Any, timeout: Any) -> Optional[int]:
        if not is_valid_command_name(command):
            self._report("commandTimeouts", "Invalid command name in timeout config", command)
            return None

        if not _is_number(timeout) or not math.isfinite(timeout) or not _in_range(timeout):
            self._report(
                "commandTimeouts",
                f"Invalid timeout value (must be {TIMEOUT_LIMITS['MIN']}-{TIMEOUT_LIMITS['MAX']}ms)",
                {"command": command, "timeout": timeout},
            )
            return None

        rounded = math.floor(timeout)
        if rounded != timeout:
            self._report(
                "commandTimeouts",
                "Timeout value is not an integer, rounding",
                {"command": command, "original": timeout, "rounded": rounded},
            )
        return int(rounded)

    def _validate_override(self, override: Any) -> Optional[int]:
        if override is None or not _is_number(override):
            return None
        if not math.isnan(override) and override <= 0:
            return None
        if not math.isfinite(override):
            self._report("commandTimeout", "Invalid override timeout (not finite)", override)
            return None
        if not _in_range(override):
            self._report(
                "commandTimeout",
                f"Override timeout out of range (must be {TIMEOUT_LIMITS['MIN']}-{TIMEOUT_LIMITS['MAX']}ms)",
                override,
            )
            return None
        return int(math.floor(override))

    def get_timeout(self, command: str, override: Optional[float] = None) -> int:
        """Effective timeout in milliseconds for command."""
        validated = self._validate_override(override)
        if validated is not None:
            return validated

        if command in self.user_timeouts:
            return self.user_timeouts[command]

        return COMMAND_TIMEOUTS.get(command, DEFAULT_TIMEOUT)
