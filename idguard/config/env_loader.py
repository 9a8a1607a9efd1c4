"""
Environment-based settings loading.

Reads ``IDGUARD_*`` variables (optionally from a .env file, never
overriding variables already set in the process environment) and builds
a validated SecuritySettings.

Usage:
    from idguard.config.env_loader import load_settings

    settings = load_settings(Path(".env"))
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv
from pydantic import ValidationError

from idguard.config.schema import SecuritySettings
from idguard.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "IDGUARD_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def parse_bool(value: str, var_name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{var_name} must be a boolean (true/false)",
        details={"variable": var_name},
    )


def parse_int(value: str, var_name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigurationError(
            f"{var_name} must be an integer",
            details={"variable": var_name},
        ) from None


def parse_timeouts(value: str, var_name: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"{var_name} is not valid JSON",
            details={"variable": var_name, "position": e.pos},
        ) from None
    if not isinstance(parsed, dict):
        raise ConfigurationError(
            f"{var_name} must be a JSON object mapping command to milliseconds",
            details={"variable": var_name},
        )
    return parsed


def settings_from_env(environ: Mapping[str, str]) -> SecuritySettings:
    """Build settings from an environment mapping (no .env loading)."""
    def get(name: str) -> Optional[str]:
        return environ.get(ENV_PREFIX + name)

    data: Dict[str, Any] = {}
    file_logging: Dict[str, Any] = {}

    if get("GIT_PATH") is not None:
        data["git_path"] = get("GIT_PATH")
    if get("STORAGE_ROOT") is not None:
        data["storage_root"] = get("STORAGE_ROOT")
    if get("INCLUDE_ICON") is not None:
        data["include_icon_in_git_config"] = parse_bool(get("INCLUDE_ICON"), ENV_PREFIX + "INCLUDE_ICON")
    if get("APPLY_TO_SUBMODULES") is not None:
        data["apply_to_submodules"] = parse_bool(get("APPLY_TO_SUBMODULES"), ENV_PREFIX + "APPLY_TO_SUBMODULES")
    if get("SUBMODULE_DEPTH") is not None:
        data["submodule_depth"] = parse_int(get("SUBMODULE_DEPTH"), ENV_PREFIX + "SUBMODULE_DEPTH")
    if get("REDACT_ALL") is not None:
        data["redact_all_sensitive"] = parse_bool(get("REDACT_ALL"), ENV_PREFIX + "REDACT_ALL")
    if get("TIMEOUTS") is not None:
        data["timeouts"] = {"overrides": parse_timeouts(get("TIMEOUTS"), ENV_PREFIX + "TIMEOUTS")}

    if get("FILE_LOGGING") is not None:
        file_logging["enabled"] = parse_bool(get("FILE_LOGGING"), ENV_PREFIX + "FILE_LOGGING")
    if get("LOG_MAX_FILE_SIZE") is not None:
        file_logging["max_file_size"] = parse_int(get("LOG_MAX_FILE_SIZE"), ENV_PREFIX + "LOG_MAX_FILE_SIZE")
    if get("LOG_MAX_FILES") is not None:
        file_logging["max_files"] = parse_int(get("LOG_MAX_FILES"), ENV_PREFIX + "LOG_MAX_FILES")
    if get("LOG_LEVEL") is not None:
        file_logging["level"] = get("LOG_LEVEL")
    if file_logging:
        data["file_logging"] = file_logging

    try:
        return SecuritySettings(**data)
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid idguard settings: {', '.join(fields)}",
            details={"fields": fields},
        ) from e


def load_settings(env_file: Optional[Union[str, Path]] = None) -> SecuritySettings:
    """
    Load settings from the process environment.

    Args:
        env_file: Optional .env file; its values never override variables
            that are already set.

    Raises:
        ConfigurationError: a variable is malformed or out of range
    """
    if env_file is not None:
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded .env from {env_path}")
        else:
            logger.warning(f".env file not found: {env_path}")

    return settings_from_env(os.environ)
