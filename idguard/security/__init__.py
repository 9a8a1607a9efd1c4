"""
Command allowlisting, binary resolution, path validation and secure execution.

Example usage:
    from idguard.security import BinaryResolver, SecureExecutor, is_command_allowed

    check = is_command_allowed("git", ["config", "--local", "user.name"])
"""

from idguard.security.path_security import SecurePathResult, is_secure_path, is_path_argument
from idguard.security.path_validator import (
    NormalizedPathResult,
    PathValidationOptions,
    normalize_and_validate_path,
    validate_ssh_key_path,
    validate_submodule_path,
    validate_workspace_path,
)
from idguard.security.flag_validator import FlagValidationResult, validate_combined_flags, validate_flag
from idguard.security.command_allowlist import (
    ALLOWED_COMMANDS,
    CommandCheckResult,
    CommandConfig,
    is_command_allowed,
)
from idguard.security.timeouts import TimeoutPolicy
from idguard.security.cancellation import CancellationToken
from idguard.security.binary_resolver import BinaryResolver
from idguard.security.secure_exec import ExecResult, GitExecResult, SecureExecutor

__all__ = [
    "SecurePathResult", "is_secure_path", "is_path_argument",
    "NormalizedPathResult", "PathValidationOptions", "normalize_and_validate_path",
    "validate_ssh_key_path", "validate_submodule_path", "validate_workspace_path",
    "FlagValidationResult", "validate_combined_flags", "validate_flag",
    "ALLOWED_COMMANDS", "CommandCheckResult", "CommandConfig", "is_command_allowed",
    "TimeoutPolicy", "CancellationToken", "BinaryResolver",
    "ExecResult", "GitExecResult", "SecureExecutor",
]
