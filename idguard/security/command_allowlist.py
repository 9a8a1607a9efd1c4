"""
Closed allowlist of the commands and argument shapes this package may run.

Only git (a handful of read/config subcommands), ssh-add and ssh-keygen are
known. Every argument is either an exact allowlisted literal, the value of
an option that takes one, a validated flag, or a positional the command
explicitly permits. Anything else rejects the whole vector.
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Sequence

from idguard.security.flag_validator import validate_flag
from idguard.security.path_security import is_path_argument, is_secure_path
from idguard.validators.common import detect_unsafe_chars, utf8_length

logger = logging.getLogger(__name__)

MAX_ARGS_COUNT = 20
MAX_ARG_LENGTH = 256
MAX_TOTAL_ARGS_BYTES = 8192


@dataclass(frozen=True)
class CommandConfig:
    """Immutable argument policy for a command or subcommand."""
    description: str = ""
    allowed: bool = True
    allowed_args: FrozenSet[str] = frozenset()
    options_with_values: FrozenSet[str] = frozenset()
    allow_any_positional: bool = False
    allow_path_positionals: bool = False
    max_args: int = MAX_ARGS_COUNT
    subcommands: Dict[str, "CommandConfig"] = field(default_factory=dict)


# Alias used by callers that think in terms of allowlist entries
AllowlistEntry = CommandConfig


@dataclass
class CommandCheckResult:
    allowed: bool
    reason: Optional[str] = None


ALLOWED_COMMANDS: Dict[str, CommandConfig] = {
    "git": CommandConfig(
        description="Git version control",
        subcommands={
            "--version": CommandConfig(description="Check git version"),
            "config": CommandConfig(
                description="Git configuration",
                allowed_args=frozenset({
                    "--local",
                    "--global",
                    "user.name",
                    "user.email",
                    "user.signingkey",
                    "commit.gpgsign",
                }),
                options_with_values=frozenset({
                    "user.name",
                    "user.email",
                    "user.signingkey",
                    "commit.gpgsign",
                }),
            ),
            "rev-parse": CommandConfig(
                description="Git repository detection",
                allowed_args=frozenset({"--is-inside-work-tree", "--show-toplevel", "--git-dir"}),
            ),
            "submodule": CommandConfig(
                description="Submodule operations",
                allowed_args=frozenset({"status", "--recursive"}),
                allow_path_positionals=True,
            ),
        },
    ),
    "ssh-add": CommandConfig(
        description="SSH agent key management",
        allowed_args=frozenset({"-l", "-d", "-D", "--apple-use-keychain"}),
        allow_any_positional=True,
    ),
    "ssh-keygen": CommandConfig(
        description="SSH key operations (read-only)",
        allowed_args=frozenset({"-lf", "-l", "-f"}),
        options_with_values=frozenset({"-f", "-lf"}),
    ),
}


def _denied(reason: str) -> CommandCheckResult:
    return CommandCheckResult(allowed=False, reason=reason)


def _select_config(command: str, config: CommandConfig, args: Sequence[str]):
    """Pick the subcommand policy if the first argument names one.

    Returns (config, remaining_args) or a denial result.
    """
    if not config.subcommands:
        return config, list(args)

    subcommand = args[0]
    sub_config = config.subcommands.get(subcommand)
    if sub_config is None:
        if command == "git":
            return _denied(f"Git subcommand '{subcommand}' is not in the allowlist")
        return config, list(args)
    if not sub_config.allowed:
        return _denied(f"Subcommand '{command} {subcommand}' is disabled")
    return sub_config, list(args[1:])


def _check_argument(
    command: str,
    config: CommandConfig,
    arg: str,
    previous: Optional[str],
) -> Optional[CommandCheckResult]:
    """Return a denial for a single argument, or None if it is acceptable."""
    looks_like_path = is_path_argument(arg) or "/" in arg

    if not looks_like_path and len(arg) > MAX_ARG_LENGTH:
        return _denied("Argument exceeds maximum length")

    if looks_like_path:
        path_result = is_secure_path(arg)
        if not path_result.valid:
            return _denied(f"Path argument rejected: {path_result.reason}")

    if previous is not None and previous in config.options_with_values:
        if arg.startswith("-"):
            return _denied(f"Value for '{previous}' cannot be a flag ('{arg}')")
        return None

    if arg in config.allowed_args:
        return None

    if arg.startswith("-"):
        flag_result = validate_flag(arg, command, config.allowed_args)
        if not flag_result.valid:
            return _denied(flag_result.reason or "Invalid flag")
        if arg.startswith("--"):
            return _denied(f"Flag '{arg}' is not allowed for this command")
        return None

    if config.allow_any_positional:
        return None

    if config.allow_path_positionals and looks_like_path:
        return None

    return _denied(f"Argument '{arg}' is not allowed for this command")


def is_command_allowed(command: str, args: Sequence[str]) -> CommandCheckResult:
    """Decide whether (command, args) may be executed.

    Args:
        command: Logical command name ("git", "ssh-add", "ssh-keygen")
        args: Argument vector, excluding the command itself

    Returns:
        CommandCheckResult; ``reason`` is set when not allowed
    """
    config = ALLOWED_COMMANDS.get(command)
    if config is None:
        return _denied(f"Command '{command}' is not in the allowlist")
    if not config.allowed:
        return _denied(f"Command '{command}' is explicitly disabled")

    if not args:
        return CommandCheckResult(allowed=True)

    if len(args) > MAX_ARGS_COUNT:
        return _denied("Too many arguments")

    if any(not isinstance(arg, str) for arg in args):
        return _denied("Arguments must be strings")

    # every control character counts here, tab and newline included
    for arg in args:
        unsafe = detect_unsafe_chars(arg, strict=False) or detect_unsafe_chars(
            unicodedata.normalize("NFC", arg), strict=False
        )
        if unsafe:
            return _denied(f"Argument contains {unsafe}")

    total_bytes = sum(utf8_length(arg) for arg in args)
    if total_bytes > MAX_TOTAL_ARGS_BYTES:
        return _denied(f"Arguments exceed maximum combined length ({total_bytes} > {MAX_TOTAL_ARGS_BYTES} bytes)")

    selected = _select_config(command, config, args)
    if isinstance(selected, CommandCheckResult):
        return selected
    current, remaining = selected

    if len(remaining) > current.max_args:
        return _denied("Too many arguments")

    previous = None
    for arg in remaining:
        denial = _check_argument(command, current, arg, previous)
        if denial is not None:
            return denial
        previous = arg

    return CommandCheckResult(allowed=True)
