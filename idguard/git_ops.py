"""
Git configuration and submodule operations.

All git invocations go through SecureExecutor, so every argument vector is
checked against the allowlist and git is always run by absolute path.

Provides:
- get_git_config_value / get_current_git_config
- set_git_config_for_identity (optionally propagated to submodules)
- is_git_available / is_git_repository
- list_submodules / list_submodules_recursive / set_identity_for_submodules

Usage:
    config = await get_current_git_config(executor, workspace)
    await set_git_config_for_identity(executor, identity, workspace)
"""

import asyncio
import contextlib
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional

from idguard.errors import ConfigurationError, IdGuardError, SecurityViolationError
from idguard.security.cancellation import CancellationToken
from idguard.security.path_validator import validate_submodule_path, validate_workspace_path
from idguard.security.secure_exec import SecureExecutor
from idguard.validators.identity import Identity, validate_identity

logger = logging.getLogger(__name__)

MAX_SUBMODULE_DEPTH = 5

SUBMODULE_STATUS_REGEX = re.compile(
    r"([ +-])([a-f0-9]{40})\s+([^\x00-\x1f\x7f]+?)(?:\s+\([^\x00-\x1f\x7f)]+\))?"
)


@dataclass
class GitConfig:
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    signing_key: Optional[str] = None


@dataclass
class Submodule:
    path: str
    absolute_path: str
    commit_hash: str
    initialized: bool


@dataclass
class SubmoduleConfigResult:
    success: int = 0
    failed: int = 0


def _report(executor: SecureExecutor, field: str, reason: str, value: Any = None) -> None:
    if executor.security_logger is None:
        return
    with contextlib.suppress(Exception):
        executor.security_logger.log_validation_failure(field, reason, value)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

async def get_git_config_value(
    executor: SecureExecutor,
    key: str,
    cwd: str,
    cancel_token: Optional[CancellationToken] = None,
) -> Optional[str]:
    """Value of a git config key in cwd, or None if unset or git failed."""
    result = await executor.git_exec(["config", key], cwd=cwd, cancel_token=cancel_token)
    if not result.success or not result.stdout:
        return None
    return result.stdout


async def get_current_git_config(
    executor: SecureExecutor,
    cwd: str,
    cancel_token: Optional[CancellationToken] = None,
) -> GitConfig:
    """Read user.name, user.email and user.signingkey concurrently.

    Returns an empty GitConfig if the operation is cancelled.
    """
    if cancel_token and cancel_token.is_cancelled:
        return GitConfig()

    user_name, user_email, signing_key = await asyncio.gather(
        get_git_config_value(executor, "user.name", cwd, cancel_token),
        get_git_config_value(executor, "user.email", cwd, cancel_token),
        get_git_config_value(executor, "user.signingkey", cwd, cancel_token),
    )

    if cancel_token and cancel_token.is_cancelled:
        return GitConfig()
    return GitConfig(user_name=user_name, user_email=user_email, signing_key=signing_key)


def build_git_user_name(identity: Identity, include_icon: bool = False) -> str:
    if identity.icon and include_icon:
        return f"{identity.icon} {identity.name}"
    return identity.name


async def _git_or_raise(executor: SecureExecutor, args: List[str], cwd: str) -> None:
    result = await executor.git_exec(args, cwd=cwd)
    if not result.success:
        raise result.error


async def set_git_config_for_identity(
    executor: SecureExecutor,
    identity: Identity,
    cwd: str,
    include_icon: bool = False,
    apply_to_submodules: bool = True,
    submodule_depth: int = 1,
) -> SubmoduleConfigResult:
    """
    Write the identity to the repository's local git config.

    Raises:
        SecurityViolationError: identity fails validation
        ConfigurationError: cwd is not inside a git work tree
        IdGuardError: a git config write failed

    Returns:
        Counts of submodules configured / failed (zero when not propagated)
    """
    validation = validate_identity(identity)
    if not validation.valid:
        raise SecurityViolationError(
            "Invalid identity configuration",
            field="identity",
            context={"errorCount": len(validation.errors)},
        )

    if not await is_git_repository(executor, cwd):
        raise ConfigurationError("Not in a Git repository")

    user_name = build_git_user_name(identity, include_icon)
    await _git_or_raise(executor, ["config", "--local", "user.name", user_name], cwd)
    await _git_or_raise(executor, ["config", "--local", "user.email", identity.email], cwd)
    if identity.gpg_key_id:
        await _git_or_raise(executor, ["config", "--local", "user.signingkey", identity.gpg_key_id], cwd)
        await _git_or_raise(executor, ["config", "--local", "commit.gpgsign", "true"], cwd)

    if not apply_to_submodules:
        return SubmoduleConfigResult()

    submodules = await list_submodules_recursive(executor, cwd, submodule_depth)
    if not submodules:
        return SubmoduleConfigResult()

    result = await set_identity_for_submodules(
        executor, submodules, user_name, identity.email, identity.gpg_key_id
    )
    if result.failed:
        logger.warning(f"Failed to configure {result.failed} submodule(s)")
    if result.success:
        logger.info(f"Configured {result.success} submodule(s)")
    return result


# ---------------------------------------------------------------------------
# Repository detection
# ---------------------------------------------------------------------------

async def is_git_available(executor: SecureExecutor) -> bool:
    try:
        await executor.run("git", ["--version"])
    except IdGuardError as e:
        logger.debug(f"git not available: {e.message}")
        return False
    return True


async def is_git_repository(
    executor: SecureExecutor,
    cwd: str,
    cancel_token: Optional[CancellationToken] = None,
) -> bool:
    if cancel_token and cancel_token.is_cancelled:
        return False
    result = await executor.git_exec(["rev-parse", "--is-inside-work-tree"], cwd=cwd, cancel_token=cancel_token)
    if cancel_token and cancel_token.is_cancelled:
        return False
    return result.success and result.stdout == "true"


# ---------------------------------------------------------------------------
# Submodules
# ---------------------------------------------------------------------------

def parse_submodule_line(executor: SecureExecutor, line: str, workspace: str) -> Optional[Submodule]:
    """Parse one ``git submodule status`` line.

    Uninitialized submodules ('-' prefix) and paths that fail validation
    are skipped.
    """
    match = SUBMODULE_STATUS_REGEX.fullmatch(line)
    if match is None:
        if line.strip():
            _report(executor, "submoduleStatusLine", "Unexpected git submodule status line format")
        return None

    status, commit_hash, submodule_path = match.groups()
    if status == "-":
        return None

    path_result = validate_submodule_path(submodule_path, workspace)
    if not path_result.valid or not path_result.normalized_path:
        _report(
            executor,
            "submodulePath",
            path_result.reason or "Unknown validation failure",
            submodule_path,
        )
        return None

    return Submodule(
        path=submodule_path,
        absolute_path=path_result.normalized_path,
        commit_hash=commit_hash,
        initialized=True,
    )


async def list_submodules(executor: SecureExecutor, workspace: str) -> List[Submodule]:
    """Initialized, path-validated submodules directly under workspace."""
    validation = validate_workspace_path(workspace, require_exists=True)
    if not validation.valid or not validation.normalized_path:
        _report(executor, "submoduleWorkspace", validation.reason or "Invalid workspace path")
        return []
    root = validation.normalized_path

    result = await executor.git_exec_raw(["submodule", "status"], cwd=root)
    if not result.success:
        logger.debug(f"git submodule status failed in workspace: {result.error}")
        return []
    if not result.stdout.strip():
        return []

    submodules = []
    for line in result.stdout.split("\n"):
        submodule = parse_submodule_line(executor, line, root)
        if submodule is not None:
            submodules.append(submodule)
    return submodules


async def list_submodules_recursive(
    executor: SecureExecutor,
    workspace: str,
    max_depth: int = 1,
    current_depth: int = 0,
) -> List[Submodule]:
    """Submodules up to max_depth levels deep (clamped to 0..MAX_SUBMODULE_DEPTH)."""
    effective_depth = min(max(0, max_depth), MAX_SUBMODULE_DEPTH)
    if current_depth == 0 and effective_depth != max_depth:
        _report(
            executor,
            "submoduleDepth",
            f"Requested depth {max_depth} clamped to {effective_depth} (max: {MAX_SUBMODULE_DEPTH})",
            max_depth,
        )

    if current_depth >= effective_depth:
        return []

    submodules = await list_submodules(executor, workspace)
    found = list(submodules)
    for submodule in submodules:
        found.extend(
            await list_submodules_recursive(
                executor, submodule.absolute_path, effective_depth, current_depth + 1
            )
        )
    return found


async def set_submodule_git_config(executor: SecureExecutor, submodule_path: str, key: str, value: str) -> bool:
    result = await executor.git_exec(["config", "--local", key, value], cwd=submodule_path)
    if not result.success:
        _report(executor, f"submoduleGitConfig.{key}", "Failed to set git config in submodule", submodule_path)
        return False
    return True


async def _configure_submodule(
    executor: SecureExecutor,
    submodule: Submodule,
    user_name: str,
    user_email: str,
    gpg_key_id: Optional[str],
) -> bool:
    path = submodule.absolute_path
    name_ok = await set_submodule_git_config(executor, path, "user.name", user_name)
    email_ok = await set_submodule_git_config(executor, path, "user.email", user_email)
    gpg_ok = True
    if gpg_key_id:
        gpg_ok = await set_submodule_git_config(executor, path, "user.signingkey", gpg_key_id)
        if gpg_ok:
            await set_submodule_git_config(executor, path, "commit.gpgsign", "true")
    return name_ok and email_ok and gpg_ok


async def set_identity_for_submodules(
    executor: SecureExecutor,
    submodules: List[Submodule],
    user_name: str,
    user_email: str,
    gpg_key_id: Optional[str] = None,
) -> SubmoduleConfigResult:
    outcomes = await asyncio.gather(
        *(_configure_submodule(executor, s, user_name, user_email, gpg_key_id) for s in submodules),
        return_exceptions=True,
    )
    result = SubmoduleConfigResult()
    for outcome in outcomes:
        if outcome is True:
            result.success += 1
        else:
            if isinstance(outcome, BaseException):
                logger.warning(f"Submodule configuration raised: {outcome}")
            result.failed += 1
    return result
