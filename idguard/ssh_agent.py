"""
ssh-agent key management through ssh-add / ssh-keygen.

Key paths are validated twice before use: a lexical shell-safety check on
the raw value, then full normalization with symlink resolution. A rejected
path surfaces to callers only as "Invalid SSH key path"; the detailed
reason stays in the exception context.
"""

import contextlib
import logging
import os
import re
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional

from idguard.errors import CommandExecutionError, IdGuardError, SecurityViolationError
from idguard.security.path_validator import normalize_and_validate_path, validate_ssh_key_path
from idguard.security.secure_exec import SecureExecutor
from idguard.validators.identity import Identity, is_shell_safe_path

logger = logging.getLogger(__name__)

SSH_ADD_LINE_REGEX = re.compile(r"(\d+)\s+(\S+)\s+(.+)\s+\((\w+)\)")
FINGERPRINT_REGEX = re.compile(r"(\S+)\s+(\S+)")


@dataclass
class SshKeyInfo:
    fingerprint: str
    comment: str
    type: str


def _invalid_key_path(**context) -> SecurityViolationError:
    return SecurityViolationError("Invalid SSH key path", field="sshKeyPath", context=context)


def validate_key_path(key_path: str) -> None:
    """Lexical checks on the raw path. Raises SecurityViolationError."""
    if not key_path or not is_shell_safe_path(key_path):
        raise _invalid_key_path(check="legacy")
    result = normalize_and_validate_path(key_path)
    if not result.valid:
        raise _invalid_key_path(reason=result.reason)


def expand_key_path(key_path: str) -> str:
    """Validated absolute key path with symlinks resolved."""
    result = validate_ssh_key_path(key_path)
    if not result.valid or not result.normalized_path:
        raise _invalid_key_path(reason=result.reason)
    return result.normalized_path


def _log_event(executor: SecureExecutor, method: str, *args) -> None:
    if executor.security_logger is None:
        return
    with contextlib.suppress(Exception):
        getattr(executor.security_logger, method)(*args)


def parse_ssh_add_list(stdout: str) -> List[SshKeyInfo]:
    """Parse ``ssh-add -l`` output. Unrecognized lines keep their text as comment."""
    keys = []
    for line in stdout.strip().split("\n"):
        if not line:
            continue
        match = SSH_ADD_LINE_REGEX.fullmatch(line)
        if match:
            keys.append(SshKeyInfo(fingerprint=match.group(2), comment=match.group(3), type=match.group(4)))
        else:
            keys.append(SshKeyInfo(fingerprint="", comment=line, type="unknown"))
    return keys


async def list_ssh_keys(executor: SecureExecutor) -> List[SshKeyInfo]:
    """Keys currently held by the agent; empty if the agent has none or is unreachable."""
    try:
        result = await executor.ssh_agent_exec(["-l"])
    except IdGuardError as e:
        logger.debug(f"ssh-add -l failed: {e.message}")
        return []
    return parse_ssh_add_list(result.stdout)


async def add_ssh_key(executor: SecureExecutor, key_path: str, platform: Optional[str] = None) -> None:
    """
    Load a key into the agent (macOS: also store the passphrase in the keychain).

    Raises:
        SecurityViolationError: key path rejected
        CommandExecutionError: ssh-add failed
    """
    validate_key_path(key_path)
    expanded = expand_key_path(key_path)
    platform = platform or sys.platform

    args = ["--apple-use-keychain", expanded] if platform == "darwin" else [expanded]
    try:
        await executor.ssh_agent_exec(args)
    except IdGuardError as e:
        _log_event(executor, "log_ssh_key_load", expanded, False)
        raise CommandExecutionError("Failed to add SSH key", command="ssh-add") from e
    _log_event(executor, "log_ssh_key_load", expanded, True)


async def remove_ssh_key(executor: SecureExecutor, key_path: str) -> None:
    """Remove a key from the agent. A key that is not loaded is not an error."""
    validate_key_path(key_path)
    expanded = expand_key_path(key_path)
    try:
        await executor.ssh_agent_exec(["-d", expanded])
    except IdGuardError as e:
        logger.debug(f"ssh-add -d failed (key may not be loaded): {e.message}")
        return
    _log_event(executor, "log_ssh_key_remove", expanded)


async def remove_identity_keys(executor: SecureExecutor, identities: Iterable[Identity]) -> None:
    for identity in identities:
        if not identity.ssh_key_path:
            continue
        try:
            await remove_ssh_key(executor, identity.ssh_key_path)
        except SecurityViolationError as e:
            logger.warning(f"Skipping identity {identity.id}: {e.message}")


async def switch_to_identity_ssh_key(
    executor: SecureExecutor,
    identity: Identity,
    identities: Iterable[Identity],
    platform: Optional[str] = None,
) -> None:
    """Unload every configured identity key, then load identity's key."""
    if not identity.ssh_key_path:
        return
    await remove_identity_keys(executor, identities)
    await add_ssh_key(executor, identity.ssh_key_path, platform)


async def is_key_loaded(executor: SecureExecutor, key_path: str) -> bool:
    validate_key_path(key_path)
    basename = os.path.basename(expand_key_path(key_path))
    keys = await list_ssh_keys(executor)
    return any(basename in key.comment for key in keys)


async def get_key_fingerprint(executor: SecureExecutor, key_path: str) -> Optional[str]:
    validate_key_path(key_path)
    expanded = expand_key_path(key_path)
    try:
        result = await executor.ssh_keygen_exec(["-lf", expanded])
    except IdGuardError as e:
        logger.debug(f"ssh-keygen -lf failed: {e.message}")
        return None
    match = FINGERPRINT_REGEX.search(result.stdout)
    return match.group(2) if match else None


def key_file_exists(key_path: str) -> bool:
    return os.access(expand_key_path(key_path), os.F_OK)
