"""
Filesystem path normalization and validation.

Provides:
- normalize_and_validate_path: staged validation pipeline for user paths
- validate_ssh_key_path / validate_workspace_path / validate_submodule_path
- expand_tilde, resolve_symlinks_securely, contains_symlinks

Every stage is a plain function ValidationState -> ValidationState. The
pipeline stops at the first failing state; a failed state is never passed
to a later stage, so a rejection cannot be undone.

Usage:
    from idguard.security.path_validator import normalize_and_validate_path

    result = normalize_and_validate_path("~/.ssh/id_ed25519")
    if result.valid:
        key_path = result.normalized_path
"""

import errno
import logging
import os
import unicodedata
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable, Iterable, Optional, Tuple

from idguard.constants import PATH_MAX
from idguard.security.path_security import is_secure_path
from idguard.validators.common import (
    CONTROL_CHAR_REGEX_ALL,
    has_invisible_unicode,
    has_null_byte,
    utf8_length,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationState:
    """Value threaded through a validation pipeline."""
    valid: bool
    value: str
    reason: Optional[str] = None

    def fail(self, reason: str) -> "ValidationState":
        return replace(self, valid=False, reason=reason)


Stage = Callable[[ValidationState], ValidationState]


@dataclass
class PathValidationOptions:
    resolve_symlinks: bool = False
    require_exists: bool = False
    # None means the process working directory
    base_dir: Optional[str] = None


@dataclass
class NormalizedPathResult:
    valid: bool
    original_path: str
    normalized_path: Optional[str] = None
    reason: Optional[str] = None
    symlinks_resolved: bool = False


def run_pipeline(state: ValidationState, stages: Iterable[Stage]) -> ValidationState:
    """Apply stages in order, stopping at the first invalid state."""
    for stage in stages:
        if not state.valid:
            break
        state = stage(state)
    return state


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def expand_tilde(path: str) -> str:
    """Expand ``~`` and ``~/...`` to the current user's home directory.

    ``~user`` forms are returned unchanged; callers reject them separately.
    """
    if not path:
        return path
    if path == "~":
        return os.path.expanduser("~")
    if path.startswith("~/"):
        return os.path.join(os.path.expanduser("~"), path[2:])
    return path


def is_within_boundary(path: str, root: str) -> bool:
    """True if path equals root or lies underneath it."""
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def resolve_symlinks_securely(path: str) -> Tuple[Optional[str], Optional[str]]:
    """Resolve every symlink in path.

    Returns:
        (resolved_path, None) on success, (None, reason) on failure.
        A path that does not exist resolves to its normalized form.
    """
    try:
        resolved = os.path.realpath(path, strict=True)
    except OSError as e:
        if e.errno == errno.ELOOP:
            return None, "Symlink loop detected (ELOOP) - possible infinite loop attack"
        if e.errno == errno.ENOENT:
            return os.path.normpath(path), None
        if e.errno == errno.EACCES:
            return None, "Permission denied while resolving symlinks (EACCES)"
        if e.errno == errno.ENAMETOOLONG:
            return None, "Path too long while resolving symlinks (ENAMETOOLONG)"
        if e.errno == errno.ENOTDIR:
            return None, "A component of the path is not a directory (ENOTDIR)"
        code = errno.errorcode.get(e.errno, str(e.errno)) if e.errno else type(e).__name__
        return None, f"Error resolving symlinks: {code}"

    resolved_length = utf8_length(resolved)
    if resolved_length > PATH_MAX:
        return None, f"Resolved path exceeds maximum length ({resolved_length} > {PATH_MAX} bytes)"
    return resolved, None


def contains_symlinks(path: str) -> bool:
    """True if any component of an existing path is a symlink.

    A symlink loop counts as containing symlinks; a missing path does not.
    """
    try:
        return os.path.realpath(path, strict=True) != os.path.normpath(os.path.abspath(path))
    except OSError as e:
        return e.errno == errno.ELOOP


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

def check_not_empty_and_bounded(state: ValidationState) -> ValidationState:
    if not state.value:
        return state.fail("Path is empty or undefined")
    byte_length = utf8_length(state.value)
    if byte_length > PATH_MAX:
        return state.fail(f"Path exceeds maximum length ({byte_length} > {PATH_MAX} bytes)")
    return state


def check_null_byte(state: ValidationState) -> ValidationState:
    if has_null_byte(state.value):
        return state.fail("Path contains null byte")
    return state


def check_control_chars(state: ValidationState, suffix: str = "") -> ValidationState:
    if CONTROL_CHAR_REGEX_ALL.search(state.value):
        return state.fail(f"Path contains control characters{suffix}")
    return state


def check_invisible_unicode(state: ValidationState, suffix: str = "") -> ValidationState:
    if has_invisible_unicode(state.value):
        return state.fail(f"Path contains invisible Unicode characters{suffix}")
    return state


def normalize_unicode(state: ValidationState) -> ValidationState:
    return replace(state, value=unicodedata.normalize("NFC", state.value))


def check_lexical_structure(state: ValidationState) -> ValidationState:
    """Traversal, tilde-user, drive letter, UNC and prefix checks on the raw form."""
    result = is_secure_path(state.value)
    if not result.valid:
        return state.fail(f"Pre-normalization check failed: {result.reason}")
    return state


def expand_home(state: ValidationState) -> ValidationState:
    value = state.value
    if value.startswith("~") and value != "~" and not value.startswith("~/"):
        return state.fail("Tilde expansion to other users (~user) is not allowed, use ~/ only")
    return replace(state, value=expand_tilde(value))


def resolve_absolute(state: ValidationState, base_dir: str) -> ValidationState:
    value = state.value
    if not os.path.isabs(value):
        value = os.path.join(base_dir, value)
    return replace(state, value=os.path.normpath(os.path.abspath(value)))


def check_post_normalization(state: ValidationState, original: str) -> ValidationState:
    value = state.value
    if has_null_byte(value):
        return state.fail("Post-normalization check failed: Normalized path contains null byte")
    segments = value.replace("\\", "/").split("/")
    if ".." in segments:
        return state.fail(
            "Post-normalization check failed: Normalized path still contains traversal pattern (..)"
        )
    # POSIX keeps a leading '//' as implementation-defined; treat it as doubled too
    if "//" in value or (os.sep == "\\" and "\\\\" in value[1:]):
        return state.fail("Post-normalization check failed: Normalized path contains double slashes")
    if original.startswith("~"):
        home = os.path.normpath(os.path.expanduser("~"))
        if not is_within_boundary(value, home):
            return state.fail(
                "Post-normalization check failed: Path escaped from home directory after normalization"
            )
    return state


def check_normalized_length(state: ValidationState) -> ValidationState:
    byte_length = utf8_length(state.value)
    if byte_length > PATH_MAX:
        return state.fail(
            f"Normalized path exceeds maximum length ({byte_length} > {PATH_MAX} bytes)"
        )
    return state


def resolve_symlinks(state: ValidationState, boundary: Optional[str] = None) -> ValidationState:
    resolved, reason = resolve_symlinks_securely(state.value)
    if resolved is None:
        return state.fail(reason)

    resolved_state = replace(state, value=resolved)
    resolved_state = run_pipeline(resolved_state, [
        partial(check_control_chars, suffix=" (after symlink resolution)"),
        partial(check_invisible_unicode, suffix=" (after symlink resolution)"),
    ])
    if not resolved_state.valid:
        return resolved_state

    if boundary is not None:
        real_boundary = os.path.realpath(boundary)
        if is_within_boundary(state.value, boundary) and not is_within_boundary(resolved, real_boundary):
            return state.fail("Symlink target escapes base directory")
    return resolved_state


def check_exists(state: ValidationState) -> ValidationState:
    try:
        os.stat(state.value)
    except OSError as e:
        code = errno.errorcode.get(e.errno, "UNKNOWN") if e.errno else "UNKNOWN"
        return state.fail(f"Path does not exist or is not accessible: {code}")
    return state


def _security_stages(original: str, base_dir: Optional[str]) -> list:
    return [
        check_not_empty_and_bounded,
        check_null_byte,
        check_control_chars,
        check_invisible_unicode,
        normalize_unicode,
        partial(check_control_chars, suffix=" (after normalization)"),
        partial(check_invisible_unicode, suffix=" (after normalization)"),
        check_lexical_structure,
        expand_home,
        # base_dir is looked up lazily so an invalid input never calls getcwd
        lambda state: resolve_absolute(state, base_dir if base_dir is not None else os.getcwd()),
        partial(check_post_normalization, original=original),
        check_normalized_length,
    ]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def normalize_and_validate_path(
    raw_path: str,
    options: Optional[PathValidationOptions] = None,
) -> NormalizedPathResult:
    """Validate a user-supplied path and return its normalized absolute form.

    Security stages always run before any filesystem access. A path that
    does not exist is valid unless ``require_exists`` is set.
    """
    options = options or PathValidationOptions()
    if not isinstance(raw_path, str):
        return NormalizedPathResult(valid=False, original_path=raw_path, reason="Path is not a string")

    state = run_pipeline(
        ValidationState(valid=True, value=raw_path),
        _security_stages(raw_path, options.base_dir),
    )
    if not state.valid:
        return NormalizedPathResult(valid=False, original_path=raw_path, reason=state.reason)

    normalized = state.value
    tail: list = []
    if options.resolve_symlinks:
        boundary = os.path.normpath(os.path.abspath(options.base_dir)) if options.base_dir else None
        tail.append(partial(resolve_symlinks, boundary=boundary))
    if options.require_exists:
        tail.append(check_exists)

    final = run_pipeline(state, tail)
    if not final.valid:
        return NormalizedPathResult(
            valid=False,
            original_path=raw_path,
            normalized_path=normalized if options.require_exists else None,
            reason=final.reason,
        )

    return NormalizedPathResult(
        valid=True,
        original_path=raw_path,
        normalized_path=final.value,
        symlinks_resolved=final.value != normalized,
    )


def validate_ssh_key_path(
    key_path: str,
    require_exists: bool = False,
    base_dir: Optional[str] = None,
) -> NormalizedPathResult:
    """Validate an SSH key path; symlinks are always resolved."""
    return normalize_and_validate_path(
        key_path,
        PathValidationOptions(resolve_symlinks=True, require_exists=require_exists, base_dir=base_dir),
    )


def validate_workspace_path(workspace_path: str, require_exists: bool = False) -> NormalizedPathResult:
    """Validate a workspace root supplied by the host environment.

    Unlike normalize_and_validate_path this accepts platform-native
    absolute paths (e.g. ``C:\\work``) since the host provides them.
    """
    def fail(reason: str, normalized: Optional[str] = None) -> NormalizedPathResult:
        return NormalizedPathResult(
            valid=False, original_path=workspace_path, normalized_path=normalized, reason=reason
        )

    if not workspace_path:
        return fail("Workspace path is empty or undefined")
    if workspace_path != workspace_path.strip():
        return fail("Workspace path contains leading or trailing whitespace")
    if has_null_byte(workspace_path):
        return fail("Workspace path contains null byte")
    if CONTROL_CHAR_REGEX_ALL.search(workspace_path):
        return fail("Workspace path contains control characters")
    if has_invisible_unicode(workspace_path):
        return fail("Workspace path contains invisible Unicode characters")

    if utf8_length(workspace_path) > PATH_MAX:
        return fail(f"Workspace path exceeds maximum length ({utf8_length(workspace_path)} > {PATH_MAX} bytes)")

    normalized = os.path.normpath(os.path.abspath(workspace_path))
    byte_length = utf8_length(normalized)
    if byte_length > PATH_MAX:
        return fail(f"Workspace path exceeds maximum length ({byte_length} > {PATH_MAX} bytes)")

    if require_exists and not os.path.exists(normalized):
        return fail("Workspace path does not exist or is not accessible: ENOENT", normalized)

    return NormalizedPathResult(valid=True, original_path=workspace_path, normalized_path=normalized)


def validate_submodule_path(
    submodule_path: str,
    workspace_root: str,
    require_exists: bool = False,
    verify_symlinks: bool = True,
) -> NormalizedPathResult:
    """Validate a submodule path reported by git, relative to the workspace root.

    The joined path must stay under the workspace both lexically and, when
    it exists, after resolving symlinks.
    """
    def fail(reason: str, **kwargs) -> NormalizedPathResult:
        return NormalizedPathResult(valid=False, original_path=submodule_path, reason=reason, **kwargs)

    workspace = validate_workspace_path(workspace_root, require_exists=True)
    if not workspace.valid:
        return fail(f"Invalid workspace path: {workspace.reason or 'validation failed'}")
    root = workspace.normalized_path

    if not submodule_path or not submodule_path.strip():
        return fail("Submodule path is empty")
    if os.path.isabs(submodule_path) or submodule_path.startswith(("/", "\\")):
        return fail("Submodule path must be relative to workspace root")
    if CONTROL_CHAR_REGEX_ALL.search(submodule_path):
        return fail("Submodule path contains control characters")
    byte_length = utf8_length(submodule_path)
    if byte_length > PATH_MAX:
        return fail(f"Submodule path exceeds maximum length ({byte_length} > {PATH_MAX} bytes)")

    prefixed = submodule_path if submodule_path.startswith("./") else "./" + submodule_path
    result = normalize_and_validate_path(prefixed, PathValidationOptions(base_dir=root))
    if not result.valid:
        return NormalizedPathResult(valid=False, original_path=submodule_path, reason=result.reason)

    normalized = result.normalized_path
    if not is_within_boundary(normalized, root):
        return fail("Submodule path escapes workspace root after normalization")

    if verify_symlinks and os.path.lexists(normalized):
        try:
            resolved = os.path.realpath(normalized, strict=True)
        except OSError as e:
            logger.debug(f"Submodule realpath failed: {e.errno}")
            return fail("Symlink resolution failed: realpath error", symlinks_resolved=True)
        if not is_within_boundary(resolved, os.path.realpath(root)):
            return fail("Submodule symlink target escapes workspace root", symlinks_resolved=True)
        return NormalizedPathResult(
            valid=True, original_path=submodule_path, normalized_path=resolved, symlinks_resolved=True
        )

    if require_exists and not os.path.exists(normalized):
        return fail("Submodule path does not exist: ENOENT", normalized_path=normalized)

    return NormalizedPathResult(valid=True, original_path=submodule_path, normalized_path=normalized)
