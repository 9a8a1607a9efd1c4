"""
Lexical checks for path-shaped command arguments.

These run on the raw argument without touching the filesystem. They are
used by the command allowlist before an argument vector is handed to a
subprocess.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional

from idguard.constants import PATH_MAX
from idguard.validators.common import (
    CONTROL_CHAR_REGEX_ALL,
    has_invisible_unicode,
    has_null_byte,
    has_path_traversal,
    has_path_traversal_strict,
    utf8_length,
)

_DRIVE_LETTER = re.compile(r"^[a-zA-Z]:")
_UNC_PREFIX = re.compile(r"^[/\\]{2}")
_DEVICE_PREFIX = re.compile(r"^[/\\]{2}[.?\\]")
_WINDOWS_RESERVED = re.compile(r"^(CON|PRN|AUX|NUL|COM[0-9]|LPT[0-9])([./\\]|$)", re.IGNORECASE)


@dataclass
class SecurePathResult:
    valid: bool
    reason: Optional[str] = None


def _fail(reason: str) -> SecurePathResult:
    return SecurePathResult(valid=False, reason=reason)


def _has_valid_prefix(path: str) -> bool:
    if path.startswith("/") or path.startswith("~"):
        return True
    if path == "." or path.startswith("./"):
        return not has_path_traversal(path)
    return False


def is_secure_path(path: str) -> SecurePathResult:
    """Check that a path argument is free of traversal and spoofing tricks.

    Accepts absolute POSIX paths, ``~`` / ``~/...`` and ``.`` / ``./...``.
    Rejects Windows drive letters, UNC and device paths, backslashes and
    reserved device names so that a path means the same thing everywhere.

    Example:
        is_secure_path('/home/user/.ssh/id_rsa')   # valid
        is_secure_path('../etc/passwd')            # invalid
    """
    if not path:
        return _fail("Path is empty or undefined")

    if path != path.strip():
        return _fail("Path contains leading or trailing whitespace")

    if has_null_byte(path):
        return _fail("Path contains null byte")
    if CONTROL_CHAR_REGEX_ALL.search(path):
        return _fail("Path contains control characters")
    if has_invisible_unicode(path):
        return _fail("Path contains invisible Unicode characters")

    normalized = unicodedata.normalize("NFC", path)

    if CONTROL_CHAR_REGEX_ALL.search(normalized):
        return _fail("Path contains control characters (after normalization)")
    if has_invisible_unicode(normalized):
        return _fail("Path contains invisible Unicode characters (after normalization)")

    byte_length = utf8_length(normalized)
    if byte_length > PATH_MAX:
        return _fail(f"Path exceeds maximum length ({byte_length} > {PATH_MAX} bytes)")

    if has_path_traversal_strict(normalized):
        return _fail("Path contains traversal pattern (..)")

    if "//" in normalized or "\\\\" in normalized:
        return _fail("Path contains double slashes")

    if "\\" in normalized:
        return _fail(
            "Path contains backslash (use forward slashes for cross-platform compatibility)"
        )

    if normalized.startswith("~") and normalized != "~" and not normalized.startswith("~/"):
        return _fail("Tilde expansion to other users (~user) is not allowed, use ~/ only")

    if _DRIVE_LETTER.match(normalized):
        return _fail("Windows absolute paths (drive letters) are not allowed in this context")

    if _UNC_PREFIX.match(normalized):
        return _fail("UNC paths and Windows device paths are not allowed")

    if _DEVICE_PREFIX.match(normalized):
        return _fail("Windows device paths are not allowed")

    if len(normalized) > 1:
        if normalized.endswith(".") and normalized != ".":
            return _fail("Path ends with dot (not allowed for cross-platform compatibility)")
        if normalized.endswith("/.") or normalized.endswith("/.."):
            return _fail("Path ends with /./ or /../ (not allowed)")

    basename = re.split(r"[/\\]", normalized)[-1]
    if _WINDOWS_RESERVED.match(basename):
        return _fail("Windows reserved device names are not allowed")

    if not _has_valid_prefix(normalized):
        return _fail(
            "Path must be absolute (start with /) or relative to home (~/) "
            "or current directory (./)"
        )

    return SecurePathResult(valid=True)


def is_path_argument(arg: str) -> bool:
    """Conservative test for "this argument looks like a file path".

    Arguments with surrounding whitespace count as paths so the stricter
    path check gets to reject them.
    """
    if not arg:
        return False

    if arg.strip() != arg:
        return True

    return (
        arg.startswith("/")
        or arg.startswith("~")
        or arg.startswith("./")
        or arg.startswith("../")
        or arg in (".", "..")
        or _DRIVE_LETTER.match(arg) is not None
        or _UNC_PREFIX.match(arg) is not None
    )
