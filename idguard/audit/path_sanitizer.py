"""
Path redaction for security log output.

Paths are never written to the log verbatim when they could reveal key
material locations, credentials directories or remote hosts.

Usage:
    sanitize_path("/home/alice/projects/app")   # "~/projects/app"
    sanitize_path("/home/alice/.ssh/id_rsa")    # "[REDACTED:SENSITIVE_FILE]"
"""

import os
import posixpath
import re
import sys
from typing import List, Optional, Sequence

from idguard.constants import MAX_PATTERN_CHECK_LENGTH, PATH_MAX
from idguard.validators.common import CONTROL_CHAR_REGEX_ALL

SENSITIVE_DIRS_UNIX = (
    ".ssh",
    ".gnupg",
    ".aws",
    ".azure",
    ".gcloud",
    ".config/gcloud",
    ".npmrc",
    ".yarnrc",
    ".docker",
    ".kube",
    ".pgpass",
    ".my.cnf",
    ".netrc",
    "/etc/passwd",
    "/etc/shadow",
    "/etc/ssh",
    "/etc/ssl",
    "/etc/pki",
)

SENSITIVE_DIRS_WINDOWS = (
    "AppData\\Roaming",
    "AppData\\Local",
    ".ssh",
    ".aws",
    ".azure",
    ".gcloud",
    "Credentials",
    "Microsoft\\Crypto",
    "Microsoft\\Protect",
)

SENSITIVE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"private[_-]?key",
        r"id_rsa",
        r"id_ed25519",
        r"id_ecdsa",
        r"id_dsa",
        r"\.pem$",
        r"\.key$",
        r"\.p12$",
        r"\.pfx$",
        r"credential",
        r"secret",
        r"password",
        r"token",
        r"\.env$",
        r"\.env\.",
    )
)

_UNC_REGEX = re.compile(r"^//([^/]+)(/.*)?$")


def _components(path: str) -> List[str]:
    return [c for c in path.split("/") if c]


def _contains_sequence(haystack: Sequence[str], needle: Sequence[str]) -> bool:
    width = len(needle)
    return any(
        list(haystack[i:i + width]) == list(needle)
        for i in range(len(haystack) - width + 1)
    )


def contains_sensitive_dir(normalized_path: str, platform: Optional[str] = None) -> bool:
    """True if any run of path components matches a sensitive directory.

    Matching is by whole components, so ``/home/u/.sshconfig`` does not
    match ``.ssh``. Windows comparisons are case-insensitive.
    """
    if len(normalized_path) > PATH_MAX:
        return True

    windows = (platform or sys.platform) == "win32"
    sensitive_dirs = SENSITIVE_DIRS_WINDOWS if windows else SENSITIVE_DIRS_UNIX
    path_components = _components(normalized_path.lower() if windows else normalized_path)

    for sensitive_dir in sensitive_dirs:
        candidate = sensitive_dir.replace("\\", "/").lower() if windows else sensitive_dir
        if _contains_sequence(path_components, _components(candidate)):
            return True
    return False


def matches_sensitive_pattern(input_path: str) -> bool:
    path_to_check = input_path[:MAX_PATTERN_CHECK_LENGTH]
    filename = posixpath.basename(path_to_check)
    full_path = path_to_check.lower()
    return any(p.search(filename) or p.search(full_path) for p in SENSITIVE_PATTERNS)


def get_home_directory(platform: Optional[str] = None) -> str:
    if (platform or sys.platform) == "win32":
        drive = os.environ.get("HOMEDRIVE", "")
        home_path = os.environ.get("HOMEPATH", "")
        if drive and home_path:
            return drive + home_path
        return os.environ.get("USERPROFILE", "")
    return os.environ.get("HOME", "")


def _redact_unc(normalized_path: str) -> Optional[str]:
    if not normalized_path.startswith("//") or normalized_path.startswith("///"):
        return None
    match = _UNC_REGEX.match(normalized_path)
    if match is None:
        return None
    return f"//[REDACTED]{match.group(2) or ''}"


def _replace_home(normalized_path: str, home: str) -> Optional[str]:
    if not home:
        return None
    normalized_home = home.replace("\\", "/")
    if normalized_path == normalized_home or normalized_path.startswith(normalized_home + "/"):
        return "~" + normalized_path[len(normalized_home):]
    return None


def sanitize_path(input_path, home: Optional[str] = None, platform: Optional[str] = None) -> str:
    """Return a log-safe rendition of a filesystem path.

    Args:
        input_path: Path to sanitize (any value; non-strings are invalid)
        home: Home directory to collapse to ``~`` (default: from environment)
        platform: Override ``sys.platform`` (tests)
    """
    if not input_path or not isinstance(input_path, str):
        return "[INVALID_PATH]"

    if CONTROL_CHAR_REGEX_ALL.search(input_path):
        return "[REDACTED:CONTROL_CHARS]"

    if len(input_path) > PATH_MAX:
        return "[REDACTED:PATH_TOO_LONG]"

    normalized = input_path.replace("\\", "/")

    redacted_unc = _redact_unc(normalized)
    if redacted_unc is not None:
        return redacted_unc

    if matches_sensitive_pattern(normalized):
        return "[REDACTED:SENSITIVE_FILE]"

    if contains_sensitive_dir(normalized, platform):
        return "[REDACTED:SENSITIVE_DIR]"

    if home is None:
        home = get_home_directory(platform)
    replaced = _replace_home(normalized, home)
    if replaced is not None:
        return replaced

    return normalized
