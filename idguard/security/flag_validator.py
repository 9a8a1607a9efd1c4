"""
Command-line flag validation.

Single-dash flags are checked character by character against the caller's
allowlist. Combined short flags (``-lf``) are only accepted when the exact
character sequence is registered for the command; a combination is never
inferred to be safe from its parts.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from idguard.validators.common import (
    CONTROL_CHAR_REGEX_STRICT,
    has_invisible_unicode,
    has_null_byte,
)

MAX_FLAG_LENGTH = 50
MAX_COMBINED_FLAG_LENGTH = 10

ALLOWED_COMBINED_PATTERNS: Dict[str, List[str]] = {
    "ssh-keygen": ["lf"],  # list fingerprint of file
}

_INVALID_FLAG_CHARS = re.compile(r"[^a-zA-Z]")
_COMBINED_FLAG = re.compile(r"-[a-zA-Z]{2,}")


@dataclass
class FlagValidationResult:
    valid: bool
    reason: Optional[str] = None


def _fail(reason: str) -> FlagValidationResult:
    return FlagValidationResult(valid=False, reason=reason)


def detect_unsafe_chars_in_flag(flag: str) -> Optional[str]:
    """Return the reason a flag is unsafe at the character level, or None."""
    if flag != flag.strip():
        return "Flag contains leading or trailing whitespace"
    if has_null_byte(flag):
        return "Flag contains null byte"
    if CONTROL_CHAR_REGEX_STRICT.search(flag):
        return "Flag contains control characters"
    if has_invisible_unicode(flag):
        return "Flag contains invisible Unicode characters"
    return None


def _has_path_like_pattern(flag_chars: str) -> bool:
    return (
        flag_chars.startswith(("/", "~", "./", "../"))
        or "/" in flag_chars
        or "\\" in flag_chars
    )


def _allowed_single_chars(allowed_args: Iterable[str]) -> set:
    return {
        allowed[1]
        for allowed in allowed_args
        if allowed.startswith("-") and not allowed.startswith("--") and len(allowed) == 2
    }


def validate_combined_flags(flag: str, command: str, allowed_args: Iterable[str]) -> FlagValidationResult:
    """Validate a combined short flag such as ``-lf``."""
    if not _COMBINED_FLAG.fullmatch(flag):
        return _fail("Not a combined short flag")
    flag_chars = flag[1:]

    if len(flag_chars) > MAX_COMBINED_FLAG_LENGTH:
        return _fail("Combined flag has too many characters")

    if len(set(flag_chars)) != len(flag_chars):
        return _fail("Duplicate flag character in combined flag")

    if flag_chars in ALLOWED_COMBINED_PATTERNS.get(command, []):
        return FlagValidationResult(valid=True)

    known = _allowed_single_chars(allowed_args)
    if any(char not in known for char in flag_chars):
        return _fail("Unknown flag character(s) in combined flag")

    return _fail("Combined flag is not explicitly allowed. Use separate flags instead.")


def validate_flag(flag: str, command: str, allowed_args: Iterable[str]) -> FlagValidationResult:
    """Validate a single argument that may be a flag.

    Non-dash arguments and ``--long`` options pass here; the caller checks
    them by exact match.

    Args:
        flag: Raw argument
        command: Command the argument belongs to (selects combined patterns)
        allowed_args: Literal arguments allowed for this command

    Returns:
        FlagValidationResult with a reason when rejected
    """
    allowed_args = list(allowed_args)

    if not flag:
        return _fail("Flag is empty")

    reason = detect_unsafe_chars_in_flag(flag)
    if reason:
        return _fail(reason)

    normalized = unicodedata.normalize("NFC", flag)
    reason = detect_unsafe_chars_in_flag(normalized)
    if reason:
        return _fail(f"{reason} (after normalization)")

    if not normalized.startswith("-") or normalized.startswith("--"):
        return FlagValidationResult(valid=True)

    if len(normalized) > MAX_FLAG_LENGTH:
        return _fail("Flag exceeds maximum length")

    flag_chars = normalized[1:]
    if not flag_chars:
        return _fail("Flag contains only dash")

    if _has_path_like_pattern(flag_chars):
        return _fail("Flag contains path-like pattern. Flags and values must be separate arguments.")

    if _INVALID_FLAG_CHARS.search(flag_chars):
        return _fail("Flag contains invalid characters. Only ASCII letters allowed.")

    if len(flag_chars) == 1:
        if normalized in allowed_args:
            return FlagValidationResult(valid=True)
        return _fail("Flag is not in allowlist")

    return validate_combined_flags(normalized, command, allowed_args)
