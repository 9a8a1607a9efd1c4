"""
Sensitive value detection and redaction for security event details.

Every value that reaches a SecurityEvent goes through sanitize_value first:
paths are passed to sanitize_path, secret-looking strings are redacted,
long strings are truncated and containers are summarized rather than
dumped.
"""

import re
from typing import Any, Dict, Mapping

from idguard.audit.path_sanitizer import sanitize_path
from idguard.constants import (
    MAX_LOG_MESSAGE_LENGTH,
    MAX_LOG_STRING_LENGTH,
    MAX_PATTERN_CHECK_LENGTH,
    MAX_SECRET_LENGTH,
    MIN_SECRET_LENGTH,
)

SENSITIVE_KEYWORDS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"api[_-]?key",
        r"secret",
        r"password",
        r"token",
        r"bearer",
        r"authorization",
        r"credential",
        r"private",
    )
)

REDACTED_VALUE = "[REDACTED:SENSITIVE_VALUE]"
REDACTED_KEY = "[REDACTED_KEY]"
REDACTED_ALL = "[REDACTED:ALL_VALUES]"
TRUNCATION_SUFFIX = "...[truncated]"

_BASE64_REGEX = re.compile(r"[A-Za-z0-9+/]+=*")
_QUOTED_REGEX = re.compile(r"'([^']*)'")
_WORD_REGEX = re.compile(r"[^\s'\"(),]+")
_DRIVE_REGEX = re.compile(r"^[A-Za-z]:")
_CHAR_CLASSES = (
    re.compile(r"[A-Z]"),
    re.compile(r"[a-z]"),
    re.compile(r"[0-9]"),
    re.compile(r"[+/=]"),
)


def contains_sensitive_keyword(value: str) -> bool:
    check = value[:MAX_PATTERN_CHECK_LENGTH]
    return any(p.search(check) for p in SENSITIVE_KEYWORDS)


def is_secret_like(value: str) -> bool:
    """Heuristic for API keys and tokens: long base64-ish mixed-class strings."""
    check = value[:MAX_PATTERN_CHECK_LENGTH]
    if not MIN_SECRET_LENGTH <= len(check) <= MAX_SECRET_LENGTH:
        return False
    if not _BASE64_REGEX.fullmatch(check):
        return False
    classes = sum(1 for p in _CHAR_CLASSES if p.search(check))
    return classes >= 3


def looks_like_sensitive_data(value: str) -> bool:
    return contains_sensitive_keyword(value) or is_secret_like(value)


def looks_like_path(value: str) -> bool:
    return (
        value.startswith(("/", "~", "\\\\"))
        or _DRIVE_REGEX.match(value) is not None
    )


def _sanitize_string(value: str) -> str:
    if not value:
        return value
    if looks_like_path(value):
        return sanitize_path(value)
    if looks_like_sensitive_data(value):
        return REDACTED_VALUE
    if len(value) > MAX_LOG_STRING_LENGTH:
        return value[:MAX_LOG_STRING_LENGTH] + TRUNCATION_SUFFIX
    return value


def _summarize_container(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"[Array({len(value)})]"

    keys = [str(k) for k in value.keys()]
    safe_keys = [k for k in keys if not looks_like_sensitive_data(k)]
    if len(safe_keys) == len(keys):
        suffix = "..." if len(safe_keys) > 5 else ""
        return f"[Object({len(keys)} keys: {', '.join(safe_keys[:5])}{suffix})]"
    return f"[Object({len(keys)} keys)]"


def sanitize_value(value: Any, redact_all_sensitive: bool = False) -> Any:
    """Return a log-safe version of value.

    None, numbers and booleans pass through. Strings are redacted or
    truncated. Dicts and sequences are replaced by a short summary. Any
    other object is reduced to its type name.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        if redact_all_sensitive:
            return REDACTED_ALL
        return _sanitize_string(value)
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return _summarize_container(value)
    return f"[{type(value).__name__}]"


def _sanitize_words(text: str) -> str:
    def replace(match: "re.Match[str]") -> str:
        word = match.group(0)
        if looks_like_path(word):
            return sanitize_path(word)
        if is_secret_like(word):
            return REDACTED_VALUE
        return word

    return _WORD_REGEX.sub(replace, text)


def sanitize_message(text: str, redact_all_sensitive: bool = False) -> str:
    """Sanitize free text that may quote user input, such as a rejection reason.

    Single-quoted segments are sanitized like any other value. Secret-looking
    words and paths outside quotes are replaced in place, so the surrounding
    wording stays readable.
    """
    if not text:
        return text
    parts = _QUOTED_REGEX.split(text[:MAX_PATTERN_CHECK_LENGTH])
    pieces = []
    for index, part in enumerate(parts):
        if index % 2:
            pieces.append(f"'{sanitize_value(part, redact_all_sensitive)}'")
        else:
            pieces.append(_sanitize_words(part))
    result = "".join(pieces)
    if len(result) > MAX_LOG_MESSAGE_LENGTH:
        return result[:MAX_LOG_MESSAGE_LENGTH] + TRUNCATION_SUFFIX
    return result


def sanitize_details(details: Mapping[str, Any], redact_all_sensitive: bool = False) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in details.items():
        safe_key = REDACTED_KEY if looks_like_sensitive_data(key) else key
        sanitized[safe_key] = sanitize_value(value, redact_all_sensitive)
    return sanitized
