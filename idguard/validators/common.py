"""
Common validation helpers shared by the path, flag and identity validators.

Naming:
- is_* / has_*   return bool
- validate_*     return a result object with valid + reason
- detect_*       return the detected problem or None
"""

import re
from typing import Optional

# Zero-width, bidi, word-joiner, BOM and soft hyphen code points
INVISIBLE_CHARS = (
    "\u200b",  # zero-width space
    "\u200c",  # zero-width non-joiner
    "\u200d",  # zero-width joiner
    "\u200e",  # left-to-right mark
    "\u200f",  # right-to-left mark
    "\u2060",  # word joiner
    "\u2061",  # function application
    "\u2062",  # invisible times
    "\u2063",  # invisible separator
    "\u2064",  # invisible plus
    "\ufeff",  # byte order mark
    "\u00ad",  # soft hyphen
)

# Strict skips tab, LF and CR; used for free text and command flags.
CONTROL_CHAR_REGEX_STRICT = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
CONTROL_CHAR_REGEX_ALL = re.compile(r"[\x00-\x1f\x7f]")

_TRAVERSAL_PATTERNS = [
    re.compile(r"\.\.[/\\]"),
    re.compile(r"[/\\]\.\.$"),
    re.compile(r"[/\\]\.\.[/\\]"),
    re.compile(r"^\.\.[/\\]"),
    re.compile(r"^\.\.$"),
    re.compile(r"\./\.\."),
    re.compile(r"\.\./\."),
    re.compile(r"\.{3,}"),
    re.compile(r"/\./\.\."),
    re.compile(r"/\.\./\."),
]

SSH_HOST_REGEX = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")
GPG_KEY_REGEX = re.compile(r"^[A-Fa-f0-9]{8,40}$")
IDENTITY_ID_REGEX = re.compile(r"^[a-zA-Z0-9_-]+$")
SAFE_TEXT_REGEX = re.compile(r"^[^\x00-\x1f\x7f`$(){}|&<>]+$")

DANGEROUS_PATTERNS = (
    (re.compile(r"[`$(){}|&<>]"), "shell metacharacters"),
    (re.compile(r"[\n\r]"), "newline characters"),
    (re.compile(r"\\x[0-9a-f]{2}", re.IGNORECASE), "hex escape sequences"),
    (re.compile(r"\x00"), "null bytes"),
)


def has_null_byte(s: str) -> bool:
    return "\x00" in s


def has_control_chars(s: str, strict: bool = True) -> bool:
    """Check for ASCII control characters.

    Args:
        s: String to check
        strict: If True, tab/LF/CR are tolerated; if False every
            control character counts
    """
    regex = CONTROL_CHAR_REGEX_STRICT if strict else CONTROL_CHAR_REGEX_ALL
    return regex.search(s) is not None


def has_path_traversal(s: str) -> bool:
    """Fast check for a literal '..' anywhere in the string."""
    return ".." in s


def has_path_traversal_strict(s: str) -> bool:
    """Check for traversal patterns: ../, /.., standalone .., ./.., 3+ dots."""
    return any(pattern.search(s) for pattern in _TRAVERSAL_PATTERNS)


def has_invisible_unicode(s: str) -> bool:
    return any(char in s for char in INVISIBLE_CHARS)


def detect_unsafe_chars(s: str, strict: bool = True) -> Optional[str]:
    """Return a short description of the first unsafe character class found."""
    if has_null_byte(s):
        return "null byte"
    if has_control_chars(s, strict=strict):
        return "control characters"
    if has_invisible_unicode(s):
        return "invisible Unicode characters"
    return None


def is_valid_email(email: str) -> bool:
    """Split-based email format check (no backtracking regex).

    Only the shape is checked; callers enforce MAX_EMAIL_LENGTH.
    """
    if not email:
        return False
    if re.search(r"\s", email):
        return False
    if "<" in email or ">" in email:
        return False
    if email.count("@") != 1:
        return False

    local, domain = email.split("@")
    if not local or not domain:
        return False
    if "." not in domain or domain.endswith("."):
        return False
    return True


def is_valid_hex(value: str) -> bool:
    return re.fullmatch(r"[A-Fa-f0-9]+", value) is not None


def is_valid_ssh_host(value: str) -> bool:
    return SSH_HOST_REGEX.fullmatch(value) is not None


def is_valid_gpg_key_id(value: str) -> bool:
    return GPG_KEY_REGEX.fullmatch(value) is not None


def is_valid_identity_id(value: str, max_length: int) -> bool:
    return 0 < len(value) <= max_length and IDENTITY_ID_REGEX.fullmatch(value) is not None


def has_dangerous_chars(text: str) -> bool:
    """True if text is empty or contains any shell-significant character."""
    return SAFE_TEXT_REGEX.fullmatch(text) is None


def utf8_length(s: str) -> int:
    """Byte length of s encoded as UTF-8 (lone surrogates count as 3 bytes)."""
    return len(s.encode("utf-8", errors="surrogatepass"))
