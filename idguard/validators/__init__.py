"""Input validation helpers (character classes and identity fields)."""

from idguard.validators.common import (
    has_null_byte,
    has_control_chars,
    has_invisible_unicode,
    has_path_traversal,
    has_path_traversal_strict,
    is_valid_email,
)
from idguard.validators.identity import (
    Identity,
    IdentityValidationResult,
    validate_identity,
    validate_identities,
    is_shell_safe_path,
)

__all__ = [
    "has_null_byte",
    "has_control_chars",
    "has_invisible_unicode",
    "has_path_traversal",
    "has_path_traversal_strict",
    "is_valid_email",
    "Identity",
    "IdentityValidationResult",
    "validate_identity",
    "validate_identities",
    "is_shell_safe_path",
]
