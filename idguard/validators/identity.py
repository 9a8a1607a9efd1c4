"""
Identity field validation.

Every free-text field of an identity ends up as a git config value or an
ssh-agent argument, so anything that a shell would interpret is rejected
even though commands are never run through a shell.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from idguard.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_ICON_BYTE_LENGTH,
    MAX_ID_LENGTH,
    MAX_IDENTITIES,
    MAX_NAME_LENGTH,
    MAX_SERVICE_LENGTH,
    MAX_SSH_HOST_LENGTH,
)
from idguard.validators.common import (
    DANGEROUS_PATTERNS,
    has_path_traversal,
    is_valid_email,
    is_valid_gpg_key_id,
    is_valid_identity_id,
    is_valid_ssh_host,
    utf8_length,
)


@dataclass
class Identity:
    """A git identity as supplied by the user."""
    id: str
    name: str
    email: str
    service: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    ssh_key_path: Optional[str] = None
    ssh_host: Optional[str] = None
    gpg_key_id: Optional[str] = None


@dataclass
class IdentityValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _check_dangerous_patterns(value: Optional[str], field_name: str, errors: List[str]) -> None:
    if not value:
        return
    for pattern, description in DANGEROUS_PATTERNS:
        if pattern.search(value):
            errors.append(f"{field_name} contains {description}")
            break


def _check_email(email: Optional[str], errors: List[str]) -> None:
    if not email:
        return
    if len(email) > MAX_EMAIL_LENGTH:
        errors.append(f"email: exceeds maximum length ({MAX_EMAIL_LENGTH} characters)")
    elif not is_valid_email(email):
        errors.append("email: invalid email format")


def _check_ssh_key_path_format(ssh_key_path: Optional[str], errors: List[str]) -> None:
    if not ssh_key_path:
        return
    if not ssh_key_path.startswith("/") and not ssh_key_path.startswith("~"):
        errors.append("sshKeyPath: must be an absolute path or start with ~")
    if has_path_traversal(ssh_key_path):
        errors.append("sshKeyPath: path traversal (..) is not allowed")
    _check_dangerous_patterns(ssh_key_path, "sshKeyPath", errors)


def _check_gpg_key_id(gpg_key_id: Optional[str], errors: List[str]) -> None:
    if gpg_key_id and not is_valid_gpg_key_id(gpg_key_id):
        errors.append("gpgKeyId: must be 8-40 hexadecimal characters")


def _check_ssh_host(ssh_host: Optional[str], errors: List[str]) -> None:
    if not ssh_host:
        return
    if not is_valid_ssh_host(ssh_host):
        errors.append(
            "sshHost: must contain only alphanumeric characters, dots, underscores, and hyphens"
        )
    if len(ssh_host) > MAX_SSH_HOST_LENGTH:
        errors.append(f"sshHost: exceeds maximum length ({MAX_SSH_HOST_LENGTH} characters)")


def validate_identity(identity: Identity) -> IdentityValidationResult:
    """Validate all fields of an identity and collect every problem found."""
    errors: List[str] = []

    if not identity.id:
        errors.append("id is required")
    if not identity.name:
        errors.append("name is required")
    if not identity.email:
        errors.append("email is required")

    if identity.id and not is_valid_identity_id(identity.id, MAX_ID_LENGTH):
        errors.append(
            f"id: must be 1-{MAX_ID_LENGTH} alphanumeric characters, underscores, or hyphens"
        )

    _check_dangerous_patterns(identity.name, "name", errors)
    _check_dangerous_patterns(identity.email, "email", errors)
    _check_dangerous_patterns(identity.service, "service", errors)
    _check_dangerous_patterns(identity.description, "description", errors)
    _check_dangerous_patterns(identity.icon, "icon", errors)

    _check_email(identity.email, errors)
    _check_ssh_key_path_format(identity.ssh_key_path, errors)
    _check_gpg_key_id(identity.gpg_key_id, errors)
    _check_ssh_host(identity.ssh_host, errors)

    if identity.name and len(identity.name) > MAX_NAME_LENGTH:
        errors.append(f"name: exceeds maximum length ({MAX_NAME_LENGTH} characters)")
    if identity.service and len(identity.service) > MAX_SERVICE_LENGTH:
        errors.append(f"service: exceeds maximum length ({MAX_SERVICE_LENGTH} characters)")
    if identity.description and len(identity.description) > MAX_DESCRIPTION_LENGTH:
        errors.append(
            f"description: exceeds maximum length ({MAX_DESCRIPTION_LENGTH} characters)"
        )
    if identity.icon and utf8_length(identity.icon) > MAX_ICON_BYTE_LENGTH:
        errors.append("icon: exceeds maximum length")

    return IdentityValidationResult(valid=not errors, errors=errors)


def validate_identities(identities: List[Identity]) -> IdentityValidationResult:
    """Validate a list of identities, including id uniqueness."""
    errors: List[str] = []

    if len(identities) > MAX_IDENTITIES:
        errors.append(f"Too many identities (max {MAX_IDENTITIES})")
        return IdentityValidationResult(valid=False, errors=errors)

    ids = [identity.id for identity in identities]
    if len(ids) != len(set(ids)):
        errors.append("Duplicate identity IDs found")

    for index, identity in enumerate(identities):
        result = validate_identity(identity)
        for error in result.errors:
            errors.append(f"identities[{index}] ({identity.id or 'unknown'}): {error}")

    return IdentityValidationResult(valid=not errors, errors=errors)


def is_shell_safe_path(path: str) -> bool:
    """Legacy path check: no '..' and no shell-significant characters."""
    if has_path_traversal(path):
        return False
    return not any(pattern.search(path) for pattern, _ in DANGEROUS_PATTERNS)
