"""
Identity Validation Tests

Tests the per-field checks applied to identities before any of their
values reach git config or ssh-add.
"""

import pytest

from idguard.constants import MAX_EMAIL_LENGTH, MAX_IDENTITIES
from idguard.validators import (
    Identity,
    has_control_chars,
    is_shell_safe_path,
    is_valid_email,
    validate_identities,
    validate_identity,
)


def _identity(**overrides):
    fields = {"id": "work", "name": "Jane Doe", "email": "jane@example.com"}
    fields.update(overrides)
    return Identity(**fields)


class TestValidateIdentity:
    """Tests for validate_identity."""

    def test_minimal_identity(self):
        result = validate_identity(_identity())
        assert result.valid
        assert result.errors == []

    def test_full_identity(self):
        identity = _identity(
            service="GitHub",
            icon="\U0001F4BC",
            description="Work account",
            ssh_key_path="~/.ssh/id_ed25519_work",
            ssh_host="github-work",
            gpg_key_id="ABCDEF0123456789",
        )
        assert validate_identity(identity).valid

    def test_required_fields(self):
        result = validate_identity(Identity(id="", name="", email=""))
        assert not result.valid
        assert "id is required" in result.errors
        assert "name is required" in result.errors
        assert "email is required" in result.errors

    def test_command_substitution_in_name(self):
        result = validate_identity(_identity(name="Jane`$(rm -rf ~)`Doe"))
        assert not result.valid
        assert "name contains shell metacharacters" in result.errors

    @pytest.mark.parametrize("field,value", [
        ("name", "Jane\nDoe"),
        ("service", "Git|Hub"),
        ("description", "a\\x41b"),
        ("icon", "a\x00"),
    ])
    def test_dangerous_fields(self, field, value):
        assert not validate_identity(_identity(**{field: value})).valid

    @pytest.mark.parametrize("identity_id", ["has space", "semi;colon", "x" * 65, "dot.ted"])
    def test_invalid_id(self, identity_id):
        result = validate_identity(_identity(id=identity_id))
        assert not result.valid
        assert any(error.startswith("id:") for error in result.errors)

    def test_invalid_email(self):
        result = validate_identity(_identity(email="jane.example.com"))
        assert "email: invalid email format" in result.errors

    @pytest.mark.parametrize("path,error", [
        ("relative/key", "sshKeyPath: must be an absolute path or start with ~"),
        ("~/.ssh/../../etc/shadow", "sshKeyPath: path traversal (..) is not allowed"),
    ])
    def test_ssh_key_path_format(self, path, error):
        result = validate_identity(_identity(ssh_key_path=path))
        assert error in result.errors

    def test_gpg_key(self):
        result = validate_identity(_identity(gpg_key_id="not-hex"))
        assert "gpgKeyId: must be 8-40 hexadecimal characters" in result.errors

    def test_ssh_host(self):
        result = validate_identity(_identity(ssh_host="-oProxyCommand=x"))
        assert not result.valid

    def test_icon_byte_length(self):
        result = validate_identity(_identity(icon="\U0001F4BC" * 9))
        assert "icon: exceeds maximum length" in result.errors

    def test_name_length(self):
        result = validate_identity(_identity(name="a" * 257))
        assert "name: exceeds maximum length (256 characters)" in result.errors

    def test_email_length_limit(self):
        at_limit = "a" * 300 + "@" + "b" * 15 + ".com"
        assert len(at_limit) == MAX_EMAIL_LENGTH
        assert validate_identity(_identity(email=at_limit)).valid

        result = validate_identity(_identity(email="a" + at_limit))
        assert result.errors == [f"email: exceeds maximum length ({MAX_EMAIL_LENGTH} characters)"]


class TestValidateIdentities:
    """Tests for validate_identities."""

    def test_duplicate_ids(self):
        result = validate_identities([_identity(), _identity(email="other@example.com")])
        assert not result.valid
        assert "Duplicate identity IDs found" in result.errors

    def test_errors_are_prefixed(self):
        result = validate_identities([_identity(), _identity(id="home", email="bad")])
        assert result.errors == ["identities[1] (home): email: invalid email format"]

    def test_too_many(self):
        identities = [_identity(id=f"id-{n}", email=f"user{n}@example.com") for n in range(MAX_IDENTITIES + 1)]
        result = validate_identities(identities)
        assert result.errors == [f"Too many identities (max {MAX_IDENTITIES})"]


class TestHelpers:
    """Character-class helpers."""

    @pytest.mark.parametrize("email,expected", [
        ("jane@example.com", True),
        ("a@b.co", True),
        ("jane@example", False),
        ("jane@example.", False),
        ("two@@example.com", False),
        ("jane doe@example.com", False),
        ("<jane@example.com>", False),
        ("", False),
    ])
    def test_is_valid_email(self, email, expected):
        assert is_valid_email(email) is expected

    def test_control_chars_strict_tolerates_whitespace(self):
        assert not has_control_chars("a\tb\nc")
        assert has_control_chars("a\tb", strict=False)
        assert has_control_chars("a\x1bb")

    @pytest.mark.parametrize("path,expected", [
        ("~/.ssh/id_ed25519", True),
        ("/home/jane/.ssh/id_rsa", True),
        ("~/.ssh/../id_rsa", False),
        ("~/.ssh/$(whoami)", False),
        ("/tmp/key;rm", True),
    ])
    def test_is_shell_safe_path(self, path, expected):
        assert is_shell_safe_path(path) is expected
