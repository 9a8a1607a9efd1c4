"""
Flag Validator Tests

Tests single and combined short flag validation, including character
smuggling and flag+value concatenation.
"""

import pytest

from idguard.security.flag_validator import (
    ALLOWED_COMBINED_PATTERNS,
    MAX_COMBINED_FLAG_LENGTH,
    validate_combined_flags,
    validate_flag,
)

SSH_KEYGEN_ARGS = ["-l", "-f"]


class TestValidateFlag:
    """Tests for validate_flag."""

    def test_allowed_single_flag(self):
        """A single flag in the allowlist passes."""
        assert validate_flag("-l", "ssh-keygen", SSH_KEYGEN_ARGS).valid

    def test_unknown_single_flag(self):
        """A single flag outside the allowlist fails."""
        result = validate_flag("-x", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Flag is not in allowlist"

    def test_empty_flag(self):
        result = validate_flag("", "git", [])
        assert not result.valid
        assert result.reason == "Flag is empty"

    def test_dash_only(self):
        result = validate_flag("-", "git", [])
        assert not result.valid
        assert result.reason == "Flag contains only dash"

    @pytest.mark.parametrize("flag", [" -l", "-l ", "-l\t"])
    def test_surrounding_whitespace(self, flag):
        """Whitespace around a flag is obfuscation."""
        result = validate_flag(flag, "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Flag contains leading or trailing whitespace"

    def test_null_byte(self):
        result = validate_flag("-l\x00f", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Flag contains null byte"

    def test_control_character(self):
        result = validate_flag("-l\x1bf", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Flag contains control characters"

    def test_invisible_unicode(self):
        result = validate_flag("-l\u200bf", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Flag contains invisible Unicode characters"

    @pytest.mark.parametrize("flag", ["-f/etc/passwd", "-f~/key", "-f./key", "-f../key"])
    def test_flag_value_concatenation(self, flag):
        """Values glued onto flags are rejected as path-like."""
        result = validate_flag(flag, "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid

    def test_path_separator_reason(self):
        result = validate_flag("-f/etc/passwd", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert result.reason.startswith("Flag contains path-like pattern")

    def test_non_ascii_letters(self):
        """Only ASCII letters may follow the dash."""
        result = validate_flag("-l1", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert "Only ASCII letters" in result.reason

    def test_too_long(self):
        result = validate_flag("-" + "a" * 60, "git", [])
        assert not result.valid
        assert result.reason == "Flag exceeds maximum length"

    def test_long_options_pass_through(self):
        """--long options are checked by exact match elsewhere."""
        assert validate_flag("--local", "git", []).valid

    def test_positional_passes_through(self):
        assert validate_flag("user.name", "git", []).valid


class TestCombinedFlags:
    """Tests for combined short flags."""

    def test_registered_combination(self):
        """-lf is explicitly registered for ssh-keygen."""
        assert validate_flag("-lf", "ssh-keygen", SSH_KEYGEN_ARGS).valid
        assert validate_combined_flags("-lf", "ssh-keygen", SSH_KEYGEN_ARGS).valid

    def test_unregistered_character(self):
        """-lx fails even if -x were allowed somewhere else."""
        result = validate_combined_flags("-lx", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid

    def test_unregistered_combination_of_allowed_chars(self):
        """-fl is never inferred from -f and -l."""
        result = validate_combined_flags("-fl", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Combined flag is not explicitly allowed. Use separate flags instead."

    def test_allowed_chars_with_other_command(self):
        """Patterns are per command."""
        assert not validate_combined_flags("-lf", "ssh-add", SSH_KEYGEN_ARGS).valid

    @pytest.mark.parametrize("flag", ["-ab", "-lfx", "-xyz", "-fl"])
    def test_unregistered_combinations_always_fail(self, flag):
        """No combination outside the explicit patterns is accepted."""
        allowed = ["-" + c for c in "abflxyz"]
        assert not validate_combined_flags(flag, "ssh-keygen", allowed).valid

    def test_duplicate_characters(self):
        result = validate_combined_flags("-ll", "ssh-keygen", SSH_KEYGEN_ARGS)
        assert not result.valid
        assert result.reason == "Duplicate flag character in combined flag"

    def test_too_many_characters(self):
        flag = "-" + "abcdefghijk"[: MAX_COMBINED_FLAG_LENGTH + 1]
        result = validate_combined_flags(flag, "git", [])
        assert not result.valid
        assert result.reason == "Combined flag has too many characters"

    def test_not_a_combined_flag(self):
        assert not validate_combined_flags("-l", "ssh-keygen", SSH_KEYGEN_ARGS).valid
        assert not validate_combined_flags("--lf", "ssh-keygen", SSH_KEYGEN_ARGS).valid

    def test_patterns_are_registered(self):
        assert ALLOWED_COMBINED_PATTERNS["ssh-keygen"] == ["lf"]
