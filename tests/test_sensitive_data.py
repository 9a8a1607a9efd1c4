"""
Sensitive Data Tests

Tests secret detection and the value/detail sanitizers used for security
events.
"""

import pytest

from idguard.audit.sensitive_data import (
    REDACTED_ALL,
    REDACTED_KEY,
    REDACTED_VALUE,
    TRUNCATION_SUFFIX,
    contains_sensitive_keyword,
    is_secret_like,
    looks_like_path,
    sanitize_details,
    sanitize_message,
    sanitize_value,
)

SECRET = "A1b2C3d4E5f6G7h8I9j0K1l2M3n4O5p6Q7r8"


class TestDetection:
    """Keyword and secret heuristics."""

    @pytest.mark.parametrize("value", ["api_key", "API-KEY", "apikey", "clientSecret", "Bearer xyz", "my_password"])
    def test_keywords(self, value):
        assert contains_sensitive_keyword(value)

    @pytest.mark.parametrize("value", ["user.name", "jane@example.com", "status"])
    def test_no_keywords(self, value):
        assert not contains_sensitive_keyword(value)

    def test_secret_like_mixed_classes(self):
        assert is_secret_like("aB3dE5fG7hJ9kL1mN3pQ5rS7tU9vW1xY3zA5")

    def test_secret_like_base64_padding(self):
        assert is_secret_like("QWxhZGRpbjpvcGVuIHNlc2FtZQ" + "abc123XYZ+/==")

    @pytest.mark.parametrize("value", [
        "a" * 40,
        "aB3",
        "aB3-" * 10,
        "aB3" * 100,
    ])
    def test_not_secret_like(self, value):
        assert not is_secret_like(value)

    @pytest.mark.parametrize("value,expected", [
        ("/etc/hosts", True),
        ("~/work", True),
        ("\\\\server\\share", True),
        ("C:\\Users", True),
        ("relative/path", False),
        ("user.name", False),
    ])
    def test_looks_like_path(self, value, expected):
        assert looks_like_path(value) is expected


class TestSanitizeValue:
    """Tests for sanitize_value."""

    @pytest.mark.parametrize("value", [None, 0, 42, 1.5, True, False, ""])
    def test_passthrough(self, value):
        assert sanitize_value(value) == value

    def test_short_string_unchanged(self):
        assert sanitize_value("work-identity") == "work-identity"

    def test_long_string_truncated(self):
        assert sanitize_value("x" * 60) == "x" * 50 + TRUNCATION_SUFFIX

    def test_sensitive_string_redacted(self):
        assert sanitize_value("password=hunter2") == REDACTED_VALUE

    def test_path_sanitized(self):
        assert sanitize_value("/home/alice/.ssh/id_rsa") == "[REDACTED:SENSITIVE_FILE]"

    def test_redact_all_strings(self):
        assert sanitize_value("work-identity", redact_all_sensitive=True) == REDACTED_ALL
        assert sanitize_value(7, redact_all_sensitive=True) == 7

    def test_sequence_summarized(self):
        assert sanitize_value(["a", "b", "c"]) == "[Array(3)]"
        assert sanitize_value(("a",)) == "[Array(1)]"

    def test_mapping_summarized(self):
        assert sanitize_value({"a": 1, "b": 2}) == "[Object(2 keys: a, b)]"

    def test_mapping_with_many_keys(self):
        value = {f"k{i}": i for i in range(7)}
        assert sanitize_value(value) == "[Object(7 keys: k0, k1, k2, k3, k4...)]"

    def test_mapping_with_sensitive_key_hides_keys(self):
        assert sanitize_value({"token": "x", "user": "y"}) == "[Object(2 keys)]"

    def test_other_objects(self):
        assert sanitize_value(object()) == "[object]"
        assert sanitize_value(ValueError("x")) == "[ValueError]"


class TestSanitizeDetails:
    """Tests for sanitize_details."""

    def test_sensitive_keys_replaced(self):
        result = sanitize_details({"apiKey": "abc", "user": "jane"})
        assert result == {REDACTED_KEY: "abc", "user": "jane"}

    def test_values_sanitized(self):
        result = sanitize_details({"path": "/home/alice/.aws/config", "count": 3})
        assert result == {"path": "[REDACTED:SENSITIVE_DIR]", "count": 3}


class TestSanitizeMessage:
    """Tests for sanitize_message."""

    def test_plain_text_unchanged(self):
        assert sanitize_message("Invalid email format") == "Invalid email format"

    def test_quoted_secret_redacted(self):
        reason = f"Git subcommand '{SECRET}' is not in the allowlist"
        assert sanitize_message(reason) == f"Git subcommand '{REDACTED_VALUE}' is not in the allowlist"

    def test_unquoted_secret_redacted(self):
        assert sanitize_message(f"token {SECRET} rejected") == f"token {REDACTED_VALUE} rejected"

    def test_quoted_keyword_value_redacted(self):
        reason = "Flag '--password=hunter2' is not allowed for this command"
        assert sanitize_message(reason) == f"Flag '{REDACTED_VALUE}' is not allowed for this command"

    def test_embedded_path_sanitized(self):
        reason = "Argument '/home/alice/.ssh/id_rsa' is not allowed for this command"
        assert "/home/alice" not in sanitize_message(reason)

    def test_unbalanced_quote(self):
        result = sanitize_message(f"Argument 'x'{SECRET}' is not allowed")
        assert SECRET not in result

    def test_redact_all_only_hides_quoted_input(self):
        result = sanitize_message("Subcommand 'git push' is disabled", redact_all_sensitive=True)
        assert result == f"Subcommand '{REDACTED_ALL}' is disabled"

    def test_long_message_truncated(self):
        result = sanitize_message("word " * 200)
        assert result.endswith(TRUNCATION_SUFFIX)
        assert len(result) == 256 + len(TRUNCATION_SUFFIX)
