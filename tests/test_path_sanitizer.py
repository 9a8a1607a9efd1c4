"""
Path Sanitizer Tests

Tests the log-safe rendering of filesystem paths.
"""

import pytest

from idguard.audit.path_sanitizer import (
    contains_sensitive_dir,
    get_home_directory,
    matches_sensitive_pattern,
    sanitize_path,
)

HOME = "/home/alice"


def _sanitize(path):
    return sanitize_path(path, home=HOME, platform="linux")


class TestSanitizePath:
    """Tests for sanitize_path on POSIX."""

    def test_home_collapsed(self):
        assert _sanitize("/home/alice/projects/app") == "~/projects/app"
        assert _sanitize("/home/alice") == "~"

    def test_home_prefix_must_be_whole_component(self):
        assert _sanitize("/home/alicexyz/app") == "/home/alicexyz/app"

    def test_unrelated_path_unchanged(self):
        assert _sanitize("/opt/tools/bin") == "/opt/tools/bin"

    @pytest.mark.parametrize("path", [
        "/home/alice/.ssh/id_rsa",
        "/home/alice/.ssh/id_ed25519.pub",
        "/srv/app/.env",
        "/srv/app/.env.production",
        "/srv/tls/server.pem",
        "/srv/tls/server.key",
        "/home/alice/private_key.txt",
        "/home/alice/api-token",
        "/home/alice/Credentials.json",
    ])
    def test_sensitive_files(self, path):
        assert _sanitize(path) == "[REDACTED:SENSITIVE_FILE]"

    @pytest.mark.parametrize("path", [
        "/home/alice/.ssh/config",
        "/home/alice/.gnupg/pubring.kbx",
        "/home/alice/.aws/config",
        "/home/alice/.config/gcloud/configurations",
        "/home/alice/.kube/config",
        "/etc/passwd",
        "/etc/ssh/sshd_config",
    ])
    def test_sensitive_dirs(self, path):
        assert _sanitize(path) == "[REDACTED:SENSITIVE_DIR]"

    def test_directory_match_is_by_component(self):
        """.sshconfig is not .ssh."""
        assert _sanitize("/home/alice/.sshconfig/notes") == "~/.sshconfig/notes"

    def test_unc_host_redacted(self):
        assert _sanitize("\\\\fileserver\\share\\docs") == "//[REDACTED]/share/docs"
        assert _sanitize("//fileserver") == "//[REDACTED]"

    @pytest.mark.parametrize("path", ["/tmp/a\nb", "/tmp/\tx", "/tmp/\x00", "/tmp/\x1b[31m"])
    def test_control_characters(self, path):
        assert _sanitize(path) == "[REDACTED:CONTROL_CHARS]"

    @pytest.mark.parametrize("value", ["", None, 42, ["/tmp"]])
    def test_invalid_input(self, value):
        assert _sanitize(value) == "[INVALID_PATH]"

    def test_too_long(self):
        assert _sanitize("/" + "a" * 5000) == "[REDACTED:PATH_TOO_LONG]"

    def test_home_from_environment(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/bob")
        assert sanitize_path("/home/bob/work", platform="linux") == "~/work"


class TestWindowsPaths:
    """Tests for sanitize_path with platform=win32."""

    def test_home_collapsed(self):
        result = sanitize_path("C:\\Users\\Alice\\projects", home="C:\\Users\\Alice", platform="win32")
        assert result == "~/projects"

    def test_sensitive_dir_case_insensitive(self):
        result = sanitize_path(
            "C:\\Users\\Alice\\appdata\\ROAMING\\Code", home="C:\\Users\\Alice", platform="win32"
        )
        assert result == "[REDACTED:SENSITIVE_DIR]"

    def test_home_directory_from_drive_and_path(self, monkeypatch):
        monkeypatch.setenv("HOMEDRIVE", "D:")
        monkeypatch.setenv("HOMEPATH", "\\Users\\alice")
        assert get_home_directory("win32") == "D:\\Users\\alice"

    def test_home_directory_from_userprofile(self, monkeypatch):
        monkeypatch.delenv("HOMEDRIVE", raising=False)
        monkeypatch.delenv("HOMEPATH", raising=False)
        monkeypatch.setenv("USERPROFILE", "C:\\Users\\alice")
        assert get_home_directory("win32") == "C:\\Users\\alice"


class TestHelpers:
    """Tests for the matching helpers."""

    def test_contains_sensitive_dir_oversized(self):
        assert contains_sensitive_dir("/" + "a" * 5000, platform="linux")

    def test_contains_sensitive_dir_multi_component(self):
        assert contains_sensitive_dir("/root/.config/gcloud", platform="linux")
        assert not contains_sensitive_dir("/root/.config/other", platform="linux")

    def test_matches_sensitive_pattern(self):
        assert matches_sensitive_pattern("/x/ID_RSA")
        assert not matches_sensitive_pattern("/x/readme.md")
