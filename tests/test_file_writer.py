"""
Security Log File Writer Tests

Tests line formatting, lazy initialization, size rotation, pruning of old
files and self-disabling after repeated rotation failures.
"""

import itertools
import os
import re
from unittest.mock import patch

import pytest

from idguard.audit.file_writer import (
    MAX_ROTATION_RETRIES,
    FileLogWriter,
    format_log_line,
    serialize_metadata,
    utc_timestamp,
)
from idguard.audit.log_types import FileLoggingConfig, LogEntry, LogLevel, WriterState

TS = "2026-01-01T00:00:00.000Z"


def _entry(message="COMMAND_BLOCKED", metadata=None, level=LogLevel.ERROR):
    return LogEntry(timestamp=TS, level=level, category="SECURITY", message=message, metadata=metadata)


def _writer(temp_dir, **overrides):
    config = FileLoggingConfig(
        enabled=True,
        file_path=str(temp_dir / "logs" / "security.log"),
        **overrides,
    )
    return FileLogWriter(config)


@pytest.fixture
def unique_stamps():
    """Distinct rotation timestamps even within the same millisecond."""
    counter = itertools.count()
    with patch(
        "idguard.audit.file_writer.utc_timestamp",
        side_effect=lambda: f"2026-01-01T00:00:{next(counter):02d}.000Z",
    ):
        yield


class TestFormatting:
    """Line format helpers."""

    def test_line_with_metadata(self):
        line = format_log_line(_entry(metadata={"command": "git"}))
        assert line == f'[{TS}] [ERROR] [SECURITY] COMMAND_BLOCKED {{"command": "git"}}\n'

    def test_line_without_metadata(self):
        line = format_log_line(_entry(message="EXTENSION_ACTIVATE", level=LogLevel.INFO))
        assert line == f"[{TS}] [INFO] [SECURITY] EXTENSION_ACTIVATE\n"

    def test_unserializable_metadata(self):
        circular = {}
        circular["self"] = circular
        result = serialize_metadata(circular)
        assert result.startswith(" [metadata serialization failed: 1 keys, error:")

    def test_non_json_values_use_str(self):
        assert serialize_metadata({"level": LogLevel.WARN}) == ' {"level": "LogLevel.WARN"}'

    def test_timestamp_format(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())


class TestWriting:
    """Initialization and plain writes."""

    def test_lazy_initialization(self, temp_dir):
        writer = _writer(temp_dir)
        assert writer.state is WriterState.UNINITIALIZED
        assert not (temp_dir / "logs").exists()

        writer.write(_entry(metadata={"reason": "blocked"}))

        assert writer.state is WriterState.INITIALIZED
        content = (temp_dir / "logs" / "security.log").read_text()
        assert content.startswith(f"[{TS}] [ERROR] [SECURITY] COMMAND_BLOCKED")
        writer.close()

    def test_disabled_config_writes_nothing(self, temp_dir):
        writer = FileLogWriter(FileLoggingConfig(enabled=False, file_path=str(temp_dir / "x.log")))
        assert writer.state is WriterState.DISABLED
        writer.write(_entry())
        assert not (temp_dir / "x.log").exists()

    def test_insecure_path_rejected(self, temp_dir):
        writer = FileLogWriter(FileLoggingConfig(enabled=True, file_path=str(temp_dir) + "/../escape.log"))
        writer.write(_entry())
        assert writer.state is WriterState.UNINITIALIZED
        assert not (temp_dir.parent / "escape.log").exists()

    def test_appends_after_close(self, temp_dir):
        writer = _writer(temp_dir)
        writer.write(_entry(message="ONE"))
        writer.close()
        assert writer.state is WriterState.UNINITIALIZED

        writer.write(_entry(message="TWO"))
        writer.close()

        lines = (temp_dir / "logs" / "security.log").read_text().splitlines()
        assert [line.split()[-1] for line in lines] == ["ONE", "TWO"]

    def test_size_resumes_from_existing_file(self, temp_dir):
        log_dir = temp_dir / "logs"
        log_dir.mkdir()
        (log_dir / "security.log").write_text("x" * 123)

        writer = _writer(temp_dir)
        line = format_log_line(_entry())
        writer.write(_entry())

        assert writer.current_file_size == 123 + len(line.encode("utf-8"))
        writer.close()


class TestRotation:
    """Size rotation and pruning."""

    def test_rotates_when_full(self, temp_dir, unique_stamps):
        writer = _writer(temp_dir, max_file_size_bytes=100, max_files=10)
        for i in range(4):
            writer.write(_entry(metadata={"n": i}))
        writer.close()

        rotated = sorted(p.name for p in (temp_dir / "logs").glob("security.*.log"))
        assert len(rotated) == 3
        assert all(re.fullmatch(r"security\.2026-01-01T00-00-\d{2}-000Z\.log", name) for name in rotated)
        assert '"n": 3' in (temp_dir / "logs" / "security.log").read_text()

    def test_keeps_at_most_max_files(self, temp_dir, unique_stamps):
        writer = _writer(temp_dir, max_file_size_bytes=100, max_files=3)
        for i in range(8):
            writer.write(_entry(metadata={"n": i}))
        writer.close()

        files = list((temp_dir / "logs").glob("security*.log"))
        assert len(files) == 3

    @staticmethod
    def _logged_numbers(log_dir):
        found = []
        for path in log_dir.glob("security*.log"):
            found.extend(int(n) for n in re.findall(r'"n": (\d+)', path.read_text()))
        return sorted(found)

    def test_rapid_rotation_keeps_every_event(self, temp_dir):
        writer = _writer(temp_dir, max_file_size_bytes=100, max_files=50)
        for i in range(30):
            writer.write(_entry(metadata={"n": i}))
        writer.close()

        assert writer.state is not WriterState.DISABLED
        assert self._logged_numbers(temp_dir / "logs") == list(range(30))

    def test_same_timestamp_rotations_get_distinct_names(self, temp_dir):
        writer = _writer(temp_dir, max_file_size_bytes=100, max_files=50)
        with patch("idguard.audit.file_writer.utc_timestamp", return_value=TS):
            for i in range(6):
                writer.write(_entry(metadata={"n": i}))
        writer.close()

        rotated = sorted(p.name for p in (temp_dir / "logs").glob("security.*.log"))
        assert rotated == [
            "security.2026-01-01T00-00-00-000Z-1.log",
            "security.2026-01-01T00-00-00-000Z-2.log",
            "security.2026-01-01T00-00-00-000Z-3.log",
            "security.2026-01-01T00-00-00-000Z-4.log",
            "security.2026-01-01T00-00-00-000Z.log",
        ]
        assert self._logged_numbers(temp_dir / "logs") == list(range(6))

    def test_oversized_first_line_does_not_rotate(self, temp_dir):
        writer = _writer(temp_dir, max_file_size_bytes=10)
        writer.write(_entry())
        writer.close()
        assert list((temp_dir / "logs").glob("security.*.log")) == []

    def test_cleanup_old_files(self, temp_dir):
        log_dir = temp_dir / "logs"
        log_dir.mkdir()
        (log_dir / "security.log").write_text("current")
        for i in range(6):
            old = log_dir / f"security.2026-01-0{i + 1}T00-00-00-000Z.log"
            old.write_text("old")
            os.utime(old, (1_700_000_000 + i, 1_700_000_000 + i))
        (log_dir / "unrelated.txt").write_text("keep")

        writer = _writer(temp_dir, max_files=3)
        assert writer.cleanup_old_files() == 4

        remaining = sorted(p.name for p in log_dir.iterdir())
        assert remaining == [
            "security.2026-01-05T00-00-00-000Z.log",
            "security.2026-01-06T00-00-00-000Z.log",
            "security.log",
            "unrelated.txt",
        ]

    def test_disables_after_repeated_failures(self, temp_dir):
        writer = _writer(temp_dir, max_file_size_bytes=100)
        with patch("idguard.audit.file_writer.os.replace", side_effect=OSError("EBUSY")):
            for _ in range(MAX_ROTATION_RETRIES + 1):
                writer.write(_entry())

        assert writer.state is WriterState.DISABLED
        size = (temp_dir / "logs" / "security.log").stat().st_size

        writer.write(_entry())
        assert (temp_dir / "logs" / "security.log").stat().st_size == size

    def test_successful_rotation_resets_retries(self, temp_dir, unique_stamps):
        writer = _writer(temp_dir, max_file_size_bytes=100)
        writer.write(_entry())
        with patch("idguard.audit.file_writer.os.replace", side_effect=OSError("EBUSY")):
            writer.write(_entry())
        assert writer.rotation_retry_count == 1
        assert writer.state is WriterState.INITIALIZED

        writer.write(_entry())
        assert writer.rotation_retry_count == 0
        writer.close()
