"""
Size-rotated append-only writer for the security log file.

Line format:
    [2026-01-01T00:00:00.000Z] [WARN] [SECURITY] COMMAND_TIMEOUT {"command": "git", ...}

When the next line would push the file past max_file_size_bytes the file is
renamed to ``security.<timestamp>.log`` (with a ``-N`` suffix when that name is
taken) and a fresh file is opened. Only the newest ``max_files - 1`` rotated
files are kept. After MAX_ROTATION_RETRIES consecutive rotation failures the
writer disables itself rather than growing the file without bound.

The writer never raises to its caller: all I/O failures are reported on the
module logger.
"""

import itertools
import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Dict, Optional

from idguard.audit.log_types import FileLoggingConfig, LogEntry, WriterState
from idguard.security.path_security import is_secure_path

logger = logging.getLogger(__name__)

MAX_ROTATION_RETRIES = 3


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def serialize_metadata(metadata: Dict[str, Any]) -> str:
    try:
        return " " + json.dumps(metadata, default=str)
    except (TypeError, ValueError) as e:
        return f" [metadata serialization failed: {len(metadata)} keys, error: {e}]"


def format_log_line(entry: LogEntry) -> str:
    metadata = serialize_metadata(entry.metadata) if entry.metadata is not None else ""
    return f"[{entry.timestamp}] [{entry.level.value}] [{entry.category}] {entry.message}{metadata}\n"


class FileLogWriter:
    """Thread-safe rotating writer.

    States: UNINITIALIZED -> INITIALIZED -> ROTATING -> INITIALIZED, or
    DISABLED once rotation has failed MAX_ROTATION_RETRIES times (or when
    the config is disabled). Initialization is lazy, on first write.
    """

    def __init__(self, config: FileLoggingConfig):
        self.config = config
        self.state = WriterState.UNINITIALIZED if config.enabled else WriterState.DISABLED
        self.current_file_size = 0
        self.rotation_retry_count = 0
        self._stream: Optional[IO[str]] = None
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        return Path(self.config.file_path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _initialize(self) -> bool:
        if not self.config.file_path:
            return False

        check = is_secure_path(self.config.file_path)
        if not check.valid:
            logger.error(f"Invalid security log file path: {check.reason}")
            return False

        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self._open_stream()
        except OSError as e:
            logger.error(f"Failed to initialize security log file: {e}")
            return False

        self.state = WriterState.INITIALIZED
        return True

    def _open_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        try:
            self.current_file_size = self.file_path.stat().st_size
        except FileNotFoundError:
            self.current_file_size = 0
        self._stream = open(self.file_path, "a", encoding="utf-8")

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except OSError as e:
            logger.debug(f"Closing security log stream failed: {e}")
        self._stream = None

    def close(self) -> None:
        with self._lock:
            self._close_stream()
            self.rotation_retry_count = 0
            if self.state is not WriterState.DISABLED:
                self.state = WriterState.UNINITIALIZED

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write(self, entry: LogEntry) -> None:
        with self._lock:
            if self.state is WriterState.DISABLED:
                return
            if self.state is WriterState.UNINITIALIZED and not self._initialize():
                return
            if self._stream is None:
                return

            line = format_log_line(entry)
            line_bytes = len(line.encode("utf-8"))
            try:
                if (
                    self.current_file_size > 0
                    and self.current_file_size + line_bytes > self.config.max_file_size_bytes
                ):
                    self._rotate()
                    if self._stream is None:
                        return
                self._stream.write(line)
                self._stream.flush()
                self.current_file_size += line_bytes
            except OSError as e:
                logger.error(f"Failed to write security log: {e}")

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotated_path(self) -> Path:
        """Timestamped name for the next rotated file, never an existing one."""
        stamp = utc_timestamp().replace(":", "-").replace(".", "-")
        path = self.file_path
        candidate = path.with_name(f"{path.stem}.{stamp}{path.suffix}")
        sequence = itertools.count(1)
        # several rotations can land in the same millisecond
        while candidate.exists():
            candidate = path.with_name(f"{path.stem}.{stamp}-{next(sequence)}{path.suffix}")
        return candidate

    def _disable(self) -> None:
        self._close_stream()
        self.rotation_retry_count = 0
        self.state = WriterState.DISABLED

    def _rotate(self) -> None:
        if self.rotation_retry_count >= MAX_ROTATION_RETRIES:
            logger.error("Maximum rotation retries reached, disabling security file logging")
            self._disable()
            return

        self.state = WriterState.ROTATING
        try:
            self._close_stream()
            if self.file_path.exists():
                os.replace(self.file_path, self.rotated_path())
            self.cleanup_old_files()
            self._open_stream()
        except OSError as e:
            self.rotation_retry_count += 1
            logger.error(
                f"Failed to rotate security log (attempt "
                f"{self.rotation_retry_count}/{MAX_ROTATION_RETRIES}): {e}"
            )
            if self.rotation_retry_count >= MAX_ROTATION_RETRIES:
                self._disable()
                return
            try:
                self._open_stream()
            except OSError as reopen_error:
                logger.error(f"Failed to reopen security log: {reopen_error}")
                self._disable()
                return
            self.state = WriterState.INITIALIZED
            return

        self.rotation_retry_count = 0
        self.state = WriterState.INITIALIZED

    def cleanup_old_files(self) -> int:
        """Delete rotated files beyond the newest max_files - 1. Returns count deleted."""
        path = self.file_path
        current_name = path.name
        rotated = []
        try:
            for candidate in path.parent.iterdir():
                name = candidate.name
                if name == current_name:
                    continue
                if not (name.startswith(path.stem) and name.endswith(path.suffix)):
                    continue
                try:
                    rotated.append((candidate.stat().st_mtime_ns, candidate))
                except OSError:
                    continue
        except OSError as e:
            logger.error(f"Failed to list security log directory: {e}")
            return 0

        rotated.sort(key=lambda item: item[0], reverse=True)
        keep = max(0, self.config.max_files - 1)
        deleted = 0
        for _, old_file in rotated[keep:]:
            try:
                old_file.unlink()
                deleted += 1
            except OSError as e:
                logger.debug(f"Could not delete rotated log {old_file}: {e}")
        return deleted
