"""
Absolute path resolution for the allowed external binaries.

Commands are always spawned by absolute path so that a malicious
executable earlier on PATH cannot be picked up. The lookup utility
itself (which/where) is invoked from a fixed, known location.

Usage:
    resolver = BinaryResolver(configured_git_path="/opt/git/bin/git")
    git = await resolver.get_binary_path("git")
    resolver.invalidate("git")   # after the configured path changes
"""

import asyncio
import logging
import os
import stat
import sys
from typing import Dict, Optional

from idguard.errors import BinaryResolutionError

logger = logging.getLogger(__name__)

ALLOWED_COMMANDS = ("git", "ssh-add", "ssh-keygen")

WHICH_PATHS: Dict[str, tuple] = {
    "darwin": ("/usr/bin/which",),
    "linux": ("/usr/bin/which", "/bin/which"),
    "win32": ("C:\\Windows\\System32\\where.exe",),
}

# seconds
RESOLUTION_TIMEOUT = 5
MAX_WHICH_OUTPUT = 10 * 1024


class BinaryResolver:
    """Resolves and caches absolute executable paths.

    Both successful and failed lookups are cached; a failure is stored as
    None and re-raised on later calls until the cache is invalidated.
    Concurrent lookups for the same command may both run; they write the
    same value, so the last write wins harmlessly.
    """

    def __init__(
        self,
        configured_git_path: Optional[str] = None,
        security_logger=None,
        platform: Optional[str] = None,
    ):
        self.configured_git_path = configured_git_path
        self.security_logger = security_logger
        self.platform = platform or sys.platform
        self._cache: Dict[str, Optional[str]] = {}

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self._cache.clear()

    def invalidate(self, command: Optional[str] = None) -> None:
        """Forget one cached command, or all of them when command is None."""
        if command is None:
            self._cache.clear()
        else:
            self._cache.pop(command, None)

    def set_configured_git_path(self, git_path: Optional[str]) -> None:
        if git_path != self.configured_git_path:
            self.configured_git_path = git_path
            self.invalidate("git")

    @property
    def cache(self) -> Dict[str, Optional[str]]:
        return dict(self._cache)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _log_failure(self, message: str) -> None:
        logger.warning(f"Binary resolution: {message}")
        if self.security_logger is None:
            return
        try:
            self.security_logger.log_validation_failure("binary-resolution", message, None)
        except Exception as e:  # noqa: BLE001 - logging must not break resolution
            logger.debug(f"Security log write failed: {e}")

    def is_valid_executable(self, path: str) -> bool:
        """Regular file with at least one execute bit (execute bits ignored on Windows)."""
        try:
            st = os.stat(path)
        except OSError:
            return False
        if not stat.S_ISREG(st.st_mode):
            return False
        if self.platform != "win32" and (st.st_mode & 0o111) == 0:
            return False
        return True

    def get_which_command(self) -> str:
        known_paths = WHICH_PATHS.get(self.platform, WHICH_PATHS["linux"])
        for known_path in known_paths:
            if self.is_valid_executable(known_path):
                return known_path
        raise BinaryResolutionError(
            f"No known absolute path for which/where on {self.platform}",
            command="which",
        )

    async def _run_which(self, which_path: str, command: str) -> str:
        proc = await asyncio.create_subprocess_exec(
            which_path,
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=RESOLUTION_TIMEOUT)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        if proc.returncode != 0:
            return ""
        return stdout[:MAX_WHICH_OUTPUT].decode("utf-8", errors="replace")

    async def resolve_with_which(self, command: str) -> Optional[str]:
        try:
            which_path = self.get_which_command()
            output = await self._run_which(which_path, command)
        except (OSError, asyncio.TimeoutError, BinaryResolutionError) as e:
            logger.debug(f"which lookup for {command} failed: {e}")
            return None

        lines = output.strip().splitlines()
        if not lines or not lines[0].strip():
            return None

        candidate = os.path.normpath(lines[0].strip())
        if not os.path.isabs(candidate):
            self._log_failure(f"Resolved path is not absolute: {command}")
            return None
        if not self.is_valid_executable(candidate):
            self._log_failure(f"Resolved path is not a valid executable: {command}")
            return None
        return candidate

    async def _resolve(self, command: str) -> str:
        if command == "git" and self.configured_git_path and self.configured_git_path.strip():
            configured = os.path.normpath(self.configured_git_path.strip())
            if not os.path.isabs(configured):
                self._log_failure("Configured git path is not absolute, falling back to PATH")
            elif self.is_valid_executable(configured):
                return configured
            else:
                self._log_failure("Configured git path is not a valid executable, falling back to PATH")

        resolved = await self.resolve_with_which(command)
        if resolved:
            return resolved

        raise BinaryResolutionError(
            f"Failed to resolve path for '{command}': Command not found in PATH or not executable",
            command=command,
        )

    async def get_binary_path(self, command: str) -> str:
        """Return the verified absolute path for an allowed command.

        Raises:
            BinaryResolutionError: command unknown, not found, or previously failed
        """
        if command not in ALLOWED_COMMANDS:
            raise BinaryResolutionError(
                f"Command '{command}' is not in the allowed list", command=command
            )

        if command in self._cache:
            cached = self._cache[command]
            if cached is None:
                raise BinaryResolutionError(
                    f"Failed to resolve path for '{command}': Previously failed to resolve",
                    command=command,
                )
            return cached

        try:
            resolved = await self._resolve(command)
        except BinaryResolutionError:
            self._cache[command] = None
            raise

        self._cache[command] = resolved
        logger.debug(f"Resolved {command} -> {resolved}")
        return resolved

    async def resolve_all(self) -> Dict[str, str]:
        """Resolve every allowed command; raises on the first failure."""
        return {command: await self.get_binary_path(command) for command in ALLOWED_COMMANDS}

    async def check_availability(self) -> Dict[str, dict]:
        results: Dict[str, dict] = {}
        for command in ALLOWED_COMMANDS:
            try:
                results[command] = {"available": True, "path": await self.get_binary_path(command)}
            except BinaryResolutionError as e:
                results[command] = {"available": False, "error": e.message}
        return results
