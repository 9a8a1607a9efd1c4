"""
Secure subprocess execution for the allowlisted binaries.

Every call goes through the same steps:
allowlist check -> absolute binary resolution -> effective timeout ->
spawn (argument vector, no shell) -> result or typed error.

Provides:
- SecureExecutor.run: raw execution, raises typed errors
- SecureExecutor.git_exec / git_exec_raw: git wrappers returning GitExecResult
- SecureExecutor.ssh_agent_exec / ssh_keygen_exec

Usage:
    executor = SecureExecutor(resolver=BinaryResolver(), security_logger=SecurityLogger())
    result = await executor.git_exec(["rev-parse", "--is-inside-work-tree"], cwd=workspace)
    if result.success and result.stdout == "true":
        ...
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import psutil

from idguard.errors import (
    BinaryResolutionError,
    CommandBlockedError,
    CommandExecutionError,
    CommandTimeoutError,
    IdGuardError,
    OperationCancelledError,
)
from idguard.security.binary_resolver import BinaryResolver
from idguard.security.cancellation import CancellationToken
from idguard.security.command_allowlist import is_command_allowed
from idguard.security.timeouts import TimeoutPolicy

logger = logging.getLogger(__name__)

MAX_BUFFER = 1024 * 1024
_READ_CHUNK = 64 * 1024
# seconds to wait for terminated children before SIGKILL
_TERMINATE_GRACE = 1.0


@dataclass
class ExecResult:
    stdout: str
    stderr: str


@dataclass
class GitExecResult:
    """Discriminated result: stdout on success, error otherwise."""
    success: bool
    stdout: str = ""
    error: Optional[Exception] = None


def _kill_process_tree(pid: int) -> None:
    """Terminate a process and all its children, escalating to kill."""
    try:
        parent = psutil.Process(pid)
        procs = parent.children(recursive=True) + [parent]
    except psutil.Error:
        return

    for proc in procs:
        with contextlib.suppress(psutil.Error):
            proc.terminate()

    _, alive = psutil.wait_procs(procs, timeout=_TERMINATE_GRACE)
    for proc in alive:
        with contextlib.suppress(psutil.Error):
            proc.kill()


async def _read_capped(stream: Optional[asyncio.StreamReader], limit: int, name: str) -> bytes:
    if stream is None:
        return b""
    chunks = []
    total = 0
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise CommandExecutionError(f"{name} exceeded maximum buffer size ({limit} bytes)")
        chunks.append(chunk)
    return b"".join(chunks)


class SecureExecutor:
    """The only component that spawns processes.

    Args:
        resolver: BinaryResolver used to map command names to absolute paths
        security_logger: SecurityLogger receiving blocked/timeout/error events
        timeout_overrides: User ``command -> ms`` map (validated on construction)
        max_buffer: Maximum bytes accepted on stdout or stderr
    """

    def __init__(
        self,
        resolver: Optional[BinaryResolver] = None,
        security_logger=None,
        timeout_overrides: Optional[Mapping[str, Any]] = None,
        max_buffer: int = MAX_BUFFER,
    ):
        self.resolver = resolver or BinaryResolver(security_logger=security_logger)
        self.security_logger = security_logger
        self.timeouts = TimeoutPolicy(timeout_overrides, security_logger=security_logger)
        self.max_buffer = max_buffer

    def _audit(self, method: str, *args, **kwargs) -> None:
        """Best-effort security log call; never interrupts execution."""
        if self.security_logger is None:
            return
        try:
            getattr(self.security_logger, method)(*args, **kwargs)
        except Exception as e:  # noqa: BLE001 - audit failures must not abort commands
            logger.debug(f"Security log write failed ({method}): {e}")

    def get_effective_timeout(self, command: str, override_ms: Optional[float] = None) -> int:
        return self.timeouts.get_timeout(command, override_ms)

    async def _communicate(self, proc: asyncio.subprocess.Process):
        stdout, stderr = await asyncio.gather(
            _read_capped(proc.stdout, self.max_buffer, "stdout"),
            _read_capped(proc.stderr, self.max_buffer, "stderr"),
        )
        await proc.wait()
        return stdout, stderr

    async def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: Optional[str] = None,
        timeout_ms: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExecResult:
        """Run an allowlisted command.

        Raises:
            CommandBlockedError: command/arguments rejected by the allowlist
            BinaryResolutionError: binary could not be resolved
            CommandTimeoutError: process exceeded its timeout and was killed
            CommandExecutionError: spawn failure or non-zero exit
            OperationCancelledError: cancel_token was cancelled between stages
        """
        args = list(args)
        if cancel_token:
            cancel_token.raise_if_cancelled()

        check = is_command_allowed(command, args)
        if not check.allowed:
            reason = check.reason or "Unknown reason"
            self._audit("log_command_blocked", command, args, reason)
            logger.error(f"[Security] Command blocked: {command}")
            raise CommandBlockedError("Command blocked", command=command, reason=reason)

        try:
            binary = await self.resolver.get_binary_path(command)
        except BinaryResolutionError as e:
            self._audit(
                "log_validation_failure",
                "binary-resolution",
                f"Failed to resolve binary path for {command}",
                e.message,
            )
            raise

        timeout = self.get_effective_timeout(command, timeout_ms)

        if cancel_token:
            cancel_token.raise_if_cancelled()

        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except (OSError, ValueError) as e:
            # ValueError: an argument the OS cannot represent, e.g. an embedded null
            raise CommandExecutionError(
                f"Failed to execute '{command}'", command=command
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(self._communicate(proc), timeout=timeout / 1000)
        except asyncio.TimeoutError:
            await asyncio.to_thread(_kill_process_tree, proc.pid)
            await proc.wait()
            self._audit("log_command_timeout", command, args, timeout, cwd)
            raise CommandTimeoutError(command, args, timeout) from None
        except CommandExecutionError as e:
            await asyncio.to_thread(_kill_process_tree, proc.pid)
            await proc.wait()
            e.command = command
            raise

        if cancel_token and cancel_token.is_cancelled:
            raise OperationCancelledError("Operation cancelled")

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise CommandExecutionError(
                f"Command '{command}' exited with code {proc.returncode}",
                command=command,
                returncode=proc.returncode,
                stderr=err,
            )
        return ExecResult(stdout=out, stderr=err)

    async def _git(self, args: Sequence[str], cwd: Optional[str], strip: bool, cancel_token) -> GitExecResult:
        try:
            result = await self.run("git", args, cwd=cwd, cancel_token=cancel_token)
        except CommandTimeoutError as e:
            return GitExecResult(success=False, error=e)
        except OperationCancelledError as e:
            return GitExecResult(success=False, error=e)
        except IdGuardError as e:
            self._audit("log_command_error", "git", list(args), e, cwd)
            return GitExecResult(success=False, error=e)
        stdout = result.stdout.strip() if strip else result.stdout
        return GitExecResult(success=True, stdout=stdout)

    async def git_exec(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GitExecResult:
        """Run git and return trimmed stdout; failures become values, not exceptions."""
        return await self._git(args, cwd, True, cancel_token)

    async def git_exec_raw(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GitExecResult:
        """Like git_exec but keeps leading/trailing whitespace (submodule status)."""
        return await self._git(args, cwd, False, cancel_token)

    async def ssh_agent_exec(self, args: Sequence[str]) -> ExecResult:
        return await self.run("ssh-add", args)

    async def ssh_keygen_exec(self, args: Sequence[str]) -> ExecResult:
        return await self.run("ssh-keygen", args)
