"""Custom exception hierarchy."""
from typing import Optional, Dict, Any, Sequence, Tuple


class IdGuardError(Exception):
    """Base exception for all idguard errors."""
    code: str = "SYS_001"

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class SecurityViolationError(IdGuardError):
    """Input rejected by a security check.

    The message is meant for end users and stays generic; the specific
    reason only goes into ``details``.
    """
    code = "SEC_001"

    def __init__(self, message: str, field: str = None, context: Dict[str, Any] = None):
        super().__init__(message, {"field": field, "context": context or {}})
        self.field = field


class CommandBlockedError(SecurityViolationError):
    """Command or argument vector not on the allowlist."""
    code = "SEC_002"

    def __init__(self, message: str, command: str = None, reason: str = None):
        super().__init__(message, field="command", context={"command": command, "reason": reason})
        self.command = command
        self.reason = reason


class BinaryResolutionError(IdGuardError):
    """A command could not be mapped to a verified absolute executable."""
    code = "ENOENT_BINARY"

    def __init__(self, message: str, command: str):
        super().__init__(message, {"command": command})
        self.command = command


class TimeoutError(IdGuardError):
    """Raised when a command exceeds its timeout and is killed."""
    code = "ETIMEDOUT"

    def __init__(self, command: str, args: Sequence[str], timeout_ms: int):
        self.command = command
        self.command_args: Tuple[str, ...] = tuple(args)
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Command '{command}' timed out after {timeout_ms}ms",
            {"command": command, "args": list(self.command_args), "timeout_ms": timeout_ms},
        )


CommandTimeoutError = TimeoutError


class CommandExecutionError(IdGuardError):
    """Process ran but failed, or could not be spawned."""
    code = "EXEC_001"

    def __init__(
        self,
        message: str,
        command: str = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message, {"command": command, "returncode": returncode})
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class OperationCancelledError(IdGuardError):
    """Cooperative cancellation was requested."""
    code = "CANCELLED"


class ConfigurationError(IdGuardError):
    """Configuration error."""
    code = "CFG_001"
