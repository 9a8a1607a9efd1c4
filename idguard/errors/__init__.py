"""
Error handling and exception classes.

Validation helpers never raise; they return result objects. Only the
execution layer raises, using the hierarchy rooted at IdGuardError.

Example usage:
    from idguard.errors import BinaryResolutionError, CommandTimeoutError
"""

from idguard.errors.exceptions import (
    IdGuardError, SecurityViolationError, CommandBlockedError,
    BinaryResolutionError, CommandTimeoutError, CommandExecutionError,
    OperationCancelledError, ConfigurationError,
)

__all__ = [
    "IdGuardError", "SecurityViolationError", "CommandBlockedError",
    "BinaryResolutionError", "CommandTimeoutError", "CommandExecutionError",
    "OperationCancelledError", "ConfigurationError",
]
