"""Base exception classes for smb-backup.

All exceptions include structured error information:
- code: Machine-readable error identifier
- message: Human-readable error description
- details: Additional context for debugging/recovery
"""

from typing import Any, Dict, List, Optional


class SmbBackupError(Exception):
    """Base exception for all smb-backup errors.

    Attributes:
        code: Machine-readable error code (e.g., "MOUNT_FAILED")
        message: Human-readable error message
        details: Optional additional context for debugging/recovery
    """

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with structured information.

        Args:
            code: Machine-readable error code (e.g., "MOUNT_FAILED")
            message: Human-readable error message
            details: Optional additional context
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error string."""
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message, and details keys.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(SmbBackupError):
    """Raised when backup settings are invalid or incomplete."""

    pass


class PreconditionError(SmbBackupError):
    """Raised when a required command, filesystem or credentials file is unavailable.

    Precondition failures are fatal: nothing is mounted and the run exits 1.
    """

    pass


class MountError(SmbBackupError):
    """Raised when the remote share cannot be mounted."""

    pass


class ExportError(SmbBackupError):
    """Raised when the device configuration cannot be exported to an archive."""

    pass


class LockError(SmbBackupError):
    """Raised when another run already holds the run lock."""

    pass


class CommandError(SmbBackupError):
    """Raised when an external command exits non-zero and the caller asked to check it.

    The message parameter can be passed as the first positional argument.
    """

    def __init__(
        self,
        message: str,
        args: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
        code: str = "COMMAND_FAILED",
    ):
        self.command = list(args or [])
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            code=code,
            message=message,
            details={"command": " ".join(self.command), "returncode": returncode, "stderr": stderr},
        )
