"""Exceptions for smb-backup.

All exceptions include structured error information:
- code: Machine-readable error identifier
- message: Human-readable error description
- details: Additional context for debugging/recovery

Usage:
    from smb_backup.exceptions import (
        SmbBackupError,
        ConfigurationError,
        PreconditionError,
        MountError,
        ExportError,
        LockError,
        CommandError,
    )
"""

from smb_backup.exceptions.base import (
    CommandError,
    ConfigurationError,
    ExportError,
    LockError,
    MountError,
    PreconditionError,
    SmbBackupError,
)

__all__ = [
    "SmbBackupError",
    "ConfigurationError",
    "PreconditionError",
    "MountError",
    "ExportError",
    "LockError",
    "CommandError",
]
