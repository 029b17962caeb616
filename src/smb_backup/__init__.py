"""smb-backup - monthly device configuration backups onto an SMB share.

This package provides:
- backup: mount lifecycle, device exporters, journal, retention and the run orchestrator
- config: typed settings loaded from environment variables and .env files
- logger: structured logging to stdout and syslog
- exceptions: exception classes with structured error info
"""

__version__ = "1.0.0"

from smb_backup.backup import BackupRunner, BackupService, RunOutcome, RunResult
from smb_backup.config import BackupSettings
from smb_backup.exceptions import (
    CommandError,
    ConfigurationError,
    ExportError,
    LockError,
    MountError,
    PreconditionError,
    SmbBackupError,
)
from smb_backup.logger import Logger, StructuredLogger, create_logger, get_logger

__all__ = [
    "__version__",
    # Backup
    "BackupRunner",
    "BackupService",
    "RunOutcome",
    "RunResult",
    # Config
    "BackupSettings",
    # Logger
    "Logger",
    "StructuredLogger",
    "create_logger",
    "get_logger",
    # Exceptions
    "SmbBackupError",
    "ConfigurationError",
    "PreconditionError",
    "MountError",
    "ExportError",
    "LockError",
    "CommandError",
]
