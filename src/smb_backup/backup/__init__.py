"""smb-backup Backup Module

Usage:
    from smb_backup.backup import BackupRunner
    from smb_backup.config import BackupSettings
    from smb_backup.logger import get_logger

    settings = BackupSettings.from_env()
    result = BackupRunner(settings, get_logger()).run()
    raise SystemExit(result.exit_code)
"""

from smb_backup.backup.commands import CommandResult, CommandRunner
from smb_backup.backup.exporters import (
    ConfigExporter,
    OpenWrtExporter,
    TrueNASExporter,
    create_exporter,
)
from smb_backup.backup.journal import AUTO_DELETED_MARKER, Journal
from smb_backup.backup.lock import RunLock
from smb_backup.backup.mount import SmbMount, TerminatedError, deferred_signals, teardown_on_signals
from smb_backup.backup.preflight import PreflightChecker
from smb_backup.backup.retention import (
    ArchiveInfo,
    RetentionPruner,
    archive_name,
    scan_archives,
    select_for_deletion,
)
from smb_backup.backup.schedule import is_first_weekday_of_month
from smb_backup.backup.service import BackupRunner, BackupService, RunOutcome, RunResult
from smb_backup.backup.verify import ArchiveVerifier

__all__ = [
    "CommandRunner",
    "CommandResult",
    "ConfigExporter",
    "OpenWrtExporter",
    "TrueNASExporter",
    "create_exporter",
    "Journal",
    "AUTO_DELETED_MARKER",
    "RunLock",
    "SmbMount",
    "TerminatedError",
    "teardown_on_signals",
    "deferred_signals",
    "PreflightChecker",
    "ArchiveInfo",
    "RetentionPruner",
    "archive_name",
    "scan_archives",
    "select_for_deletion",
    "is_first_weekday_of_month",
    "BackupRunner",
    "BackupService",
    "RunOutcome",
    "RunResult",
    "ArchiveVerifier",
]
