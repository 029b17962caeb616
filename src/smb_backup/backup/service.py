"""Backup run orchestration

``BackupRunner`` performs one run: requirement checks, the first-weekday
gate, run lock, mount, duplicate check, export, journal entry and retention.
``BackupService`` keeps a process alive and triggers runs on a cron
schedule for hosts without a usable system scheduler.
"""

import signal
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from smb_backup.backup.commands import CommandRunner
from smb_backup.backup.exporters import ConfigExporter, create_exporter
from smb_backup.backup.journal import Journal, created_message, duplicate_message, failed_message
from smb_backup.backup.lock import RunLock
from smb_backup.backup.mount import PROC_MOUNTS, SmbMount, TerminatedError, teardown_on_signals
from smb_backup.backup.preflight import PROC_FILESYSTEMS, PreflightChecker
from smb_backup.backup.retention import RetentionPruner, archive_name
from smb_backup.backup.schedule import is_first_weekday_of_month
from smb_backup.backup.verify import ArchiveVerifier
from smb_backup.config import BackupSettings
from smb_backup.exceptions import ExportError, LockError, MountError, PreconditionError
from smb_backup.logger import Logger


class RunOutcome(str, Enum):
    SUCCESS = "success"
    PRUNED = "pruned"
    SKIPPED_SCHEDULE = "skipped_schedule"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_LOCKED = "skipped_locked"
    FAILED = "failed"


@dataclass
class RunResult:
    """What a run did and how the process should exit"""
    outcome: RunOutcome
    archive_name: Optional[str] = None
    deleted: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome is RunOutcome.FAILED else 0


class BackupRunner:
    """Runs one backup against the configured share"""

    def __init__(
        self,
        settings: BackupSettings,
        logger: Logger,
        runner: Optional[CommandRunner] = None,
        exporter: Optional[ConfigExporter] = None,
        clock: Callable[[], datetime] = datetime.now,
        mounts_path: Path = PROC_MOUNTS,
        filesystems_path: Path = PROC_FILESYSTEMS,
        program: Optional[str] = None,
    ):
        self.settings = settings
        self.logger = logger
        self.runner = runner or CommandRunner(timeout=settings.command_timeout)
        self.exporter = exporter or create_exporter(settings.device, self.runner, logger)
        self.clock = clock
        self.mounts_path = Path(mounts_path)
        self.preflight = PreflightChecker(self.runner, logger, filesystems_path)
        self.verifier = ArchiveVerifier()
        self.program = program or str(Path(sys.argv[0]).resolve())

    def check(self) -> None:
        """Run the requirement checks

        Raises:
            PreconditionError: On the first failed check
        """
        self.preflight.run(self.exporter.required_commands, self.settings.credentials_file)

    def create_mount(self) -> SmbMount:
        return SmbMount(
            remote=self.settings.remote_address,
            mount_point=self.settings.mount_point,
            options=self.settings.mount_options,
            runner=self.runner,
            logger=self.logger,
            mounts_path=self.mounts_path,
        )

    def resolve_hostname(self) -> str:
        return self.settings.hostname or self.exporter.detect_hostname()

    def run(self, force: bool = False) -> RunResult:
        """Perform a scheduled backup run

        Args:
            force: Skip the first-weekday-of-the-month gate
        """
        try:
            self.check()
        except PreconditionError as e:
            return RunResult(RunOutcome.FAILED, error=str(e))

        now = self.clock()
        day = self.settings.day_of_week
        if force:
            self.logger.info("Running backup: schedule check bypassed.")
        elif is_first_weekday_of_month(now.date(), day):
            self.logger.info(f"Running backup: today is the first {day} of the month.")
        else:
            self.logger.info(f"Skipped backup: not the first {day} of the month.")
            return RunResult(RunOutcome.SKIPPED_SCHEDULE)

        return self._with_share(lambda share: self._backup(share, now))

    def prune(self) -> RunResult:
        """Mount the share and apply retention without creating a backup"""
        try:
            self.check()
        except PreconditionError as e:
            return RunResult(RunOutcome.FAILED, error=str(e))

        def _prune_only(share: SmbMount) -> RunResult:
            deleted = self._pruner(share.path, self.resolve_hostname()).prune(
                self.settings.backups_to_keep
            )
            return RunResult(RunOutcome.PRUNED, deleted=deleted)

        return self._with_share(_prune_only)

    def _with_share(self, action: Callable[[SmbMount], RunResult]) -> RunResult:
        """Run ``action`` under the run lock with the share mounted"""
        with teardown_on_signals():
            try:
                with RunLock(self.settings.lock_file):
                    with self.create_mount() as share:
                        return action(share)
            except LockError as e:
                self.logger.warning(
                    "Skipped backup: another run is in progress",
                    lock_file=str(self.settings.lock_file),
                    pid=e.details.get("pid"),
                )
                return RunResult(RunOutcome.SKIPPED_LOCKED, error=str(e))
            except MountError as e:
                return RunResult(RunOutcome.FAILED, error=str(e))
            except TerminatedError as e:
                self.logger.error(f"Backup aborted: {e.message}")
                return RunResult(RunOutcome.FAILED, error=str(e))
            except Exception as e:
                self.logger.error(f"Backup failed: {type(e).__name__}: {e}")
                return RunResult(RunOutcome.FAILED, error=str(e))

    def _journal(self, share_dir: Path) -> Journal:
        return Journal(share_dir / self.settings.journal_name)

    def _pruner(self, share_dir: Path, hostname: str) -> RetentionPruner:
        return RetentionPruner(
            share_dir,
            hostname,
            self._journal(share_dir),
            self.logger,
            extension=self.settings.archive_extension,
        )

    def _export_failed(self, journal: Journal, path: Path, now: datetime, error: Exception) -> RunResult:
        journal.append(path.name, failed_message(self.program, now))
        path.unlink(missing_ok=True)
        return RunResult(RunOutcome.FAILED, archive_name=path.name, error=str(error))

    def _backup(self, share: SmbMount, now: datetime) -> RunResult:
        hostname = self.resolve_hostname()
        name = archive_name(hostname, now.date(), self.settings.archive_extension)
        path = share.path / name
        journal = self._journal(share.path)

        if path.exists():
            journal.append(name, duplicate_message(now))
            self.logger.info(f"Skipped backup: {name} already exists")
            return RunResult(RunOutcome.SKIPPED_DUPLICATE, archive_name=name)

        try:
            self.exporter.export(path)
            if self.settings.verify_after_backup:
                ok, error = self.verifier.verify(path)
                if not ok:
                    raise ExportError("VERIFY_FAILED", f"{name}: {error}")
        except ExportError as e:
            self.logger.error(f"Backup failed: {e.message}", code=e.code)
            return self._export_failed(journal, path, now, e)
        except TerminatedError:
            raise
        except Exception as e:
            self.logger.error(f"Backup failed: {type(e).__name__}: {e}")
            return self._export_failed(journal, path, now, e)

        self.logger.info(f"Backup successful: {name}")
        journal.append(name, created_message(self.program, now))

        deleted = self._pruner(share.path, hostname).prune(self.settings.backups_to_keep)
        return RunResult(RunOutcome.SUCCESS, archive_name=name, deleted=deleted)


class BackupService:
    """Keeps running and triggers a backup run on a cron schedule"""

    def __init__(self, runner: BackupRunner):
        self.runner = runner
        self.settings = runner.settings
        self.logger = runner.logger
        self.scheduler = BlockingScheduler()
        self.shutdown_requested = False

    def run_backup_job(self) -> Optional[RunResult]:
        """Run scheduled backup job"""
        if self.shutdown_requested:
            self.logger.info("Shutdown requested, skipping backup")
            return None

        try:
            result = self.runner.run()
        except Exception as e:
            self.logger.error(f"Backup job failed: {type(e).__name__}: {e}")
            return None

        self.logger.info(
            f"Backup job finished: {result.outcome.value}",
            archive=result.archive_name,
            deleted=len(result.deleted),
        )
        return result

    def setup_scheduler(self) -> None:
        minute, hour, day, month, day_of_week = self.settings.schedule.split()
        trigger = CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
        )
        self.scheduler.add_job(
            self.run_backup_job,
            trigger=trigger,
            id="backup_job",
            name="Scheduled Backup",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self.logger.info(f"Backup scheduled: {self.settings.schedule}")

    def handle_shutdown(self, signum, frame) -> None:
        """Handle shutdown signals; a running job finishes and tears down first"""
        self.logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.shutdown_requested = True
        self.scheduler.shutdown(wait=True)

    def start(self) -> None:
        signal.signal(signal.SIGTERM, self.handle_shutdown)
        signal.signal(signal.SIGINT, self.handle_shutdown)
        signal.signal(signal.SIGHUP, self.handle_shutdown)

        self.setup_scheduler()
        self.logger.info("Backup service started")
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            pass
        self.logger.info("Backup service stopped")
