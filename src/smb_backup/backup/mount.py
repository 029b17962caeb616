"""Mount lifecycle for the remote SMB share

The share is mounted for the duration of a ``with`` block. Leaving the block
for any reason (normal return, exception, or a termination signal converted
by ``teardown_on_signals``) unmounts the share and removes the temporary
mount point. If the unmount fails the directory is left alone: it may still
be the remote share, and removing it recursively would delete remote files.
"""

import os
import re
import shutil
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

from smb_backup.backup.commands import CommandRunner
from smb_backup.exceptions import CommandError, MountError, SmbBackupError
from smb_backup.logger import Logger

PROC_MOUNTS = Path("/proc/mounts")
HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


class TerminatedError(SmbBackupError):
    """Raised inside the run when a termination signal arrives"""

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(
            "TERMINATED",
            f"Received signal {signal.Signals(signum).name}",
            details={"signal": signum},
        )


def _unescape_mount_field(field: str) -> str:
    # /proc/mounts encodes space, tab, newline and backslash as \ooo
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def read_mount_points(mounts_path: Path = PROC_MOUNTS) -> List[str]:
    """Return the mount points listed in the system mount table"""
    try:
        content = Path(mounts_path).read_text()
    except OSError:
        return []
    points = []
    for line in content.splitlines():
        fields = line.split()
        if len(fields) >= 2:
            points.append(_unescape_mount_field(fields[1]))
    return points


class SmbMount:
    """Scoped CIFS mount with guaranteed teardown

    Example:
        with SmbMount("//nas/ConfigBackups/router", Path("/mnt/nas-backup-to-smb"),
                      "vers=3.0,credentials=/root/.private/.nas", runner, logger) as share:
            (share.path / "Journal.txt").exists()
    """

    def __init__(
        self,
        remote: str,
        mount_point: Path,
        options: str,
        runner: CommandRunner,
        logger: Logger,
        mounts_path: Path = PROC_MOUNTS,
    ):
        self.remote = remote
        self.path = Path(mount_point)
        self.options = options
        self.runner = runner
        self.logger = logger
        self.mounts_path = Path(mounts_path)
        self._torn_down = False

    def is_mounted(self) -> bool:
        target = os.path.normpath(str(self.path))
        return any(os.path.normpath(p) == target for p in read_mount_points(self.mounts_path))

    def _umount(self) -> bool:
        try:
            result = self.runner.run(["umount", str(self.path)])
        except CommandError as e:
            self.logger.debug(f"umount could not run: {e}")
            return False
        if not result.ok and result.stderr:
            self.logger.debug(f"umount stderr: {result.stderr.strip()}")
        return result.ok

    def mount(self) -> None:
        """Mount the share, recovering from a stale mount left by an earlier run

        Raises:
            MountError: If a stale mount cannot be released or the mount fails
        """
        if self.is_mounted():
            if not self._umount():
                self.logger.error(f"Backup failed: could not release pre-existing mount at {self.path}")
                raise MountError(
                    "STALE_MOUNT",
                    f"Pre-existing mount at {self.path} could not be unmounted",
                    details={"mount_point": str(self.path)},
                )
            self.logger.info(f"Pre-existing mount at {self.path} unmounted")

        if not self.path.is_dir():
            try:
                self.path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self.logger.error(f"Backup failed: could not create mount point {self.path}: {e}")
                raise MountError(
                    "MOUNT_POINT_UNAVAILABLE",
                    f"Could not create mount point {self.path}",
                    details={"error": str(e)},
                ) from e
            self.logger.info(f"Mount point did not exist. Created {self.path}")

        try:
            result = self.runner.run(
                ["mount", "-t", "cifs", self.remote, str(self.path), "-o", self.options]
            )
        except CommandError as e:
            self.logger.error(f"Backup failed: could not mount {self.remote}")
            raise MountError("MOUNT_FAILED", f"Could not mount {self.remote}", details=e.details) from e

        if not result.ok:
            self.logger.error(f"Backup failed: could not mount {self.remote}")
            raise MountError(
                "MOUNT_FAILED",
                f"Could not mount {self.remote}",
                details={"returncode": result.returncode, "stderr": result.stderr.strip()},
            )
        self.logger.info(f"Mounted successfully: {self.remote} > {self.path}")

    def teardown(self) -> None:
        """Unmount and remove the mount point; runs at most once

        A no-op when nothing is mounted. Failures are logged, never raised.
        Termination signals arriving meanwhile are held back until the mount
        point is gone.
        """
        with deferred_signals():
            if self._torn_down:
                return
            self._torn_down = True
            self._release()

    def _release(self) -> None:
        if not self.is_mounted():
            return

        if not self._umount():
            self.logger.error(
                f"Failed to unmount {self.path}; directory left untouched "
                "to avoid accidental deletion of remote files"
            )
            return
        self.logger.info(f"Unmounted {self.path}")

        try:
            if self.path.exists():
                shutil.rmtree(self.path)
            self.logger.info(f"Force-removed {self.path}")
        except OSError as e:
            self.logger.error(f"Failed to force-remove {self.path}: {e}")

    def __enter__(self) -> "SmbMount":
        try:
            self.mount()
        except BaseException:
            self.teardown()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.teardown()
        return False


@contextmanager
def teardown_on_signals(signals=HANDLED_SIGNALS) -> Iterator[None]:
    """Convert termination signals into TerminatedError for the enclosed block

    Raising from the handler unwinds any ``with SmbMount(...)`` scope, so the
    teardown runs for SIGINT, SIGTERM and SIGHUP exactly as for a normal exit.
    Handlers can only be installed from the main thread; elsewhere this is a
    no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _raise(signum, frame):
        raise TerminatedError(signum)

    previous: List[tuple] = []
    for signum in signals:
        previous.append((signum, signal.getsignal(signum)))
        signal.signal(signum, _raise)
    try:
        yield
    finally:
        for signum, handler in previous:
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


@contextmanager
def deferred_signals(signals=HANDLED_SIGNALS) -> Iterator[None]:
    """Block ``signals`` for the enclosed block and deliver them afterwards

    Only the main thread receives process signals, so elsewhere this is a
    no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.pthread_sigmask(signal.SIG_BLOCK, signals)
    try:
        yield
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous)
