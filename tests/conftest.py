"""Shared fixtures for smb-backup tests.

The fake command runner emulates CIFS without root: ``mount`` moves the
contents of a "remote" directory into the mount point and records the mount
in a fake mount table; ``umount`` moves them back and removes the entry.
Tests inspect the remote directory after the run, as they would the share.
"""

import io
import os
import shutil
import signal
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from smb_backup.backup import BackupRunner, CommandResult, CommandRunner
from smb_backup.config import BackupSettings
from smb_backup.exceptions import CommandError
from smb_backup.logger import Logger


def write_tarball(path: Path, members: Optional[Dict[str, bytes]] = None) -> None:
    """Write a small valid tar.gz archive"""
    members = members or {"etc/config/network": b"config interface 'lan'\n"}
    with tarfile.open(path, "w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))


class RecordingLogger(Logger):
    """Logger that keeps (level, message, kwargs) tuples in memory"""

    def __init__(self):
        self.records: List[Tuple[str, str, Dict[str, Any]]] = []

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        self.records.append((level, message, kwargs))

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log("CRITICAL", message, **kwargs)

    def get_session_id(self) -> str:
        return "test0000"

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [m for lvl, m, _ in self.records if level is None or lvl == level]

    def contains(self, fragment: str, level: Optional[str] = None) -> bool:
        return any(fragment in m for m in self.messages(level))


class FakeCommandRunner(CommandRunner):
    """CommandRunner double emulating mount, umount, sysupgrade and uci"""

    def __init__(
        self,
        mounts_path: Path,
        remote_dir: Path,
        available: Sequence[str] = ("mount.cifs", "mount", "umount", "sysupgrade"),
        failing: Sequence[str] = (),
        hostname: str = "router1",
    ):
        super().__init__()
        self.mounts_path = mounts_path
        self.remote_dir = remote_dir
        self.available = set(available)
        self.failing = set(failing)
        self.hostname = hostname
        self.calls: List[List[str]] = []
        if not self.mounts_path.exists():
            self.mounts_path.write_text("proc /proc proc rw,nosuid 0 0\n")

    def which(self, name: str) -> Optional[str]:
        return f"/usr/bin/{name}" if name in self.available else None

    def commands(self) -> List[str]:
        return [call[0] for call in self.calls]

    def run(self, args: Sequence[str], check: bool = False) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(argv)
        name = argv[0]

        if name in self.failing:
            result = CommandResult(argv, 32, "", f"{name}: simulated failure\n")
        elif name == "mount":
            result = self._mount(argv)
        elif name == "umount":
            result = self._umount(argv)
        elif name == "sysupgrade":
            write_tarball(Path(argv[2]))
            result = CommandResult(argv, 0)
        elif name == "uci":
            result = CommandResult(argv, 0, f"{self.hostname}\n")
        else:
            result = CommandResult(argv, 127, "", f"{name}: not found\n")

        if check and not result.ok:
            raise CommandError(
                f"Command failed with exit status {result.returncode}: {name}",
                args=argv,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def _mount(self, argv: List[str]) -> CommandResult:
        source, target = argv[3], Path(argv[4])
        for item in list(self.remote_dir.iterdir()):
            shutil.move(str(item), str(target / item.name))
        with open(self.mounts_path, "a") as f:
            f.write(f"{source} {target} cifs rw,relatime,vers=3.0 0 0\n")
        return CommandResult(argv, 0)

    def _umount(self, argv: List[str]) -> CommandResult:
        target = argv[1]
        lines = self.mounts_path.read_text().splitlines()
        kept = [line for line in lines if line.split()[1] != target]
        if len(kept) == len(lines):
            return CommandResult(argv, 32, "", f"umount: {target}: not mounted.\n")
        if Path(target).is_dir():
            for item in list(Path(target).iterdir()):
                shutil.move(str(item), str(self.remote_dir / item.name))
        self.mounts_path.write_text("".join(f"{line}\n" for line in kept))
        return CommandResult(argv, 0)


class SignallingCommandRunner(FakeCommandRunner):
    """Sends a signal to this process as the first umount starts"""

    def __init__(self, *args: Any, signum: int = signal.SIGTERM, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.signum = signum
        self.signalled = False

    def _umount(self, argv: List[str]) -> CommandResult:
        if not self.signalled:
            self.signalled = True
            os.kill(os.getpid(), self.signum)
        return super()._umount(argv)


class FakeExporter:
    """Exporter double; writes a valid archive unless told to fail"""

    name = "fake"
    required_commands = ()

    def __init__(self, hostname: str = "router1", fail_with: Optional[Exception] = None,
                 write_garbage: bool = False):
        self.hostname = hostname
        self.fail_with = fail_with
        self.write_garbage = write_garbage
        self.exported: List[Path] = []

    def detect_hostname(self) -> str:
        return self.hostname

    def export(self, destination: Path) -> None:
        self.exported.append(destination)
        if self.write_garbage:
            destination.write_bytes(b"not a tarball")
            return
        if self.fail_with is not None:
            destination.write_bytes(b"partial")
            raise self.fail_with
        write_tarball(destination)


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def remote_dir(tmp_path: Path) -> Path:
    path = tmp_path / "remote-share"
    path.mkdir()
    return path


@pytest.fixture
def mounts_file(tmp_path: Path) -> Path:
    return tmp_path / "mounts"


@pytest.fixture
def filesystems_file(tmp_path: Path) -> Path:
    path = tmp_path / "filesystems"
    path.write_text("nodev\tsysfs\nnodev\tproc\n\text4\nnodev\tcifs\n")
    return path


@pytest.fixture
def credentials_file(tmp_path: Path) -> Path:
    path = tmp_path / "private" / ".nas.test"
    path.parent.mkdir()
    path.write_text("username=nasuser\npassword=secret\n")
    path.chmod(0o400)
    return path


@pytest.fixture
def settings(tmp_path: Path, credentials_file: Path) -> BackupSettings:
    return BackupSettings(
        smb_host="nas.test",
        smb_share="ConfigBackups/router1",
        credentials_file=credentials_file,
        mount_root=tmp_path / "mnt",
        lock_file=tmp_path / "run.lock",
        backups_to_keep=3,
        hostname="router1",
    )


@pytest.fixture
def fake_runner(mounts_file: Path, remote_dir: Path) -> FakeCommandRunner:
    return FakeCommandRunner(mounts_file, remote_dir)


@pytest.fixture
def fake_exporter() -> FakeExporter:
    return FakeExporter()


# 2024-03-01 is the first Friday of March 2024
FIRST_FRIDAY = datetime(2024, 3, 1, 6, 0, 0)
THIRD_FRIDAY = datetime(2024, 3, 15, 6, 0, 0)


@pytest.fixture
def make_runner(settings, logger, fake_runner, fake_exporter, mounts_file, filesystems_file):
    """Factory building a BackupRunner wired to the fakes"""

    def _make(now: datetime = FIRST_FRIDAY, **overrides) -> BackupRunner:
        kwargs = dict(
            settings=settings,
            logger=logger,
            runner=fake_runner,
            exporter=fake_exporter,
            clock=lambda: now,
            mounts_path=mounts_file,
            filesystems_path=filesystems_file,
            program="/usr/bin/smb-backup",
        )
        kwargs.update(overrides)
        return BackupRunner(**kwargs)

    return _make
