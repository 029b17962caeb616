"""Requirement checks run before anything else

They run before the schedule gate so a broken setup is flagged every day,
not only on the one day a month a backup is due.
"""

import stat
from pathlib import Path
from typing import Iterable, Optional

from smb_backup.backup.commands import CommandRunner
from smb_backup.exceptions import PreconditionError
from smb_backup.logger import Logger

BASE_COMMANDS = ("mount.cifs", "mount", "umount")
PROC_FILESYSTEMS = Path("/proc/filesystems")


class PreflightChecker:
    """Verifies commands, kernel CIFS support and the credentials file"""

    def __init__(
        self,
        runner: CommandRunner,
        logger: Logger,
        filesystems_path: Path = PROC_FILESYSTEMS,
    ):
        self.runner = runner
        self.logger = logger
        self.filesystems_path = Path(filesystems_path)

    def check_commands(self, commands: Iterable[str]) -> None:
        for cmd in commands:
            if self.runner.which(cmd) is None:
                self._fail("COMMAND_NOT_FOUND", f"'{cmd}' command not found", command=cmd)

    def check_cifs_support(self) -> None:
        try:
            content = self.filesystems_path.read_text()
        except OSError:
            content = ""
        # Lines look like "nodev\tcifs" or "\text4"
        if not any(line.split()[-1:] == ["cifs"] for line in content.splitlines()):
            self._fail("CIFS_UNAVAILABLE", "CIFS kernel module not available")

    def check_credentials(self, credentials_file: Optional[Path]) -> None:
        """The credentials file must exist and be private to its owner"""
        if credentials_file is None or not credentials_file.is_file():
            self._fail(
                "CREDENTIALS_MISSING",
                f"credentials file {credentials_file} not found",
                path=str(credentials_file),
            )
        mode = credentials_file.stat().st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            self._fail(
                "CREDENTIALS_INSECURE",
                f"credentials file {credentials_file} is accessible by group/other "
                f"(mode {stat.S_IMODE(mode):o}); run chmod 400",
                path=str(credentials_file),
            )

    def run(self, extra_commands: Iterable[str], credentials_file: Optional[Path]) -> None:
        """Run all checks; raises PreconditionError on the first failure"""
        self.check_commands([*BASE_COMMANDS, *extra_commands])
        self.check_cifs_support()
        self.check_credentials(credentials_file)
        self.logger.debug("Requirement checks passed")

    def _fail(self, code: str, message: str, **details) -> None:
        self.logger.error(f"Requirement check failed: {message}")
        raise PreconditionError(code, message, details=details or None)
