"""External command execution

Thin wrapper over subprocess used by the mount manager, the preflight checks
and the device exporters. Components take a runner so tests can substitute
a fake one.
"""

import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from smb_backup.exceptions import CommandError


@dataclass
class CommandResult:
    """Outcome of one external command"""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external commands with captured text output"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, args: Sequence[str], check: bool = False) -> CommandResult:
        """Run a command and return its result

        Args:
            args: Command and arguments
            check: Raise CommandError on a non-zero exit status

        Returns:
            CommandResult with exit status and captured output

        Raises:
            CommandError: If the command cannot be started, times out, or
                exits non-zero while ``check`` is set
        """
        argv = [str(a) for a in args]
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CommandError(f"Command not found: {argv[0]}", args=argv, stderr=str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(
                f"Command timed out after {self.timeout}s: {argv[0]}",
                args=argv,
                code="COMMAND_TIMEOUT",
            ) from e

        result = CommandResult(
            args=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise CommandError(
                f"Command failed with exit status {result.returncode}: {argv[0]}",
                args=argv,
                returncode=result.returncode,
                stderr=result.stderr.strip(),
            )
        return result

    def which(self, name: str) -> Optional[str]:
        """Locate an executable on PATH"""
        return shutil.which(name)
