"""Run lock preventing overlapping invocations

Two scheduler runs overlapping would both mount the same mount point and
write the same journal; the second one backs off instead.
"""

import fcntl
import os
from pathlib import Path
from typing import Optional

from smb_backup.exceptions import LockError


class RunLock:
    """Exclusive, non-blocking advisory lock on a file holding the owner PID

    Example:
        with RunLock(Path("/tmp/backup-to-smb.lock")):
            ...
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock

        Raises:
            LockError: If another process holds it
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            owner = self._read_owner()
            raise LockError(
                "RUN_IN_PROGRESS",
                f"Another run holds {self.path}",
                details={"lock_file": str(self.path), "pid": owner},
            ) from None
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _read_owner(self) -> Optional[str]:
        try:
            return self.path.read_text().strip() or None
        except OSError:
            return None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False
