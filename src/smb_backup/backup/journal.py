"""Backup journal kept next to the archives on the share

One tab-separated line per backup attempt, keyed by archive filename:

    backup-router1-2024-01-05-auto.tar.gz<TAB>Automatic monthly backup created by ... at ...

When the pruner deletes an archive, the lines keyed by its filename get a
trailing ``[Auto-deleted]`` marker.
"""

from datetime import datetime
from pathlib import Path
from typing import List

AUTO_DELETED_MARKER = "[Auto-deleted]"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
# Bytes that are not valid UTF-8 round-trip unchanged
ENCODING_ERRORS = "surrogateescape"


def created_message(program: str, when: datetime) -> str:
    return f"Automatic monthly backup created by {program} at {when.strftime(TIME_FORMAT)}"


def failed_message(program: str, when: datetime) -> str:
    return f"[!] Automatic monthly backup likely failed: {program} at {when.strftime(TIME_FORMAT)}"


def duplicate_message(when: datetime) -> str:
    return f"Attempted to create file but already existed at {when.strftime(TIME_FORMAT)}"


class Journal:
    """Line-indexed view of the journal file"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read_lines(self) -> List[str]:
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8", errors=ENCODING_ERRORS).splitlines()

    def write_lines(self, lines: List[str]) -> None:
        self.path.write_text(
            "".join(f"{line}\n" for line in lines), encoding="utf-8", errors=ENCODING_ERRORS
        )

    def append(self, archive_name: str, message: str) -> None:
        """Append one entry for ``archive_name``"""
        with open(self.path, "a", encoding="utf-8", errors=ENCODING_ERRORS) as f:
            f.write(f"{archive_name}\t{message}\n")

    def find(self, archive_name: str) -> List[int]:
        """Indexes of the lines whose leading token is exactly ``archive_name``"""
        return [
            index
            for index, line in enumerate(self.read_lines())
            if line.split(None, 1)[:1] == [archive_name]
        ]

    def mark_deleted(self, archive_name: str) -> int:
        """Append the auto-deleted marker to the entries for ``archive_name``

        Trailing whitespace is trimmed first and lines that already carry the
        marker are left alone, so marking twice changes nothing.

        Returns:
            Number of lines changed
        """
        lines = self.read_lines()
        changed = 0
        for index, line in enumerate(lines):
            if line.split(None, 1)[:1] != [archive_name]:
                continue
            stripped = line.rstrip()
            if stripped.endswith(AUTO_DELETED_MARKER):
                continue
            lines[index] = f"{stripped} {AUTO_DELETED_MARKER}"
            changed += 1
        if changed:
            self.write_lines(lines)
        return changed
