"""Retention of automatic backups

Keeps the N most recent ``backup-<host>-<YYYY-MM-DD>-auto.<ext>`` archives.
Age is taken from the date in the filename, not from file metadata, so
archives copied or touched elsewhere keep their place in the order.
"""

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import List

from smb_backup.backup.journal import Journal
from smb_backup.logger import Logger


@dataclass
class ArchiveInfo:
    """An automatic backup archive found on the share"""
    filename: str
    filepath: Path
    hostname: str
    backup_date: date


def archive_name(hostname: str, backup_date: date, extension: str = "tar.gz") -> str:
    """Filename for the automatic backup of ``hostname`` taken on ``backup_date``"""
    return f"backup-{hostname}-{backup_date.isoformat()}-auto.{extension}"


def archive_pattern(hostname: str, extension: str = "tar.gz") -> "re.Pattern[str]":
    return re.compile(
        rf"^backup-{re.escape(hostname)}-(\d{{4}}-\d{{2}}-\d{{2}})-auto\.{re.escape(extension)}$"
    )


def scan_archives(directory: Path, hostname: str, extension: str = "tar.gz") -> List[ArchiveInfo]:
    """List the automatic archives of ``hostname`` in ``directory``, oldest first

    Files whose embedded date is not a real calendar date are ignored.
    Archives with the same date keep filename order.
    """
    pattern = archive_pattern(hostname, extension)
    archives = []
    for path in sorted(Path(directory).iterdir()):
        match = pattern.match(path.name)
        if not match or not path.is_file():
            continue
        try:
            backup_date = date.fromisoformat(match.group(1))
        except ValueError:
            continue
        archives.append(
            ArchiveInfo(
                filename=path.name,
                filepath=path,
                hostname=hostname,
                backup_date=backup_date,
            )
        )
    return sorted(archives, key=lambda a: a.backup_date)


def select_for_deletion(archives: List[ArchiveInfo], keep: int) -> List[ArchiveInfo]:
    """Everything except the ``keep`` most recent archives; nothing when keep <= 0

    ``archives`` must already be sorted oldest first.
    """
    if keep <= 0 or len(archives) <= keep:
        return []
    return archives[:-keep]


class RetentionPruner:
    """Deletes old automatic archives and annotates the journal"""

    def __init__(self, directory: Path, hostname: str, journal: Journal, logger: Logger,
                 extension: str = "tar.gz"):
        self.directory = Path(directory)
        self.hostname = hostname
        self.journal = journal
        self.logger = logger
        self.extension = extension

    def prune(self, keep: int) -> List[str]:
        """Keep only the ``keep`` most recent archives

        Returns:
            Filenames deleted, oldest first
        """
        if keep <= 0:
            self.logger.info(f"BACKUPS_TO_KEEP set to {keep}; no tidying up required.")
            return []

        archives = scan_archives(self.directory, self.hostname, self.extension)
        to_delete = select_for_deletion(archives, keep)
        self.logger.debug(
            f"Retention: {len(archives)} archive(s) found, keeping {keep}, deleting {len(to_delete)}"
        )

        deleted = []
        for archive in to_delete:
            self.journal.mark_deleted(archive.filename)
            archive.filepath.unlink(missing_ok=True)
            deleted.append(archive.filename)
            self.logger.info(f"Auto-deleted: {archive.filename}")

        return deleted
