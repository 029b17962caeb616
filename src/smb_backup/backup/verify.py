"""Archive verification

Checks that a freshly written archive can be opened and listed before it is
recorded as a successful backup.
"""

import logging
import tarfile
from pathlib import Path
from typing import Optional, Tuple


class ArchiveVerifier:
    """Verifies backup archive integrity"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def verify(self, filepath: Path) -> Tuple[bool, Optional[str]]:
        """Verify tar archive can be opened and listed

        Args:
            filepath: Path to tar archive

        Returns:
            Tuple of (success, error_message)
        """
        if not filepath.is_file():
            return False, "Archive does not exist"

        try:
            with tarfile.open(filepath, "r:*") as tar:
                members = tar.getmembers()
        except (tarfile.TarError, OSError, EOFError) as e:
            error_msg = f"Tar integrity check failed: {e}"
            self.logger.error(error_msg)
            return False, error_msg

        self.logger.debug(f"Tar archive {filepath.name} contains {len(members)} members")
        if not members:
            return False, "Archive is empty"
        return True, None
