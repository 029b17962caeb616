"""Configuration Module for smb-backup

Example:
    from smb_backup.config import BackupSettings

    settings = BackupSettings.from_env(prefix="SMB_BACKUP")
    print(settings.remote_address, settings.mount_point)
"""

from smb_backup.config.env_loader import EnvLoader
from smb_backup.config.settings import (
    DEFAULT_PREFIX,
    SUPPORTED_DEVICES,
    WEEKDAYS,
    BackupSettings,
)

__all__ = [
    "BackupSettings",
    "EnvLoader",
    "DEFAULT_PREFIX",
    "SUPPORTED_DEVICES",
    "WEEKDAYS",
]
