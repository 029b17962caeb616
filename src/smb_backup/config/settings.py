"""Backup settings for smb-backup

One explicit configuration object is passed to the mount manager, the
exporter, the pruner and the runner. Values come from ``{PREFIX}_*``
environment variables, an optional ``.env`` file and explicit overrides.
"""

from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from smb_backup.config.env_loader import EnvLoader
from smb_backup.exceptions import ConfigurationError

DEFAULT_PREFIX = "SMB_BACKUP"
SUPPORTED_DEVICES = ("openwrt", "truenas")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class BackupSettings(BaseModel):
    """Backup run configuration with environment variable overrides"""

    # Schedule gate
    day_of_week: str = Field(
        default="Friday",
        description="Weekday to run on; only its first occurrence in a month triggers a backup",
    )

    # Remote share
    smb_host: str = Field(description="Remote host to back up to")
    smb_share: str = Field(description="Path on the SMB host where the backups go")
    smb_version: str = Field(default="3.0", description="CIFS protocol version (vers= option)")
    credentials_file: Optional[Path] = Field(
        default=None,
        description="CIFS credentials file (username=/password= lines); defaults to ~/.private/.<smb_host>",
    )
    mount_root: Path = Field(
        default=Path("/mnt"),
        description="Parent directory of the temporary mount point",
    )

    # Retention
    backups_to_keep: int = Field(
        default=24,
        description="Number of most recent automatic backups to keep; 0 or less keeps everything",
    )

    # Device
    device: str = Field(default="openwrt", description="Device profile: openwrt or truenas")
    hostname: Optional[str] = Field(
        default=None,
        description="Hostname used in archive names; detected from the device when unset",
    )

    # Housekeeping
    journal_name: str = Field(default="Journal.txt", description="Journal file name on the share")
    verify_after_backup: bool = Field(
        default=True,
        description="Verify the archive can be read back after creation",
    )
    lock_file: Path = Field(
        default=Path("/tmp/backup-to-smb.lock"),
        description="Lock file preventing overlapping runs",
    )
    command_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for each external command (none by default)",
        gt=0,
    )

    # In-process scheduling (serve mode)
    schedule: str = Field(
        default="0 6 * * *",
        description="Cron schedule used by 'serve' (default: 6 AM daily)",
    )

    log_tag: str = Field(default="backup-to-smb", description="Syslog tag")

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, v: str) -> str:
        """Normalize the weekday to its full English name"""
        normalized = v.strip().capitalize()
        if normalized not in WEEKDAYS:
            raise ValueError(f"day_of_week must be one of: {', '.join(WEEKDAYS)}")
        return normalized

    @field_validator("smb_host")
    @classmethod
    def validate_smb_host(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v:
            raise ValueError("smb_host must be a bare host name")
        return v

    @field_validator("smb_share")
    @classmethod
    def validate_smb_share(cls, v: str) -> str:
        v = v.strip().strip("/")
        if not v:
            raise ValueError("smb_share must not be empty")
        return v

    @field_validator("device")
    @classmethod
    def validate_device(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in SUPPORTED_DEVICES:
            raise ValueError(f"device must be one of: {', '.join(SUPPORTED_DEVICES)}")
        return v

    @field_validator("journal_name")
    @classmethod
    def validate_journal_name(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError("journal_name must be a plain file name")
        return v

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        """Validate cron schedule format (basic check)"""
        parts = v.split()
        if len(parts) != 5:
            raise ValueError("Schedule must be in cron format: 'minute hour day month weekday'")
        return v

    @model_validator(mode="after")
    def resolve_credentials_file(self) -> "BackupSettings":
        if self.credentials_file is None:
            self.credentials_file = Path.home() / ".private" / f".{self.smb_host}"
        else:
            self.credentials_file = self.credentials_file.expanduser()
        return self

    @property
    def remote_address(self) -> str:
        """UNC-style address of the share, e.g. //nas.my.home/ConfigBackups/router"""
        return f"//{self.smb_host}/{self.smb_share}"

    @property
    def mount_point(self) -> Path:
        """Local path of the temporary mount"""
        return self.mount_root / f"{self.smb_host}-backup-to-smb"

    @property
    def mount_options(self) -> str:
        return f"vers={self.smb_version},credentials={self.credentials_file}"

    @property
    def archive_extension(self) -> str:
        return "tar.gz"

    @classmethod
    def from_env(
        cls,
        prefix: str = DEFAULT_PREFIX,
        env_file: Optional[Path] = None,
        overrides: Optional[Mapping[str, object]] = None,
    ) -> "BackupSettings":
        """Create settings from environment variables

        Args:
            prefix: Environment variable prefix (default: SMB_BACKUP)
            env_file: Optional .env file (defaults to ./.env when present)
            overrides: Explicit values keyed by field name; highest precedence

        Environment variables:
            {prefix}_DAY_OF_WEEK, {prefix}_SMB_HOST, {prefix}_SMB_SHARE,
            {prefix}_BACKUPS_TO_KEEP, {prefix}_CREDENTIALS_FILE, ... (one per field)

        Returns:
            BackupSettings instance

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        loader = EnvLoader(prefix, env_file)
        env_data = loader.load(overrides)
        values = {name: env_data[name] for name in cls.model_fields if name in env_data}

        try:
            return cls(**values)
        except ValidationError as e:
            problems = [
                f"{loader.variable(str(err['loc'][0])) if err['loc'] else loader.prefix + 'SETTINGS'}: "
                f"{err['msg']}"
                for err in e.errors()
            ]
            raise ConfigurationError(
                "INVALID_SETTINGS",
                "Backup settings are missing or invalid",
                details={"errors": problems},
            ) from e
