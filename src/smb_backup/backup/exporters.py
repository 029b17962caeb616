"""Device configuration exporters

Each device profile knows how to name itself (hostname used in archive
names), which commands it needs, and how to write its configuration to an
archive path on the mounted share.
"""

import shutil
import socket
import tarfile
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Tuple

from smb_backup.backup.commands import CommandRunner
from smb_backup.exceptions import CommandError, ConfigurationError, ExportError
from smb_backup.logger import Logger

TRUENAS_DATABASE = Path("/data/freenas-v1.db")
TRUENAS_SECRET = Path("/data/pwenc_secret")


class ConfigExporter(ABC):
    """Writes a device's configuration into a single archive"""

    name: str = ""
    required_commands: Tuple[str, ...] = ()

    def __init__(self, runner: CommandRunner, logger: Logger):
        self.runner = runner
        self.logger = logger

    def detect_hostname(self) -> str:
        return socket.gethostname()

    @abstractmethod
    def export(self, destination: Path) -> None:
        """Create the archive at ``destination``

        Raises:
            ExportError: If the archive could not be created
        """


class OpenWrtExporter(ConfigExporter):
    """Uses ``sysupgrade -b``, which writes a tar.gz of the changed /etc files"""

    name = "openwrt"
    required_commands = ("sysupgrade",)

    def detect_hostname(self) -> str:
        try:
            result = self.runner.run(["uci", "get", "system.@system[0].hostname"], check=True)
        except CommandError as e:
            fallback = super().detect_hostname()
            self.logger.warning(f"Could not read hostname from uci ({e.message}); using {fallback}")
            return fallback
        return result.stdout.strip() or super().detect_hostname()

    def export(self, destination: Path) -> None:
        try:
            self.runner.run(["sysupgrade", "-b", str(destination)], check=True)
        except CommandError as e:
            self.logger.error("Backup failed: sysupgrade command error")
            raise ExportError("SYSUPGRADE_FAILED", "sysupgrade -b failed", details=e.details) from e


class TrueNASExporter(ConfigExporter):
    """Tars the configuration database and the password secret seed

    The database is required. The secret seed is optional: without it the
    archive still restores, but stored passwords have to be re-entered.
    """

    name = "truenas"
    required_commands = ()

    def __init__(
        self,
        runner: CommandRunner,
        logger: Logger,
        database: Path = TRUENAS_DATABASE,
        secret: Path = TRUENAS_SECRET,
    ):
        super().__init__(runner, logger)
        self.database = Path(database)
        self.secret = Path(secret)

    def export(self, destination: Path) -> None:
        with tempfile.TemporaryDirectory(prefix="backup-to-smb-") as tmp:
            staging = Path(tmp)
            self.logger.debug(f"Created temporary directory: {staging}")

            try:
                shutil.copy2(self.database, staging / self.database.name)
            except OSError as e:
                self.logger.error("Failed to copy configurations into temporary directory")
                raise ExportError(
                    "CONFIG_COPY_FAILED",
                    f"Could not copy {self.database}",
                    details={"error": str(e)},
                ) from e
            self.logger.info("Copied configurations into temporary directory")

            try:
                shutil.copy2(self.secret, staging / self.secret.name)
                self.logger.info("Copied secret seed into temporary directory")
            except OSError as e:
                self.logger.warning(f"Failed to copy secret seed into temporary directory: {e}")

            try:
                with tarfile.open(destination, "w:gz") as tar:
                    for item in sorted(staging.iterdir()):
                        tar.add(item, arcname=item.name)
            except (OSError, tarfile.TarError) as e:
                self.logger.error("Backup failed at creating the tarball")
                raise ExportError(
                    "TARBALL_FAILED",
                    f"Could not write {destination}",
                    details={"error": str(e)},
                ) from e


EXPORTERS = {
    OpenWrtExporter.name: OpenWrtExporter,
    TrueNASExporter.name: TrueNASExporter,
}


def create_exporter(device: str, runner: CommandRunner, logger: Logger) -> ConfigExporter:
    """Instantiate the exporter for a device profile"""
    try:
        exporter_cls = EXPORTERS[device]
    except KeyError:
        raise ConfigurationError(
            "UNKNOWN_DEVICE",
            f"Unsupported device profile: {device}",
            details={"supported": sorted(EXPORTERS)},
        ) from None
    return exporter_cls(runner, logger)
