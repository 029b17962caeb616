"""Command line interface for smb-backup.

QUICK START:
    # Create and secure the credentials file:
    f=~/.private/.smbhost.my.home && printf 'username=nasuser\\npassword=secret\\n' > "$f" && chmod 400 "$f"

    # Configure (environment or .env file in the working directory):
    SMB_BACKUP_SMB_HOST=smbhost.my.home
    SMB_BACKUP_SMB_SHARE=ConfigBackups/openwrt.my.home
    SMB_BACKUP_DEVICE=openwrt

    # Schedule daily at 6 AM; the run itself only works on the first Friday of the month:
    0 6 * * * /usr/bin/smb-backup

USAGE:
    smb-backup [run] [--force]   Back up if today is the first <day_of_week> of the month
    smb-backup prune             Apply retention only
    smb-backup check             Run the requirement checks only
    smb-backup serve             Stay resident and run on SMB_BACKUP_SCHEDULE

EXIT STATUS:
    0  backup created, or skipped (schedule, same-day archive, run in progress)
    1  missing requirement, invalid settings, mount failure or export failure
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from smb_backup.backup import BackupRunner, BackupService
from smb_backup.config import DEFAULT_PREFIX, BackupSettings
from smb_backup.exceptions import ConfigurationError, PreconditionError, SmbBackupError
from smb_backup.logger import DEFAULT_TAG, create_logger

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smb-backup",
        description="Monthly device configuration backups onto an SMB share",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--env-file", type=Path, help="Settings file (default: ./.env if present)")
    parser.add_argument(
        "--prefix",
        default=DEFAULT_PREFIX,
        help=f"Environment variable prefix (default: {DEFAULT_PREFIX})",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, type=str.upper, help="Logging level")
    parser.add_argument("--json-logs", action="store_true", default=None, help="Log as JSON")
    parser.add_argument(
        "--no-syslog", dest="syslog", action="store_false", default=None, help="Do not log to syslog"
    )

    subparsers = parser.add_subparsers(dest="command")
    run_parser = subparsers.add_parser("run", help="Run a backup (default)")
    run_parser.add_argument(
        "--force", action="store_true", help="Ignore the first-weekday-of-the-month gate"
    )
    subparsers.add_parser("prune", help="Mount the share and apply retention only")
    subparsers.add_parser("check", help="Check requirements and exit")
    subparsers.add_parser("serve", help="Stay resident and run on the configured cron schedule")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "run"
    level = getattr(logging, args.log_level) if args.log_level else None

    try:
        settings = BackupSettings.from_env(prefix=args.prefix, env_file=args.env_file)
    except ConfigurationError as e:
        logger = create_logger(level=level, json_format=args.json_logs, syslog=args.syslog, tag=DEFAULT_TAG)
        logger.error(f"Configuration error: {e.message}", errors=e.details.get("errors"))
        return 1

    logger = create_logger(
        level=level,
        json_format=args.json_logs,
        syslog=args.syslog,
        tag=settings.log_tag,
    )

    try:
        runner = BackupRunner(settings, logger)

        if command == "check":
            try:
                runner.check()
            except PreconditionError:
                return 1
            print("All requirement checks passed")
            return 0

        if command == "prune":
            return runner.prune().exit_code

        if command == "serve":
            BackupService(runner).start()
            return 0

        return runner.run(force=getattr(args, "force", False)).exit_code

    except SmbBackupError as e:
        logger.error(f"Fatal error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
