"""
smb-backup Logger Module

Provides the logging interface used throughout smb-backup. Messages go to
stdout and to syslog under the ``backup-to-smb`` tag.

Usage:
    from smb_backup.logger import get_logger, create_logger

    logger = get_logger("smb-backup")
    logger.info("Running backup: today is the first Friday of the month.")

    logger = create_logger(
        name="smb-backup",
        level=logging.DEBUG,
        json_format=True,
        syslog=False,
    )

Environment Variables:
    {PREFIX}_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    {PREFIX}_LOG_FILE: Optional file path for log output
    {PREFIX}_LOG_JSON: Set to "true" for JSON output format
    {PREFIX}_LOG_SYSLOG: Set to "false" to disable the syslog handler

    Where {PREFIX} is derived from the logger name (e.g., SMB_BACKUP for "smb-backup")
"""

import logging
import os
from typing import Optional

from .interface import Logger
from .structured_logger import DEFAULT_TAG, JsonFormatter, StructuredLogger, TextFormatter


def _get_env_prefix(name: str) -> str:
    """Convert logger name to environment variable prefix.

    Examples:
        "smb-backup" -> "SMB_BACKUP"
    """
    return name.upper().replace("-", "_")


def create_logger(
    name: str = "smb-backup",
    level: Optional[int] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
    syslog: Optional[bool] = None,
    tag: str = DEFAULT_TAG,
) -> Logger:
    """Create a new logger instance with the specified configuration.

    Parameters that are not provided are read from environment variables
    using the pattern {PREFIX}_LOG_LEVEL, {PREFIX}_LOG_FILE, {PREFIX}_LOG_JSON
    and {PREFIX}_LOG_SYSLOG where PREFIX is derived from the name.

    Args:
        name: Logger name
        level: Logging level (defaults to INFO or env var)
        log_file: Optional file path for log output
        json_format: If True, output logs as JSON
        syslog: If True, also log to the local syslog socket
        tag: Syslog tag

    Returns:
        A configured Logger instance
    """
    env_prefix = _get_env_prefix(name)

    if level is None:
        level_str = os.environ.get(f"{env_prefix}_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_str, logging.INFO)

    if log_file is None:
        log_file = os.environ.get(f"{env_prefix}_LOG_FILE")

    if json_format is None:
        json_format = os.environ.get(f"{env_prefix}_LOG_JSON", "false").lower() == "true"

    if syslog is None:
        syslog = os.environ.get(f"{env_prefix}_LOG_SYSLOG", "true").lower() == "true"

    return StructuredLogger(
        name=name,
        level=level,
        log_file=log_file,
        json_format=json_format,
        syslog=syslog,
        tag=tag,
    )


def get_logger(name: str = "smb-backup") -> Logger:
    """Get a logger configured from environment variables."""
    return create_logger(name=name)


__all__ = [
    "Logger",
    "StructuredLogger",
    "JsonFormatter",
    "TextFormatter",
    "DEFAULT_TAG",
    "create_logger",
    "get_logger",
]
