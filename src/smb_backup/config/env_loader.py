"""Prefixed environment loader with optional .env support.

Collects ``{PREFIX}_<NAME>`` values in deterministic order:
1) .env file (explicit path, or ./.env when present)
2) OS environment variables
3) Explicit overrides keyed by lowercase name (highest precedence)

Keys come back lowercased with the prefix removed, so ``SMB_BACKUP_SMB_HOST``
is returned as ``smb_host``. Blank values are dropped.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values


class EnvLoader:
    """Load prefixed key/value pairs from .env, the environment and overrides."""

    def __init__(self, prefix: str, env_file: Optional[Path | str] = None) -> None:
        self.prefix = prefix.rstrip("_") + "_"
        self.env_file = Path(env_file) if env_file else None

    def variable(self, name: str) -> str:
        """Environment variable name for a setting, e.g. smb_host -> SMB_BACKUP_SMB_HOST"""
        return f"{self.prefix}{name.upper()}"

    def _strip_prefix(self, source: Mapping[str, Optional[str]]) -> Dict[str, str]:
        return {
            key[len(self.prefix):].lower(): value.strip()
            for key, value in source.items()
            if key.startswith(self.prefix) and value is not None and value.strip()
        }

    def load(self, overrides: Optional[Mapping[str, object]] = None) -> Dict[str, str]:
        """Load settings with deterministic precedence.

        Precedence (low -> high): .env file, OS env vars, overrides
        """
        data: Dict[str, str] = {}

        env_path = self.env_file or Path.cwd() / ".env"
        if env_path.exists():
            data.update(self._strip_prefix(dotenv_values(env_path)))

        data.update(self._strip_prefix(os.environ))

        if overrides:
            data.update({k.lower(): str(v) for k, v in overrides.items() if v is not None})

        return data


__all__ = ["EnvLoader"]
