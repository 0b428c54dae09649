"""Runtime configuration resolved from the environment and ``.env``."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PATH_DEFAULT = Path(".env")
STATE_DIR_ENV = "SMARTSAFE_STATE_DIR"
AUDIT_ENV = "SMARTSAFE_AUDIT"
LOG_LEVEL_ENV = "SMARTSAFE_LOG_LEVEL"
SIGNER_KEY_ENV = "SMARTSAFE_SIGNER_KEY"
_TRUTHY = {"1", "true", "yes", "on"}


def state_dir() -> Path:
    """Directory holding logs, the audit trail and its signing key.

    ``SMARTSAFE_STATE_DIR`` overrides the ``~/.smartsafe`` default.
    """

    override = os.environ.get(STATE_DIR_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".smartsafe"


@dataclass(frozen=True)
class Settings:
    """Resolved SmartSafe settings."""

    state_dir: Path
    audit: bool = False
    log_level: str = "INFO"
    signer_key: Optional[str] = None

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        load_dotenv(env_path or ENV_PATH_DEFAULT, override=False)
        audit = os.getenv(AUDIT_ENV, "").strip().lower() in _TRUTHY
        level = os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper() or "INFO"
        key = os.getenv(SIGNER_KEY_ENV) or None
        return cls(state_dir=state_dir(), audit=audit, log_level=level, signer_key=key)


__all__ = ["Settings", "state_dir"]
