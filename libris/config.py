from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_ARCHIVE_PATH = "library-archive.json"
DEFAULT_EMAIL_DOMAIN = "unisa.it"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    archive_path: Path = Path(DEFAULT_ARCHIVE_PATH)
    email_domain: str = DEFAULT_EMAIL_DOMAIN
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment, reading a .env file first if present."""
        load_dotenv()
        return cls(
            archive_path=Path(os.environ.get("LIBRIS_ARCHIVE_PATH", DEFAULT_ARCHIVE_PATH)),
            email_domain=os.environ.get("LIBRIS_EMAIL_DOMAIN", DEFAULT_EMAIL_DOMAIN),
            log_level=os.environ.get("LIBRIS_LOG_LEVEL", "INFO").upper(),
            log_json=_env_flag("LIBRIS_LOG_JSON"),
        )
