"""Configuration for baks using pydantic-settings.

All settings are driven by environment variables with the BAKS_ prefix.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

APP_DIR_NAME = "baks"
DB_FILE_NAME = "baks.db"


def _user_config_dir() -> Path:
    """Return the per-user configuration directory for this platform."""
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def default_db_path() -> Path:
    return _user_config_dir() / APP_DIR_NAME / DB_FILE_NAME


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BAKS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: Optional[Path] = None

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36 Edg/135.0.0.0"
    )

    timeout_total: float = 60.0
    max_page_size: int = 10 * 1024 * 1024
    sniff_len: int = 512
    strict_extraction: bool = False

    max_attempts: int = 1
    backoff_multiplier: float = 1.0
    backoff_min: float = 1.0
    backoff_max: float = 30.0

    listen_host: str = "127.0.0.1"
    listen_port: int = 8080
    announce_addr: Optional[str] = None
    default_listing_size: int = 30

    def resolved_db_path(self) -> Path:
        """Return the configured database path or the per-user default."""
        return self.db_path if self.db_path is not None else default_db_path()

    def resolved_announce_addr(self) -> str:
        return self.announce_addr or f"{self.listen_host}:{self.listen_port}"

    def ensure_db_dir(self) -> Path:
        """Create the database parent directory if it doesn't exist."""
        path = self.resolved_db_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured directory: %s", path.parent)
        return path


def get_settings() -> Settings:
    """Load settings from the environment."""
    return Settings()
