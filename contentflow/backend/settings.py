"""
contentflow configuration

Settings are loaded from:
1. Environment variables (prefixed with CONTENTFLOW_)
2. A .env file in the working directory

Key settings:
- CONTENTFLOW_STORAGE_DIR: Where the node/edge snapshots are written
- CONTENTFLOW_LOAD_DEFAULTS: Start from the built-in forest when nothing is saved
- CONTENTFLOW_REJECT_CYCLES: Reject patches that would create a containment cycle
- CONTENTFLOW_API_BASE: Backend URL used by the CLI client
"""

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """contentflow configuration settings."""

    app_name: str = "contentflow"

    # Persistence
    storage_dir: Path = Path.home() / ".contentflow"
    load_defaults: bool = True

    # Hierarchy rules
    reject_cycles: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    # CLI client
    api_base: str = "http://127.0.0.1:8765/api"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CONTENTFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the server and CLI."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
