"""Application settings using Pydantic Settings for configuration management."""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

from loguru import logger
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_BATCH_CAP,
    DEFAULT_DATA_DIR,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_REDIRECT_URI,
    PAGE_SIZE,
    STATE_DB_FILENAME,
    TOKEN_FILENAME,
)
from .errors import ConfigError

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


class Settings(BaseSettings):
    """Settings loaded from environment variables and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Google OAuth client
    client_id: str | None = None
    client_secret: SecretStr | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI

    # Storage
    data_dir: Path = DEFAULT_DATA_DIR

    # API Server
    server_host: str = DEFAULT_HOST
    server_port: int = DEFAULT_PORT

    # Scanning
    batch_cap: int = Field(default=DEFAULT_BATCH_CAP, ge=1)
    page_size: int = Field(default=PAGE_SIZE, ge=1, le=PAGE_SIZE)

    log_level: str = "INFO"

    @property
    def token_path(self) -> Path:
        return self.data_dir / TOKEN_FILENAME

    @property
    def state_db_path(self) -> Path:
        return self.data_dir / STATE_DB_FILENAME

    def client_config(self, kind: str = "web") -> dict:
        """Build a google-auth-oauthlib client config from the settings.

        ``kind`` is ``"web"`` for the server redirect flow and
        ``"installed"`` for the CLI loopback flow.
        """
        if self.client_id is None or self.client_secret is None:
            raise ConfigError(
                "CLIENT_ID and CLIENT_SECRET must be set (environment or .env file) "
                "to authenticate with Gmail."
            )
        return {
            kind: {
                "client_id": self.client_id,
                "client_secret": self.client_secret.get_secret_value(),
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "redirect_uris": [self.redirect_uri],
            }
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a single formatted stderr sink."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())
