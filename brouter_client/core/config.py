# brouter_client/core/config.py
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables (BROUTER_*) or a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BROUTER_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    APP_NAME: str = "brouter-client"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Which backend the API and CLI use when none is given explicitly
    BACKEND: Literal["remote", "local"] = "remote"

    BASE_URL: str = "http://localhost:17777"
    DEFAULT_PROFILE: str = "trekking"

    # Seconds; brouter can take a long time on long routes
    REQUEST_TIMEOUT: float = 3600.0

    # Local engine cache root; platform cache dir when unset
    CACHE_DIR: Optional[Path] = None
    ENGINE_ARCHIVE: Optional[Path] = None
    ENGINE_LAUNCHER: str = "brouter"

    LOG_LEVEL: str = "INFO"


settings = Settings()
