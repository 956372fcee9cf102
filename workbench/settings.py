"""Global configuration using pydantic settings management.

Values are loaded from environment variables (or an .env file) prefixed
with ``WORKBENCH_`` and exposed via the cached ``get_settings()``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from env or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WORKBENCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directory holding the durable (local scope) storage file
    data_dir: Path = Field(default=Path.home() / ".chat-workbench")
    storage_file: str = "storage.json"

    log_level: str = "INFO"

    # Completion client identification and transport
    client_title: str = "OpenRouter Web UI"
    client_referer: str = "http://localhost"
    request_timeout: float | None = None

    # CORS - accept comma-separated string
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def storage_path(self) -> Path:
        return self.data_dir / self.storage_file

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
