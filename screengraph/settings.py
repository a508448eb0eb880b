from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for graph construction, logging and the CLI.

    Values are loaded from environment variables and `.env`.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Logging
    SCREENGRAPH_LOG_LEVEL: str = Field(default="INFO")
    # Unset means console only.
    SCREENGRAPH_LOG_DIR: Path | None = Field(default=None)
    # Timed rotation retention count (days).
    SCREENGRAPH_LOG_BACKUP_COUNT: int = Field(default=7)

    # Construction
    # If enabled, finalize() raises when any construction conflict was recorded.
    SCREENGRAPH_STRICT: bool = Field(default=False)

    # CLI
    SCREENGRAPH_GRAPH: str = Field(default="screengraph.demo:build_demo_graph")
    SCREENGRAPH_RENDER_FORMAT: str = Field(default="dot")


def load_settings() -> Settings:
    s = Settings()
    s.SCREENGRAPH_RENDER_FORMAT = s.SCREENGRAPH_RENDER_FORMAT.strip().lower() or "dot"
    return s
