"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `DOCREVIEW_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Provider = Literal["openai", "deepseek", "custom"]


class Settings(BaseSettings):
    """docreview settings.

    All fields are environment-configurable. Prefix is `DOCREVIEW_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCREVIEW_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")

    # Model backend
    provider: Provider = Field(default="openai")
    api_key: str | None = Field(default=None)
    base_url: str | None = Field(default=None)
    model: str | None = Field(default=None)
    request_timeout_s: float = Field(default=120.0, ge=1.0, le=600.0)
    stream_timeout_s: float = Field(default=180.0, ge=1.0, le=900.0)

    # Retry policy for buffered calls
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_s: float = Field(default=1.0, ge=0.0, le=30.0)
    retry_max_backoff_s: float = Field(default=5.0, ge=0.0, le=120.0)

    # Budgets
    max_output_tokens: int = Field(default=2000, ge=1, le=32000)
    history_char_limit: int = Field(default=100_000, ge=1000)
    outline_input_chars: int = Field(default=10_000, ge=500)
    fallback_chunk_chars: int = Field(default=1200, ge=100)

    # Streaming transport
    keepalive_interval_s: float = Field(default=15.0, gt=0.0, le=300.0)

    # Artifacts
    record_events: bool = Field(default=False)
    artifacts_dir: Path = Field(default=Path("artifacts"))


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("DOCREVIEW_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
