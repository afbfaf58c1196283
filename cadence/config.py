"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Cadence configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/cadence.db"))

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    poll_interval_seconds: float = Field(default=10.0, gt=0)
    max_concurrent_tasks: int = Field(default=10, ge=1)
    execution_window_seconds: int = Field(default=30, ge=0)
    task_timeout_seconds: float = Field(default=300.0, gt=0)
    max_consecutive_failures: int = Field(default=5, ge=0)

    # Priority policy overrides, e.g. KIND_WEIGHTS='{"reminder": 120}'
    kind_weights: dict[str, int] = Field(default_factory=dict)
    frequency_weights: dict[str, int] = Field(default_factory=dict)

    # Anthropic (content generation)
    anthropic_api_key: str = Field(default="")
    content_model: str = Field(default="claude-sonnet-4-5-20250929")
    content_max_tokens: int = Field(default=1024)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
