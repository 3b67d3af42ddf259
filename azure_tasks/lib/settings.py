"""Process-level settings for the task runner.

Task behaviour is driven by the per-call property models; these settings
only cover how the runner logs and whether it retries a failed task.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from azure_tasks.lib.resilience import RetryConfig

__all__ = ["TaskSettings"]


class TaskSettings(BaseSettings):
    """Environment-based runner settings.

    Loaded from variables with the AZURE_TASKS_ prefix or a .env file.

    Example:
        >>> # AZURE_TASKS_LOG_FORMAT=json
        >>> # AZURE_TASKS_MAX_ATTEMPTS=3
        >>> settings = TaskSettings()
        >>> settings.retry_config().max_attempts
        3
    """

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: 'json' or 'console'")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    max_attempts: int = Field(default=1, ge=1, le=10, description="Task attempts; 1 disables retry")
    retry_delay: float = Field(default=1.0, ge=0.1, le=60.0, description="Base retry delay in seconds")

    model_config = SettingsConfigDict(
        env_prefix="AZURE_TASKS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @property
    def verbose(self) -> bool:
        return self.log_level == "DEBUG"

    @property
    def json_format(self) -> bool:
        return self.log_format == "json"

    def retry_config(self) -> RetryConfig:
        return RetryConfig(max_attempts=self.max_attempts, backoff_seconds=self.retry_delay)
