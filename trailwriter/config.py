"""Writer configuration with environment variable support.

Precedence (highest first):
1. Keyword overrides passed to ``load_settings``
2. Environment variables (``TRAILWRITER_<FIELD>``)
3. Built-in defaults

Examples:
    TRAILWRITER_LOG_LEVEL=DEBUG
    TRAILWRITER_DEFAULT_DELIMITER=.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class WriterSettings(BaseSettings):
    """Settings shared by every Session."""

    model_config = SettingsConfigDict(env_prefix="TRAILWRITER_", extra="ignore")

    log_level: LogLevel = "WARNING"
    log_format: Literal["console", "json"] = "console"
    default_delimiter: str = Field(
        default="::",
        description="Delimiter for top-level symbols recorded without an explicit one.",
    )
    busy_timeout: float = Field(default=5.0, ge=0, description="Seconds to wait on a locked DB.")
    foreign_keys: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("default_delimiter")
    @classmethod
    def _non_empty_delimiter(cls, v: str) -> str:
        if not v:
            raise ValueError("default_delimiter must not be empty")
        return v


def load_settings(**overrides: Any) -> WriterSettings:
    """Resolve settings from the environment, then apply ``overrides``."""
    return WriterSettings(**overrides)
