# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/config.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

fixtureforge configuration.

All settings can be overridden via environment variables with the
FIXTUREFORGE_ prefix, or from a ``.env`` file. For example:
FIXTUREFORGE_BASE_URL=http://localhost:4444, FIXTUREFORGE_FIXTURES_DIR=tests/fixtures.
"""

# Standard
from functools import lru_cache
import logging
from typing import Any, Literal, Optional

# Third-Party
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _empty_string_to_none(value: Any) -> Any:
    """Treat empty optional env vars as unset (None).

    Args:
        value: The raw value from the environment variable.

    Returns:
        None if the value is an empty string, otherwise the original value.

    Examples:
        >>> _empty_string_to_none("  ") is None
        True
        >>> _empty_string_to_none("42")
        '42'
    """
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class Settings(BaseSettings):
    """Fixture loading configuration."""

    fixtures_dir: str = Field(default="fixtures/yaml", description="Directory fixture file names are resolved against")
    base_url: str = Field(default="http://localhost:8080", description="Base URL of the entity REST API")
    api_token: Optional[SecretStr] = Field(default=None, description="Bearer token sent with every API request")

    # HTTP client settings
    max_connections: int = Field(default=10, description="Maximum concurrent HTTP connections")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=0, ge=0, description="Retries on 429/5xx/connection errors (0 disables retrying)")
    retry_base_delay: float = Field(default=1.0, description="Base delay in seconds for exponential retry backoff")

    # Fake data
    faker_locale: str = Field(default="en_US", description="Locale used for {faker.*} placeholders")
    faker_seed: Optional[int] = Field(default=None, description="Seed for reproducible fake data")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Log level used by the CLI")

    @field_validator("api_token", "faker_seed", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Delegate to shared validator."""
        return _empty_string_to_none(value)

    model_config = SettingsConfigDict(env_prefix="FIXTUREFORGE_", env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: A cached instance of the Settings class.
    """
    return Settings()
