"""Application settings loaded from environment variables."""

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Client and mock server configuration. Explicit arguments always win.

    Every value is read from an ``OMI_``-prefixed variable (e.g. ``OMI_API_KEY``).
    Unrelated keys in the environment or ``.env`` are ignored, since the file
    usually belongs to the application importing this package.
    """

    # Remote platform
    base_url: str = Field(default="https://api.omi.me")
    app_id: str = Field(default="")
    api_key: str = Field(default="")

    # Transport
    timeout_seconds: float = Field(default=20.0, gt=0)

    # Retry (0 disables automatic retries)
    max_retries: int = Field(default=0, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)

    # Mock server
    mock_server_host: str = Field(default="127.0.0.1")
    mock_server_port: int = Field(default=8765)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=_env_file(),
        env_file_encoding="utf-8",
        env_prefix="OMI_",
        extra="ignore",
    )

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

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def memories_configured(self) -> bool:
        """True when both the app id and API key are set."""
        return bool(self.app_id.strip() and self.api_key.strip())


settings = Settings()
