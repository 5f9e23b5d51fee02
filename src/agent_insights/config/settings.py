"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

import sqlalchemy as sa
from pydantic import Field, HttpUrl, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_host: NonEmptyStr | None = Field(default=None, validation_alias="DATABASE_HOST")
    database_port: PositiveInt = Field(default=5432, validation_alias="DATABASE_PORT")
    database_name: NonEmptyStr | None = Field(default=None, validation_alias="DATABASE_NAME")
    database_user: NonEmptyStr | None = Field(default=None, validation_alias="DATABASE_USER")
    database_password: str | None = Field(default=None, validation_alias="DATABASE_PASSWORD")
    database_ssl: bool = Field(default=False, validation_alias="DATABASE_SSL")
    database_url_override: NonEmptyStr | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    database_pool_size: PositiveInt = Field(default=10, validation_alias="DATABASE_POOL_SIZE")
    database_pool_timeout_seconds: NonNegativeFloat = Field(
        default=10.0,
        validation_alias="DATABASE_POOL_TIMEOUT_SECONDS",
    )
    database_pool_recycle_seconds: PositiveInt = Field(
        default=30,
        validation_alias="DATABASE_POOL_RECYCLE_SECONDS",
    )
    database_connect_timeout_seconds: NonNegativeFloat = Field(
        default=10.0,
        validation_alias="DATABASE_CONNECT_TIMEOUT_SECONDS",
    )
    n8n_api_url: HttpUrl = Field(validation_alias="N8N_API_URL")
    n8n_api_key: NonEmptyStr = Field(validation_alias="N8N_API_KEY")
    n8n_workflow_id: NonEmptyStr = Field(validation_alias="N8N_WORKFLOW_ID")
    n8n_timeout_seconds: NonNegativeFloat = Field(
        default=20.0,
        validation_alias="N8N_TIMEOUT_SECONDS",
    )
    dashboard_timezone: NonEmptyStr = Field(default="UTC", validation_alias="DASHBOARD_TIMEZONE")
    bot_message_source: NonEmptyStr = Field(default="ios", validation_alias="BOT_MESSAGE_SOURCE")
    default_channel_name: NonEmptyStr = Field(
        default="WhatsApp",
        validation_alias="DEFAULT_CHANNEL_NAME",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def _require_database_target(self) -> "Settings":
        if self.database_url_override is None and (
            self.database_host is None or self.database_name is None
        ):
            raise ValueError("DATABASE_URL or DATABASE_HOST and DATABASE_NAME must be set")
        return self

    @property
    def database_url(self) -> str:
        """Return the async SQLAlchemy URL for the chat store."""

        if self.database_url_override is not None:
            return self.database_url_override
        url = sa.URL.create(
            "postgresql+asyncpg",
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_name,
        )
        return url.render_as_string(hide_password=False)

    @property
    def n8n_base_url(self) -> str:
        """Return the n8n API base URL without a trailing slash."""

        return str(self.n8n_api_url).rstrip("/")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
