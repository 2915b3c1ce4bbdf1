from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "watch-and-do"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "WATCHDO_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/watchdo",
        validation_alias=AliasChoices("DATABASE_URL", "WATCHDO_DATABASE_URL"),
    )
    youtube_api_key: str | None = Field(default=None, validation_alias=AliasChoices("YOUTUBE_API_KEY", "WATCHDO_YOUTUBE_API_KEY"))
    gemini_api_key: str | None = Field(default=None, validation_alias=AliasChoices("GEMINI_API_KEY", "WATCHDO_GEMINI_API_KEY"))
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias=AliasChoices("GEMINI_MODEL", "WATCHDO_GEMINI_MODEL"))
    huggingface_api_key: str | None = Field(default=None, validation_alias=AliasChoices("HUGGINGFACE_API_KEY", "WATCHDO_HUGGINGFACE_API_KEY"))
    huggingface_model: str = Field(
        default="black-forest-labs/FLUX.1-dev",
        validation_alias=AliasChoices("HUGGINGFACE_MODEL", "WATCHDO_HUGGINGFACE_MODEL"),
    )
    aws_region: str | None = Field(default=None, validation_alias=AliasChoices("AWS_REGION", "WATCHDO_AWS_REGION"))
    aws_access_key_id: str | None = Field(default=None, validation_alias=AliasChoices("AWS_ACCESS_KEY_ID", "WATCHDO_AWS_ACCESS_KEY_ID"))
    aws_secret_access_key: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY", "WATCHDO_AWS_SECRET_ACCESS_KEY")
    )
    aws_bucket: str | None = Field(default=None, validation_alias=AliasChoices("AWS_BUCKET", "WATCHDO_AWS_BUCKET"))
    s3_endpoint_url: str | None = Field(default=None, validation_alias=AliasChoices("S3_ENDPOINT_URL", "WATCHDO_S3_ENDPOINT_URL"))
    redis_url: str = Field(default="redis://redis:6379/0", validation_alias=AliasChoices("REDIS_URL", "WATCHDO_REDIS_URL"))
    celery_enabled: bool = Field(default=True, validation_alias=AliasChoices("CELERY_ENABLED", "WATCHDO_CELERY_ENABLED"))
    scheduler_enabled: bool = Field(default=True, validation_alias=AliasChoices("SCHEDULER_ENABLED", "WATCHDO_SCHEDULER_ENABLED"))
    entry_default_deadline_days: int = Field(
        default=7, validation_alias=AliasChoices("ENTRY_DEFAULT_DEADLINE_DAYS", "WATCHDO_ENTRY_DEFAULT_DEADLINE_DAYS")
    )
    presign_get_expires_sec: int = Field(
        default=600, validation_alias=AliasChoices("PRESIGN_GET_EXPIRES_SEC", "WATCHDO_PRESIGN_GET_EXPIRES_SEC")
    )
    presign_put_expires_sec: int = Field(
        default=300, validation_alias=AliasChoices("PRESIGN_PUT_EXPIRES_SEC", "WATCHDO_PRESIGN_PUT_EXPIRES_SEC")
    )
    external_timeout_sec: float = Field(
        default=15.0, validation_alias=AliasChoices("EXTERNAL_TIMEOUT_SEC", "WATCHDO_EXTERNAL_TIMEOUT_SEC")
    )
    llm_timeout_sec: float = Field(default=60.0, validation_alias=AliasChoices("LLM_TIMEOUT_SEC", "WATCHDO_LLM_TIMEOUT_SEC"))
    image_timeout_sec: float = Field(default=120.0, validation_alias=AliasChoices("IMAGE_TIMEOUT_SEC", "WATCHDO_IMAGE_TIMEOUT_SEC"))
    auth_token_ttl_hours: int = Field(default=24, validation_alias=AliasChoices("AUTH_TOKEN_TTL_HOURS", "WATCHDO_AUTH_TOKEN_TTL_HOURS"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
