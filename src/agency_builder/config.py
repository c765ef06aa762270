"""Configuration management for the agency builder."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from database.connection import PoolConfig


class DatabaseConfig(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", env_file=".env", extra="ignore")

    url: Optional[str] = None
    pool_min_size: int = 1
    pool_max_size: int = 10

    @validator("url")
    def validate_url(cls, v):
        """Validate database URL format."""
        if v is None:
            return v
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL connection string")
        if "[PASSWORD]" in v:
            raise ValueError("DATABASE_URL contains placeholder password - please set actual password")
        return v

    def pool_config(self) -> PoolConfig:
        if not self.url:
            raise ValueError("DATABASE_URL is not set")
        return PoolConfig(dsn=self.url, min_size=self.pool_min_size, max_size=self.pool_max_size)


class LLMConfig(BaseSettings):
    """LLM API configuration settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    gemini_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    llm_request_timeout: float = 30.0
    llm_max_retries: int = 3
    llm_retry_delay: float = 1.0

    @property
    def provider(self) -> Optional[str]:
        if self.gemini_api_key:
            return "gemini"
        if self.anthropic_api_key:
            return "claude"
        return None

    @property
    def api_key(self) -> Optional[str]:
        return self.gemini_api_key or self.anthropic_api_key


class DiscordConfig(BaseSettings):
    """Chat platform connection settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_", env_file=".env", extra="ignore")

    token: Optional[str] = None
    admin_user_id: Optional[str] = None
    command_guild_id: Optional[str] = None


class ProvisioningConfig(BaseSettings):
    """Pacing and session settings for structure builds."""

    model_config = SettingsConfigDict(env_prefix="PROVISIONING_", env_file=".env", extra="ignore")

    channel_delay: float = Field(0.5, ge=0)
    wizard_timeout: float = Field(300.0, gt=0)
    sweep_interval: float = Field(30.0, gt=0)
    nickname_max_length: int = Field(32, gt=0)


class APIConfig(BaseSettings):
    """Badge sync HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="API_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 3000


class AppConfig(BaseSettings):
    """Application configuration settings."""

    model_config = SettingsConfigDict(env_prefix="APP_", env_file=".env", extra="ignore")

    name: str = "agency-builder"
    version: str = "0.1.0"
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    debug: bool = Field(False, validation_alias="DEBUG")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment."""
        return cls()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings loaded once on first use."""
    return Settings.load()
