"""Application settings using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    environment: str = Field(default="development")
    # Bind to 127.0.0.1 by default; use 0.0.0.0 only in containers.
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    max_request_bytes: int = Field(default=1048576, ge=1024)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    # Audit entries go to stderr unless a file is configured.
    audit_log_file: Optional[str] = Field(default=None)

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./platform_events.db")
    database_echo: bool = Field(default=False)

    # Authentication
    # Process-wide credential used only when a call carries no authToken
    # metadata AND allow_fallback_token is true. Every call without metadata
    # then runs with this token's entitlements.
    auth_token: Optional[str] = Field(default=None)
    allow_fallback_token: bool = Field(default=False)

    # Embeddings
    embeddings_provider: str = Field(default="mock")
    embeddings_base_url: str = Field(default="https://api.openai.com/v1")
    embeddings_api_key: str = Field(default="")
    embeddings_model: str = Field(default="text-embedding-3-small")
    embedding_dimensions: int = Field(default=1536, ge=1)

    # Summaries
    summarizer_provider: str = Field(default="mock")
    summarizer_base_url: str = Field(default="https://api.openai.com/v1")
    summarizer_api_key: str = Field(default="")
    summarizer_model: str = Field(default="gpt-4o-mini")
    summarizer_max_tokens: int = Field(default=500, ge=1)

    provider_timeout_seconds: int = Field(default=30, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production", "test"}:
            raise ValueError("ENVIRONMENT must be one of: development, staging, production, test")
        return vv

    @field_validator("embeddings_provider", "summarizer_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"mock", "openai_compat"}:
            raise ValueError("provider must be one of: mock, openai_compat")
        return vv

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        if self.allow_fallback_token and not self.auth_token:
            raise ValueError("AUTH_TOKEN must be set when ALLOW_FALLBACK_TOKEN=true")
        if self.is_production and self.embeddings_provider == "mock":
            raise ValueError("EMBEDDINGS_PROVIDER=mock is not allowed in production")
        return self

    @property
    def fallback_token(self) -> Optional[str]:
        """The process-wide token, only when explicitly enabled."""
        if self.allow_fallback_token:
            return self.auth_token
        return None

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.environment == "test"

    @property
    def is_dev(self) -> bool:
        return self.environment == "development"

    @property
    def docs_url(self) -> str | None:
        """Return docs URL outside production, else None."""
        return None if self.is_production else "/docs"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
