"""
IELTS Prep - Core Configuration
Pydantic Settings for application configuration with environment variable support
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "IELTS Prep Mock Test Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Security
    SECRET_KEY: str = "your-super-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "ieltsprep"
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Redis (distributed locks)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Locks
    LOCK_PREFIX: str = "lock:"
    LOCK_DEFAULT_TTL_MS: int = 30_000
    LOCK_DEFAULT_RETRY_ATTEMPTS: int = 3
    LOCK_RETRY_DELAY_MS: int = 100
    # Floor for the evaluation lock TTL. The lock is re-armed before every
    # grading step, so the effective TTL only has to cover one step:
    # LLM timeout + transcription timeout + margin.
    EVALUATION_LOCK_TTL_MS: int = 90_000
    EVALUATION_LOCK_MARGIN_MS: int = 30_000

    @property
    def EVALUATION_STEP_TTL_MS(self) -> int:
        step_ms = (self.LLM_TIMEOUT_SECONDS + self.TRANSCRIPTION_TIMEOUT_SECONDS) * 1000
        return max(self.EVALUATION_LOCK_TTL_MS, step_ms + self.EVALUATION_LOCK_MARGIN_MS)

    # LLM Configuration
    LLM_PROVIDER: Literal["openai", "anthropic"] = "anthropic"
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"
    LLM_TIMEOUT_SECONDS: int = 60
    LLM_MAX_TOKENS: int = 2500

    # Speech transcription (OpenAI Whisper)
    TRANSCRIPTION_MODEL: str = "whisper-1"
    TRANSCRIPTION_LANGUAGE: str = "en"
    TRANSCRIPTION_TIMEOUT_SECONDS: int = 30

    # Evaluation
    EVALUATION_ENABLED: bool = True
    RECENT_CONTENT_WINDOW: int = 5

    # Observability
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "ieltsprep-backend"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = "http://localhost:4317"

    # CORS - stored as comma-separated string
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173"

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS_STR.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
