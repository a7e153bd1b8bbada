"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded outside local defaults)
    - Access and refresh tokens are signed with different secrets
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - TTLs expressed in seconds: no duration-string parsing at the call sites
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://casecoach:casecoach@db:5432/casecoach"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Tokens
    jwt_access_secret: str = "local-access-secret-change-me-0123456789abcdef"
    jwt_refresh_secret: str = "local-refresh-secret-change-me-0123456789abcdef"
    jwt_access_ttl_seconds: int = 30 * 60
    jwt_refresh_ttl_seconds: int = 7 * 24 * 60 * 60
    bcrypt_rounds: int = 12

    # Assessment engine (Anthropic)
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_timeout_seconds: int = 300
    assessment_model: str = "claude-sonnet-4-5"
    assessment_max_tokens: int = 4096

    # Live rooms (LiveKit)
    livekit_url: str = "http://localhost:7880"
    livekit_api_key: str = "devkey"
    livekit_api_secret: str = "devsecret-change-me-0123456789abcdef"
    livekit_credential_ttl_seconds: int = 10 * 60
    room_timer_seconds: float = 300.0

    # Analysis worker pool
    analysis_workers: int = 4
    analysis_queue_size: int = 100

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @model_validator(mode="after")
    def check_distinct_secrets(self):
        if self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError("jwt_access_secret and jwt_refresh_secret must differ")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
