"""Configuration using pydantic-settings."""

from typing import Literal

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings

ProviderKind = Literal["openai", "gemini", "deepseek", "mistral"]


class ProviderSettings(BaseModel):
    """Direct-provider configuration for a single caller-facing model."""

    url: str
    provider: ProviderKind
    api_key: str | None = None
    model: str | None = None


class Settings(BaseSettings):
    """Application settings with validation and constants."""

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 8000
    log_level: str = "INFO"
    log_file: str | None = None

    database_url: str = "sqlite+aiosqlite:///./data/chat.db"

    rate_limit: str = "30/minute"

    # JWT settings
    secret_key: str = "your-secret-key-change-in-production"  # noqa: S105
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 30

    # Direct providers, keyed by caller-facing model id (JSON in CHAT_PROVIDERS)
    providers: dict[str, ProviderSettings] = {}

    # Aggregator settings
    openrouter_api_key: str | None = None
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_models_url: str = "https://openrouter.ai/api/v1/models"

    # Upstream transport
    stream_timeout_seconds: float = 60.0
    upstream_connect_timeout_seconds: float = 10.0
    upstream_max_connections: int = 100
    upstream_max_keepalive_connections: int = 20

    # Cost governor
    hourly_cost_limit: float = 50.0
    cost_window_seconds: int = 3600
    preflight_cost_estimate: float = 0.01

    # Per-user limits
    default_daily_request_limit: int = 100

    # Refresh cadence
    pricing_cache_seconds: int = 6 * 3600
    config_refresh_seconds: int = 300

    # Request limits
    max_messages_per_request: int = 50
    max_message_content_length: int = 100_000
    max_attachments_per_message: int = 5
    max_attachment_bytes: int = 20 * 1024 * 1024

    @model_validator(mode="after")
    def validate_providers(self) -> "Settings":
        """Validate that the provider table has usable URLs."""
        for model_id, provider in self.providers.items():
            if not provider.url.startswith(("http://", "https://")):
                raise ValueError(
                    f"Provider URL for model {model_id!r} must be an http(s) URL, got {provider.url!r}"
                )
        return self

    class Config:
        """Pydantic config."""

        env_prefix = "CHAT_"
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
