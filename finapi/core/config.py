from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./finapi.db"
    app_env: str = "dev"
    app_cors_origins: str = "*"
    auth_secret: str = "change-me-in-production"
    auth_session_hours: float = 24 * 7
    ai_provider: str = "groq"  # groq | custom
    # Any OpenAI-compatible backend
    ai_base_url: str | None = None
    ai_model: str | None = None
    ai_api_key: str | None = None
    ai_api_key_header: str = "Authorization"
    ai_api_key_prefix: str = "Bearer"
    # Groq defaults
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    groq_api_key: str | None = None
    ai_timeout_seconds: float = 30.0
    ai_max_attempts: int = 3
    ai_retry_delay_seconds: float = 1.0


settings = Settings()
