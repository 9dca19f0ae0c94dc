"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Nous Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://nous@localhost:5432/nous"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "nous"
    openai_api_key: str | None = None
    parser_model: str = "gpt-4o-mini"
    parser_temperature: float = 0.3
    parser_max_tokens: int = 500
    parser_timeout_seconds: float = 20.0
    parser_timezone: str = "UTC"
    emotion_effects_path: str | None = None
    emotion_decay_rate: float = 0.1
    scheduler_enabled: bool = True
    scheduler_timezone: str = "UTC"
    emotion_decay_interval_minutes: int = 60
    jobs_run_on_startup: bool = False


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
