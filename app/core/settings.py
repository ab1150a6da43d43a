"""Configuration and environment settings for the APNexus rules service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the APNexus rules service."""

    groq_api_key: str | None = None
    disambiguator: str = "groq"
    static_disambiguator_reply: str = "1 50"
    llm_model: str = "llama-3.1-8b-instant"
    llm_temperature: float = 0.3
    llm_max_completion_tokens: int = 50
    llm_analysis_max_completion_tokens: int = 500
    llm_analysis_temperature: float = 0.7
    llm_timeout_seconds: float = 5.0
    llm_stream: bool = False
    rules_file: str | None = None
    database_url: str = "sqlite:///./apnexus.db"
    job_workers: int = 6
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY: str | None = None
    S3_SECRET_KEY: str | None = None
    S3_BUCKET: str = "apnexus-fuel-statements"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
