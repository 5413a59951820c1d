"""Configuration management for Sender Pattern Learner.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the SENDER_PATTERNS_ prefix (e.g., SENDER_PATTERNS_OLLAMA_HOST).
    """

    model_config = SettingsConfigDict(
        env_prefix="SENDER_PATTERNS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///sender_patterns.sqlite3",
        description="SQLAlchemy database URL holding rules, groups and sender checks",
    )

    # Internal trigger API
    internal_api_key: str | None = Field(
        default=None,
        description="Shared secret expected in the x-api-key header of trigger requests",
    )
    internal_api_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the service that accepts analysis triggers",
    )

    # Ollama Configuration
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama API host URL",
    )
    ollama_model: str = Field(
        default="llama3.1:8b",
        description="Default Ollama model used to match senders against rules",
    )
    ollama_timeout: int = Field(
        default=30,
        description="Timeout for Ollama API requests in seconds",
    )

    # Gmail Configuration
    gmail_client_id: str | None = Field(
        default=None,
        description="OAuth client id used to refresh stored Gmail tokens",
    )
    gmail_client_secret: str | None = Field(
        default=None,
        description="OAuth client secret used to refresh stored Gmail tokens",
    )
    gmail_token_uri: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth token endpoint",
    )
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to the OAuth client secrets file used when linking an account",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.readonly",
        description="OAuth scope used for Gmail access; reading threads only needs gmail.readonly",
    )

    # Pattern analysis
    max_results: int = Field(
        default=10,
        description="Maximum number of threads fetched per sender",
    )
    threshold_emails: int = Field(
        default=3,
        description="Minimum number of one-way messages required before asking the LLM",
    )
    fetch_concurrency: int = Field(
        default=3,
        description="Maximum number of thread fetches in flight at once",
    )
    llm_max_body_chars: int = Field(
        default=2000,
        description="Message bodies are truncated to this many characters before prompting",
    )
    analysis_timeout_seconds: float = Field(
        default=60.0,
        description="Wall-clock ceiling for a single background analysis run",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
