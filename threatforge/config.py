"""Configuration management for ThreatForge."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ThreatForge configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Reasoning service credentials
    gemini_api_key: str = ""

    # Reasoning service endpoint
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"

    # Retry configuration
    llm_max_attempts: int = 5
    llm_backoff_base_seconds: float = 1.0  # wait before retry n is base * 2**n
    llm_timeout_seconds: int = 120

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8001
    api_reload: bool = True

    # Artifact intake
    max_artifact_bytes: int = 1048576  # 1MB


settings = Settings()
