"""Shared configuration management for the analyzer.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="taxease-analyzer",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Classification provider configuration
    classification_provider: Literal["openai", "ollama"] = Field(
        default="openai",
        description="Classification provider: openai (cloud API), ollama (self-hosted vision LLM)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for receipt classification (must accept image input)",
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="llama3.2-vision:11b",
        description="Ollama vision model used for receipt classification",
    )
    classification_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Timeout in seconds for a single classification round trip",
    )
    classification_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per classification call on transient transport errors",
    )

    # Vendor rules
    rules_path: str = Field(
        default="taxease_rules.json",
        description="File holding the persisted vendor rule set as JSON",
    )
    seed_default_rules: bool = Field(
        default=True,
        description="Start from the built-in vendor rules when no saved rule set exists",
    )

    # Uploads
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum accepted size of a single uploaded file",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
