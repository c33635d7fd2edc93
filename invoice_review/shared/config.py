"""Shared configuration management for the dashboard.

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
        default="pdf-review-dashboard",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )

    # Invoice store (MongoDB). Empty URI means in-memory fallback only.
    mongodb_uri: str = Field(
        default="",
        description="MongoDB connection string (use env var APP_MONGODB_URI)",
    )
    mongodb_database: str = Field(
        default="pdf_dashboard",
        description="MongoDB database name",
    )
    mongodb_collection: str = Field(
        default="invoices",
        description="MongoDB collection holding invoice documents",
    )
    mongodb_timeout_ms: int = Field(
        default=2000,
        description="Server selection timeout used by the MongoDB liveness check",
        gt=0,
    )

    # Upload configuration
    upload_max_bytes: int = Field(
        default=25 * 1024 * 1024,
        description="Maximum accepted PDF size in bytes",
        gt=0,
    )
    files_base_url: str = Field(
        default="https://your-blob-storage.com/files",
        description="Placeholder base URL returned when blob storage is not configured",
    )

    # Extraction provider configuration
    extraction_provider: Literal["mock", "llm"] = Field(
        default="mock",
        description="Extraction provider: mock (fixed payload), llm (Gemini/Groq APIs)",
    )
    extraction_mock_delay_seconds: float = Field(
        default=0.0,
        description="Simulated processing delay for the mock provider",
        ge=0,
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used by the llm provider",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible Gemini endpoint",
    )
    groq_model: str = Field(
        default="llama-3.1-8b-instant",
        description="Groq model used by the llm provider",
    )
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible Groq endpoint",
    )

    # Storage configuration (S3-compatible object storage)
    storage_enabled: bool = Field(
        default=False,
        description="Enable PDF storage in S3-compatible storage (MinIO)",
    )
    storage_endpoint: str = Field(
        default="localhost:9000",
        description="S3-compatible storage endpoint (host:port)",
    )
    storage_access_key: str = Field(
        default="",
        description="Storage access key (use env var APP_STORAGE_ACCESS_KEY)",
    )
    storage_secret_key: str = Field(
        default="",
        description="Storage secret key (use env var APP_STORAGE_SECRET_KEY)",
    )
    storage_bucket: str = Field(
        default="invoices",
        description="Bucket name for uploaded PDFs",
    )
    storage_secure: bool = Field(
        default=False,
        description="Use HTTPS for storage connections",
    )
    storage_url_expiry_seconds: int = Field(
        default=3600,
        description="Lifetime of presigned file URLs",
        gt=0,
    )

    # Review client
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL the review client uses to reach the API",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
