"""
Configuration management for the BIM360 Issue Editor.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="BIM360 Issue Editor", env="APP_NAME")
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="development", env="ENVIRONMENT")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=3000, env="API_PORT")
    api_workers: int = Field(default=1, env="API_WORKERS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Forge / BIM360
    forge_client_id: Optional[str] = Field(default=None, env="FORGE_CLIENT_ID")
    forge_client_secret: Optional[str] = Field(default=None, env="FORGE_CLIENT_SECRET")
    forge_region: Literal["US", "EMEA"] = Field(default="US", env="FORGE_REGION")
    forge_base_url: str = Field(
        default="https://developer.api.autodesk.com", env="FORGE_BASE_URL"
    )
    request_timeout_seconds: float = Field(default=30.0, env="REQUEST_TIMEOUT_SECONDS")

    # Sync engine
    page_size: int = Field(default=128, env="PAGE_SIZE")
    document_chunk_size: int = Field(default=50, env="DOCUMENT_CHUNK_SIZE")
    max_rate_limit_retries: int = Field(default=3, env="MAX_RATE_LIMIT_RETRIES")
    users_scope: Literal["account", "project"] = Field(
        default="account",
        env="USERS_SCOPE",
        description="Where export reads users from: the hub account (uid) or the project (autodeskId).",
    )
    document_source: Literal["issues", "folders"] = Field(
        default="issues",
        env="DOCUMENT_SOURCE",
        description="Resolve only documents referenced by issues, or walk the whole folder tree.",
    )
    location_path_separator: str = Field(default=" > ", env="LOCATION_PATH_SEPARATOR")
    protect_sheets: bool = Field(default=False, env="PROTECT_SHEETS")
    legacy_statuses: bool = Field(
        default=False,
        env="LEGACY_STATUSES",
        description="Offer the first-generation status list in exported workbooks.",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
