"""
Configuration management for Repo Events.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OAuthAppConfig(BaseModel):
    """GitHub OAuth application registered for one serving domain."""

    domain: str = Field(..., description="Host name the OAuth callback is served on")
    client_id: str = Field(..., description="GitHub OAuth app client ID")
    client_secret: str = Field(..., description="GitHub OAuth app client secret")
    redirect: str = Field(..., description="Base redirect URL for the callback")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GitHub configuration
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub API URL"
    )
    github_oauth_url: str = Field(
        default="https://github.com/login/oauth",
        description="GitHub OAuth endpoint base URL",
    )
    user_agent: str = Field(
        default="repo-events", description="User-Agent sent with every request"
    )
    request_timeout_seconds: float = Field(
        default=30.0, description="HTTP request timeout in seconds"
    )

    # OAuth configuration
    oauth_scope: str = Field(
        default="repo", description="Scope requested during OAuth authorization"
    )
    oauth_apps: list[OAuthAppConfig] = Field(
        default_factory=list,
        description="OAuth apps per domain (JSON list of objects)",
    )

    # Polling configuration
    default_poll_interval_seconds: int = Field(
        default=60, description="Fallback poll interval in seconds"
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed_formats = {"json", "console"}
        if v.lower() not in allowed_formats:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @field_validator("default_poll_interval_seconds")
    @classmethod
    def validate_default_poll_interval(cls, v: int) -> int:
        """Validate the fallback poll interval."""
        if v <= 0:
            raise ValueError("default_poll_interval_seconds must be positive")
        return v


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def __getattr__(name: str) -> Any:
    """Allow module-level access to settings attributes."""
    if name == "settings":
        return get_settings()
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
