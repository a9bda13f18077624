"""Configuration management utilities"""
import os
from typing import Optional

from pydantic import Field, HttpUrl, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


# Azure Content Safety reports severities on a 0-7 scale (0/2/4/6 with the
# default four-level output). Any category at or above this value blocks.
SEVERITY_THRESHOLD = 4

ANTHROPIC_VERSION = "2023-06-01"
CONTENT_SAFETY_API_VERSION = "2023-10-01"


class Settings(BaseSettings):
    """Ambient application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Logging configuration
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")

    # Service configuration
    service_name: str = os.getenv("SERVICE_NAME", "completion-service")
    service_version: str = os.getenv("SERVICE_VERSION", "1.0.0")

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")


class UpstreamSettings(BaseSettings):
    """Credentials, endpoints and limits for the two external services.

    Read once at startup. Every field without a default is required and its
    absence stops the service from starting. Endpoints must be absolute
    http(s) URLs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        str_strip_whitespace=True,
        str_min_length=1,
    )

    # Generation service (Anthropic Claude Messages API)
    claude_api_key: str
    claude_api_endpoint: HttpUrl
    claude_api_model: str
    claude_max_tokens: int = Field(1024, gt=0)
    anthropic_version: str = ANTHROPIC_VERSION

    # Moderation service (Azure AI Content Safety)
    content_safety_key: str
    content_safety_endpoint: HttpUrl
    content_safety_api_version: str = CONTENT_SAFETY_API_VERSION

    # Policy and limits
    moderation_severity_threshold: int = Field(SEVERITY_THRESHOLD, ge=0, le=7)
    moderation_timeout_seconds: float = Field(10.0, gt=0)
    generation_timeout_seconds: float = Field(60.0, gt=0)
    http_connect_retries: int = Field(0, ge=0)


# Global settings instances
_settings: Optional[Settings] = None
_upstream_settings: Optional[UpstreamSettings] = None


def get_config() -> Settings:
    """Get application configuration"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_upstream_config() -> UpstreamSettings:
    """Resolve and validate upstream configuration.

    Raises ConfigurationError naming every missing or invalid variable.
    """
    try:
        return UpstreamSettings()
    except ValidationError as e:
        missing = []
        invalid = []
        for error in e.errors():
            name = str(error["loc"][0]).upper() if error["loc"] else "<unknown>"
            blank = isinstance(error.get("input"), str) and not error["input"].strip()
            if error["type"] in ("missing", "string_too_short") or blank:
                missing.append(name)
            else:
                invalid.append(f"{name}: {error['msg']}")

        message = "Service cannot start:"
        if missing:
            message += f" missing required environment variables: {', '.join(missing)}."
        if invalid:
            message += f" invalid environment variables: {'; '.join(invalid)}."
        raise ConfigurationError(message) from e


def get_upstream_config() -> UpstreamSettings:
    """Get upstream configuration, loading it on first use"""
    global _upstream_settings
    if _upstream_settings is None:
        _upstream_settings = load_upstream_config()
    return _upstream_settings
