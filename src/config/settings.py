"""
Education Analytics & Reporting Engine
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    enabled: bool = Field(default=False, description="Use Redis for caches and export artifacts")
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=50, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class ReportingSettings(BaseSettings):
    """Report, export and realtime tuning"""

    model_config = SettingsConfigDict(env_prefix="REPORTING_")

    export_ttl_hours: int = Field(default=24, description="Lifetime of an export artifact")
    batch_size: int = Field(default=10, description="Reports processed per batch chunk")
    batch_delay_seconds: float = Field(default=1.0, description="Pause between batch chunks")
    realtime_cache_ttl_seconds: float = Field(default=60.0, description="Max age of cached realtime payloads")
    stability_band: float = Field(default=5.0, description="Percent change treated as a stable trend")
    external_api_timeout: float = Field(default=5.0, description="Timeout for external system calls")
    artifact_store: str = Field(default="memory", description="Export artifact store: memory or redis")
    significance_method: str = Field(default="welch", description="Significance test: welch or coarse")
    dataset_path: Optional[str] = Field(default=None, description="JSON dataset served by the API")
    realtime_base_url: str = Field(default="", description="Base URL for relative data source endpoints")

    @field_validator("artifact_store")
    @classmethod
    def validate_store(cls, v: str) -> str:
        """Validate artifact store backend"""
        allowed = ["memory", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"Artifact store must be one of: {allowed}")
        return v.lower()

    @field_validator("significance_method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        """Validate significance method"""
        allowed = ["welch", "coarse"]
        if v.lower() not in allowed:
            raise ValueError(f"Significance method must be one of: {allowed}")
        return v.lower()


class SecuritySettings(BaseSettings):
    """API protection settings"""

    model_config = SettingsConfigDict(env_prefix="")

    rate_limit_requests: int = Field(default=100, alias="RATE_LIMIT_REQUESTS", description="Rate limit requests")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS", description="Rate limit window")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="education-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    redis: RedisSettings = Field(default_factory=RedisSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
