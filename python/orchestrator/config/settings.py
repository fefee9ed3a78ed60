"""
Configuration management using Pydantic Settings.
Follows 12-factor app methodology with environment-based configuration.
"""
from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with validation and environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = Field(default="Codex Orchestrator", description="Application name")
    app_version: str = Field(default="2.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment: development, staging, production")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: json or text")

    # Execution
    execution_mode: str = Field(default="live", description="Dispatch mode: live, dry_run, simulation")
    max_iterations: int = Field(default=100, ge=1, description="Round budget per graph execution")
    call_timeout: float = Field(default=30.0, gt=0, description="Per-call deadline in seconds")
    round_timeout: Optional[float] = Field(default=300.0, gt=0, description="Per-round deadline in seconds")
    cascade_failures: bool = Field(default=True, description="Fail dependents of failed tasks immediately")

    # Routing
    service_base_urls: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-service base URL overrides, e.g. {\"codex-social\": \"http://social:4800\"}"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of allowed values."""
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is valid."""
        allowed = ["json", "text"]
        if v not in allowed:
            raise ValueError(f"Log format must be one of {allowed}")
        return v

    @field_validator("execution_mode")
    @classmethod
    def validate_execution_mode(cls, v: str) -> str:
        """Validate dispatch mode."""
        allowed = ["live", "dry_run", "simulation"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Execution mode must be one of {allowed}")
        return v_lower

    @field_validator("service_base_urls")
    @classmethod
    def validate_base_urls(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Base URLs must be absolute http(s) URLs."""
        for service, url in v.items():
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Base URL for {service} must start with http:// or https://")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
