"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator
from typing import List


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Redis (redis_url should contain full connection string including port)
    redis_url: str = "redis://localhost:6379/0"
    history_key: str = "nse_option_chain_snapshots"

    # Upstream provider
    trendlyne_base_url: str = "https://smartoptions.trendlyne.com/phoenix/api"
    http_timeout: float = 30.0
    lookup_timeout_seconds: float = 5.0

    # Market session (HH:MM, exchange local time)
    market_open: str = "09:15"
    market_close: str = "15:30"
    market_timezone: str = "Asia/Kolkata"

    # Backfill
    backfill_step_minutes: int = 15
    backfill_request_delay: float = 0.2

    # History retention
    history_limit: int = 100
    backfill_history_limit: int = 200

    # Auto refresh
    refresh_interval_seconds: int = 60
    default_symbols: str = "NIFTY"  # Comma-separated list of indices to auto-refresh
    auto_refresh_enabled: bool = True  # Run the refresh job inside the API process

    # Logging
    log_level: str = "INFO"

    # API Configuration
    backend_port: int = 8000
    cors_origins: str = "http://localhost:3000"  # Comma-separated list of allowed origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def default_symbols_list(self) -> List[str]:
        """Parse auto-refresh symbols from comma-separated string to list."""
        return [s.strip().upper() for s in self.default_symbols.split(",") if s.strip()]

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        if self.backfill_step_minutes <= 0:
            raise ValueError("backfill_step_minutes must be positive")
        if self.history_limit <= 0 or self.backfill_history_limit <= 0:
            raise ValueError("history limits must be positive")
        return self


# Global settings instance
settings = Settings()
