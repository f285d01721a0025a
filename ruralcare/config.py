"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Every setting has a safe default so the core runs without a .env file
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class SchedulingConfig(BaseModel):
    """Reminder scheduling settings."""

    first_reminder_delay_minutes: int = Field(
        default=60, gt=0, description="Delay before the first dose reminder of a prescription"
    )
    upcoming_horizon_hours: int = Field(
        default=24, gt=0, description="Window used when listing upcoming reminders"
    )
    reminder_history_limit: int = Field(
        default=50, gt=0, description="Maximum reminders returned by history views"
    )


class AnalyticsConfig(BaseModel):
    """Village statistics and trend reporting settings."""

    trend_window_days: int = Field(default=30, gt=0, description="Daily records in a trend")
    recent_stats_days: int = Field(default=7, gt=0, description="Daily records in a raw view")
    top_symptoms_limit: int = Field(default=5, gt=0, description="Ranked symptoms in a trend")
    symptom_history_limit: int = Field(
        default=20, gt=0, description="Symptom submissions returned per patient"
    )

    # Optimistic concurrency tuning
    conflict_backoff_seconds: float = Field(
        default=0.005, ge=0.0, description="Base delay before retrying a conflicting update"
    )
    max_backoff_seconds: float = Field(
        default=0.1, ge=0.0, description="Upper bound on the retry delay"
    )

    @model_validator(mode="after")
    def backoff_bounds(self) -> "AnalyticsConfig":
        if self.max_backoff_seconds < self.conflict_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= conflict_backoff_seconds")
        return self


class StorageConfig(BaseModel):
    """Record store configuration."""

    backend: Literal["memory"] = Field(default="memory", description="Record store backend")
    simulated_latency_seconds: float = Field(
        default=0.0, ge=0.0, description="Artificial delay per store call (testing only)"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _format_to_literal(val: str | None, debug: bool) -> Literal["json", "console"]:
        if val is None:
            return "console" if debug else "json"
        return "console" if val.strip().lower() == "console" else "json"

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    scheduling_config = SchedulingConfig(
        first_reminder_delay_minutes=int(os.getenv("FIRST_REMINDER_DELAY_MINUTES", "60")),
        upcoming_horizon_hours=int(os.getenv("UPCOMING_HORIZON_HOURS", "24")),
        reminder_history_limit=int(os.getenv("REMINDER_HISTORY_LIMIT", "50")),
    )

    analytics_config = AnalyticsConfig(
        trend_window_days=int(os.getenv("TREND_WINDOW_DAYS", "30")),
        recent_stats_days=int(os.getenv("RECENT_STATS_DAYS", "7")),
        top_symptoms_limit=int(os.getenv("TOP_SYMPTOMS_LIMIT", "5")),
        symptom_history_limit=int(os.getenv("SYMPTOM_HISTORY_LIMIT", "20")),
        conflict_backoff_seconds=float(os.getenv("CONFLICT_BACKOFF_SECONDS", "0.005")),
        max_backoff_seconds=float(os.getenv("MAX_BACKOFF_SECONDS", "0.1")),
    )

    storage_config = StorageConfig(
        simulated_latency_seconds=float(os.getenv("STORAGE_SIMULATED_LATENCY_SECONDS", "0.0")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format=_format_to_literal(os.getenv("LOG_FORMAT"), debug),
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        scheduling=scheduling_config,
        analytics=analytics_config,
        storage=storage_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")
    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level} ({config.logging.format})")

    print("\n⏰ SCHEDULING")
    print(f"First Reminder Delay: {config.scheduling.first_reminder_delay_minutes}m")
    print(f"Upcoming Horizon: {config.scheduling.upcoming_horizon_hours}h")

    print("\n📊 ANALYTICS")
    print(f"Trend Window: {config.analytics.trend_window_days} days")
    print(f"Top Symptoms: {config.analytics.top_symptoms_limit}")
    print(f"Conflict Backoff: {config.analytics.conflict_backoff_seconds}s")

    print("\n💾 STORAGE")
    print(f"Backend: {config.storage.backend}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
