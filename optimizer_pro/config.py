"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (local, staging, production, testing)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Same variable names a Laravel project already uses where one exists
"""

import logging
import os
import sys
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class AnalyzerConfig(BaseModel):
    """Thresholds and limits for a single analysis run."""

    slow_query_threshold_ms: float = Field(
        default=200.0, ge=0.0, description="Queries slower than this count as slow"
    )
    probe_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Timeout for each individual probe"
    )
    route_threshold: int = Field(
        default=500, ge=0, description="Route count above which route caching is recommended"
    )


class CacheConfig(BaseModel):
    """Cache backend used by the cache probe."""

    driver: Literal["array", "file"] = Field(default="array", description="Cache driver name")
    path: str | None = Field(default=None, description="Cache directory for the file driver")
    default_ttl_seconds: int = Field(default=10, gt=0, description="TTL for the probe key")

    @model_validator(mode="after")
    def file_driver_needs_path(self) -> "CacheConfig":
        if self.driver == "file" and not self.path:
            raise ValueError("file cache driver requires a cache path")
        return self


class DatabaseConfig(BaseModel):
    """Database probed for connection time and slow queries."""

    url: str = Field(default="sqlite:///:memory:", description="Database URL")

    @field_validator("url")
    def validate_url(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError("database url must include a scheme, e.g. sqlite:///path.db")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    enabled: bool = Field(default=True, description="Emit analyzer logs at all")
    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: str = Field(default="production", description="Application environment")
    debug: bool = Field(default=False, description="Application debug mode")
    timezone: str = Field(default="UTC")
    locale: str = Field(default="en")

    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("environment")
    def normalize_environment(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("environment must not be empty")
        return v


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def _level_to_literal(val: str) -> LogLevel:
    v = val.strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    environment = os.getenv("APP_ENV", "production")
    debug = _parse_bool(os.getenv("APP_DEBUG"), False)
    local = environment.strip().lower() in {"local", "development", "testing"}

    analyzer_config = AnalyzerConfig(
        slow_query_threshold_ms=float(os.getenv("OPTIMIZER_SLOW_QUERY_THRESHOLD", "200")),
        probe_timeout_seconds=float(os.getenv("OPTIMIZER_PROBE_TIMEOUT", "5.0")),
    )

    cache_config = CacheConfig(
        driver=cast(Literal["array", "file"], os.getenv("OPTIMIZER_CACHE_DRIVER", "array")),
        path=os.getenv("OPTIMIZER_CACHE_PATH") or None,
    )

    database_config = DatabaseConfig(
        url=os.getenv("DATABASE_URL", "sqlite:///:memory:"),
    )

    logging_config = LoggingConfig(
        enabled=_parse_bool(os.getenv("OPTIMIZER_LOGGING_ENABLED"), True),
        level=_level_to_literal(os.getenv("OPTIMIZER_LOG_LEVEL", "INFO")),
        format="console" if local else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        timezone=os.getenv("APP_TIMEZONE", "UTC"),
        locale=os.getenv("APP_LOCALE", "en"),
        analyzer=analyzer_config,
        cache=cache_config,
        database=database_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_structlog(config: LoggingConfig | None = None) -> None:
    """Configure structlog only; stdlib handlers are left as the host set them."""
    config = config or LoggingConfig()

    renderer: structlog.typing.Processor = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog on top of stdlib logging, replacing the root handlers."""
    config = config or LoggingConfig()

    # Above CRITICAL so nothing passes filter_by_level when disabled
    level = getattr(logging, config.level) if config.enabled else logging.CRITICAL + 10
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    configure_structlog(config)
