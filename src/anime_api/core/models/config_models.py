"""Pydantic models for application configuration."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

MINUTE = 60


class LogLevel(StrEnum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class Environment(StrEnum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class TTLFamily(StrEnum):
    """Cache entry families with separately configured lifetimes."""

    ANIME = "anime"
    EPISODE = "episode"
    SEASON = "season"
    LOCK = "lock"


class AppSection(BaseModel):
    """Application identity settings."""

    name: str = "anime-api"
    port: int = Field(default=3000, ge=1, le=65535)
    version: str = "x.x.x"
    env: Environment = Environment.DEVELOPMENT


class DatabaseConfig(BaseModel):
    """Relational storage connection and pool settings."""

    host: str = "localhost"
    name: str = "weeb"
    user: str = "weeb"
    password: str = "mysecretpassword"
    port: int = Field(default=3306, ge=1, le=65535)
    ssl: bool = False
    driver: str = "mysql+aiomysql"
    url: str | None = None  # Full SQLAlchemy URL, overrides the parts above

    max_open_connections: int = Field(default=25, ge=1)
    max_idle_connections: int = Field(default=10, ge=0)
    connection_max_lifetime_seconds: int = Field(default=300, ge=1)
    connection_max_idle_seconds: int = Field(default=90, ge=1)
    pool_gauge_interval_seconds: float = Field(default=30.0, gt=0)
    echo: bool = False

    @model_validator(mode="after")
    def _check_pool_caps(self) -> DatabaseConfig:
        if self.max_idle_connections > self.max_open_connections:
            msg = "max_idle_connections cannot exceed max_open_connections"
            raise ValueError(msg)
        return self

    def sqlalchemy_url(self) -> str:
        """Build the SQLAlchemy connection URL."""
        if self.url:
            return self.url
        return f"{self.driver}://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}?charset=utf8mb4"


class RedisConfig(BaseModel):
    """Key-value cache connection and TTL settings."""

    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: str = ""
    db: int = Field(default=0, ge=0)
    enabled: bool = False
    backend: Literal["redis", "memory"] = "redis"

    anime_data_ttl_minutes: int = Field(default=30, ge=1)
    episode_ttl_minutes: int = Field(default=15, ge=1)
    season_ttl_minutes: int = Field(default=60, ge=1)
    lock_ttl_seconds: int = Field(default=30, ge=1)

    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    operation_timeout_seconds: float = Field(default=2.0, gt=0)
    scan_count: int = Field(default=100, ge=1)


class CacheLayerConfig(BaseModel):
    """Settings for the layered JSON cache stack."""

    compression_threshold_bytes: int = Field(default=1024, ge=0)
    compression_level: int = Field(default=6, ge=1, le=9)
    max_children_in_cache: int = Field(default=0, ge=0)
    separate_children: bool = True
    extended_exclusions: bool = True
    write_timeout_seconds: float = Field(default=5.0, gt=0)
    rebuild_lock_enabled: bool = False
    rebuild_lock_wait_seconds: float = Field(default=0.05, ge=0)
    metrics_sample_size: int = Field(default=1000, ge=1)


class LogLevelsConfig(BaseModel):
    """Log levels configuration."""

    console: LogLevel = LogLevel.INFO
    main_file: LogLevel = LogLevel.INFO


class LoggingConfig(BaseModel):
    """Logging configuration."""

    main_log_file: str | None = None
    levels: LogLevelsConfig = Field(default_factory=LogLevelsConfig)


class AppConfig(BaseModel):
    """Main application configuration model."""

    app: AppSection = Field(default_factory=AppSection)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    cache: CacheLayerConfig = Field(default_factory=CacheLayerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cache_namespace: str = "anime-api"

    @field_validator("cache_namespace")
    @classmethod
    def _namespace_has_no_glob(cls, value: str) -> str:
        if not value or any(ch in value for ch in "*?[]"):
            msg = "cache_namespace must be non-empty and contain no glob characters"
            raise ValueError(msg)
        return value

    @property
    def is_development(self) -> bool:
        """Whether the service runs in the development environment."""
        return self.app.env == Environment.DEVELOPMENT

    def ttl_seconds(self, family: TTLFamily) -> int:
        """Return the configured TTL for a cache family, in seconds."""
        match family:
            case TTLFamily.ANIME:
                return self.redis.anime_data_ttl_minutes * MINUTE
            case TTLFamily.EPISODE:
                return self.redis.episode_ttl_minutes * MINUTE
            case TTLFamily.SEASON:
                return self.redis.season_ttl_minutes * MINUTE
            case TTLFamily.LOCK:
                return self.redis.lock_ttl_seconds
        msg = f"Unknown TTL family: {family}"
        raise ValueError(msg)
