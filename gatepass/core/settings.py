"""
Configuration & Environment Management for Gatepass
"""

import json
import logging
import secrets
from functools import lru_cache
from typing import Annotated, List, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_CONFIG = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


class DatabaseSettings(PydanticBaseSettings):
    """Database configuration settings"""

    # Full URL wins over the individual parts when set
    DATABASE_URL: Optional[str] = None

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "gatepass"

    # Connection Pool Settings
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 3
    DB_POOL_RECYCLE: int = 1800
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False

    # Connection Timeouts
    DB_COMMAND_TIMEOUT: int = 30
    DB_STATEMENT_TIMEOUT: str = "30s"
    DB_LOCK_TIMEOUT: str = "10s"
    DB_IDLE_IN_TRANSACTION_TIMEOUT: str = "30s"

    # SQLite busy timeout (seconds) while waiting for the database write lock
    DB_SQLITE_TIMEOUT: int = 20

    @property
    def database_url(self) -> str:
        """Generate database URL for async connections"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    model_config = ENV_CONFIG


class RedisSettings(PydanticBaseSettings):
    """Redis configuration settings"""

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_USERNAME: Optional[str] = None

    # Connection Pool Settings
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_RETRY_ON_TIMEOUT: bool = True
    REDIS_SOCKET_TIMEOUT: float = 2.0
    REDIS_SOCKET_CONNECT_TIMEOUT: float = 2.0
    REDIS_HEALTH_CHECK_INTERVAL: int = 30

    @property
    def redis_url(self) -> str:
        """Generate Redis URL"""
        auth = ""
        if self.REDIS_USERNAME and self.REDIS_PASSWORD:
            auth = f"{self.REDIS_USERNAME}:{self.REDIS_PASSWORD}@"
        elif self.REDIS_PASSWORD:
            auth = f":{self.REDIS_PASSWORD}@"

        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = ENV_CONFIG


class SecuritySettings(PydanticBaseSettings):
    """Security and authentication settings"""

    # Signs bearer access tokens
    SECRET_KEY: str = secrets.token_urlsafe(32)
    # Signs entry passes, never shared with clients
    PASS_SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS256"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    PASS_TOKEN_EXPIRE_DAYS: int = 365

    PASSWORD_HASH_ALGORITHM: str = "bcrypt"
    PASSWORD_MIN_LENGTH: int = 8
    BCRYPT_ROUNDS: int = 12

    model_config = ENV_CONFIG


class BookingSettings(PydanticBaseSettings):
    """Reservation and event lifecycle rules"""

    MAX_ACTIVE_EVENTS_PER_ORGANIZER: int = 3
    # Keeps seat counts well inside a 32-bit INTEGER column
    MAX_SEATS_PER_BOOKING: int = 1000
    MAX_EVENT_CAPACITY: int = 1_000_000
    PAYMENT_UTR_PATTERN: str = r"^[a-zA-Z0-9]{8,20}$"
    UPI_ID_PATTERN: str = r"^[a-zA-Z0-9.\-_]{2,}@[a-zA-Z]{2,}$"
    DEFAULT_CURRENCY: str = "INR"

    model_config = ENV_CONFIG


class ScalabilitySettings(PydanticBaseSettings):
    """Performance and scalability settings"""

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 1000
    RATE_LIMIT_WINDOW: int = 3600  # 1 hour

    # Caching
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300
    # Event reads carry seats_available, which every booking changes
    EVENT_CACHE_TTL: int = 30
    CACHE_KEY_PREFIX: str = "gatepass:"

    model_config = ENV_CONFIG


class MonitoringSettings(PydanticBaseSettings):
    """Monitoring and observability settings"""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    ENABLE_PROMETHEUS: bool = True

    # Requests slower than this are flagged in the request log
    SLOW_REQUEST_THRESHOLD: float = 2.0

    model_config = ENV_CONFIG


class Settings(PydanticBaseSettings):
    """Main application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    TESTING: bool = False
    VERSION: str = "1.0.0"

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Gatepass"

    # CORS: a JSON list or comma separated origins in the environment
    BACKEND_CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            if v.startswith("["):
                return list(json.loads(v))
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Component Settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    booking: BookingSettings = Field(default_factory=BookingSettings)
    scalability: ScalabilitySettings = Field(default_factory=ScalabilitySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @model_validator(mode="after")
    def warn_on_generated_secrets(self) -> "Settings":
        # Generated keys differ per process, so tokens and passes die on restart
        if self.ENVIRONMENT == "production":
            generated = {"SECRET_KEY", "PASS_SECRET_KEY"} - self.security.model_fields_set
            for name in sorted(generated):
                logger.warning(f"{name} is not configured; using a random per-process key")
        return self

    model_config = ENV_CONFIG


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
