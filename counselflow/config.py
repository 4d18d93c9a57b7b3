"""
Configuration for the Contracts Service
=======================================

Environment variables:
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./counselflow.db)
- SQL_ECHO: Log emitted SQL (default: false)
- AUTO_CREATE_SCHEMA: Create tables on startup (default: true)
- JWT_SECRET_KEY / JWT_ALGORITHM / JWT_ACCESS_TOKEN_EXPIRE_MINUTES
- CORS_ALLOW_ORIGINS: Comma separated list of allowed origins
- ENFORCE_HTTPS / HSTS_MAX_AGE: Security header behaviour
- RATE_LIMIT_ENABLED / RATE_LIMIT_PER_USER / REDIS_URL
- LOG_LEVEL: Root log level (default: INFO)
- EXPIRING_SOON_DAYS: Horizon for "expiring soon" statistics (default: 30)
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./counselflow.db"
    sql_echo: bool = False
    auto_create_schema: bool = True
    db_connect_timeout: int = 5

    # Auth
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    enforce_https: bool = False
    hsts_max_age: int = 31536000  # 1 year

    # Rate limiting
    rate_limit_enabled: bool = False
    rate_limit_per_user: int = 120  # requests per minute
    redis_url: str = "redis://localhost:6379/0"

    # Statistics
    expiring_soon_days: int = 30

    # Service info
    log_level: str = "INFO"
    service_version: str = "1.0.0"

    def cors_origins(self) -> List[str]:
        """Parse CORS_ALLOW_ORIGINS into a clean list."""
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins

    def validate_security_config(self) -> List[str]:
        """Return warnings for settings that are unsafe outside development."""
        warnings = []
        if self.jwt_secret_key == "dev-secret-key-change-in-production":
            warnings.append("JWT_SECRET_KEY is the development default")
        if self.database_url.startswith("sqlite") and self.enforce_https:
            warnings.append("ENFORCE_HTTPS=true but DATABASE_URL points at SQLite")
        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
