from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "dev-secret-insecure-do-not-use-in-production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCHOOL_", env_file=".env", extra="ignore")

    app_title: str = "School Scheduling Backend"
    environment: str = "development"

    # Database
    database_url: str = "sqlite:///./school.db"
    database_echo: bool = False

    # Auth / JWT
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Rate limiting (slowapi)
    rate_limit: str = "100/minute"
    rate_limit_enabled: bool = True

    # Booking write circuit breaker (pybreaker)
    breaker_fail_max: int = 3
    breaker_reset_timeout: int = 60

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def get_settings() -> Settings:
    return Settings()
