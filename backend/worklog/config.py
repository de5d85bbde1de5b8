"""Application configuration via environment variables."""
import re

import pytz
from limits import parse
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    APP_ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./data/worklog.db"
    JWT_SECRET: str
    JWT_EXPIRES_MINUTES: int = 7 * 24 * 60
    COOKIE_NAME: str = "worklog_session"
    CSRF_COOKIE_NAME: str = "worklog_csrf"
    BCRYPT_ROUNDS: int = 12
    APP_ORIGIN: str = ""
    APP_ORIGIN_REGEX: str = ""
    CORS_ORIGINS: str = "http://localhost:4173"
    TIMEZONE: str = "UTC"
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_GLOBAL: str = "250/15 minutes"
    RATE_LIMIT_AUTH: str = "25/15 minutes"
    MAX_BODY_BYTES: int = 24 * 1024

    class Config:
        env_file = ".env"

    @field_validator("JWT_SECRET")
    @classmethod
    def _secret_long_enough(cls, value: str) -> str:
        if len(value) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return value

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def _rounds_in_range(cls, value: int) -> int:
        if value < 10 or value > 14:
            raise ValueError("BCRYPT_ROUNDS must be an integer between 10 and 14")
        return value

    @field_validator("APP_ORIGIN_REGEX")
    @classmethod
    def _regex_compiles(cls, value: str) -> str:
        if value:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"APP_ORIGIN_REGEX is not a valid pattern: {exc}") from exc
        return value

    @field_validator("RATE_LIMIT_GLOBAL", "RATE_LIMIT_AUTH")
    @classmethod
    def _rate_limit_parses(cls, value: str) -> str:
        try:
            parse(value)
        except ValueError as exc:
            raise ValueError(f"Invalid rate limit {value!r}: {exc}") from exc
        return value

    @field_validator("TIMEZONE")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown TIMEZONE {value!r}")
        return value

    @model_validator(mode="after")
    def _production_needs_origin(self) -> "Settings":
        if self.is_production and not self.APP_ORIGIN and not self.APP_ORIGIN_REGEX:
            raise ValueError("APP_ORIGIN or APP_ORIGIN_REGEX is required in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def tz(self):
        return pytz.timezone(self.TIMEZONE)


settings = Settings()
