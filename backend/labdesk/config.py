from __future__ import annotations

import os
from dataclasses import dataclass

# purpose: collect runtime configuration from the environment in one place
# status: active


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer") from exc


@dataclass(frozen=True)
class Settings:
    """Process-wide settings handed to the app factory."""

    database_url: str = "sqlite:///./labdesk.db"
    secret_key: str = "test-secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60
    cors_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")
    sentry_dsn: str | None = None
    testing: bool = False
    lock_retry_attempts: int = 3
    expiry_critical_days: int = 30
    expiry_warning_days: int = 90

    @classmethod
    def from_env(cls) -> "Settings":
        testing = _env_bool("TESTING")
        secret_key = os.getenv("SECRET_KEY")
        if not secret_key:
            if not testing:
                raise RuntimeError("Missing required environment variable: SECRET_KEY")
            secret_key = "test-secret"
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./labdesk.db"),
            secret_key=secret_key,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 24 * 60),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins
            else cls.cors_origins,
            sentry_dsn=os.getenv("SENTRY_DSN") or None,
            testing=testing,
            lock_retry_attempts=_env_int("LOCK_RETRY_ATTEMPTS", 3),
            expiry_critical_days=_env_int("EXPIRY_CRITICAL_DAYS", 30),
            expiry_warning_days=_env_int("EXPIRY_WARNING_DAYS", 90),
        )
