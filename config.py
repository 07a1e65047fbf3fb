import os
import logging.config
from dataclasses import dataclass, field
from typing import List


class ConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "foodshare"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60
    bcrypt_rounds: int = 12
    expiry_sweep_interval_seconds: int = 60
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    port: int = 8000


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> Settings:
    """Read settings from the environment. Call once at process start."""
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise ConfigurationError(
            "JWT_SECRET is not set. Export a signing key before starting the server."
        )
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    return Settings(
        jwt_secret=secret,
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "foodshare"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expiration_minutes=_int_env("JWT_EXPIRATION_MINUTES", 60),
        bcrypt_rounds=_int_env("BCRYPT_ROUNDS", 12),
        expiry_sweep_interval_seconds=_int_env("EXPIRY_SWEEP_INTERVAL_SECONDS", 60),
        cors_origins=origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=_int_env("PORT", 8000),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "[{levelname}] {asctime} {name} - {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
    })
