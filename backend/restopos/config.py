"""Environment-driven settings."""

import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("APP_DATABASE_URL", "sqlite:///./restopos.db")
USE_ALEMBIC = _env_bool("USE_ALEMBIC")

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))
SESSION_COOKIE_NAME = "session"

ENVIRONMENT = os.getenv("ENVIRONMENT", "dev").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")

LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "10"))
LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", "60"))
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")

NOTIFICATION_POLL_SECONDS = float(os.getenv("NOTIFICATION_POLL_SECONDS", "10"))
ORDER_CODE_PREFIX = os.getenv("ORDER_CODE_PREFIX", "ORD")


def is_dev() -> bool:
    return ENVIRONMENT == "dev"
