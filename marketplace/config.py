import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "marketplace.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", False)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-marketplace")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    AUTH_TRUST_HEADERS = _bool_env("AUTH_TRUST_HEADERS", False)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    NOTIFICATIONS_ENABLED = _bool_env("NOTIFICATIONS_ENABLED", True)
    NOTIFICATIONS_SYNC = _bool_env("NOTIFICATIONS_SYNC", False)
    NOTIFICATION_WORKERS = _int_env("NOTIFICATION_WORKERS", 2)

    STOCK_RESERVATION_ENABLED = _bool_env("STOCK_RESERVATION_ENABLED", True)
    ORDER_NUMBER_MAX_ATTEMPTS = _int_env("ORDER_NUMBER_MAX_ATTEMPTS", 5)
    LIST_DEFAULT_LIMIT = _int_env("LIST_DEFAULT_LIMIT", 10)
    LIST_MAX_LIMIT = _int_env("LIST_MAX_LIMIT", 100)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required in production.")
        if env == "production" and self.SECRET_KEY == "dev-secret-marketplace":
            raise RuntimeError("SECRET_KEY is not safe for production.")
        if env == "production" and self.AUTH_TRUST_HEADERS:
            raise RuntimeError("AUTH_TRUST_HEADERS must be disabled in production.")
