"""
Application configuration.
Reads settings from the environment (and a local .env file).
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load .env only once here
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Settings shared by the app factory, the database pool and the auth layer.

    Every attribute can be overridden from the environment. Flask picks up the
    upper-case attributes through `app.config.from_object()`, which is also how
    Flask-Limiter finds its RATELIMIT_* keys.
    """

    def __init__(self) -> None:
        self.APP_ENV: str = os.getenv("APP_ENV", "development")

        # Auth
        self.JWT_SECRET: Optional[str] = os.getenv("JWT_SECRET")
        self.JWT_ALGORITHM: str = "HS256"

        # Database
        self.DATABASE_URL: str = os.getenv(
            "DATABASE_URL", "postgresql://postgres@localhost:5432/gig_buddy"
        )
        self.DB_MIN_CONNECTIONS: int = int(os.getenv("DB_MIN_CONNECTIONS", 1))
        self.DB_MAX_CONNECTIONS: int = int(os.getenv("DB_MAX_CONNECTIONS", 20))
        # Seconds a request waits for a free connection before a 503
        self.DB_POOL_TIMEOUT: float = float(os.getenv("DB_POOL_TIMEOUT", 30))

        # CORS
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

        # Rate limiting
        self.REGISTER_RATE_LIMIT: str = os.getenv("REGISTER_RATE_LIMIT", "5 per 15 minutes")
        self.LOGIN_RATE_LIMIT: str = os.getenv("LOGIN_RATE_LIMIT", "3 per 15 minutes")
        self.API_RATE_LIMIT: str = os.getenv("API_RATE_LIMIT", "100 per 15 minutes")
        self.RATELIMIT_STORAGE_URI: str = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
        self.RATELIMIT_ENABLED: bool = _env_bool("RATELIMIT_ENABLED", True)
        self.RATELIMIT_HEADERS_ENABLED: bool = True
        # Number of reverse proxies in front of the app whose X-Forwarded-For
        # hop is trusted. 0 means the socket address is the client.
        self.TRUSTED_PROXIES: int = int(os.getenv("TRUSTED_PROXIES", 0))

        self.PORT: int = int(os.getenv("PORT", 5000))
        self.TESTING: bool = False


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Config:
    """
    Build a Config from the environment, apply overrides, and validate it.

    Args:
        overrides (dict, optional): Values that replace environment settings.

    Returns:
        Config: The validated configuration.

    Raises:
        RuntimeError: If JWT_SECRET is missing. The app must not start without it.
    """
    config = Config()
    for key, value in (overrides or {}).items():
        setattr(config, key, value)

    if not config.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is missing. Set it in .env")
    if config.DB_MIN_CONNECTIONS < 1 or config.DB_MAX_CONNECTIONS < config.DB_MIN_CONNECTIONS:
        raise RuntimeError("DB_MIN_CONNECTIONS/DB_MAX_CONNECTIONS are inconsistent")
    if config.TRUSTED_PROXIES < 0:
        raise RuntimeError("TRUSTED_PROXIES must be 0 or more")

    # Flask-Limiter applies this limit across every route, per client
    config.RATELIMIT_APPLICATION = config.API_RATE_LIMIT
    return config
