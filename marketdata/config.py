"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults. Settings are read once at startup and
treated as read-only afterwards.
"""

import os
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

KNOWN_PROVIDERS = ("finnhub", "alphavantage", "polygon")


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(name: str, default: float) -> float:
    """Get a float value from environment variable, ignoring junk."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("invalid_float_env", name=name, value=raw, default=default)
        return default


def _get_provider_env(name: str, default: str = "finnhub") -> str:
    """Get the default provider id, falling back when it is not recognised."""
    value = os.getenv(name, default).strip().lower()
    if value not in KNOWN_PROVIDERS:
        logger.warning("invalid_default_provider", value=value, fallback=default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        FINNHUB_API_KEY: Finnhub API token.
        ALPHA_VANTAGE_API_KEY: Alpha Vantage API key.
        POLYGON_API_KEY: Polygon.io API key.
        DEFAULT_PROVIDER: Provider used when the caller does not pin one.
        REQUEST_TIMEOUT: Per-call upstream timeout in seconds.
        FINNHUB_BASE_URL: Finnhub REST base URL.
        ALPHA_VANTAGE_BASE_URL: Alpha Vantage query URL.
        POLYGON_BASE_URL: Polygon.io REST base URL.
        LOG_LEVEL: Logging level.
        LOG_JSON: Render logs as JSON instead of console output.
        HOST: Interface the API server binds to.
        PORT: Port the API server listens on.
    """

    # Credentials
    FINNHUB_API_KEY: str | None = None
    ALPHA_VANTAGE_API_KEY: str | None = None
    POLYGON_API_KEY: str | None = None

    # Routing
    DEFAULT_PROVIDER: str = "finnhub"
    REQUEST_TIMEOUT: float = 10.0

    # Upstream endpoints
    FINNHUB_BASE_URL: str = "https://finnhub.io/api/v1"
    ALPHA_VANTAGE_BASE_URL: str = "https://www.alphavantage.co/query"
    POLYGON_BASE_URL: str = "https://api.polygon.io"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            FINNHUB_API_KEY=os.getenv("FINNHUB_API_KEY"),
            ALPHA_VANTAGE_API_KEY=os.getenv("ALPHA_VANTAGE_API_KEY"),
            POLYGON_API_KEY=os.getenv("POLYGON_API_KEY"),
            DEFAULT_PROVIDER=_get_provider_env("MARKETDATA_DEFAULT_PROVIDER"),
            REQUEST_TIMEOUT=_get_float_env("MARKETDATA_REQUEST_TIMEOUT", 10.0),
            FINNHUB_BASE_URL=os.getenv("FINNHUB_BASE_URL", "https://finnhub.io/api/v1"),
            ALPHA_VANTAGE_BASE_URL=os.getenv(
                "ALPHA_VANTAGE_BASE_URL", "https://www.alphavantage.co/query"
            ),
            POLYGON_BASE_URL=os.getenv("POLYGON_BASE_URL", "https://api.polygon.io"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_get_bool_env("LOG_JSON", default=False),
            HOST=os.getenv("MARKETDATA_HOST", "0.0.0.0"),
            PORT=int(_get_float_env("MARKETDATA_PORT", 8000)),
        )


# Global settings instance
settings = Settings.from_env()
