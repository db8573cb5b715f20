"""Market data gateway: normalized multi-provider market data with fallback."""

__version__ = "1.0.0"
