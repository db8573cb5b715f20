"""FastAPI routes for the Market Data API."""

from marketdata.api.routes import (
    API_PREFIX,
    ErrorResponse,
    IndicatorsResponse,
    ProvidersResponse,
    create_app,
    get_market_data_router,
    router,
)

__all__ = [
    "API_PREFIX",
    "ErrorResponse",
    "IndicatorsResponse",
    "ProvidersResponse",
    "create_app",
    "get_market_data_router",
    "router",
]
