"""FastAPI routes for the Market Data API.

This module provides:
- /api/market-data/* endpoints for quotes, profiles, historical bars,
  options chains, technical indicators and the provider catalog
- Input validation ahead of any upstream call
- Mapping of gateway errors to {message} / {message, error} responses
- /health liveness endpoint
"""

from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from marketdata.config import Settings
from marketdata.config import settings as default_settings
from marketdata.data.catalog import PROVIDER_CATALOG
from marketdata.data.models import (
    CompanyProfile,
    Interval,
    OptionsChain,
    PriceSeries,
    ProviderId,
    ProviderInfo,
    Quote,
)
from marketdata.data.router import MarketDataRouter
from marketdata.errors import CapabilityError, MarketDataError, ValidationError
from marketdata.indicators.engine import calculate_indicators

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/market-data"


# ============================================================================
# Response Models
# ============================================================================


class ErrorResponse(BaseModel):
    """Error response model. ``error`` is only present on 500 responses."""

    message: str = Field(..., description="What went wrong")
    error: str | None = Field(default=None, description="Underlying error message")


class IndicatorsResponse(BaseModel):
    """Technical indicators computed from a historical series."""

    symbol: str
    indicators: dict[str, Any] = Field(
        default_factory=dict,
        description="rsi, emaShort, emaLong and macd; empty when no bars were returned",
    )
    source: ProviderId


class ProvidersResponse(BaseModel):
    """Catalog of available providers."""

    providers: list[ProviderInfo]


# ============================================================================
# Validation Helpers
# ============================================================================


def _require_symbol(symbol: str | None) -> str:
    symbol = (symbol or "").strip()
    if not symbol:
        raise ValidationError("Symbol parameter is required", field="symbol")
    return symbol.upper()


def _parse_date(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError as e:
        raise ValidationError(
            f"Invalid '{field}' date '{value}'. Expected YYYY-MM-DD",
            field=field,
        ) from e


def _require_window(from_: str | None, to: str | None) -> tuple[date, date]:
    if not from_ or not to:
        raise ValidationError("From and to date parameters are required", field="from")
    from_date = _parse_date(from_, "from")
    to_date = _parse_date(to, "to")
    if from_date > to_date:
        raise ValidationError("'from' date must not be after 'to' date", field="from")
    return from_date, to_date


def _interval(value: str | None) -> str:
    return value or Interval.ONE_DAY.value


def _error_response(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).model_dump(exclude_none=True),
    )


async def _respond(
    failure_message: str,
    handler: Callable[[], Awaitable[Any]],
) -> Any:
    """Run a route body, mapping gateway errors to HTTP responses.

    ValidationError and CapabilityError become 400 ``{message}``; any other
    MarketDataError becomes 500 ``{message, error}``.
    """
    try:
        return await handler()
    except (ValidationError, CapabilityError) as e:
        logger.info("request_rejected", error=e.message, error_type=type(e).__name__)
        return _error_response(400, e.message)
    except MarketDataError as e:
        logger.error("request_failed", message=failure_message, error=e.message)
        return _error_response(500, failure_message, e.message)


def get_market_data_router(request: Request) -> MarketDataRouter:
    """Dependency returning the app's router."""
    router: MarketDataRouter = request.app.state.market_data_router
    return router


# ============================================================================
# Market Data Routes
# ============================================================================


router = APIRouter(prefix=API_PREFIX, tags=["Market Data"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    500: {"description": "Upstream failure", "model": ErrorResponse},
}


@router.get("/quote", response_model=Quote, responses=_ERROR_RESPONSES)
async def get_quote(
    symbol: str | None = Query(default=None, description="Stock ticker symbol"),
    provider: str | None = Query(default=None, description="finnhub, alphavantage or polygon"),
    market_data: MarketDataRouter = Depends(get_market_data_router),
) -> Any:
    """Get the latest quote for a symbol."""

    async def handler() -> Quote:
        return await market_data.get_quote(_require_symbol(symbol), provider)

    return await _respond("Failed to fetch quote data", handler)


@router.get("/profile", response_model=CompanyProfile, responses=_ERROR_RESPONSES)
async def get_company_profile(
    symbol: str | None = Query(default=None, description="Stock ticker symbol"),
    provider: str | None = Query(default=None, description="finnhub, alphavantage or polygon"),
    market_data: MarketDataRouter = Depends(get_market_data_router),
) -> Any:
    """Get company reference data for a symbol."""

    async def handler() -> CompanyProfile:
        return await market_data.get_profile(_require_symbol(symbol), provider)

    return await _respond("Failed to fetch company profile", handler)


@router.get("/historical", response_model=PriceSeries, responses=_ERROR_RESPONSES)
async def get_historical_data(
    symbol: str | None = Query(default=None, description="Stock ticker symbol"),
    from_: str | None = Query(default=None, alias="from", description="Start date (YYYY-MM-DD)"),
    to: str | None = Query(default=None, description="End date (YYYY-MM-DD)"),
    interval: str | None = Query(default="1d", description="1m, 5m, 15m, 30m, 1h, 1d, 1w, 1M"),
    provider: str | None = Query(default=None, description="finnhub, alphavantage or polygon"),
    market_data: MarketDataRouter = Depends(get_market_data_router),
) -> Any:
    """Get historical bars within an inclusive date window."""

    async def handler() -> PriceSeries:
        ticker = _require_symbol(symbol)
        from_date, to_date = _require_window(from_, to)
        return await market_data.get_historical(
            ticker, _interval(interval), from_date, to_date, provider
        )

    return await _respond("Failed to fetch historical data", handler)


@router.get("/options", response_model=OptionsChain, responses=_ERROR_RESPONSES)
async def get_options_chain(
    symbol: str | None = Query(default=None, description="Underlying ticker symbol"),
    provider: str | None = Query(default=None, description="finnhub or polygon"),
    market_data: MarketDataRouter = Depends(get_market_data_router),
) -> Any:
    """Get the options chain for an underlying symbol."""

    async def handler() -> OptionsChain:
        return await market_data.get_options_chain(_require_symbol(symbol), provider)

    return await _respond("Failed to fetch options chain", handler)


@router.get("/indicators", response_model=IndicatorsResponse, responses=_ERROR_RESPONSES)
async def get_indicators(
    symbol: str | None = Query(default=None, description="Stock ticker symbol"),
    from_: str | None = Query(default=None, alias="from", description="Start date (YYYY-MM-DD)"),
    to: str | None = Query(default=None, description="End date (YYYY-MM-DD)"),
    interval: str | None = Query(default="1d", description="1m, 5m, 15m, 30m, 1h, 1d, 1w, 1M"),
    provider: str | None = Query(default=None, description="finnhub, alphavantage or polygon"),
    market_data: MarketDataRouter = Depends(get_market_data_router),
) -> Any:
    """Compute RSI, EMA(12), EMA(26) and MACD from historical closes."""

    async def handler() -> IndicatorsResponse:
        ticker = _require_symbol(symbol)
        from_date, to_date = _require_window(from_, to)
        series = await market_data.get_historical(
            ticker, _interval(interval), from_date, to_date, provider
        )
        return IndicatorsResponse(
            symbol=ticker,
            indicators=calculate_indicators(series),
            source=series.source,
        )

    return await _respond("Failed to calculate indicators", handler)


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers() -> ProvidersResponse:
    """List the supported providers and what each can serve."""
    return ProvidersResponse(providers=list(PROVIDER_CATALOG))


# ============================================================================
# Application Setup
# ============================================================================


def create_app(
    market_data: MarketDataRouter | None = None,
    settings: Settings | None = None,
    title: str = "Market Data API",
    version: str = "1.0.0",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        market_data: Router to serve requests with. Built from settings if omitted.
        settings: Settings used to build the router (defaults to environment).
        title: API title.
        version: API version.
        cors_origins: Allowed CORS origins.

    Returns:
        Configured FastAPI application.
    """
    market_data = market_data or MarketDataRouter.from_settings(settings or default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ARG001
        logger.info("application_starting", default_provider=market_data.default_provider.value)
        yield
        logger.info("application_shutting_down")
        await market_data.close()

    app = FastAPI(
        title=title,
        version=version,
        description="Normalized quotes, profiles, bars, options chains and indicators "
        "across Finnhub, Alpha Vantage and Polygon.io with automatic fallback.",
        lifespan=lifespan,
    )
    app.state.market_data_router = market_data

    origins = cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError  # noqa: ARG001
    ) -> JSONResponse:
        return _error_response(400, f"Invalid request: {exc.errors()}")

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return _error_response(500, "Internal server error", str(exc))

    app.include_router(router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check."""
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}

    return app
