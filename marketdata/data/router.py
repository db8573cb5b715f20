"""Provider selection with single-step fallback.

This module provides:
- FALLBACK_POLICY: Which alternate provider each operation falls back to
- MarketDataRouter: Selects an adapter per request, invokes it, and on an
  upstream failure of the default provider retries one alternate

The router is a two-state machine per request: primary, then at most one
fallback. It never loops and never retries a provider the caller pinned.
"""

from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

import structlog

from marketdata.config import Settings
from marketdata.data.alphavantage import AlphaVantageClient
from marketdata.data.base import ProviderClient
from marketdata.data.finnhub import FinnhubClient
from marketdata.data.models import (
    CompanyProfile,
    Operation,
    OptionsChain,
    PriceSeries,
    ProviderId,
    Quote,
)
from marketdata.data.polygon import PolygonClient
from marketdata.errors import CapabilityError, UpstreamError, ValidationError

logger = structlog.get_logger(__name__)


# ============================================================================
# Fallback Policy
# ============================================================================


def _alternate_data_provider(primary: ProviderId) -> ProviderId | None:
    """Quote, profile and historical alternate between finnhub and alphavantage."""
    if primary == ProviderId.FINNHUB:
        return ProviderId.ALPHAVANTAGE
    return ProviderId.FINNHUB


def _alternate_options_provider(primary: ProviderId) -> ProviderId | None:
    """Options always fall back to polygon, unless polygon already failed."""
    if primary == ProviderId.POLYGON:
        return None
    return ProviderId.POLYGON


FALLBACK_POLICY: dict[Operation, Callable[[ProviderId], ProviderId | None]] = {
    Operation.QUOTE: _alternate_data_provider,
    Operation.PROFILE: _alternate_data_provider,
    Operation.HISTORICAL: _alternate_data_provider,
    Operation.OPTIONS: _alternate_options_provider,
}

# Operation → adapter coroutine name
ADAPTER_METHODS: dict[Operation, str] = {
    Operation.QUOTE: "fetch_quote",
    Operation.PROFILE: "fetch_profile",
    Operation.HISTORICAL: "fetch_historical",
    Operation.OPTIONS: "fetch_options_chain",
}


def parse_provider(value: ProviderId | str | None) -> ProviderId | None:
    """Parse a caller-supplied provider id.

    Raises:
        ValidationError: If the id is not a known provider.
    """
    if value is None or value == "":
        return None
    if isinstance(value, ProviderId):
        return value
    try:
        return ProviderId(value.strip().lower())
    except ValueError as e:
        valid = ", ".join(p.value for p in ProviderId)
        raise ValidationError(
            f"Invalid provider '{value}'. Choose from: {valid}",
            field="provider",
        ) from e


# ============================================================================
# Router
# ============================================================================


class MarketDataRouter:
    """Routes market data requests to provider adapters.

    Handles:
    - Provider selection (caller's choice when capable, else the default)
    - One fallback call when the default provider fails upstream
    - Propagation of pinned-provider and fallback failures

    Example:
        router = MarketDataRouter.from_settings(settings)
        quote = await router.get_quote("AAPL")
        print(f"Price: {quote.price} (source: {quote.source})")
    """

    def __init__(
        self,
        providers: Mapping[ProviderId, ProviderClient],
        default_provider: ProviderId | str = ProviderId.FINNHUB,
    ) -> None:
        """Initialize the router.

        Args:
            providers: Adapter for every ProviderId.
            default_provider: Provider used when the caller does not pin one.

        Raises:
            ValueError: If an adapter is missing or the default is unknown.
        """
        missing = [p.value for p in ProviderId if p not in providers]
        if missing:
            raise ValueError(f"No adapter registered for: {', '.join(missing)}")

        self._providers = dict(providers)
        self._default = ProviderId(default_provider)
        self._logger = logger.bind(component="market_data_router")

    @classmethod
    def from_settings(cls, settings: Settings) -> "MarketDataRouter":
        """Build the router and its three adapters from settings."""
        timeout = settings.REQUEST_TIMEOUT
        providers: dict[ProviderId, ProviderClient] = {
            ProviderId.FINNHUB: FinnhubClient(
                settings.FINNHUB_API_KEY,
                base_url=settings.FINNHUB_BASE_URL,
                timeout=timeout,
            ),
            ProviderId.ALPHAVANTAGE: AlphaVantageClient(
                settings.ALPHA_VANTAGE_API_KEY,
                base_url=settings.ALPHA_VANTAGE_BASE_URL,
                timeout=timeout,
            ),
            ProviderId.POLYGON: PolygonClient(
                settings.POLYGON_API_KEY,
                base_url=settings.POLYGON_BASE_URL,
                timeout=timeout,
            ),
        }
        return cls(providers, default_provider=settings.DEFAULT_PROVIDER)

    @property
    def default_provider(self) -> ProviderId:
        """Provider used when the caller does not pin one."""
        return self._default

    def provider(self, provider_id: ProviderId) -> ProviderClient:
        """Adapter registered for ``provider_id``."""
        return self._providers[provider_id]

    def select_provider(
        self,
        operation: Operation,
        requested: ProviderId | str | None = None,
    ) -> ProviderId:
        """Pick the primary provider for a request.

        The requested provider wins when it supports the operation; otherwise
        the default is used.

        Raises:
            ValidationError: If ``requested`` is not a known provider id.
            CapabilityError: If the chosen provider cannot serve the operation.
        """
        pinned = parse_provider(requested)
        if pinned is not None and self._providers[pinned].supports(operation):
            return pinned

        if pinned is not None:
            self._logger.info(
                "requested_provider_incapable",
                operation=operation.value,
                requested=pinned.value,
                using=self._default.value,
            )

        if not self._providers[self._default].supports(operation):
            raise CapabilityError(provider=self._default.value, operation=operation.value)
        return self._default

    def fallback_for(self, operation: Operation, failed: ProviderId) -> ProviderId | None:
        """Alternate provider to try after ``failed`` errored, if any.

        Only failures of the default provider are eligible.
        """
        if failed != self._default:
            return None
        alternate = FALLBACK_POLICY[operation](failed)
        if alternate is None or alternate == failed:
            return None
        if not self._providers[alternate].supports(operation):
            return None
        return alternate

    async def dispatch(
        self,
        operation: Operation,
        args: tuple[Any, ...],
        requested_provider: ProviderId | str | None = None,
    ) -> Any:
        """Run ``operation`` with fallback.

        Args:
            operation: Operation to perform.
            args: Positional arguments for the adapter method.
            requested_provider: Provider the caller asked for, if any.

        Returns:
            The canonical entity produced by whichever provider succeeded.

        Raises:
            ValidationError: Unknown provider id.
            CapabilityError: No capable provider could be selected.
            UpstreamError: Primary failed with no eligible fallback, or the
                fallback failed too (the fallback's error is raised).
        """
        primary = self.select_provider(operation, requested_provider)

        try:
            return await self._invoke(primary, operation, args)
        except UpstreamError as primary_error:
            alternate = self.fallback_for(operation, primary)
            if alternate is None:
                self._logger.warning(
                    "primary_failed",
                    operation=operation.value,
                    provider=primary.value,
                    error=primary_error.message,
                    fallback=None,
                )
                raise

            self._logger.warning(
                "fallback_attempt",
                operation=operation.value,
                failed=primary.value,
                fallback=alternate.value,
                error=primary_error.message,
            )
            try:
                result = await self._invoke(alternate, operation, args)
            except UpstreamError as fallback_error:
                fallback_error.details.setdefault("primary_error", primary_error.message)
                self._logger.error(
                    "fallback_failed",
                    operation=operation.value,
                    provider=alternate.value,
                    error=fallback_error.message,
                )
                raise

            self._logger.info(
                "fallback_succeeded",
                operation=operation.value,
                provider=alternate.value,
            )
            return result

    async def _invoke(
        self,
        provider_id: ProviderId,
        operation: Operation,
        args: tuple[Any, ...],
    ) -> Any:
        adapter = self._providers[provider_id]
        method = getattr(adapter, ADAPTER_METHODS[operation])
        result = await method(*args)
        self._logger.debug("provider_succeeded", operation=operation.value, provider=provider_id.value)
        return result

    async def get_quote(self, symbol: str, provider: ProviderId | str | None = None) -> Quote:
        """Get a quote with fallback."""
        result: Quote = await self.dispatch(Operation.QUOTE, (symbol,), provider)
        return result

    async def get_profile(
        self, symbol: str, provider: ProviderId | str | None = None
    ) -> CompanyProfile:
        """Get a company profile with fallback."""
        result: CompanyProfile = await self.dispatch(Operation.PROFILE, (symbol,), provider)
        return result

    async def get_historical(
        self,
        symbol: str,
        interval: str,
        from_date: date,
        to_date: date,
        provider: ProviderId | str | None = None,
    ) -> PriceSeries:
        """Get historical bars with fallback."""
        result: PriceSeries = await self.dispatch(
            Operation.HISTORICAL, (symbol, interval, from_date, to_date), provider
        )
        return result

    async def get_options_chain(
        self, symbol: str, provider: ProviderId | str | None = None
    ) -> OptionsChain:
        """Get an options chain with fallback to the options-capable provider."""
        result: OptionsChain = await self.dispatch(Operation.OPTIONS, (symbol,), provider)
        return result

    async def close(self) -> None:
        """Close underlying clients."""
        for adapter in self._providers.values():
            await adapter.close()
