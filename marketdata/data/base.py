"""Shared plumbing for provider adapters.

This module provides:
- ProviderClient: Abstract async adapter with the httpx transport,
  capability set and error translation every provider shares
- Parsing helpers that turn loosely typed upstream values into the
  finite-or-None numbers the canonical models expect
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, ClassVar

import httpx
import structlog

from marketdata.data.models import (
    Bar,
    CompanyProfile,
    Operation,
    OptionsChain,
    PriceSeries,
    ProviderId,
    Quote,
)
from marketdata.errors import CapabilityError, UpstreamError

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0

_MISSING_MARKERS = {"", "none", "null", "-", "n/a", "nan"}


# ============================================================================
# Parsing Helpers
# ============================================================================


def to_float(value: Any) -> float | None:
    """Coerce an upstream value to a finite float.

    Accepts numbers and numeric strings, including percent strings such
    as ``"1.25%"``. Anything missing, unparseable or non-finite maps to None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        if text.lower() in _MISSING_MARKERS:
            return None
        value = text
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def require(payload: Mapping[str, Any] | None, key: str, *, provider: str, operation: str) -> Any:
    """Return ``payload[key]`` or raise UpstreamError if it is absent.

    Args:
        payload: Upstream object to read from.
        key: Required key.
        provider: Provider id, for the error.
        operation: Operation name, for the error.

    Raises:
        UpstreamError: If the payload is not a mapping or the key is missing/null.
    """
    if not isinstance(payload, Mapping):
        raise UpstreamError(
            f"{provider} {operation} response is missing the expected object",
            provider=provider,
            operation=operation,
        )
    value = payload.get(key)
    if value is None or value == "":
        raise UpstreamError(
            f"{provider} {operation} response is missing required field '{key}'",
            provider=provider,
            operation=operation,
            details={"field": key},
        )
    return value


def day_window(from_date: date, to_date: date) -> tuple[datetime, datetime]:
    """Inclusive calendar-day window as a half-open UTC instant range."""
    start = datetime.combine(from_date, time.min, tzinfo=UTC)
    end = datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=UTC)
    return start, end


def order_bars(
    bars: Iterable[Bar],
    window: tuple[datetime, datetime] | None = None,
) -> tuple[Bar, ...]:
    """Sort bars ascending, collapse duplicate timestamps and apply a window.

    When two bars share a timestamp the one seen last wins.
    """
    by_timestamp: dict[datetime, Bar] = {}
    for bar in bars:
        if window is not None and not (window[0] <= bar.timestamp < window[1]):
            continue
        by_timestamp[bar.timestamp] = bar
    return tuple(by_timestamp[ts] for ts in sorted(by_timestamp))


# ============================================================================
# Base Adapter
# ============================================================================


class ProviderClient(ABC):
    """Base class for upstream market data adapters.

    Subclasses translate one provider's response schema into canonical
    entities. This base owns the HTTP client, authentication hooks and the
    translation of transport and payload problems into UpstreamError.

    Example:
        async with FinnhubClient(api_key="...") as client:
            quote = await client.fetch_quote("AAPL")
    """

    provider_id: ClassVar[ProviderId]
    capabilities: ClassVar[frozenset[Operation]]
    DEFAULT_BASE_URL: ClassVar[str]
    API_KEY_ENV: ClassVar[str]

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: Provider API key. Absence only surfaces on first call.
            base_url: Override for the provider's base URL.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component=f"{self.provider_id.value}_client")

    @property
    def is_configured(self) -> bool:
        """Check if API key is configured."""
        return bool(self.api_key)

    def supports(self, operation: Operation) -> bool:
        """Whether this adapter advertises ``operation``."""
        return operation in self.capabilities

    def _auth_headers(self) -> dict[str, str]:
        """Headers carrying credentials, if the provider uses headers."""
        return {}

    def _auth_params(self) -> dict[str, str]:
        """Query parameters carrying credentials, if the provider uses them."""
        return {}

    def _check_payload(self, data: Any, operation: str) -> None:
        """Hook for providers that report errors inside a 200 response."""

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self._auth_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        *,
        operation: str,
    ) -> Any:
        """Make one authenticated GET request to the provider.

        Args:
            endpoint: Path appended to the base URL ("" for the base itself).
            params: Optional query parameters.
            operation: Operation name, carried on any error raised.

        Returns:
            Decoded JSON response.

        Raises:
            UpstreamError: On missing credentials, transport failure, timeout,
                non-200 status, undecodable body or provider error payload.
        """
        provider = self.provider_id.value
        if not self.api_key:
            raise UpstreamError(
                f"{self.API_KEY_ENV} not configured",
                provider=provider,
                operation=operation,
            )

        client = await self._get_client()
        url = f"{self.base_url}{endpoint}"
        query = {**(params or {}), **self._auth_params()}

        self._logger.debug("provider_request", endpoint=endpoint or "/", operation=operation)

        try:
            response = await client.get(url, params=query)
        except httpx.TimeoutException as e:
            self._logger.warning("provider_timeout", endpoint=endpoint, timeout=self.timeout)
            raise UpstreamError(
                f"{provider} request timed out after {self.timeout:g}s",
                provider=provider,
                operation=operation,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            self._logger.error("provider_client_error", endpoint=endpoint, error=str(e))
            raise UpstreamError(
                f"{provider} request failed: {e}",
                provider=provider,
                operation=operation,
                cause=e,
            ) from e

        if response.status_code in (401, 403):
            raise UpstreamError(
                f"{provider} rejected the API key (HTTP {response.status_code})",
                provider=provider,
                operation=operation,
                details={"status": response.status_code},
            )

        if response.status_code == 429:
            raise UpstreamError(
                f"{provider} rate limit exceeded",
                provider=provider,
                operation=operation,
                details={
                    "status": 429,
                    "retry_after": response.headers.get("Retry-After"),
                },
            )

        if response.status_code != 200:
            raise UpstreamError(
                f"{provider} API error {response.status_code}: {response.text[:200]}",
                provider=provider,
                operation=operation,
                details={"status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{provider} returned a non-JSON response",
                provider=provider,
                operation=operation,
                cause=e,
            ) from e

        self._check_payload(data, operation)
        self._logger.debug("provider_response", endpoint=endpoint or "/", status=response.status_code)
        return data

    @contextmanager
    def _translating(self, operation: str, symbol: str) -> Iterator[None]:
        """Turn schema surprises while building entities into UpstreamError."""
        try:
            yield
        except (
            KeyError,
            IndexError,
            TypeError,
            ValueError,
            AttributeError,
            OverflowError,
            OSError,
        ) as e:
            raise UpstreamError(
                f"Malformed {self.provider_id.value} {operation} payload for {symbol}: {e}",
                provider=self.provider_id.value,
                operation=operation,
                cause=e,
            ) from e

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch the latest quote for ``symbol``."""

    @abstractmethod
    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        """Fetch company reference data for ``symbol``."""

    @abstractmethod
    async def fetch_historical(
        self,
        symbol: str,
        interval: str,
        from_date: date,
        to_date: date,
    ) -> PriceSeries:
        """Fetch bars for ``symbol`` within the inclusive date window."""

    async def fetch_options_chain(self, symbol: str) -> OptionsChain:
        """Fetch the options chain for ``symbol``.

        Providers without the options capability keep this default.
        """
        raise CapabilityError(provider=self.provider_id.value, operation=Operation.OPTIONS.value)

    async def __aenter__(self) -> "ProviderClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
