"""Alpha Vantage API adapter.

Alpha Vantage serves everything from a single query endpoint selected by
the ``function`` parameter. Payloads use numbered string keys
(``"05. price"``) and date-string keyed time series, and report errors
inside HTTP 200 responses. Options chains are not available.
"""

from datetime import UTC, date, datetime
from typing import Any

from marketdata.data.base import (
    ProviderClient,
    day_window,
    order_bars,
    require,
    to_float,
)
from marketdata.data.models import (
    Bar,
    CompanyProfile,
    Operation,
    PriceSeries,
    ProviderId,
    Quote,
)
from marketdata.errors import UpstreamError

# "Global Quote" field → canonical Quote attribute
QUOTE_FIELDS = {
    "05. price": "price",
    "09. change": "change",
    "10. change percent": "percent_change",
    "03. high": "high",
    "04. low": "low",
    "02. open": "open",
    "08. previous close": "previous_close",
}

# Time series bar field → canonical Bar attribute
BAR_FIELDS = {
    "1. open": "open",
    "2. high": "high",
    "3. low": "low",
    "4. close": "close",
    "5. volume": "volume",
}

# Interval → (function, intraday interval, series key)
SERIES_MAP = {
    "1m": ("TIME_SERIES_INTRADAY", "1min", "Time Series (1min)"),
    "5m": ("TIME_SERIES_INTRADAY", "5min", "Time Series (5min)"),
    "15m": ("TIME_SERIES_INTRADAY", "15min", "Time Series (15min)"),
    "30m": ("TIME_SERIES_INTRADAY", "30min", "Time Series (30min)"),
    "1h": ("TIME_SERIES_INTRADAY", "60min", "Time Series (60min)"),
    "1d": ("TIME_SERIES_DAILY", None, "Time Series (Daily)"),
    "1w": ("TIME_SERIES_WEEKLY", None, "Weekly Time Series"),
    "1M": ("TIME_SERIES_MONTHLY", None, "Monthly Time Series"),
}
DEFAULT_SERIES = SERIES_MAP["1d"]

# Keys Alpha Vantage uses for error and throttling notices
ERROR_KEYS = ("Error Message", "Note", "Information")


class AlphaVantageClient(ProviderClient):
    """Async adapter for the Alpha Vantage query API.

    Supports quotes, company overviews and time series. No options.
    """

    provider_id = ProviderId.ALPHAVANTAGE
    capabilities = frozenset({Operation.QUOTE, Operation.PROFILE, Operation.HISTORICAL})
    DEFAULT_BASE_URL = "https://www.alphavantage.co/query"
    API_KEY_ENV = "ALPHA_VANTAGE_API_KEY"

    def _auth_params(self) -> dict[str, str]:
        return {"apikey": self.api_key or ""}

    def _check_payload(self, data: Any, operation: str) -> None:
        if not isinstance(data, dict):
            return
        for key in ERROR_KEYS:
            if key in data:
                raise UpstreamError(
                    f"alphavantage: {data[key]}",
                    provider=self.provider_id.value,
                    operation=operation,
                    details={"notice": key},
                )

    async def fetch_quote(self, symbol: str) -> Quote:
        """Get the current quote via ``GLOBAL_QUOTE``."""
        operation = Operation.QUOTE.value
        data = await self._request(
            "", {"function": "GLOBAL_QUOTE", "symbol": symbol}, operation=operation
        )

        with self._translating(operation, symbol):
            quote = data.get("Global Quote")
            if not quote:
                raise UpstreamError(
                    f"alphavantage returned no 'Global Quote' for {symbol}",
                    provider=self.provider_id.value,
                    operation=operation,
                )
            require(quote, "05. price", provider="alphavantage", operation=operation)
            values = {attr: to_float(quote.get(key)) for key, attr in QUOTE_FIELDS.items()}
            if values["price"] is None:
                raise UpstreamError(
                    f"alphavantage quote price for {symbol} is not a number",
                    provider=self.provider_id.value,
                    operation=operation,
                )
            return Quote(symbol=symbol, source=self.provider_id, **values)

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        """Get company reference data via ``OVERVIEW``.

        Alpha Vantage provides neither a logo nor a website.
        """
        operation = Operation.PROFILE.value
        data = await self._request(
            "", {"function": "OVERVIEW", "symbol": symbol}, operation=operation
        )

        with self._translating(operation, symbol):
            name = require(data, "Name", provider="alphavantage", operation=operation)
            return CompanyProfile(
                symbol=symbol,
                name=name,
                exchange=data.get("Exchange"),
                industry=data.get("Industry"),
                market_cap=to_float(data.get("MarketCapitalization")),
                logo=None,
                weburl=None,
                source=self.provider_id,
            )

    async def fetch_historical(
        self,
        symbol: str,
        interval: str,
        from_date: date,
        to_date: date,
    ) -> PriceSeries:
        """Get a time series and trim it to the requested window.

        Alpha Vantage returns its full history in descending date order, so
        filtering and ordering both happen here.
        """
        operation = Operation.HISTORICAL.value
        function, av_interval, series_key = SERIES_MAP.get(interval, DEFAULT_SERIES)
        params: dict[str, Any] = {
            "function": function,
            "symbol": symbol,
            "outputsize": "full",
        }
        if av_interval:
            params["interval"] = av_interval

        data = await self._request("", params, operation=operation)

        with self._translating(operation, symbol):
            series = require(data, series_key, provider="alphavantage", operation=operation)
            bars = [
                Bar(
                    timestamp=_parse_timestamp(stamp),
                    **{attr: to_float(values.get(key)) for key, attr in BAR_FIELDS.items()},
                )
                for stamp, values in series.items()
            ]
            return PriceSeries(
                symbol=symbol,
                interval=interval,
                data=order_bars(bars, window=day_window(from_date, to_date)),
                source=self.provider_id,
            )


def _parse_timestamp(stamp: str) -> datetime:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM-DD HH:MM:SS`` keys as UTC instants."""
    fmt = "%Y-%m-%d %H:%M:%S" if " " in stamp else "%Y-%m-%d"
    return datetime.strptime(stamp, fmt).replace(tzinfo=UTC)
