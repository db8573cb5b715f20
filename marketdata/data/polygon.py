"""Polygon.io API adapter.

This module provides an async adapter for the Polygon.io REST API
with support for snapshot quotes, ticker reference data, aggregate bars
and options contract reference data.
"""

from datetime import UTC, date, datetime
from typing import Any

from marketdata.data.base import ProviderClient, order_bars, require, to_float
from marketdata.data.models import (
    Bar,
    CompanyProfile,
    OptionContract,
    OptionsChain,
    Operation,
    PriceSeries,
    ProviderId,
    Quote,
)
from marketdata.errors import UpstreamError

# Interval → (multiplier, timespan) for the aggregates endpoint
TIMESPAN_MAP = {
    "1m": (1, "minute"),
    "5m": (5, "minute"),
    "15m": (15, "minute"),
    "30m": (30, "minute"),
    "1h": (1, "hour"),
    "1d": (1, "day"),
    "1w": (1, "week"),
    "1M": (1, "month"),
}
DEFAULT_TIMESPAN = (1, "day")

OPTIONS_CONTRACT_LIMIT = 1000


class PolygonClient(ProviderClient):
    """Async adapter for the Polygon.io REST API.

    Example:
        client = PolygonClient(api_key="...")
        quote = await client.fetch_quote("AAPL")
        print(f"AAPL: ${quote.price}")
    """

    provider_id = ProviderId.POLYGON
    capabilities = frozenset(
        {Operation.QUOTE, Operation.PROFILE, Operation.HISTORICAL, Operation.OPTIONS}
    )
    DEFAULT_BASE_URL = "https://api.polygon.io"
    API_KEY_ENV = "POLYGON_API_KEY"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key or ''}"}

    async def fetch_quote(self, symbol: str) -> Quote:
        """Get the current snapshot for a ticker.

        Uses the /v2/snapshot/locale/us/markets/stocks/tickers/{symbol} endpoint.
        """
        operation = Operation.QUOTE.value
        data = await self._request(
            f"/v2/snapshot/locale/us/markets/stocks/tickers/{symbol}", operation=operation
        )

        with self._translating(operation, symbol):
            ticker = require(data, "ticker", provider="polygon", operation=operation)
            last_trade = ticker.get("lastTrade") or {}
            day = ticker.get("day") or {}
            prev_day = ticker.get("prevDay") or {}

            price = to_float(last_trade.get("p"))
            if price is None:
                # Outside market hours the last trade can be absent; fall back to the day close
                price = to_float(day.get("c"))
            if price is None:
                raise UpstreamError(
                    f"polygon snapshot for {symbol} has no last trade price",
                    provider=self.provider_id.value,
                    operation=operation,
                )

            return Quote(
                symbol=symbol,
                price=price,
                change=to_float(ticker.get("todaysChange")),
                percent_change=to_float(ticker.get("todaysChangePerc")),
                high=to_float(day.get("h")),
                low=to_float(day.get("l")),
                open=to_float(day.get("o")),
                previous_close=to_float(prev_day.get("c")),
                source=self.provider_id,
            )

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        """Get ticker reference data.

        Uses the /v3/reference/tickers/{symbol} endpoint.
        """
        operation = Operation.PROFILE.value
        data = await self._request(f"/v3/reference/tickers/{symbol}", operation=operation)

        with self._translating(operation, symbol):
            result = require(data, "results", provider="polygon", operation=operation)
            name = require(result, "name", provider="polygon", operation=operation)
            branding = result.get("branding") or {}
            return CompanyProfile(
                symbol=symbol,
                name=name,
                exchange=result.get("primary_exchange"),
                industry=result.get("sic_description"),
                market_cap=to_float(result.get("market_cap")),
                logo=branding.get("logo_url"),
                weburl=result.get("homepage_url"),
                source=self.provider_id,
            )

    async def fetch_historical(
        self,
        symbol: str,
        interval: str,
        from_date: date,
        to_date: date,
    ) -> PriceSeries:
        """Get aggregate bars.

        Uses the /v2/aggs/ticker/{symbol}/range endpoint, which filters to
        the date window itself. Timestamps arrive as epoch milliseconds.
        """
        operation = Operation.HISTORICAL.value
        multiplier, timespan = TIMESPAN_MAP.get(interval, DEFAULT_TIMESPAN)
        endpoint = (
            f"/v2/aggs/ticker/{symbol}/range/{multiplier}/{timespan}"
            f"/{from_date.isoformat()}/{to_date.isoformat()}"
        )
        data = await self._request(
            endpoint, {"adjusted": "true", "sort": "asc", "limit": 50000}, operation=operation
        )

        with self._translating(operation, symbol):
            bars = [
                Bar(
                    timestamp=datetime.fromtimestamp(item["t"] / 1000, tz=UTC),
                    open=to_float(item.get("o")),
                    high=to_float(item.get("h")),
                    low=to_float(item.get("l")),
                    close=to_float(item.get("c")),
                    volume=to_float(item.get("v")),
                )
                for item in data.get("results") or []
            ]
            return PriceSeries(
                symbol=symbol,
                interval=interval,
                data=order_bars(bars),
                source=self.provider_id,
            )

    async def fetch_options_chain(self, symbol: str) -> OptionsChain:
        """Get options contracts listed as of today.

        Uses the /v3/reference/options/contracts endpoint. This is reference
        data only, so pricing and activity fields are always None.
        """
        operation = Operation.OPTIONS.value
        params = {
            "underlying_ticker": symbol,
            "as_of": datetime.now(UTC).date().isoformat(),
            "limit": OPTIONS_CONTRACT_LIMIT,
        }
        data = await self._request("/v3/reference/options/contracts", params, operation=operation)

        with self._translating(operation, symbol):
            results = require(data, "results", provider="polygon", operation=operation)
            contracts = [_contract(item) for item in results]
            return OptionsChain(
                symbol=symbol,
                expiration_dates=tuple(c.expiration for c in contracts),
                options=tuple(contracts),
                source=self.provider_id,
            )


def _contract(item: dict[str, Any]) -> OptionContract:
    return OptionContract(
        type=item["contract_type"].lower(),
        contract_symbol=item["ticker"],
        strike=to_float(item.get("strike_price")),
        expiration=item["expiration_date"],
    )
