"""Finnhub API adapter.

Translates Finnhub's REST responses (flat quote object, parallel-array
candles, nested option chain) into canonical entities.
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
    OptionContract,
    OptionsChain,
    Operation,
    PriceSeries,
    ProviderId,
    Quote,
)
from marketdata.errors import UpstreamError

# Interval → Finnhub candle resolution
RESOLUTION_MAP = {
    "1m": "1",
    "5m": "5",
    "15m": "15",
    "30m": "30",
    "1h": "60",
    "1d": "D",
    "1w": "W",
    "1M": "M",
}
DEFAULT_RESOLUTION = "D"


class FinnhubClient(ProviderClient):
    """Async adapter for the Finnhub REST API.

    Supports quotes, company profiles, candles and option chains.
    """

    provider_id = ProviderId.FINNHUB
    capabilities = frozenset(
        {Operation.QUOTE, Operation.PROFILE, Operation.HISTORICAL, Operation.OPTIONS}
    )
    DEFAULT_BASE_URL = "https://finnhub.io/api/v1"
    API_KEY_ENV = "FINNHUB_API_KEY"

    def _auth_headers(self) -> dict[str, str]:
        return {"X-Finnhub-Token": self.api_key or ""}

    async def fetch_quote(self, symbol: str) -> Quote:
        """Get the current quote from ``/quote``.

        Finnhub answers unknown symbols with an all-zero payload, which is
        treated as a missing quote.
        """
        operation = Operation.QUOTE.value
        data = await self._request("/quote", {"symbol": symbol}, operation=operation)

        with self._translating(operation, symbol):
            price = to_float(require(data, "c", provider="finnhub", operation=operation))
            if price is None or (price == 0 and not data.get("t")):
                raise UpstreamError(
                    f"No finnhub quote available for {symbol}",
                    provider=self.provider_id.value,
                    operation=operation,
                )
            return Quote(
                symbol=symbol,
                price=price,
                change=to_float(data.get("d")),
                percent_change=to_float(data.get("dp")),
                high=to_float(data.get("h")),
                low=to_float(data.get("l")),
                open=to_float(data.get("o")),
                previous_close=to_float(data.get("pc")),
                source=self.provider_id,
            )

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        """Get company reference data from ``/stock/profile2``."""
        operation = Operation.PROFILE.value
        data = await self._request("/stock/profile2", {"symbol": symbol}, operation=operation)

        with self._translating(operation, symbol):
            name = require(data, "name", provider="finnhub", operation=operation)
            return CompanyProfile(
                symbol=symbol,
                name=name,
                exchange=data.get("exchange"),
                industry=data.get("finnhubIndustry"),
                market_cap=to_float(data.get("marketCapitalization")),
                logo=data.get("logo") or None,
                weburl=data.get("weburl") or None,
                source=self.provider_id,
            )

    async def fetch_historical(
        self,
        symbol: str,
        interval: str,
        from_date: date,
        to_date: date,
    ) -> PriceSeries:
        """Get candles from ``/stock/candle``.

        The window is sent as epoch seconds; the end of ``to_date`` is
        included.
        """
        operation = Operation.HISTORICAL.value
        start, end = day_window(from_date, to_date)
        params = {
            "symbol": symbol,
            "resolution": RESOLUTION_MAP.get(interval, DEFAULT_RESOLUTION),
            "from": int(start.timestamp()),
            "to": int(end.timestamp()) - 1,
        }
        data = await self._request("/stock/candle", params, operation=operation)

        with self._translating(operation, symbol):
            status = data.get("s")
            if status == "no_data":
                return PriceSeries(symbol=symbol, interval=interval, source=self.provider_id)
            if status != "ok":
                raise UpstreamError(
                    f"finnhub candle status '{status}' for {symbol}",
                    provider=self.provider_id.value,
                    operation=operation,
                )

            timestamps = require(data, "t", provider="finnhub", operation=operation)
            bars = [
                Bar(
                    timestamp=datetime.fromtimestamp(ts, tz=UTC),
                    open=to_float(_at(data, "o", i)),
                    high=to_float(_at(data, "h", i)),
                    low=to_float(_at(data, "l", i)),
                    close=to_float(_at(data, "c", i)),
                    volume=to_float(_at(data, "v", i)),
                )
                for i, ts in enumerate(timestamps)
            ]
            return PriceSeries(
                symbol=symbol,
                interval=interval,
                data=order_bars(bars),
                source=self.provider_id,
            )

    async def fetch_options_chain(self, symbol: str) -> OptionsChain:
        """Get the option chain from ``/stock/option-chain``."""
        operation = Operation.OPTIONS.value
        data = await self._request("/stock/option-chain", {"symbol": symbol}, operation=operation)

        with self._translating(operation, symbol):
            expiries = require(data, "data", provider="finnhub", operation=operation)
            expiration_dates: list[str] = []
            contracts: list[OptionContract] = []
            for expiry in expiries:
                expiration = expiry["expirationDate"]
                expiration_dates.append(expiration)
                options = expiry.get("options") or {}
                for kind, key in (("call", "CALL"), ("put", "PUT")):
                    for item in options.get(key) or []:
                        contracts.append(_contract(kind, item, expiration))

            return OptionsChain(
                symbol=symbol,
                expiration_dates=tuple(expiration_dates),
                options=tuple(contracts),
                source=self.provider_id,
            )


def _at(data: dict[str, Any], key: str, index: int) -> Any:
    values = data.get(key) or []
    return values[index] if index < len(values) else None


def _contract(kind: str, item: dict[str, Any], expiration: str) -> OptionContract:
    return OptionContract(
        type=kind,
        contract_symbol=item["contractName"],
        strike=to_float(item.get("strike")),
        expiration=expiration,
        last_price=to_float(item.get("lastPrice")),
        change=to_float(item.get("change")),
        volume=to_float(item.get("volume")),
        open_interest=to_float(item.get("openInterest")),
        implied_volatility=to_float(item.get("impliedVolatility")),
    )
