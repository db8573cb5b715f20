"""Canonical data models shared by every provider adapter.

This module defines the provider-agnostic Pydantic models the gateway
returns regardless of which upstream served the request. Models are
frozen value objects with snake_case attributes and camelCase JSON aliases.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ProviderId(str, Enum):
    """Known upstream market data providers."""

    FINNHUB = "finnhub"
    ALPHAVANTAGE = "alphavantage"
    POLYGON = "polygon"


class Operation(str, Enum):
    """Operations a provider may support (its capability set)."""

    QUOTE = "quote"
    PROFILE = "profile"
    HISTORICAL = "historical"
    OPTIONS = "options"


class Interval(str, Enum):
    """Bar granularities accepted by the historical endpoint."""

    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    ONE_DAY = "1d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1M"


class CanonicalModel(BaseModel):
    """Base for all canonical entities."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Quote(CanonicalModel):
    """Latest quote for a symbol.

    Attributes:
        symbol: Stock ticker symbol.
        price: Current/last price.
        change: Absolute change from previous close.
        percent_change: Percentage change from previous close.
        high: Day high.
        low: Day low.
        open: Opening price.
        previous_close: Previous day's close.
        timestamp: When the quote was captured (not market time).
        source: Provider that served the quote.
    """

    symbol: str
    price: float
    change: float | None = None
    percent_change: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: ProviderId

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _utc(value)


class CompanyProfile(CanonicalModel):
    """Company reference data.

    Attributes:
        symbol: Stock ticker symbol.
        name: Company name.
        exchange: Listing exchange.
        industry: Industry classification.
        market_cap: Market capitalization as reported upstream.
        logo: Logo URL.
        weburl: Company website URL.
        source: Provider that served the profile.
    """

    symbol: str
    name: str | None = None
    exchange: str | None = None
    industry: str | None = None
    market_cap: float | None = None
    logo: str | None = None
    weburl: str | None = None
    source: ProviderId


class Bar(CanonicalModel):
    """OHLCV bar for one interval, stamped with its UTC start instant."""

    timestamp: datetime
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: float | None = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _utc(value)


class PriceSeries(CanonicalModel):
    """Ordered bars for a symbol.

    Bars are strictly ascending by timestamp. The series may be empty.
    """

    symbol: str
    interval: str
    data: tuple[Bar, ...] = ()
    source: ProviderId

    @model_validator(mode="after")
    def _check_ordering(self) -> "PriceSeries":
        for previous, current in zip(self.data, self.data[1:]):
            if current.timestamp <= previous.timestamp:
                raise ValueError(
                    "bars must be strictly ascending by timestamp "
                    f"({previous.timestamp.isoformat()} >= {current.timestamp.isoformat()})"
                )
        return self

    @property
    def closes(self) -> list[float]:
        """Closing prices in time order, skipping bars without a close."""
        return [bar.close for bar in self.data if bar.close is not None]


class OptionContract(CanonicalModel):
    """A single listed option contract."""

    type: Literal["call", "put"]
    contract_symbol: str = Field(alias="symbol")
    strike: float | None = None
    expiration: str
    last_price: float | None = None
    change: float | None = None
    volume: float | None = None
    open_interest: float | None = None
    implied_volatility: float | None = None


class OptionsChain(CanonicalModel):
    """Options chain for an underlying symbol.

    Attributes:
        symbol: Underlying ticker symbol.
        expiration_dates: Distinct expiration dates in first-seen order.
        options: Every contract across all expirations.
        source: Provider that served the chain.
    """

    symbol: str
    expiration_dates: tuple[str, ...] = ()
    options: tuple[OptionContract, ...] = ()
    source: ProviderId

    @field_validator("expiration_dates")
    @classmethod
    def _dedupe_expirations(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))


class MACDResult(CanonicalModel):
    """MACD values. Signal line and histogram are never populated."""

    macd_line: float | None = None
    signal_line: float | None = None
    histogram: float | None = None


class IndicatorSet(CanonicalModel):
    """Latest technical indicator values for a price series."""

    rsi: float | None = None
    ema_short: float | None = None
    ema_long: float | None = None
    macd: MACDResult = Field(default_factory=MACDResult)


class ProviderInfo(CanonicalModel):
    """Static catalog entry describing a provider."""

    id: ProviderId
    name: str
    description: str
    website: str
    features: tuple[str, ...] = ()
    capabilities: tuple[Operation, ...] = ()
