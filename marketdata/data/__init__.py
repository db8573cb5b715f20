"""Data layer for market data integration.

This module provides:
- Provider adapters: FinnhubClient, AlphaVantageClient, PolygonClient
- MarketDataRouter: Provider selection with single-step fallback
- Canonical models: Quote, CompanyProfile, Bar, PriceSeries, OptionsChain
"""

from marketdata.data.alphavantage import AlphaVantageClient
from marketdata.data.base import ProviderClient
from marketdata.data.catalog import PROVIDER_CATALOG
from marketdata.data.finnhub import FinnhubClient
from marketdata.data.models import (
    Bar,
    CompanyProfile,
    IndicatorSet,
    Interval,
    MACDResult,
    Operation,
    OptionContract,
    OptionsChain,
    PriceSeries,
    ProviderId,
    ProviderInfo,
    Quote,
)
from marketdata.data.polygon import PolygonClient
from marketdata.data.router import FALLBACK_POLICY, MarketDataRouter

__all__ = [
    "AlphaVantageClient",
    "Bar",
    "CompanyProfile",
    "FALLBACK_POLICY",
    "FinnhubClient",
    "IndicatorSet",
    "Interval",
    "MACDResult",
    "MarketDataRouter",
    "Operation",
    "OptionContract",
    "OptionsChain",
    "PROVIDER_CATALOG",
    "PolygonClient",
    "PriceSeries",
    "ProviderClient",
    "ProviderId",
    "ProviderInfo",
    "Quote",
]
