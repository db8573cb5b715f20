"""Shared fixtures for market data tests."""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketdata.data.base import ProviderClient
from marketdata.data.models import (
    Bar,
    CompanyProfile,
    Operation,
    OptionsChain,
    PriceSeries,
    ProviderId,
    Quote,
)
from marketdata.data.router import MarketDataRouter

ALL_OPERATIONS = frozenset(Operation)
NO_OPTIONS = frozenset({Operation.QUOTE, Operation.PROFILE, Operation.HISTORICAL})


def make_adapter(
    provider_id: ProviderId,
    capabilities: Iterable[Operation] = ALL_OPERATIONS,
) -> MagicMock:
    """Build a mock adapter whose fetch methods succeed with canonical entities."""
    caps = frozenset(capabilities)
    adapter = MagicMock(spec=ProviderClient)
    adapter.provider_id = provider_id
    adapter.capabilities = caps
    adapter.supports.side_effect = lambda op: op in caps

    adapter.fetch_quote = AsyncMock(
        side_effect=lambda symbol: Quote(symbol=symbol, price=100.0, source=provider_id)
    )
    adapter.fetch_profile = AsyncMock(
        side_effect=lambda symbol: CompanyProfile(symbol=symbol, name="Test Co", source=provider_id)
    )
    adapter.fetch_historical = AsyncMock(
        side_effect=lambda symbol, interval, from_date, to_date: PriceSeries(
            symbol=symbol,
            interval=interval,
            data=tuple(
                Bar(timestamp=datetime(2024, 1, 1, tzinfo=UTC).replace(day=day), close=float(day))
                for day in range(1, 4)
            ),
            source=provider_id,
        )
    )
    adapter.fetch_options_chain = AsyncMock(
        side_effect=lambda symbol: OptionsChain(symbol=symbol, source=provider_id)
    )
    adapter.close = AsyncMock()
    return adapter


@pytest.fixture
def adapters() -> dict[ProviderId, MagicMock]:
    """Mock adapters with production capability sets."""
    return {
        ProviderId.FINNHUB: make_adapter(ProviderId.FINNHUB),
        ProviderId.ALPHAVANTAGE: make_adapter(ProviderId.ALPHAVANTAGE, NO_OPTIONS),
        ProviderId.POLYGON: make_adapter(ProviderId.POLYGON),
    }


@pytest.fixture
def make_router(
    adapters: dict[ProviderId, MagicMock],
) -> Callable[..., MarketDataRouter]:
    """Factory for routers over the mock adapters."""

    def _make(default: ProviderId = ProviderId.FINNHUB) -> MarketDataRouter:
        return MarketDataRouter(adapters, default_provider=default)

    return _make
