"""Tests for MarketDataRouter provider selection and fallback."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from marketdata.config import Settings
from marketdata.data.alphavantage import AlphaVantageClient
from marketdata.data.finnhub import FinnhubClient
from marketdata.data.models import Operation, ProviderId
from marketdata.data.polygon import PolygonClient
from marketdata.data.router import FALLBACK_POLICY, MarketDataRouter, parse_provider
from marketdata.errors import CapabilityError, UpstreamError, ValidationError


def _upstream(provider: ProviderId, message: str = "boom") -> UpstreamError:
    return UpstreamError(message, provider=provider.value, operation="quote")


class TestParseProvider:
    """Tests for parse_provider."""

    def test_none_and_empty(self) -> None:
        assert parse_provider(None) is None
        assert parse_provider("") is None

    def test_case_insensitive(self) -> None:
        assert parse_provider("Polygon") == ProviderId.POLYGON
        assert parse_provider(ProviderId.FINNHUB) == ProviderId.FINNHUB

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValidationError, match="Invalid provider 'bloomberg'") as exc_info:
            parse_provider("bloomberg")
        assert exc_info.value.field == "provider"


class TestFallbackPolicy:
    """Tests for the static fallback table."""

    def test_data_operations_alternate(self) -> None:
        for op in (Operation.QUOTE, Operation.PROFILE, Operation.HISTORICAL):
            assert FALLBACK_POLICY[op](ProviderId.FINNHUB) == ProviderId.ALPHAVANTAGE
            assert FALLBACK_POLICY[op](ProviderId.ALPHAVANTAGE) == ProviderId.FINNHUB
            assert FALLBACK_POLICY[op](ProviderId.POLYGON) == ProviderId.FINNHUB

    def test_options_fall_back_to_polygon(self) -> None:
        assert FALLBACK_POLICY[Operation.OPTIONS](ProviderId.FINNHUB) == ProviderId.POLYGON
        assert FALLBACK_POLICY[Operation.OPTIONS](ProviderId.POLYGON) is None


class TestMarketDataRouterInit:
    """Tests for router construction."""

    def test_missing_adapter(self, adapters: dict[ProviderId, MagicMock]) -> None:
        del adapters[ProviderId.POLYGON]
        with pytest.raises(ValueError, match="polygon"):
            MarketDataRouter(adapters)

    def test_default_provider_from_string(self, adapters: dict[ProviderId, MagicMock]) -> None:
        router = MarketDataRouter(adapters, default_provider="alphavantage")
        assert router.default_provider == ProviderId.ALPHAVANTAGE

    def test_from_settings(self) -> None:
        """Test adapters are built from settings."""
        settings = Settings(
            FINNHUB_API_KEY="fh",
            POLYGON_API_KEY="pg",
            DEFAULT_PROVIDER="polygon",
            REQUEST_TIMEOUT=3.0,
        )
        router = MarketDataRouter.from_settings(settings)

        assert router.default_provider == ProviderId.POLYGON
        finnhub = router.provider(ProviderId.FINNHUB)
        assert isinstance(finnhub, FinnhubClient)
        assert finnhub.api_key == "fh"
        assert finnhub.timeout == 3.0
        assert isinstance(router.provider(ProviderId.ALPHAVANTAGE), AlphaVantageClient)
        assert router.provider(ProviderId.ALPHAVANTAGE).is_configured is False
        assert isinstance(router.provider(ProviderId.POLYGON), PolygonClient)


class TestSelectProvider:
    """Tests for primary provider selection."""

    def test_default_when_unpinned(self, make_router) -> None:
        router = make_router()
        assert router.select_provider(Operation.QUOTE) == ProviderId.FINNHUB

    def test_pinned_capable_provider_wins(self, make_router) -> None:
        router = make_router()
        assert router.select_provider(Operation.QUOTE, "polygon") == ProviderId.POLYGON

    def test_pinned_incapable_provider_uses_default(self, make_router) -> None:
        router = make_router()
        assert router.select_provider(Operation.OPTIONS, "alphavantage") == ProviderId.FINNHUB

    def test_incapable_default_raises(self, make_router) -> None:
        router = make_router(default=ProviderId.ALPHAVANTAGE)
        with pytest.raises(CapabilityError):
            router.select_provider(Operation.OPTIONS)

    def test_unknown_provider(self, make_router) -> None:
        router = make_router()
        with pytest.raises(ValidationError):
            router.select_provider(Operation.QUOTE, "bloomberg")


class TestDispatch:
    """Tests for dispatch with single-step fallback."""

    @pytest.mark.asyncio
    async def test_primary_success_skips_fallback(self, adapters, make_router) -> None:
        """Test a successful default call never touches the alternate."""
        router = make_router()
        quote = await router.get_quote("AAPL")

        assert quote.source == ProviderId.FINNHUB
        adapters[ProviderId.FINNHUB].fetch_quote.assert_awaited_once_with("AAPL")
        adapters[ProviderId.ALPHAVANTAGE].fetch_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_default_failure_falls_back_once(self, adapters, make_router) -> None:
        """Test the alternate serves the request after the default fails."""
        adapters[ProviderId.FINNHUB].fetch_quote.side_effect = _upstream(ProviderId.FINNHUB)
        router = make_router()

        quote = await router.get_quote("AAPL")

        assert quote.source == ProviderId.ALPHAVANTAGE
        adapters[ProviderId.FINNHUB].fetch_quote.assert_awaited_once()
        adapters[ProviderId.ALPHAVANTAGE].fetch_quote.assert_awaited_once_with("AAPL")
        adapters[ProviderId.POLYGON].fetch_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_default_is_eligible_for_fallback(self, adapters, make_router) -> None:
        adapters[ProviderId.FINNHUB].fetch_profile.side_effect = _upstream(ProviderId.FINNHUB)
        router = make_router()

        profile = await router.get_profile("AAPL", provider="finnhub")

        assert profile.source == ProviderId.ALPHAVANTAGE

    @pytest.mark.asyncio
    async def test_fallback_failure_raises_alternate_error(self, adapters, make_router) -> None:
        """Test the alternate's error propagates with the primary error recorded."""
        adapters[ProviderId.FINNHUB].fetch_quote.side_effect = _upstream(
            ProviderId.FINNHUB, "finnhub down"
        )
        adapters[ProviderId.ALPHAVANTAGE].fetch_quote.side_effect = _upstream(
            ProviderId.ALPHAVANTAGE, "alphavantage throttled"
        )
        router = make_router()

        with pytest.raises(UpstreamError, match="alphavantage throttled") as exc_info:
            await router.get_quote("AAPL")

        assert exc_info.value.provider == "alphavantage"
        assert exc_info.value.details["primary_error"] == "finnhub down"
        adapters[ProviderId.FINNHUB].fetch_quote.assert_awaited_once()
        adapters[ProviderId.ALPHAVANTAGE].fetch_quote.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pinned_failure_does_not_fall_back(self, adapters, make_router) -> None:
        """Test a pinned non-default provider's failure is final."""
        adapters[ProviderId.POLYGON].fetch_quote.side_effect = _upstream(ProviderId.POLYGON)
        router = make_router()

        with pytest.raises(UpstreamError):
            await router.get_quote("AAPL", provider="polygon")

        adapters[ProviderId.FINNHUB].fetch_quote.assert_not_awaited()
        adapters[ProviderId.ALPHAVANTAGE].fetch_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_historical_passes_arguments(self, adapters, make_router) -> None:
        adapters[ProviderId.FINNHUB].fetch_historical.side_effect = _upstream(ProviderId.FINNHUB)
        router = make_router()

        series = await router.get_historical("AAPL", "1d", date(2024, 1, 1), date(2024, 1, 3))

        assert series.source == ProviderId.ALPHAVANTAGE
        adapters[ProviderId.ALPHAVANTAGE].fetch_historical.assert_awaited_once_with(
            "AAPL", "1d", date(2024, 1, 1), date(2024, 1, 3)
        )

    @pytest.mark.asyncio
    async def test_options_fall_back_to_polygon(self, adapters, make_router) -> None:
        adapters[ProviderId.FINNHUB].fetch_options_chain.side_effect = _upstream(ProviderId.FINNHUB)
        router = make_router()

        chain = await router.get_options_chain("AAPL")

        assert chain.source == ProviderId.POLYGON
        adapters[ProviderId.ALPHAVANTAGE].fetch_options_chain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_polygon_default_has_no_options_fallback(self, adapters, make_router) -> None:
        adapters[ProviderId.POLYGON].fetch_options_chain.side_effect = _upstream(ProviderId.POLYGON)
        router = make_router(default=ProviderId.POLYGON)

        with pytest.raises(UpstreamError):
            await router.get_options_chain("AAPL")

        adapters[ProviderId.FINNHUB].fetch_options_chain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_polygon_default_quote_falls_back_to_finnhub(self, adapters, make_router) -> None:
        adapters[ProviderId.POLYGON].fetch_quote.side_effect = _upstream(ProviderId.POLYGON)
        router = make_router(default=ProviderId.POLYGON)

        quote = await router.get_quote("AAPL")

        assert quote.source == ProviderId.FINNHUB

    @pytest.mark.asyncio
    async def test_incapable_pin_routes_to_default(self, adapters, make_router) -> None:
        """Test pinning alphavantage for options uses the default instead."""
        router = make_router()

        chain = await router.get_options_chain("AAPL", provider="alphavantage")

        assert chain.source == ProviderId.FINNHUB
        adapters[ProviderId.ALPHAVANTAGE].fetch_options_chain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_capability_error_not_caught(self, adapters, make_router) -> None:
        router = make_router(default=ProviderId.ALPHAVANTAGE)

        with pytest.raises(CapabilityError):
            await router.get_options_chain("AAPL")

        for adapter in adapters.values():
            adapter.fetch_options_chain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, adapters, make_router) -> None:
        """Test only upstream errors trigger fallback."""
        adapters[ProviderId.FINNHUB].fetch_quote.side_effect = RuntimeError("bug")
        router = make_router()

        with pytest.raises(RuntimeError):
            await router.get_quote("AAPL")

        adapters[ProviderId.ALPHAVANTAGE].fetch_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_closes_all_adapters(self, adapters, make_router) -> None:
        router = make_router()
        await router.close()

        for adapter in adapters.values():
            adapter.close.assert_awaited_once()
