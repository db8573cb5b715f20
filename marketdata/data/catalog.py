"""Static catalog of supported providers, served by ``/providers``."""

from marketdata.data.alphavantage import AlphaVantageClient
from marketdata.data.finnhub import FinnhubClient
from marketdata.data.models import Operation, ProviderId, ProviderInfo
from marketdata.data.polygon import PolygonClient

_FEATURE_LABELS = {
    Operation.QUOTE: "Stock quotes",
    Operation.PROFILE: "Company profiles",
    Operation.HISTORICAL: "Historical data",
    Operation.OPTIONS: "Options chain",
}


def _entry(
    provider_id: ProviderId,
    name: str,
    description: str,
    website: str,
    capabilities: frozenset[Operation],
) -> ProviderInfo:
    ordered = tuple(op for op in Operation if op in capabilities)
    return ProviderInfo(
        id=provider_id,
        name=name,
        description=description,
        website=website,
        features=tuple(_FEATURE_LABELS[op] for op in ordered),
        capabilities=ordered,
    )


PROVIDER_CATALOG: tuple[ProviderInfo, ...] = (
    _entry(
        ProviderId.FINNHUB,
        "Finnhub",
        "Real-time RESTful APIs for global market data",
        "https://finnhub.io/",
        FinnhubClient.capabilities,
    ),
    _entry(
        ProviderId.ALPHAVANTAGE,
        "Alpha Vantage",
        "Free APIs for realtime and historical stock data",
        "https://www.alphavantage.co/",
        AlphaVantageClient.capabilities,
    ),
    _entry(
        ProviderId.POLYGON,
        "Polygon.io",
        "Financial market data platform",
        "https://polygon.io/",
        PolygonClient.capabilities,
    ),
)
