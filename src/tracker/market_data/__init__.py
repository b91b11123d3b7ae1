"""Market data layer.

Provides the CoinGecko client, the TTL result cache, the synthetic
fallback generator and the MarketDataFetcher that ties them together
behind the shared rate gate.
"""

from tracker.market_data.aliases import ASSET_ALIASES, normalize_asset_id
from tracker.market_data.cache import CacheKind, CacheStats, ResultCache
from tracker.market_data.client import CoinGeckoClient, ProviderResponse
from tracker.market_data.fetcher import MarketDataFetcher
from tracker.market_data.synthetic import generate_synthetic_history

__all__ = [
    "ASSET_ALIASES",
    "CacheKind",
    "CacheStats",
    "CoinGeckoClient",
    "MarketDataFetcher",
    "ProviderResponse",
    "ResultCache",
    "generate_synthetic_history",
    "normalize_asset_id",
]
