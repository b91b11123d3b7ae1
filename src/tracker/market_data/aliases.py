"""Static mapping from common tickers to CoinGecko coin ids."""

from types import MappingProxyType

ASSET_ALIASES: MappingProxyType[str, str] = MappingProxyType(
    {
        "btc": "bitcoin",
        "eth": "ethereum",
        "bnb": "binancecoin",
        "ada": "cardano",
        "sol": "solana",
        "avax": "avalanche-2",
        "link": "chainlink",
        "ltc": "litecoin",
        "arb": "arbitrum",
        "op": "optimism",
        "fet": "fetch-ai",
        "rndr": "render-token",
        "sui": "sui",
        "c": "celsius-degree-token",
    }
)


def normalize_asset_id(asset_id: str) -> str:
    """Map a ticker to its provider id; unknown ids pass through unchanged."""
    return ASSET_ALIASES.get(asset_id.strip().lower(), asset_id)
