"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """CoinGecko market-data provider settings."""

    model_config = SettingsConfigDict(env_prefix="COINGECKO_")

    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: SecretStr = SecretStr("")  # optional demo key for higher limits
    user_agent: str = "CryptoPortfolio/1.0"
    history_days: int = 30
    history_timeout: float = 15.0  # seconds, OHLC endpoint
    metrics_timeout: float = 5.0  # seconds, coin detail endpoint
    price_timeout: float = 10.0  # seconds, simple price endpoint
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0


class RateGateSettings(BaseSettings):
    """Process-wide outbound call spacing for the shared provider."""

    model_config = SettingsConfigDict(env_prefix="RATE_GATE_")

    min_interval_seconds: float = 1.0
    # Callers allowed through even while another caller holds the intensive lock
    privileged_callers: list[str] = ["technical_analysis"]


class CacheSettings(BaseSettings):
    """Time-to-live per cached result kind, in seconds."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    ohlc_ttl: float = 30 * 60
    market_ttl: float = 15 * 60
    price_ttl: float = 2 * 60
    volume_ttl: float = 5 * 60


class AnalysisSettings(BaseSettings):
    """Analysis pipeline and watchlist scan configuration.

    All fields configurable via ANALYSIS_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="ANALYSIS_")

    max_concurrent_analyses: int = 4
    watchlist: list[str] = ["bitcoin", "ethereum", "solana"]
    scan_interval: int = 900  # seconds between watchlist scans
    synthetic_seed: int | None = None  # fixed seed for reproducible fallback data


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "127.0.0.1"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    provider: ProviderSettings = ProviderSettings()
    rate_gate: RateGateSettings = RateGateSettings()
    cache: CacheSettings = CacheSettings()
    analysis: AnalysisSettings = AnalysisSettings()
    api: ApiSettings = ApiSettings()
