"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """SQLite storage location for candles and drawings."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = "data/replay.db"


class MarketDataSettings(BaseSettings):
    """Upstream market-data source and backfill pacing.

    All fields configurable via MARKET_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="MARKET_")

    exchange_id: str = "binance"
    timeout_ms: int = 20_000
    page_limit: int = 1000  # Binance klines max per request
    lookback_days: int = 730  # two years of history
    max_retries: int = 3
    retry_base_delay: float = 1.0


class ApiSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 3001


class ChartSettings(BaseSettings):
    """Client-side chart session configuration.

    Controls the backend URL, the default symbol and interval, EMA periods,
    hit-test tolerances, replay defaults, and trade-plan placement.
    All fields configurable via CHART_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="CHART_")

    api_url: str = "http://localhost:3001"
    symbol: str = "BTCUSDT"
    default_interval: Literal["5m", "15m", "1h", "4h", "1D", "1W", "1M"] = "15m"
    ema_periods: str = "20,50,200"
    request_timeout: float = 30.0

    # Hit testing (pixels)
    hit_tolerance_px: float = 7.0
    handle_tolerance_px: float = 10.0

    # Replay
    default_speed: int = 2
    follow_half_window: int = 70  # logical bars either side of the replay cursor

    # Trade plan defaults for the long/short tools
    trade_plan_risk_pct: float = 0.01
    trade_plan_bars: int = 40


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    database: DatabaseSettings = DatabaseSettings()
    market: MarketDataSettings = MarketDataSettings()
    api: ApiSettings = ApiSettings()
    chart: ChartSettings = ChartSettings()
