"""
Gateway configuration.

Environment Variables:
    MARKETGATE_FRESH_TTL: Seconds a cached response is served as fresh (30)
    MARKETGATE_STALE_TTL: Seconds a cached response backs up failures (300)
    MARKETGATE_CACHE_MAX_ENTRIES: Size that triggers eviction (200)
    MARKETGATE_MIN_CALL_INTERVAL: Seconds between primary data calls (3)
    MARKETGATE_REQUEST_TIMEOUT: Per-request HTTP timeout in seconds (10)
    MARKETGATE_LOG_LEVEL: Logging level for the API server (INFO)
    ALPACA_DATA_FEED: "iex" (free) or "sip" (paid)
    ALPACA_OPTIONS_FEED: "indicative" (free) or "opra" (paid)
"""

from __future__ import annotations

import os

import msgspec


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e



class GatewayConfig(msgspec.Struct, frozen=True, kw_only=True):
    """
    Gateway-wide settings.

    Attributes:
        fresh_ttl: Fresh tier lifetime (seconds)
        stale_ttl: Stale tier lifetime (seconds)
        cache_max_entries: Cache size above which expired entries are evicted
        min_call_interval: Minimum spacing of primary quote/bar calls (seconds)
        request_timeout: HTTP timeout per upstream request (seconds)
        data_feed: Alpaca stock data feed ("iex" or "sip")
        options_feed: Alpaca options data feed ("indicative" or "opra")
        options_max_pages: Upper bound on chain pages fetched per request
        yahoo_base_url: Fallback chart endpoint base
        log_level: Logging level name for the API server

    Example:
        config = GatewayConfig.from_env()
        router = RequestRouter.from_config(config)
    """

    fresh_ttl: float = 30.0
    stale_ttl: float = 300.0
    cache_max_entries: int = 200
    min_call_interval: float = 3.0
    request_timeout: float = 10.0
    data_feed: str = "iex"
    options_feed: str = "indicative"
    options_max_pages: int = 5
    yahoo_base_url: str = "https://query1.finance.yahoo.com"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.fresh_ttl <= 0:
            raise ValueError("fresh_ttl must be positive")
        if self.stale_ttl < self.fresh_ttl:
            raise ValueError("stale_ttl must be at least fresh_ttl")
        if self.cache_max_entries <= 0:
            raise ValueError("cache_max_entries must be positive")
        if self.min_call_interval < 0:
            raise ValueError("min_call_interval must not be negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.data_feed not in ("iex", "sip"):
            raise ValueError(f"Invalid data_feed: {self.data_feed}. Must be 'iex' or 'sip'")
        if self.options_feed not in ("indicative", "opra"):
            raise ValueError(
                f"Invalid options_feed: {self.options_feed}. Must be 'indicative' or 'opra'"
            )
        if self.options_max_pages <= 0:
            raise ValueError("options_max_pages must be positive")

    @classmethod
    def from_env(cls) -> GatewayConfig:
        """Create config from environment variables."""
        return cls(
            fresh_ttl=_env_float("MARKETGATE_FRESH_TTL", 30.0),
            stale_ttl=_env_float("MARKETGATE_STALE_TTL", 300.0),
            cache_max_entries=int(_env_float("MARKETGATE_CACHE_MAX_ENTRIES", 200)),
            min_call_interval=_env_float("MARKETGATE_MIN_CALL_INTERVAL", 3.0),
            request_timeout=_env_float("MARKETGATE_REQUEST_TIMEOUT", 10.0),
            data_feed=os.environ.get("ALPACA_DATA_FEED", "iex"),
            options_feed=os.environ.get("ALPACA_OPTIONS_FEED", "indicative"),
            log_level=os.environ.get("MARKETGATE_LOG_LEVEL", "INFO").upper(),
        )
