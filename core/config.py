"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Upstream provider endpoints, timeouts and credentials
- Cache tuning (per-key-kind TTLs, capacity, negative-result TTL)
- Bounded retry policy for transient upstream failures
- Converts comma-separated strings to lists (CORS origins)

Usage:
    from core.config import settings

    print(settings.dex_base_url)
    print(settings.token_list_ttl)
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.
    TTLs, capacity and retry counts are deployment-tunable; the defaults below
    are starting points, not constants the gateway relies on.

    Attributes:
        dex_base_url: Base URL of the DEX token/price API
        dex_timeout: Per-request timeout for the DEX API (seconds)
        history_base_url: Base URL of the historical price API
        history_api_key: Optional API key for the historical price API
        history_quote_currency: Quote currency for historical prices (e.g., "USD")
        history_timeout: Per-request timeout for the historical price API (seconds)
        history_max_points: Largest series a single history request may cover
        token_list_ttl: Freshness window for the token list (seconds)
        history_open_ttl: Freshness window for series covering the current period
        history_closed_ttl: Freshness window for series entirely in the past
        negative_ttl: Freshness window for cached "symbol not found" results
        cache_capacity: Maximum number of cache entries before LRU eviction
        upstream_retry_attempts: Total attempts per fetch (1 = no retry)
        upstream_retry_backoff: Base delay between retry attempts (seconds)
        token_refresh_interval: Proactive token list refresh period (0 = disabled)
    """

    # ============================================
    # DEX Token API Configuration
    # ============================================

    dex_base_url: str = Field(
        default="https://api.thetaswap.io/v1",
        description="DEX token/price API base URL"
    )

    dex_timeout: float = Field(
        default=5.0,
        description="DEX API request timeout in seconds"
    )

    # ============================================
    # Historical Price API Configuration
    # ============================================

    history_base_url: str = Field(
        default="https://min-api.cryptocompare.com",
        description="Historical price API base URL"
    )

    history_api_key: str = Field(
        default="",
        description="Historical price API key (optional)"
    )

    history_quote_currency: str = Field(
        default="USD",
        description="Quote currency used for historical price series"
    )

    history_timeout: float = Field(
        default=5.0,
        description="Historical price API request timeout in seconds"
    )

    history_max_points: int = Field(
        default=2000,
        description="Maximum number of points a single history request may span"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # CORS Configuration
    # ============================================

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Caching Configuration
    # ============================================

    token_list_ttl: int = Field(
        default=60,
        description="Token list freshness window in seconds"
    )

    history_open_ttl: int = Field(
        default=60,
        description="Freshness window for history covering the current period (seconds)"
    )

    history_closed_ttl: int = Field(
        default=86_400,
        description="Freshness window for history entirely in the past (seconds)"
    )

    negative_ttl: int = Field(
        default=300,
        description="Freshness window for cached unknown-symbol results (seconds)"
    )

    cache_capacity: int = Field(
        default=512,
        description="Maximum cache entries before least-recently-used eviction"
    )

    token_refresh_interval: int = Field(
        default=0,
        description="Background token list refresh period in seconds (0 = disabled)"
    )

    # ============================================
    # Retry Policy
    # ============================================

    upstream_retry_attempts: int = Field(
        default=1,
        description="Total attempts per upstream fetch for transient failures (1 = no retry)"
    )

    upstream_retry_backoff: float = Field(
        default=0.5,
        description="Base backoff between attempts; attempt n waits backoff * n seconds"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Example:
            >>> settings.cors_origins_list
            ['http://localhost:3000', 'http://localhost:5173']
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def refresh_enabled(self) -> bool:
        """True when the background token list refresher should run."""
        return self.token_refresh_interval > 0

    def get_history_headers(self) -> dict:
        """
        Get HTTP headers for historical price API requests.

        Returns:
            Dictionary of headers including the API key if configured
        """
        headers = {"Accept": "application/json"}

        if self.history_api_key:
            headers["authorization"] = f"Apikey {self.history_api_key}"

        return headers


# ============================================
# Global Settings Instance
# ============================================

# Loaded once at import and reused; tests build their own Settings(...) instances
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = settings) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings instance to validate (defaults to the global settings)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # logging.py imports config.py, so the logger is imported lazily
    from core.logging import logger

    for name in ("dex_base_url", "history_base_url"):
        url = getattr(config, name)
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"{name.upper()} must be an http(s) URL, got '{url}'")

    for name in ("dex_timeout", "history_timeout"):
        if getattr(config, name) <= 0:
            raise ValueError(f"{name.upper()} must be positive")

    for name in ("token_list_ttl", "history_open_ttl", "history_closed_ttl", "negative_ttl"):
        if getattr(config, name) <= 0:
            raise ValueError(f"{name.upper()} must be a positive number of seconds")

    if config.cache_capacity < 1:
        raise ValueError(f"Invalid CACHE_CAPACITY: {config.cache_capacity}. Must be at least 1")

    if not (1 <= config.upstream_retry_attempts <= 5):
        raise ValueError(
            f"Invalid UPSTREAM_RETRY_ATTEMPTS: {config.upstream_retry_attempts}. "
            f"Must be between 1 and 5"
        )

    if config.upstream_retry_backoff < 0:
        raise ValueError("UPSTREAM_RETRY_BACKOFF cannot be negative")

    if config.history_max_points < 1:
        raise ValueError("HISTORY_MAX_POINTS must be at least 1")

    if config.token_refresh_interval < 0:
        raise ValueError("TOKEN_REFRESH_INTERVAL cannot be negative")

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"DEX API: {config.dex_base_url} (timeout {config.dex_timeout}s)")
    logger.info(f"History API: {config.history_base_url} (timeout {config.history_timeout}s)")
    logger.info(
        f"Cache: capacity={config.cache_capacity} tokens_ttl={config.token_list_ttl}s "
        f"history_ttl={config.history_open_ttl}s/{config.history_closed_ttl}s"
    )
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
