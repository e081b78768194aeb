"""
Unified Logging Configuration

Sets up a single logging hierarchy for the gateway. Every module obtains its
logger from here rather than calling logging.getLogger() directly, so all
output shares one format and one level switch.

Usage:
    from core.logging import logger, get_logger

    logger.info("Gateway starting")

    log = get_logger(__name__)   # "tokengateway.<module>"
    log.debug("Cache hit: tokens")

Configuration:
    Log level is controlled by the LOG_LEVEL setting in the .env file
    (defaults to INFO).
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "tokengateway"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured application logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] tokengateway Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return app_logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger of the application logger.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "tokengateway.<name>"

    Example:
        # In providers/dex/api_client.py:
        logger = get_logger(__name__)
        logger.info("Fetching token list")
        # Output: ... [INFO] tokengateway.providers.dex.api_client Fetching token list
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an upstream API request with consistent formatting.

    Args:
        provider: Upstream provider name (e.g., "dex", "history")
        endpoint: API endpoint being called
        params: Request parameters (optional)

    Example:
        >>> log_api_request("history", "/data/v2/histoday", {"fsym": "TFUEL"})
        [DEBUG] API Request: history /data/v2/histoday | Params: {'fsym': 'TFUEL'}
    """
    if params:
        logger.debug(f"API Request: {provider} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an upstream API response with status and timing information.

    Args:
        provider: Upstream provider name
        endpoint: API endpoint
        status: HTTP status code
        response_time: Response time in seconds (optional)

    Example:
        >>> log_api_response("dex", "/tokens", 200, 0.342)
        [DEBUG] API Response: dex /tokens | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


logger.debug("Logging system initialized")
