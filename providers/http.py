"""
Shared aiohttp plumbing for upstream provider clients.

Every provider client needs the same things from HTTP:
- One aiohttp session per client, opened in initialize() / ``async with``
- A bounded per-request timeout
- Exactly one attempt per call (retries are the gateway's job)
- Failures mapped into the gateway's error taxonomy:
    timeout / connection error / non-2xx  → UpstreamUnavailable
    body that is not JSON                 → UpstreamMalformed

JSON is decoded with ``parse_float=Decimal`` so prices arrive exactly as the
provider printed them.
"""

import asyncio
import functools
import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import aiohttp

from core.errors import UpstreamError, UpstreamMalformed, UpstreamUnavailable
from core.logging import get_logger, log_api_request, log_api_response

_decimal_loads = functools.partial(json.loads, parse_float=Decimal)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a provider number (Decimal, int or numeric string) to Decimal.

    Raises:
        ValueError: For None, booleans, non-finite or non-numeric values
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


class HTTPProviderClient:
    """
    Base class for aiohttp-backed provider clients.

    Subclasses set ``name`` and ``health_path`` and call ``_get`` from their
    fetch methods.

    Attributes:
        base_url: Provider base URL without trailing slash
        timeout: Total per-request timeout in seconds
        headers: Headers sent with every request
        session: aiohttp ClientSession (None until initialize())
    """

    name: str = "http"
    health_path: str = "/"

    def __init__(self, base_url: str, timeout: float, headers: Optional[Dict[str, str]] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {"Accept": "application/json"}
        self.logger = get_logger(self.__class__.__module__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Session Management
    # ============================================

    async def initialize(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug(f"{self.__class__.__name__} session created")

    async def shutdown(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug(f"{self.__class__.__name__} session closed")
        self.session = None

    async def health_check(self) -> bool:
        try:
            await self._get(self.health_path)
            return True
        except UpstreamError as e:
            self.logger.warning(f"Health check failed for {self.name}: {e}")
            return False

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a single GET request and decode the JSON body.

        Args:
            path: Endpoint path relative to base_url (e.g., "/tokens")
            params: Optional query parameters

        Returns:
            Decoded JSON (floats as Decimal)

        Raises:
            RuntimeError: If the session was never initialized
            UpstreamUnavailable: Timeout, connection failure or non-2xx status
            UpstreamMalformed: Body is not valid JSON
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        log_api_request(self.name, path, params)
        started = time.monotonic()

        try:
            async with self.session.get(
                url,
                params=params,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                log_api_response(self.name, path, resp.status, time.monotonic() - started)

                if not 200 <= resp.status < 300:
                    text = await resp.text()
                    self.logger.warning(f"HTTP {resp.status} on {self.name} {path}: {text[:200]}")
                    raise UpstreamUnavailable(
                        self.name, f"{self.name} provider answered HTTP {resp.status}"
                    )

                try:
                    return await resp.json(content_type=None, loads=_decimal_loads)
                except ValueError as e:
                    self.logger.error(f"Invalid JSON from {self.name} {path}: {e}")
                    raise UpstreamMalformed(self.name, f"{self.name} provider returned invalid JSON")

        except asyncio.TimeoutError:
            self.logger.warning(f"Timeout after {self.timeout}s on {self.name} {path}")
            raise UpstreamUnavailable(self.name, f"{self.name} provider timed out")

        except aiohttp.ClientError as e:
            self.logger.warning(f"Request failed on {self.name} {path}: {e}")
            raise UpstreamUnavailable(self.name, f"{self.name} provider is unreachable")
