"""
Error Taxonomy

Every failure the gateway can surface maps onto one of the classes below.
Each carries a stable machine-readable ``code`` and the HTTP status the
serving layer answers with, so routes never need per-error branching.

    InvalidRequest       400  caller error, never retried, never cached
    SymbolNotFound       404  caller error, cached as a short-lived negative result
    UpstreamUnavailable  503  transient (network, timeout, non-2xx); retryable
    UpstreamMalformed    503  provider answered with an unusable body
    ServiceUnavailable   503  no fresh or stale data to fall back on

Upstream errors keep provider detail out of ``message``; the raw detail is
logged by the client that observed it.
"""


class GatewayError(Exception):
    """Base class for all errors the gateway reports to callers."""

    code: str = "InternalError"
    http_status: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidRequest(GatewayError):
    code = "InvalidRequest"
    http_status = 400
    default_message = "Invalid request"


class SymbolNotFound(GatewayError):
    code = "SymbolNotFound"
    http_status = 404
    default_message = "Symbol not found"

    def __init__(self, symbol: str, message: str = None):
        self.symbol = symbol
        super().__init__(message or f"Symbol '{symbol}' is not known to the price provider")


class UpstreamError(GatewayError):
    """Failure attributable to an upstream provider."""

    http_status = 503

    def __init__(self, provider: str, message: str = None):
        self.provider = provider
        super().__init__(message)


class UpstreamUnavailable(UpstreamError):
    code = "UpstreamUnavailable"
    default_message = "Upstream provider is unavailable"


class UpstreamMalformed(UpstreamError):
    code = "UpstreamMalformed"
    default_message = "Upstream provider returned an unexpected response"


class ServiceUnavailable(GatewayError):
    code = "ServiceUnavailable"
    http_status = 503
    default_message = "Market data is temporarily unavailable"
