"""Historical price API connector."""

from .api_client import HistoryAPIClient

__all__ = ["HistoryAPIClient"]
