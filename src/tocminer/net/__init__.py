"""HTTP transport."""

from .http_client import Fetcher, FetchResponse, HttpFetcher, require_ok

__all__ = ["Fetcher", "FetchResponse", "HttpFetcher", "require_ok"]
