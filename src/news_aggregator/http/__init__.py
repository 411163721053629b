"""HTTP helpers for provider adapters."""

from news_aggregator.http.fetcher import FetchResult, HttpFetcher

__all__ = ["FetchResult", "HttpFetcher"]
