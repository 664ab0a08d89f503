"""
Fetcher layer for doubanscout.

Provides:
- Tiered request throttling (default / guest / logged-in policies)
- A lock-guarded cookie session shared by every request
- Async HTTP fetching with browser-like headers
- Block / failure classification beyond status codes
"""

from doubanscout.fetchers.http import (
    FetchError,
    FetchOutcome,
    FetchResult,
    HttpFetcher,
    classify_response,
)
from doubanscout.fetchers.session import SessionStore, parse_cookie_string
from doubanscout.fetchers.throttle import RatePolicy, RequestThrottler, TimeLimiter, WindowConstraint

__all__ = [
    "FetchError",
    "FetchOutcome",
    "FetchResult",
    "HttpFetcher",
    "classify_response",
    "SessionStore",
    "parse_cookie_string",
    "RatePolicy",
    "RequestThrottler",
    "TimeLimiter",
    "WindowConstraint",
]
