"""
doubanscout: low-profile Douban movie, TV and celebrity metadata client.

Fetches public Douban pages with a cookie session, throttles itself under
tiered rate policies, caches parsed results (including misses) in memory and
extracts typed records from static HTML/JSON.
"""

__version__ = "1.0.0"

from doubanscout.config import ConfigSource, Settings
from doubanscout.fetchers.http import FetchError
from doubanscout.models import Celebrity, LoginInfo, Photo, Subject, SubjectCategory
from doubanscout.orchestrator import DoubanClient

__all__ = [
    "ConfigSource",
    "Settings",
    "FetchError",
    "Celebrity",
    "LoginInfo",
    "Photo",
    "Subject",
    "SubjectCategory",
    "DoubanClient",
]
