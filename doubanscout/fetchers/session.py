"""
Cookie session shared by every outbound request.
"""

from __future__ import annotations

import logging
import threading
from http.cookies import BaseCookie
from typing import Dict, Mapping, Union

logger = logging.getLogger(__name__)

COOKIE_DOMAIN = ".douban.com"
COOKIE_PATH = "/"


def parse_cookie_string(raw: str) -> Dict[str, str]:
    """
    Parse a ``"k=v; k=v"`` cookie string.

    Pairs without exactly one ``=`` are skipped individually.
    """
    cookies: Dict[str, str] = {}
    for part in (raw or "").strip().split(";"):
        if not part.strip():
            continue
        pieces = part.split("=")
        if len(pieces) != 2:
            logger.debug("Skipping malformed cookie pair: %r", part.strip())
            continue
        key = pieces[0].strip()
        value = pieces[1].strip()
        if not key:
            logger.debug("Skipping cookie pair with empty name")
            continue
        cookies[key] = value
    return cookies


class SessionStore:
    """
    Owns the cookie set for the douban.com domain.

    Configuration reloads replace the whole set; cookies the site sets on
    responses are merged in between reloads. A single lock guards every
    read and write, so a request never sees a half-rebuilt jar.
    """

    def __init__(self, cookie_string: str = ""):
        self._lock = threading.Lock()
        self._cookies: Dict[str, str] = {}
        self.load(cookie_string)

    def load(self, cookie_string: str) -> int:
        """Discard all current cookies and apply a configured cookie string."""
        parsed = parse_cookie_string(cookie_string)
        with self._lock:
            # Old cookies, configured or learned, are invalidated first
            self._cookies.clear()
            self._cookies.update(parsed)
        logger.debug("Session reloaded with %d cookie(s)", len(parsed))
        return len(parsed)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the current cookies for one request."""
        with self._lock:
            return dict(self._cookies)

    def absorb(self, cookies: Union[BaseCookie, Mapping[str, str]]) -> None:
        """Merge cookies set by the server. Empty values delete the cookie."""
        if not cookies:
            return
        with self._lock:
            for key, value in cookies.items():
                value = getattr(value, "value", value)
                if value:
                    self._cookies[key] = value
                else:
                    self._cookies.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cookies)
