"""
HTTP fetcher with browser-like headers, session cookies and outcome classification.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from doubanscout.fetchers.session import SessionStore

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/93.0.4577.63 Safari/537.36 Edg/93.0.961.44"
)
ORIGIN = "https://movie.douban.com"
REFERER = "https://movie.douban.com/"

DEFAULT_BLOCK_MARKERS = ("sec.douban.com",)


class FetchOutcome(str, Enum):
    """How a completed request should be treated."""
    SUCCESS = "success"
    BLOCKED = "blocked"  # Anti-bot checkpoint (redirect or marker in body)
    FAILURE = "failure"  # Non-2xx, timeout, connection error


class FetchError(Exception):
    """Raised when a lookup cannot tolerate a failed request."""

    def __init__(self, url: str, status: int = 0, error: str = ""):
        self.url = url
        self.status = status
        self.error = error
        detail = error or f"HTTP {status}"
        super().__init__(f"Request to {url} failed: {detail}")


def find_block_marker(
    final_url: str,
    text: str,
    markers: Iterable[str] = DEFAULT_BLOCK_MARKERS,
) -> str:
    """Return the first block marker found in the final URL or body, else ""."""
    for marker in markers:
        if not marker:
            continue
        if marker in (final_url or "") or marker in (text or ""):
            return marker
    return ""


def classify_response(
    status: int,
    final_url: str = "",
    text: str = "",
    error: str = "",
    markers: Iterable[str] = DEFAULT_BLOCK_MARKERS,
) -> FetchOutcome:
    """
    Classify a response beyond its status code.

    A block marker wins over everything else: checkpoints are served both as
    200 pages and as error statuses.
    """
    if find_block_marker(final_url, text, markers):
        return FetchOutcome.BLOCKED
    if error or not (200 <= status < 300):
        return FetchOutcome.FAILURE
    return FetchOutcome.SUCCESS


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    final_url: str = ""
    status: int = 0
    text: str = ""
    json_data: Any = None
    content_type: str = ""
    error: str = ""
    elapsed_ms: float = 0
    outcome: FetchOutcome = FetchOutcome.FAILURE

    @property
    def ok(self) -> bool:
        return self.outcome == FetchOutcome.SUCCESS

    @property
    def blocked(self) -> bool:
        return self.outcome == FetchOutcome.BLOCKED

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type.lower()


class HttpFetcher:
    """
    Async HTTP fetcher that looks like a desktop browser.

    No retries and no throttling here: admission is the caller's job, and
    retry policy belongs to whoever calls the client.
    """

    DEFAULT_HEADERS = {
        "User-Agent": USER_AGENT,
        "Origin": ORIGIN,
        "Referer": REFERER,
        "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
        "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    }

    def __init__(
        self,
        session_store: Optional[SessionStore] = None,
        timeout_s: int = 20,
        block_markers: Optional[List[str]] = None,
    ):
        self.session_store = session_store or SessionStore()
        self.timeout_s = timeout_s
        self.block_markers: List[str] = list(block_markers or DEFAULT_BLOCK_MARKERS)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpFetcher":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def start(self) -> None:
        """Initialize the HTTP session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            # Cookies live in the SessionStore and are attached per request
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=self.DEFAULT_HEADERS,
                cookie_jar=aiohttp.DummyCookieJar(),
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        expect_json: bool = False,
    ) -> FetchResult:
        """
        Fetch a URL once and classify the response.

        Transport errors become a FAILURE result; cancellation propagates.
        """
        if self._session is None or self._session.closed:
            await self.start()

        start_time = time.time()
        cookies = self.session_store.snapshot()
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)

        try:
            async with self._session.get(
                url,
                headers=headers,
                cookies=cookies,
                timeout=timeout,
                allow_redirects=True,
            ) as resp:
                for hop in resp.history:
                    self.session_store.absorb(hop.cookies)
                self.session_store.absorb(resp.cookies)

                content_type = resp.headers.get("Content-Type", "")
                text = await resp.text(errors="replace")

                json_data = None
                if expect_json or "json" in content_type.lower():
                    try:
                        json_data = json.loads(text)
                    except ValueError:
                        pass

                result = FetchResult(
                    url=url,
                    final_url=str(resp.url),
                    status=resp.status,
                    text=text,
                    json_data=json_data,
                    content_type=content_type,
                    elapsed_ms=(time.time() - start_time) * 1000,
                )

        except asyncio.TimeoutError:
            result = FetchResult(
                url=url,
                error=f"Timeout after {self.timeout_s}s",
                elapsed_ms=(time.time() - start_time) * 1000,
            )

        except aiohttp.ClientError as e:
            result = FetchResult(
                url=url,
                error=str(e) or type(e).__name__,
                elapsed_ms=(time.time() - start_time) * 1000,
            )

        result.outcome = classify_response(
            result.status,
            final_url=result.final_url,
            text=result.text,
            error=result.error,
            markers=self.block_markers,
        )
        if result.outcome != FetchOutcome.SUCCESS:
            logger.debug(
                "Fetch %s -> %s (status=%s, final=%s, error=%s)",
                url, result.outcome.value, result.status, result.final_url, result.error,
            )
        return result

    async def fetch_json(self, url: str, headers: Optional[Dict[str, str]] = None) -> FetchResult:
        """Fetch and expect JSON response."""
        merged = {"Accept": "application/json"}
        if headers:
            merged.update(headers)
        return await self.fetch(url, headers=merged, expect_json=True)
