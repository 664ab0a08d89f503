"""
Public lookup API for doubanscout.

Every lookup follows the same path: cache -> throttle admission -> fetch ->
classify -> extract -> cache. Failed and blocked fetches are absorbed into an
empty result (and cached like one); only get_celebrity() raises on a
transport failure.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote, quote_plus

from doubanscout.cache import DETAIL_TTL_S, SEARCH_TTL_S, ResultCache, cache_key
from doubanscout.config import ConfigSource, Settings
from doubanscout.extract import (
    parse_celebrity_page,
    parse_celebrity_photos,
    parse_celebrity_search,
    parse_login_info,
    parse_search_results,
    parse_subject_celebrities,
    parse_subject_page,
    parse_subject_photos,
    parse_suggest,
)
from doubanscout.fetchers.http import FetchError, FetchOutcome, FetchResult, HttpFetcher
from doubanscout.fetchers.session import SessionStore
from doubanscout.fetchers.throttle import RequestThrottler
from doubanscout.models import Celebrity, LoginInfo, Photo, Subject, SubjectCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")

WWW_BASE = "https://www.douban.com"
MOVIE_BASE = "https://movie.douban.com"

SEARCH_URL = WWW_BASE + "/search?cat=1002&q={keyword}"
SUGGEST_URL = WWW_BASE + "/j/search_suggest?q={keyword}"
SUBJECT_URL = MOVIE_BASE + "/subject/{sid}/"
SUBJECT_CELEBRITIES_URL = MOVIE_BASE + "/subject/{sid}/celebrities"
SUBJECT_PHOTOS_URL = MOVIE_BASE + "/subject/{sid}/photos?type=W&start=0&sortby=size&size=a&subtype=a"
CELEBRITY_URL = MOVIE_BASE + "/celebrity/{cid}/"
CELEBRITY_PHOTOS_URL = MOVIE_BASE + "/celebrity/{cid}/photos/"
CELEBRITY_SEARCH_URL = MOVIE_BASE + "/celebrities/search?search_text={keyword}"
MINE_URL = WWW_BASE + "/mine/"

# The suggest endpoint expects to be called from www.douban.com
SUGGEST_HEADERS = {
    "Origin": WWW_BASE,
    "Referer": WWW_BASE + "/",
}


def _path_arg(value: str) -> str:
    return quote((value or "").strip(), safe="")


def _query_arg(value: str) -> str:
    return quote_plus((value or "").strip())


class DoubanClient:
    """
    Async Douban metadata client.

    Usage:
        async with DoubanClient(ConfigSource(Settings(cookies="..."))) as client:
            subjects = await client.search_subjects("寄生虫")
    """

    def __init__(
        self,
        config: Optional[ConfigSource] = None,
        fetcher: Optional[HttpFetcher] = None,
        cache: Optional[ResultCache] = None,
        throttler: Optional[RequestThrottler] = None,
    ):
        self.config = config or ConfigSource()
        settings = self.config.current

        if fetcher is None:
            self.session = SessionStore(settings.cookies)
            fetcher = HttpFetcher(
                self.session,
                timeout_s=settings.request_timeout_s,
                block_markers=settings.block_markers,
            )
        else:
            self.session = fetcher.session_store
            self.session.load(settings.cookies)

        self.fetcher = fetcher
        self.cache = cache or ResultCache()
        self.throttler = throttler or RequestThrottler(lambda: self.config.current)
        self._unsubscribe = self.config.subscribe(self._on_config_changed)

    async def __aenter__(self) -> "DoubanClient":
        await self.fetcher.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        self._unsubscribe()
        await self.fetcher.close()

    def _on_config_changed(self, settings: Settings) -> None:
        """Rebuild the cookie session and fetch options from new configuration."""
        count = self.session.load(settings.cookies)
        self.fetcher.block_markers = list(settings.block_markers)
        self.fetcher.timeout_s = settings.request_timeout_s
        logger.info(
            "Douban configuration reloaded: %d cookie(s), risk avoidance %s",
            count, "on" if settings.avoid_risk_control else "off",
        )

    # ----------------------------- Plumbing -----------------------------

    async def _get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        expect_json: bool = False,
    ) -> FetchResult:
        await self.throttler.admit()
        if expect_json:
            return await self.fetcher.fetch_json(url, headers=headers)
        return await self.fetcher.fetch(url, headers=headers)

    def _report(self, result: FetchResult, operation: str, arg: str) -> None:
        """Log an unusable fetch, keeping anti-bot blocks distinguishable."""
        if result.outcome == FetchOutcome.BLOCKED:
            logger.warning(
                "Douban risk control triggered during %s (%s); the IP may be blocked. "
                "Configure cookies or enable risk avoidance. url=%s",
                operation, arg, result.final_url or result.url,
            )
        else:
            logger.warning(
                "Douban %s request failed (%s). status=%s error=%s",
                operation, arg, result.status, result.error or "-",
            )

    async def _cached(
        self,
        key: str,
        ttl_s: float,
        load: Callable[[], Awaitable[T]],
    ) -> T:
        cached, hit = self.cache.get(key)
        if hit:
            return cached
        value = await load()
        self.cache.set(key, value, ttl_s)
        return value

    # ----------------------------- Subjects -----------------------------

    async def search_subjects(self, keyword: str) -> List[Subject]:
        """Search movies and TV shows; unaired entries are excluded."""
        keyword = (keyword or "").strip()
        if not keyword:
            return []

        async def load() -> List[Subject]:
            result = await self._get(SEARCH_URL.format(keyword=_query_arg(keyword)))
            if not result.ok:
                self._report(result, "search", keyword)
                return []

            subjects = parse_search_results(result.text)
            if not subjects:
                logger.warning(
                    "Douban search returned nothing for %r; "
                    "if this happens a lot, risk control may have been triggered",
                    keyword,
                )
            return subjects

        return await self._cached(cache_key("search", keyword), SEARCH_TTL_S, load)

    async def search_movies(self, keyword: str) -> List[Subject]:
        subjects = await self.search_subjects(keyword)
        return [s for s in subjects if s.category == SubjectCategory.MOVIE]

    async def search_tv(self, keyword: str) -> List[Subject]:
        subjects = await self.search_subjects(keyword)
        return [s for s in subjects if s.is_tv]

    async def suggest_subjects(self, keyword: str) -> List[Subject]:
        """Quick-suggest lookup. Never raises; errors yield an empty list."""
        keyword = (keyword or "").strip()
        if not keyword:
            return []

        key = cache_key("suggest", keyword)
        cached, hit = self.cache.get(key)
        if hit:
            return cached

        try:
            result = await self._get(
                SUGGEST_URL.format(keyword=_query_arg(keyword)),
                headers=SUGGEST_HEADERS,
                expect_json=True,
            )
            if result.ok:
                subjects = parse_suggest(result.json_data)
            else:
                self._report(result, "suggest", keyword)
                subjects = []
        except Exception:
            logger.exception("Douban suggest failed. keyword: %s", keyword)
            return []

        self.cache.set(key, subjects, SEARCH_TTL_S)
        return subjects

    async def get_subject(self, sid: str) -> Optional[Subject]:
        """Full subject detail, or None when unavailable."""
        sid = (sid or "").strip()
        if not sid:
            return None

        async def load() -> Optional[Subject]:
            result = await self._get(SUBJECT_URL.format(sid=_path_arg(sid)))
            if not result.ok:
                self._report(result, "subject", sid)
                return None
            subject = parse_subject_page(result.text, sid)
            if subject is None:
                logger.warning("Douban subject page has no content. sid: %s", sid)
            return subject

        return await self._cached(cache_key("movie", sid), DETAIL_TTL_S, load)

    async def get_celebrities_for_subject(self, sid: str) -> List[Celebrity]:
        """Directors and actors of a subject, with role details."""
        sid = (sid or "").strip()
        if not sid:
            return []

        async def load() -> List[Celebrity]:
            result = await self._get(SUBJECT_CELEBRITIES_URL.format(sid=_path_arg(sid)))
            if not result.ok:
                self._report(result, "celebrities", sid)
                return []
            return parse_subject_celebrities(result.text)

        return await self._cached(cache_key("celebrities", sid), DETAIL_TTL_S, load)

    async def get_subject_photos(self, sid: str) -> List[Photo]:
        """Wallpaper gallery of a subject. Never raises."""
        sid = (sid or "").strip()
        if not sid:
            return []
        url = SUBJECT_PHOTOS_URL.format(sid=_path_arg(sid))
        return await self._photos(cache_key("photo", sid), url, parse_subject_photos, sid)

    # ----------------------------- Celebrities -----------------------------

    async def get_celebrity(self, cid: str) -> Optional[Celebrity]:
        """
        Full celebrity profile.

        Raises FetchError when the request itself fails; a blocked request
        returns None.
        """
        cid = (cid or "").strip()
        if not cid:
            return None

        async def load() -> Optional[Celebrity]:
            result = await self._get(CELEBRITY_URL.format(cid=_path_arg(cid)))
            if result.outcome == FetchOutcome.FAILURE:
                raise FetchError(result.url, status=result.status, error=result.error)
            if result.outcome == FetchOutcome.BLOCKED:
                self._report(result, "celebrity", cid)
                return None
            return parse_celebrity_page(result.text, cid)

        return await self._cached(cache_key("celebrity", cid), DETAIL_TTL_S, load)

    async def get_celebrity_photos(self, cid: str) -> List[Photo]:
        """Photo gallery of a celebrity. Never raises."""
        cid = (cid or "").strip()
        if not cid:
            return []
        url = CELEBRITY_PHOTOS_URL.format(cid=_path_arg(cid))
        return await self._photos(cache_key("celebrity_photo", cid), url, parse_celebrity_photos, cid)

    async def search_celebrities(self, keyword: str) -> List[Celebrity]:
        keyword = (keyword or "").strip()
        if not keyword:
            return []

        async def load() -> List[Celebrity]:
            result = await self._get(CELEBRITY_SEARCH_URL.format(keyword=_query_arg(keyword)))
            if not result.ok:
                self._report(result, "celebrity search", keyword)
                return []
            return parse_celebrity_search(result.text)

        return await self._cached(cache_key("search_celebrity", keyword), DETAIL_TTL_S, load)

    async def _photos(
        self,
        key: str,
        url: str,
        parse: Callable[[str], List[Photo]],
        arg: str,
    ) -> List[Photo]:
        cached, hit = self.cache.get(key)
        if hit:
            return cached

        try:
            result = await self._get(url)
            if result.ok:
                photos = parse(result.text)
            else:
                self._report(result, "photos", arg)
                photos = []
        except Exception:
            logger.exception("Douban photo gallery failed. id: %s", arg)
            return []

        self.cache.set(key, photos, DETAIL_TTL_S)
        return photos

    # ----------------------------- Login -----------------------------

    async def get_login_info(self) -> LoginInfo:
        """Probe the profile page. Never raises; defaults to logged out."""
        try:
            result = await self._get(MINE_URL)
            if result.error or result.blocked:
                self._report(result, "login check", "mine")
                return LoginInfo()
            return parse_login_info(result.final_url, result.text)
        except Exception:
            logger.exception("Douban login check failed")
            return LoginInfo()

    async def check_login(self) -> bool:
        info = await self.get_login_info()
        return info.is_logged_in

    def stats(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.stats(),
            "policy": self.throttler.current_policy().value,
            "admitted": {p.value: n for p, n in self.throttler.admitted.items()},
            "cookies": len(self.session),
        }
