"""DoubanClient lookups over a stub fetcher: caching, error policy, config changes."""

import asyncio
import logging
from urllib.parse import quote_plus

import pytest

from conftest import load_fixture, page

from doubanscout.fetchers.http import FetchError
from doubanscout.fetchers.throttle import RatePolicy
from doubanscout.models import SubjectCategory
from doubanscout.orchestrator import (
    CELEBRITY_PHOTOS_URL,
    CELEBRITY_SEARCH_URL,
    CELEBRITY_URL,
    MINE_URL,
    SEARCH_URL,
    SUBJECT_CELEBRITIES_URL,
    SUBJECT_PHOTOS_URL,
    SUBJECT_URL,
    SUGGEST_HEADERS,
    SUGGEST_URL,
)

CHECKPOINT = "https://sec.douban.com/b?r=https%3A%2F%2Fmovie.douban.com%2F"


def search_url(keyword):
    return SEARCH_URL.format(keyword=quote_plus(keyword))


def total_admitted(client):
    return sum(client.throttler.admitted.values())


class TestSearch:

    async def test_results_are_cached(self, make_client):
        url = search_url("寄生虫")
        client = make_client({url: page(url, load_fixture("search.html"))})

        first = await client.search_subjects("寄生虫")
        second = await client.search_subjects(" 寄生虫 ")

        assert [s.sid for s in first] == ["27010768"]
        assert first == second
        assert client.fetcher.urls() == [url]
        assert "search_寄生虫" in client.cache

    async def test_returned_list_is_a_copy(self, make_client):
        url = search_url("寄生虫")
        client = make_client({url: page(url, load_fixture("search.html"))})

        (await client.search_subjects("寄生虫")).clear()
        assert len(await client.search_subjects("寄生虫")) == 1

    async def test_tampering_with_a_result_does_not_reach_the_cache(self, make_client):
        url = search_url("寄生虫")
        client = make_client({url: page(url, load_fixture("search.html"))})

        (await client.search_subjects("寄生虫"))[0].name = "tampered"

        assert (await client.search_subjects("寄生虫"))[0].name == "寄生虫"
        assert client.fetcher.urls() == [url]

    async def test_movie_and_tv_filters(self, make_client):
        url = search_url("1988")
        client = make_client({url: page(url, load_fixture("search_mixed.html"))})

        movies = await client.search_movies("1988")
        tv = await client.search_tv("1988")

        assert [s.sid for s in movies] == ["1291843"]
        assert [s.sid for s in tv] == ["26302614"]
        assert all(s.category == SubjectCategory.TV for s in tv)
        assert len(client.fetcher.calls) == 1

    async def test_failure_is_cached_as_empty(self, make_client):
        url = search_url("x")
        client = make_client({url: page(url, status=500)})

        assert await client.search_subjects("x") == []
        assert await client.search_subjects("x") == []
        assert len(client.fetcher.calls) == 1

    async def test_blocked_is_cached_and_reported(self, make_client, caplog):
        caplog.set_level(logging.WARNING, logger="doubanscout.orchestrator")
        url = search_url("x")
        client = make_client({url: page(url, final_url=CHECKPOINT)})

        assert await client.search_subjects("x") == []
        assert await client.search_subjects("x") == []
        assert len(client.fetcher.calls) == 1
        assert "risk control" in caplog.text

    async def test_blank_keyword_skips_fetch(self, make_client):
        client = make_client()

        assert await client.search_subjects("   ") == []
        assert await client.search_celebrities("") == []
        assert await client.suggest_subjects("") == []
        assert client.fetcher.calls == []


class TestSuggest:

    async def test_suggest(self, make_client):
        url = SUGGEST_URL.format(keyword=quote_plus("寄生"))
        data = {"cards": [{"type": "movie", "sid": "27010768", "title": "寄生虫", "year": "2019"}]}
        client = make_client({url: page(url, json_data=data)})

        subjects = await client.suggest_subjects("寄生")
        await client.suggest_subjects("寄生")

        assert [(s.sid, s.name, s.year) for s in subjects] == [("27010768", "寄生虫", 2019)]
        assert client.fetcher.calls == [(url, {"Accept": "application/json", **SUGGEST_HEADERS})]

    async def test_exception_yields_empty_and_is_not_cached(self, make_client):
        url = SUGGEST_URL.format(keyword=quote_plus("寄生"))
        client = make_client({url: RuntimeError("boom")})

        assert await client.suggest_subjects("寄生") == []
        assert await client.suggest_subjects("寄生") == []
        assert len(client.fetcher.calls) == 2


class TestSubject:

    async def test_detail(self, make_client):
        url = SUBJECT_URL.format(sid="27010768")
        client = make_client({url: page(url, load_fixture("subject_movie.html"))})

        subject = await client.get_subject("27010768")

        assert subject.name == "寄生虫"
        assert subject.imdb == "tt6751668"
        assert "movie_27010768" in client.cache

    async def test_cached_detail_is_isolated_from_callers(self, make_client):
        url = SUBJECT_URL.format(sid="27010768")
        client = make_client({url: page(url, load_fixture("subject_movie.html"))})

        first = await client.get_subject("27010768")
        first.name = "tampered"
        first.actors.clear()
        second = await client.get_subject("27010768")

        assert second.name == "寄生虫"
        assert second.actors == ["宋康昊", "李善均", "赵汝贞"]
        assert first is not second
        assert len(client.fetcher.calls) == 1

    async def test_missing_rating_is_not_an_error(self, make_client):
        url = SUBJECT_URL.format(sid="26302614")
        client = make_client({url: page(url, load_fixture("subject_tv.html"))})

        subject = await client.get_subject("26302614")

        assert subject.rating == 0.0
        assert subject.category == SubjectCategory.TV
        assert subject.directors == ["申源浩"]
        assert subject.year == 2015

    async def test_unavailable_is_cached_as_none(self, make_client):
        url = SUBJECT_URL.format(sid="1")
        client = make_client({url: page(url, status=404)})

        assert await client.get_subject("1") is None
        assert await client.get_subject("1") is None
        assert len(client.fetcher.calls) == 1
        assert client.cache.get("movie_1") == (None, True)

    async def test_celebrities(self, make_client):
        url = SUBJECT_CELEBRITIES_URL.format(sid="27010768")
        client = make_client({url: page(url, load_fixture("celebrities.html"))})

        celebrities = await client.get_celebrities_for_subject("27010768")

        assert [c.name for c in celebrities] == ["奉俊昊", "宋康昊", "Woo-sik Choi"]
        assert "celebrities_27010768" in client.cache

    async def test_photos(self, make_client):
        url = SUBJECT_PHOTOS_URL.format(sid="27010768")
        client = make_client({url: page(url, load_fixture("subject_photos.html"))})

        photos = await client.get_subject_photos("27010768")
        await client.get_subject_photos("27010768")

        assert [p.id for p in photos] == ["2561439800", "2555555555"]
        assert len(client.fetcher.calls) == 1
        assert "photo_27010768" in client.cache

    async def test_photos_exception_not_cached(self, make_client):
        url = SUBJECT_PHOTOS_URL.format(sid="1")
        client = make_client({url: ValueError("bad page")})

        assert await client.get_subject_photos("1") == []
        assert "photo_1" not in client.cache

    async def test_cancelled_lookup_leaves_no_entry(self, make_client):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        url = SUBJECT_URL.format(sid="1")
        client = make_client({url: hang})

        task = asyncio.ensure_future(client.get_subject("1"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert "movie_1" not in client.cache


class TestCelebrity:

    async def test_profile(self, make_client):
        url = CELEBRITY_URL.format(cid="1031842")
        client = make_client({url: page(url, load_fixture("celebrity.html"))})

        celebrity = await client.get_celebrity("1031842")

        assert celebrity.name == "奉俊昊"
        assert celebrity.imdb == "nm0094435"
        assert "celebrity_1031842" in client.cache

    async def test_transport_failure_raises_and_is_not_cached(self, make_client):
        url = CELEBRITY_URL.format(cid="1")
        client = make_client({url: page(url, error="Timeout after 20s")})

        with pytest.raises(FetchError) as exc:
            await client.get_celebrity("1")
        assert exc.value.url == url

        with pytest.raises(FetchError):
            await client.get_celebrity("1")
        assert len(client.fetcher.calls) == 2
        assert "celebrity_1" not in client.cache

    async def test_http_error_raises(self, make_client):
        url = CELEBRITY_URL.format(cid="1")
        client = make_client({url: page(url, status=503)})

        with pytest.raises(FetchError) as exc:
            await client.get_celebrity("1")
        assert exc.value.status == 503

    async def test_blocked_returns_none(self, make_client):
        url = CELEBRITY_URL.format(cid="1")
        client = make_client({url: page(url, final_url=CHECKPOINT)})

        assert await client.get_celebrity("1") is None
        assert await client.get_celebrity("1") is None
        assert len(client.fetcher.calls) == 1

    async def test_photos(self, make_client):
        url = CELEBRITY_PHOTOS_URL.format(cid="1031842")
        client = make_client({url: page(url, load_fixture("celebrity_photos.html"))})

        photos = await client.get_celebrity_photos("1031842")

        assert [p.id for p in photos] == ["2520000001", "2520000002"]
        assert "celebrity_photo_1031842" in client.cache

    async def test_search(self, make_client):
        url = CELEBRITY_SEARCH_URL.format(keyword=quote_plus("奉俊昊"))
        client = make_client({url: page(url, load_fixture("celebrity_search.html"))})

        results = await client.search_celebrities("奉俊昊")

        assert [c.id for c in results] == ["1031842", "1425316"]
        assert "search_celebrity_奉俊昊" in client.cache


class TestLogin:

    async def test_logged_in(self, make_client):
        client = make_client({MINE_URL: page(MINE_URL, load_fixture("mine.html"))}, cookies="dbcl2=x")

        info = await client.get_login_info()

        assert info.is_logged_in
        assert info.name == "影迷小王"

    async def test_redirected_to_login(self, make_client):
        login = "https://accounts.douban.com/passport/login?redir=https%3A%2F%2Fwww.douban.com%2Fmine%2F"
        client = make_client({MINE_URL: page(MINE_URL, "<html></html>", final_url=login)})

        assert await client.check_login() is False

    async def test_errors_mean_logged_out(self, make_client):
        client = make_client({MINE_URL: page(MINE_URL, error="Cannot connect")})
        assert await client.check_login() is False

        client = make_client({MINE_URL: RuntimeError("boom")})
        assert await client.check_login() is False

    async def test_blocked_check_is_reported_and_logged_out(self, make_client, caplog):
        caplog.set_level(logging.WARNING, logger="doubanscout.orchestrator")
        client = make_client({MINE_URL: page(MINE_URL, "<html></html>", final_url=CHECKPOINT)})

        info = await client.get_login_info()

        assert not info.is_logged_in
        assert "risk control" in caplog.text

    async def test_not_cached(self, make_client):
        client = make_client({MINE_URL: page(MINE_URL, load_fixture("mine.html"))})

        await client.get_login_info()
        await client.get_login_info()
        assert len(client.fetcher.calls) == 2


class TestClientPlumbing:

    async def test_every_request_is_admitted(self, make_client):
        url = SUBJECT_URL.format(sid="1")
        client = make_client({url: page(url, status=404)})

        await client.get_subject("1")
        await client.get_celebrity_photos("2")
        await client.get_login_info()

        assert total_admitted(client) == len(client.fetcher.calls) == 3

    async def test_config_change_rebuilds_session(self, make_client):
        client = make_client(cookies="bid=1; ll=2")
        client.session.absorb({"learned": "x"})
        assert client.throttler.current_policy() == RatePolicy.DEFAULT

        client.config.update(
            cookies="bid=9; dbcl2=abc",
            avoid_risk_control=True,
            block_markers=["/misc/sorry"],
            request_timeout_s=5,
        )

        assert client.session.snapshot() == {"bid": "9", "dbcl2": "abc"}
        assert client.throttler.current_policy() == RatePolicy.LOGGED_IN
        assert client.fetcher.block_markers == ["/misc/sorry"]
        assert client.fetcher.timeout_s == 5

    async def test_string_config_values_are_validated(self, make_client):
        client = make_client(cookies="dbcl2=abc", avoid_risk_control=True)
        assert client.throttler.current_policy() == RatePolicy.LOGGED_IN

        client.config.update(block_markers="sec.douban.com,/misc/sorry", avoid_risk_control="false")

        assert client.config.current.avoid_risk_control is False
        assert client.fetcher.block_markers == ["sec.douban.com", "/misc/sorry"]
        assert client.throttler.current_policy() == RatePolicy.DEFAULT

    async def test_guest_policy_after_cookies_removed(self, make_client):
        client = make_client(cookies="dbcl2=abc", avoid_risk_control=True)
        assert client.throttler.current_policy() == RatePolicy.LOGGED_IN

        client.config.update(cookies="")
        assert client.throttler.current_policy() == RatePolicy.GUEST
        assert len(client.session) == 0

    async def test_context_manager(self, make_client):
        client = make_client(cookies="bid=1")

        async with client:
            assert client.fetcher.started
        assert client.fetcher.closed

        # Closed clients no longer follow configuration changes
        client.config.update(cookies="bid=2")
        assert client.session.snapshot() == {"bid": "1"}

    async def test_stats(self, make_client):
        url = SUBJECT_URL.format(sid="1")
        client = make_client({url: page(url, status=404)}, cookies="bid=1")

        await client.get_subject("1")
        await client.get_subject("1")
        stats = client.stats()

        assert stats["cache"] == {"entries": 1, "hits": 1, "misses": 1}
        assert stats["policy"] == "default"
        assert stats["admitted"]["default"] == 1
        assert stats["cookies"] == 1
