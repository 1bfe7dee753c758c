"""
Tests for the cookie-jar session and multi-hop navigation.
"""

import asyncio
from urllib.parse import quote

import pytest
from tests.helpers import FakeFetcher, fetch_failure, html_response, metric_delta
from tocminer.errors import FetchError, SessionError
from tocminer.observability.metrics import METRICS
from tocminer.session.context import DETAIL_PATH, SEARCH_PATH, SessionContext, parse_set_cookie

BASE = "https://lib.example.test"


@pytest.fixture
def session_fetcher() -> FakeFetcher:
    fetcher = FakeFetcher()
    fetcher.add_html(BASE, "<html>home</html>", set_cookies=["JSESSIONID=abc; Path=/; HttpOnly", "WMONID=w1"])
    return fetcher


@pytest.mark.unit
class TestParseSetCookie:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("JSESSIONID=abc; Path=/", ("JSESSIONID", "abc")),
            ("a=b=c", ("a", "b=c")),
            (" name = value ;Secure", ("name", "value")),
            ("novalue=", None),
            ("garbage", None),
        ],
    )
    def test_parse(self, header, expected):
        assert parse_set_cookie(header) == expected


@pytest.mark.unit
class TestSessionContext:
    @pytest.mark.asyncio
    async def test_establish_collects_cookies(self, session_fetcher):
        session = SessionContext(session_fetcher, BASE + "/")
        with metric_delta(METRICS["session_handshakes"].labels(outcome="established")):
            await session.establish_session()

        assert session.established
        assert session.is_active
        assert session.cookies == {"JSESSIONID": "abc", "WMONID": "w1"}

        await session.establish_session()
        assert len(session_fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_handshake(self, session_fetcher):
        session = SessionContext(session_fetcher, BASE)
        await asyncio.gather(*(session.establish_session() for _ in range(5)))
        assert session_fetcher.called(BASE) == [BASE]

    @pytest.mark.asyncio
    async def test_handshake_bad_status_raises(self):
        fetcher = FakeFetcher({BASE: html_response(BASE, "down", status=503)})
        session = SessionContext(fetcher, BASE)
        with metric_delta(METRICS["session_handshakes"].labels(outcome="failed")):
            with pytest.raises(SessionError, match="HTTP 503"):
                await session.establish_session()
        assert not session.established

    @pytest.mark.asyncio
    async def test_handshake_network_failure_raises(self):
        session = SessionContext(FakeFetcher({BASE: fetch_failure(BASE)}), BASE)
        with pytest.raises(SessionError) as exc_info:
            await session.establish_session()
        assert exc_info.value.base_url == BASE
        assert isinstance(exc_info.value.__cause__, FetchError)

    @pytest.mark.asyncio
    async def test_failed_handshake_is_not_retried(self):
        fetcher = FakeFetcher({BASE: html_response(BASE, "down", status=503)})
        session = SessionContext(fetcher, BASE)
        with pytest.raises(SessionError):
            await session.establish_session()

        with pytest.raises(SessionError, match="earlier handshake failed"):
            await session.authenticated_request(f"{BASE}/page")
        assert fetcher.called(BASE) == [BASE]

        session.clear_failure()
        with pytest.raises(SessionError, match="HTTP 503"):
            await session.establish_session()
        assert fetcher.called(BASE) == [BASE, BASE]

    @pytest.mark.asyncio
    async def test_authenticated_request_headers_and_cookie_merge(self, session_fetcher):
        page = f"{BASE}/page"
        session_fetcher.add_html(page, "ok", set_cookies=["WMONID=w2", "extra=1"])
        session = SessionContext(session_fetcher, BASE)

        response = await session.authenticated_request(page, referrer=BASE)

        assert response.status == 200
        url, headers = session_fetcher.calls[-1]
        assert url == page
        assert headers["Referer"] == BASE
        assert headers["Sec-Fetch-Site"] == "same-origin"
        assert headers["Cookie"] == "JSESSIONID=abc; WMONID=w1"
        assert "Mozilla/5.0" in headers["User-Agent"]
        # last write wins
        assert session.cookies == {"JSESSIONID": "abc", "WMONID": "w2", "extra": "1"}

    @pytest.mark.asyncio
    async def test_first_request_has_no_referrer_or_cookie(self, session_fetcher):
        await SessionContext(session_fetcher, BASE).establish_session()
        _, headers = session_fetcher.calls[0]
        assert "Referer" not in headers
        assert "Cookie" not in headers
        assert headers["Sec-Fetch-Site"] == "none"

    @pytest.mark.asyncio
    async def test_later_hop_failure_is_fetch_error(self, session_fetcher):
        missing = f"{BASE}/missing"
        session = SessionContext(session_fetcher, BASE)
        with pytest.raises(FetchError) as exc_info:
            await session.authenticated_request(missing)
        assert exc_info.value.url == missing
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_navigate_to_detail_replays_path(self, session_fetcher):
        title = "데이터 과학"
        search = BASE + SEARCH_PATH
        results = f"{search}?srchTarget=total&kwd={quote(title)}"
        detail = f"{BASE}{DETAIL_PATH}?viewKey=CN1"
        for url in (search, results, detail):
            session_fetcher.add_html(url, f"<html>{url}</html>")
        session = SessionContext(session_fetcher, BASE)

        response = await session.navigate_to_detail("CN1", title)

        assert response.url == detail
        assert [url for url, _ in session_fetcher.calls] == [BASE, search, results, detail]
        referrers = [headers.get("Referer") for _, headers in session_fetcher.calls]
        assert referrers == [None, BASE, search, results]

    @pytest.mark.asyncio
    async def test_reset_and_stats(self, session_fetcher):
        session = SessionContext(session_fetcher, BASE)
        await session.establish_session()
        stats = session.stats()
        assert stats.cookie_count == 2
        assert stats.established
        assert stats.requests == 1

        session.reset()
        assert not session.established
        assert not session.is_active
        assert session.cookies == {}
        assert session.failure is None
