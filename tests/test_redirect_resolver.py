"""
Tests for the redirect decision and its side effects.

Each resolve runs in a fresh session, the way each redirect is its own request.
"""

import pytest
from sqlalchemy.exc import OperationalError

from shortlink.core.clock import MINUTE_MS
from shortlink.db.models import Link
from shortlink.services.click_accounting import ClickAccountingService
from shortlink.services.redirect_resolver import (
    RedirectOutcome,
    RedirectResolver,
    is_social_crawler,
)


@pytest.fixture
def resolve(session_maker, clock):
    async def run(slug, referrer=None, user_agent=None):
        async with session_maker() as s:
            return await RedirectResolver(s, clock=clock).resolve(slug, referrer=referrer, user_agent=user_agent)
    return run


async def click_count(session_maker, link_id):
    async with session_maker() as s:
        return (await s.get(Link, link_id)).click_count


class TestOutcomes:

    @pytest.mark.asyncio
    async def test_ok_redirect_counts_click(self, resolve, session_maker, make_account, make_link):
        owner = await make_account()
        link = await make_link(owner, "promo", url="https://example.com/landing")

        result = await resolve("promo", referrer="https://www.news.example.com/story")

        assert result.outcome is RedirectOutcome.OK
        assert result.ok
        assert result.url == "https://example.com/landing"
        assert result.reason is None
        assert await click_count(session_maker, link.id) == 1

    @pytest.mark.asyncio
    async def test_counting_failure_still_redirects(self, resolve, session_maker, make_account, make_link, monkeypatch):
        owner = await make_account()
        link_id = (await make_link(owner, "promo", url="https://example.com/landing")).id

        async def broken_record_click(self, link_id, referrer=None, user_agent=None):
            raise OperationalError("UPDATE links", {}, Exception("database is locked"))

        monkeypatch.setattr(ClickAccountingService, "record_click", broken_record_click)
        result = await resolve("promo")

        assert result.outcome is RedirectOutcome.OK
        assert result.url == "https://example.com/landing"
        assert await click_count(session_maker, link_id) == 0

    @pytest.mark.asyncio
    async def test_unknown_slug(self, resolve):
        result = await resolve("missing")
        assert result.outcome is RedirectOutcome.NOT_FOUND
        assert result.url is None

    @pytest.mark.asyncio
    async def test_expiry_boundary(self, resolve, clock, session_maker, make_account, make_link):
        owner = await make_account()
        expires_at = clock() + 2 * MINUTE_MS
        link = await make_link(owner, "flash", expires_at=expires_at)

        clock.now = expires_at
        assert (await resolve("flash")).outcome is RedirectOutcome.OK

        clock.now = expires_at + 1
        result = await resolve("flash")
        assert result.outcome is RedirectOutcome.EXPIRED
        assert result.reason == "expired"
        assert await click_count(session_maker, link.id) == 1

    @pytest.mark.asyncio
    async def test_max_clicks_serves_exactly_the_limit(self, resolve, session_maker, make_account, make_link):
        owner = await make_account()
        link = await make_link(owner, "limited", max_clicks=2)

        assert (await resolve("limited")).outcome is RedirectOutcome.OK
        assert (await resolve("limited")).outcome is RedirectOutcome.OK

        result = await resolve("limited")
        assert result.outcome is RedirectOutcome.MAX_CLICKS
        assert result.reason == "max-clicks"
        assert await click_count(session_maker, link.id) == 2

    @pytest.mark.asyncio
    async def test_suspension_wins_over_expiry_and_clicks(self, resolve, clock, session_maker, make_account, make_link):
        owner = await make_account(banned=True, banned_at=clock())
        link = await make_link(owner, "banned", expires_at=clock() - 1, max_clicks=1, click_count=1)

        result = await resolve("banned")

        assert result.outcome is RedirectOutcome.SUSPENDED
        assert result.reason == "suspended"
        assert result.url is None
        assert await click_count(session_maker, link.id) == 1

    @pytest.mark.asyncio
    async def test_expiry_checked_before_click_limit(self, resolve, clock, make_account, make_link):
        owner = await make_account()
        await make_link(owner, "both", expires_at=clock() - 1, max_clicks=1, click_count=1)
        assert (await resolve("both")).outcome is RedirectOutcome.EXPIRED


class TestCrawlers:

    @pytest.mark.parametrize("user_agent", [
        "Twitterbot/1.0",
        "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)",
        "Mozilla/5.0 (compatible; Discordbot/2.0; +https://discordapp.com)",
        "Slackbot-LinkExpanding 1.0 (+https://api.slack.com/robots)",
    ])
    def test_known_crawlers(self, user_agent):
        assert is_social_crawler(user_agent)

    @pytest.mark.parametrize("user_agent", [None, "", "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0"])
    def test_browsers(self, user_agent):
        assert not is_social_crawler(user_agent)

    @pytest.mark.asyncio
    async def test_crawler_visit_is_flagged_and_counted(self, resolve, session_maker, make_account, make_link):
        owner = await make_account()
        link = await make_link(owner, "shared")

        result = await resolve("shared", user_agent="Twitterbot/1.0")

        assert result.ok
        assert result.is_crawler
        assert await click_count(session_maker, link.id) == 1
