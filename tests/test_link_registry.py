"""
Tests for link creation, slug allocation and deletion.
"""

import asyncio
import re

import pytest
from sqlalchemy import func, select

from shortlink.core.clock import MINUTE_MS
from shortlink.core.exceptions import (
    InvalidClickLimitError,
    InvalidExpiryError,
    InvalidSlugError,
    InvalidURLError,
    NotFoundError,
    SlugGenerationExhaustedError,
    SlugTakenError,
)
from shortlink.db.models import ClickEvent, Link
from shortlink.services.link_registry import AUTO_SLUG_ALPHABET, LinkRegistry, random_slug

AUTO_SLUG_RE = re.compile(r"^[a-z2-9]{3,8}$")


class TestRandomSlug:

    def test_alphabet_excludes_ambiguous_characters(self):
        for char in "01ilo":
            assert char not in AUTO_SLUG_ALPHABET

    def test_random_slug_shape(self):
        for length in (3, 5, 8):
            slug = random_slug(length)
            assert len(slug) == length
            assert AUTO_SLUG_RE.match(slug)


class TestCreateLink:

    @pytest.mark.asyncio
    async def test_create_with_explicit_slug(self, session, clock, make_account):
        owner = await make_account()
        registry = LinkRegistry(session, clock=clock)

        link = await registry.create_link(owner.id, "HTTPS://Example.com", slug="promo")

        assert link.id is not None
        assert link.slug == "promo"
        assert link.url == "https://example.com/"
        assert link.owner_id == owner.id
        assert link.created_at == clock()
        assert link.click_count == 0
        assert link.expires_at is None and link.max_clicks is None

    @pytest.mark.asyncio
    async def test_create_with_auto_slug(self, session, clock, make_account):
        owner = await make_account()
        link = await LinkRegistry(session, clock=clock).create_link(owner.id, "https://example.com/a")
        assert AUTO_SLUG_RE.match(link.slug)

    @pytest.mark.asyncio
    async def test_blank_slug_is_auto_generated(self, session, clock, make_account):
        owner = await make_account()
        link = await LinkRegistry(session, clock=clock).create_link(owner.id, "https://example.com/a", slug="   ")
        assert AUTO_SLUG_RE.match(link.slug)

    @pytest.mark.asyncio
    async def test_lifecycle_limits_are_stored(self, session, clock, make_account):
        owner = await make_account()
        link = await LinkRegistry(session, clock=clock).create_link(
            owner.id,
            "https://example.com/a",
            expires_at=clock() + 10 * MINUTE_MS,
            max_clicks=3.0,
        )
        assert link.expires_at == clock() + 10 * MINUTE_MS
        assert link.max_clicks == 3

    @pytest.mark.asyncio
    async def test_duplicate_slug_rejected(self, session, clock, make_account):
        owner = await make_account()
        registry = LinkRegistry(session, clock=clock)
        await registry.create_link(owner.id, "https://example.com/a", slug="promo")

        with pytest.raises(SlugTakenError) as exc_info:
            await registry.create_link(owner.id, "https://example.com/b", slug="promo")
        assert str(exc_info.value) == "Slug already exists"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs, error", [
        ({"url": "ftp://example.com"}, InvalidURLError),
        ({"url": "https://example.com", "slug": "no spaces"}, InvalidSlugError),
        ({"url": "https://example.com", "slug": "docs"}, InvalidSlugError),
        ({"url": "https://example.com", "expires_at": 0}, InvalidExpiryError),
        ({"url": "https://example.com", "max_clicks": 0}, InvalidClickLimitError),
    ])
    async def test_validation_failures_write_nothing(self, session, clock, make_account, kwargs, error):
        owner = await make_account()
        with pytest.raises(error):
            await LinkRegistry(session, clock=clock).create_link(owner.id, **kwargs)

        count = (await session.execute(select(func.count(Link.id)))).scalar()
        assert count == 0

    @pytest.mark.asyncio
    async def test_concurrent_same_slug_exactly_one_wins(self, session_maker, clock, make_account):
        """Two requests racing for one slug: the unique index lets only one through."""
        owner = await make_account()

        async def attempt(url):
            async with session_maker() as s:
                try:
                    await LinkRegistry(s, clock=clock).create_link(owner.id, url, slug="launch")
                    return "created"
                except SlugTakenError:
                    return "taken"

        results = await asyncio.gather(
            attempt("https://example.com/one"),
            attempt("https://example.com/two"),
        )
        assert sorted(results) == ["created", "taken"]

        async with session_maker() as s:
            count = (await s.execute(select(func.count(Link.id)).where(Link.slug == "launch"))).scalar()
        assert count == 1


class TestSlugGeneration:

    @pytest.mark.asyncio
    async def test_escalates_length_after_attempt_budget(self, session, clock, make_account, make_link):
        owner = await make_account()
        await make_link(owner, "abc")
        draws = []

        def source(length):
            draws.append(length)
            return "abc" if length == 3 else "abcd"

        registry = LinkRegistry(session, clock=clock, slug_source=source)
        slug = await registry.generate_slug()

        assert slug == "abcd"
        assert draws == [3] * 12 + [4]

    @pytest.mark.asyncio
    async def test_exhaustion(self, session, clock, make_account, make_link):
        owner = await make_account()
        await make_link(owner, "abc")

        registry = LinkRegistry(session, clock=clock, slug_source=lambda length: "abc")
        with pytest.raises(SlugGenerationExhaustedError) as exc_info:
            await registry.create_link(owner.id, "https://example.com/")
        assert exc_info.value.attempts == 6 * 12

    @pytest.mark.asyncio
    async def test_zero_attempt_budget_is_honoured(self, session, clock, make_account):
        owner = await make_account()

        registry = LinkRegistry(session, clock=clock, attempts_per_length=0)
        with pytest.raises(SlugGenerationExhaustedError) as exc_info:
            await registry.create_link(owner.id, "https://example.com/")
        assert exc_info.value.attempts == 0


class TestOwnershipAndDeletion:

    @pytest.mark.asyncio
    async def test_list_for_owner_newest_first(self, session, clock, make_account):
        owner = await make_account()
        other = await make_account("other@example.com")
        registry = LinkRegistry(session, clock=clock)

        first = await registry.create_link(owner.id, "https://example.com/1", slug="first")
        clock.advance(1000)
        second = await registry.create_link(owner.id, "https://example.com/2", slug="second")
        await registry.create_link(other.id, "https://example.com/3", slug="third")

        links = await registry.list_for_owner(owner.id)
        assert [link.id for link in links] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_get_owned_hides_foreign_links(self, session, clock, make_account, make_link):
        owner = await make_account()
        other = await make_account("other@example.com")
        link = await make_link(owner, "mine")

        registry = LinkRegistry(session, clock=clock)
        assert (await registry.get_owned(owner.id, link.id)).id == link.id
        with pytest.raises(NotFoundError):
            await registry.get_owned(other.id, link.id)

    @pytest.mark.asyncio
    async def test_delete_removes_click_events(self, session, clock, make_account, make_link):
        owner = await make_account()
        link = await make_link(owner, "gone")
        kept = await make_link(owner, "kept")
        session.add_all([
            ClickEvent(link_id=link.id, created_at=clock(), referrer="direct/unknown"),
            ClickEvent(link_id=kept.id, created_at=clock(), referrer="direct/unknown"),
        ])
        await session.commit()

        await LinkRegistry(session, clock=clock).delete_link(owner.id, link.id)

        assert await session.get(Link, link.id) is None
        remaining = (await session.execute(select(ClickEvent.link_id))).scalars().all()
        assert remaining == [kept.id]

    @pytest.mark.asyncio
    async def test_delete_requires_ownership_unless_admin(self, session, clock, make_account, make_link):
        owner = await make_account()
        other = await make_account("other@example.com")
        link = await make_link(owner, "guarded")
        registry = LinkRegistry(session, clock=clock)

        with pytest.raises(NotFoundError):
            await registry.delete_link(other.id, link.id)

        await registry.delete_link(None, link.id, as_admin=True)
        assert await registry.get_by_slug("guarded") is None
