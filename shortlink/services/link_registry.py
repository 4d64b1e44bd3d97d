"""
Link Registry

This service owns link records:
- Validating and normalizing destination URLs
- Allocating slugs, explicit or auto-generated
- Validating expiry and click-limit fields
- Listing and deleting links on behalf of their owner (or an admin)

Design Decisions:
- Slug uniqueness is decided by the unique index on links.slug. The pre-insert
  lookup only gives a friendly early answer; a concurrent duplicate insert is
  still caught at flush time and reported as SlugTakenError.
- Auto-generated slugs start short (3 characters) and only grow once the
  attempt budget at the current length is spent.
- The alphabet leaves out characters that are easy to misread (0, 1, i, l, o).
"""

import logging
import secrets
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.exceptions import (
    DatabaseError,
    NotFoundError,
    SlugGenerationExhaustedError,
    SlugTakenError,
)
from shortlink.core.setting import settings
from shortlink.core.validators import (
    normalize_url,
    validate_click_limit,
    validate_expiry,
    validate_slug,
)
from shortlink.db.models import ClickEvent, Link
from shortlink.db.sqlite_adapter import get_database_adapter

logger = logging.getLogger(__name__)

AUTO_SLUG_ALPHABET = "abcdefghjkmnpqrstuvwxyz23456789"


def random_slug(length: int) -> str:
    """Draw a slug of ``length`` characters from the unambiguous alphabet."""
    return "".join(secrets.choice(AUTO_SLUG_ALPHABET) for _ in range(length))


class LinkRegistry:
    """
    Core business logic for link records.

    Separated from the API layer for testability; every method works on the
    session it was given and commits its own writes.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = now_ms,
        slug_source: Callable[[int], str] = random_slug,
        min_auto_length: int = None,
        max_auto_length: int = None,
        attempts_per_length: int = None,
    ):
        """
        Args:
            session: Database session
            clock: Source of the current time in epoch milliseconds
            slug_source: Produces one random candidate of a given length
            min_auto_length / max_auto_length: Auto-slug length range
            attempts_per_length: Draws at one length before escalating
        """
        self.session = session
        self.clock = clock
        self.slug_source = slug_source
        self.min_auto_length = min_auto_length if min_auto_length is not None else settings.SLUG_MIN_AUTO_LENGTH
        self.max_auto_length = max_auto_length if max_auto_length is not None else settings.SLUG_MAX_AUTO_LENGTH
        self.attempts_per_length = attempts_per_length if attempts_per_length is not None else settings.SLUG_ATTEMPTS_PER_LENGTH
        self.db_adapter = get_database_adapter()

    async def slug_exists(self, slug: str) -> bool:
        statement = select(Link.id).where(Link.slug == slug).limit(1)
        result = await self.session.execute(statement)
        return result.first() is not None

    async def generate_slug(self) -> str:
        """
        Find a free auto-generated slug.

        Tries ``attempts_per_length`` candidates at each length from
        min_auto_length to max_auto_length, returning the first free one.

        Raises:
            SlugGenerationExhaustedError: If every length ran out of attempts
        """
        attempts = 0
        for length in range(self.min_auto_length, self.max_auto_length + 1):
            for _ in range(self.attempts_per_length):
                candidate = self.slug_source(length)
                attempts += 1
                if not await self.slug_exists(candidate):
                    return candidate
            logger.info(f"No free slug of length {length} after {self.attempts_per_length} attempts")

        logger.error(f"Slug generation exhausted after {attempts} attempts")
        raise SlugGenerationExhaustedError(attempts)

    async def create_link(
        self,
        owner_id: int,
        url: str,
        slug: Optional[str] = None,
        expires_at=None,
        max_clicks=None,
    ) -> Link:
        """
        Create a new link.

        Args:
            owner_id: Account that will own the link
            url: Destination; must be an absolute http(s) URL
            slug: Explicit slug, or None/blank to auto-generate
            expires_at: Optional absolute expiry in epoch milliseconds
            max_clicks: Optional cap on served redirects

        Returns:
            The persisted Link

        Raises:
            InvalidURLError, InvalidExpiryError, InvalidClickLimitError,
            InvalidSlugError: Validation failures, nothing is written
            SlugTakenError: The explicit slug is already in use
            SlugGenerationExhaustedError: No free auto slug was found
            DatabaseError: Any other storage failure
        """
        now = self.clock()
        normalized_url = normalize_url(url)
        if expires_at is not None:
            expires_at = validate_expiry(expires_at, now)
        if max_clicks is not None:
            max_clicks = validate_click_limit(max_clicks)

        explicit = slug is not None and str(slug).strip() != ""
        if explicit:
            final_slug = validate_slug(slug)
            if await self.slug_exists(final_slug):
                raise SlugTakenError(final_slug)
        else:
            final_slug = await self.generate_slug()

        link = Link(
            slug=final_slug,
            url=normalized_url,
            owner_id=owner_id,
            created_at=now,
            click_count=0,
            expires_at=expires_at,
            max_clicks=max_clicks,
        )

        try:
            self.session.add(link)
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if self.db_adapter.is_unique_violation(e, "slug"):
                logger.info(f"Slug '{final_slug}' was taken by a concurrent request")
                raise SlugTakenError(final_slug)
            raise DatabaseError("Failed to create link: database constraint violation", original_error=e)
        except Exception as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to create link: {str(e)}", original_error=e)

        logger.info(f"Created link id={link.id} slug={final_slug} owner={owner_id}")
        return link

    async def get_by_slug(self, slug: str) -> Optional[Link]:
        """Point lookup used by the public redirect path. No authorization."""
        statement = select(Link).where(Link.slug == slug)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get(self, link_id: int) -> Optional[Link]:
        return await self.session.get(Link, link_id)

    async def get_owned(self, owner_id: int, link_id: int) -> Link:
        """
        Fetch a link only if ``owner_id`` owns it.

        Raises:
            NotFoundError: Missing and foreign links look the same to the caller
        """
        link = await self.get(link_id)
        if link is None or link.owner_id != owner_id:
            raise NotFoundError("Link")
        return link

    async def list_for_owner(self, owner_id: int) -> List[Link]:
        """All links owned by the account, newest first."""
        statement = (
            select(Link)
            .where(Link.owner_id == owner_id)
            .order_by(Link.created_at.desc(), Link.id.desc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def delete_link(self, owner_id: Optional[int], link_id: int, as_admin: bool = False) -> None:
        """
        Delete a link and its click events.

        Args:
            owner_id: The caller; must own the link unless as_admin is set
            link_id: Link to delete
            as_admin: Skip the ownership check (admin authorization path)

        Raises:
            NotFoundError: Link missing, or not owned by a non-admin caller
        """
        link = await self.get(link_id)
        if link is None or (not as_admin and link.owner_id != owner_id):
            raise NotFoundError("Link")

        await self.delete_cascade([link.id])
        await self.session.commit()
        logger.info(f"Deleted link id={link_id} slug={link.slug} admin={as_admin}")

    async def delete_cascade(self, link_ids: List[int]) -> None:
        """
        Remove links and their click events without committing.

        Events go first so a partial failure never leaves orphaned events
        behind a deleted link; running it again finishes the job.
        """
        if not link_ids:
            return
        await self.session.execute(delete(ClickEvent).where(ClickEvent.link_id.in_(link_ids)))
        await self.session.execute(delete(Link).where(Link.id.in_(link_ids)))
