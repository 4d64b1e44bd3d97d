"""
Redirect Resolver

This service handles the public redirect hot path.

For a slug it decides exactly one outcome, checking in a fixed order and
stopping at the first failure:

    NOT_FOUND -> SUSPENDED -> EXPIRED -> MAX_CLICKS -> OK

The expiry and click-limit checks read the link as fetched at the start of the
request. The click limit is checked before the click is counted, so the click
that brings click_count up to max_clicks is the last one served. Two racing
requests may both pass the check; max_clicks is a soft cap.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.db.models import Account
from shortlink.services.click_accounting import ClickAccountingService
from shortlink.services.link_registry import LinkRegistry

logger = logging.getLogger(__name__)

SOCIAL_CRAWLERS = (
    "twitterbot",
    "facebookexternalhit",
    "linkedinbot",
    "discordbot",
    "telegrambot",
    "slackbot",
    "whatsapp",
    "vkshare",
    "pinterest",
)


class RedirectOutcome(str, Enum):
    NOT_FOUND = "not_found"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    MAX_CLICKS = "max_clicks"
    OK = "ok"


# Value of the ?reason= parameter on the unavailable page
UNAVAILABLE_REASONS = {
    RedirectOutcome.SUSPENDED: "suspended",
    RedirectOutcome.EXPIRED: "expired",
    RedirectOutcome.MAX_CLICKS: "max-clicks",
}


def is_social_crawler(user_agent: Optional[str]) -> bool:
    """True if the user agent belongs to a link-preview crawler."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(crawler in ua for crawler in SOCIAL_CRAWLERS)


@dataclass
class ResolveResult:
    outcome: RedirectOutcome
    url: Optional[str] = None
    is_crawler: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome is RedirectOutcome.OK

    @property
    def reason(self) -> Optional[str]:
        return UNAVAILABLE_REASONS.get(self.outcome)


class RedirectResolver:
    """
    Service for resolving a slug into a redirect decision.

    The result never carries the link owner; only the destination URL leaves
    this service.
    """

    def __init__(self, session: AsyncSession, clock: Clock = now_ms):
        self.session = session
        self.clock = clock
        self.registry = LinkRegistry(session, clock=clock)
        self.clicks = ClickAccountingService(session, clock=clock)

    async def resolve(
        self,
        slug: str,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ResolveResult:
        link = await self.registry.get_by_slug(slug)
        if link is None:
            return ResolveResult(RedirectOutcome.NOT_FOUND)

        owner = await self.session.get(Account, link.owner_id)
        if owner is not None and owner.banned:
            return ResolveResult(RedirectOutcome.SUSPENDED)

        now = self.clock()
        if link.expires_at is not None and now > link.expires_at:
            return ResolveResult(RedirectOutcome.EXPIRED)

        if link.max_clicks is not None and link.click_count >= link.max_clicks:
            return ResolveResult(RedirectOutcome.MAX_CLICKS)

        link_id, destination = link.id, link.url
        try:
            await self.clicks.record_click(link_id, referrer=referrer, user_agent=user_agent)
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to count click for {slug}: {str(e)}", exc_info=True)

        return ResolveResult(
            RedirectOutcome.OK,
            url=destination,
            is_crawler=is_social_crawler(user_agent),
        )
