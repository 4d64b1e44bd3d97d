"""
Click Accounting Service

This service records visits and maintains the denormalized click counter.

Design Decisions:
- click_events is the source of truth; links.click_count is a cache of it
- The counter is advanced with a single UPDATE ... SET click_count = click_count + 1
  so concurrent redirects never lose increments
- Writing the event is best-effort: if it fails, the failure is logged and
  the counter is still advanced, because the redirect is what the visitor is
  waiting for
- reconcile() brings counters back in line with the log after drift or a
  schema change
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.validators import normalize_referrer
from shortlink.db.models import ClickEvent, Link

logger = logging.getLogger(__name__)

MAX_RECENT_CLICKS = 100
MAX_TOP_REFERRERS = 20
MAX_USER_AGENT_LENGTH = 500


@dataclass
class ReferrerCount:
    domain: str
    count: int


@dataclass
class ReconcileReport:
    scanned: int
    updated: int


class ClickAccountingService:
    """
    Service for recording clicks and reading click analytics.
    """

    def __init__(self, session: AsyncSession, clock: Clock = now_ms):
        self.session = session
        self.clock = clock

    async def record_click(
        self,
        link_id: int,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> int:
        """
        Record one visit to a link.

        Args:
            link_id: The link that was followed
            referrer: Raw Referer header, normalized to a host before storing
            user_agent: Raw User-Agent header

        Returns:
            The timestamp stamped on the event and on last_clicked_at
        """
        now = self.clock()

        try:
            event = ClickEvent(
                link_id=link_id,
                created_at=now,
                referrer=normalize_referrer(referrer),
                user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
            )
            self.session.add(event)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Failed to log click event for link {link_id}: {str(e)}",
                exc_info=True
            )

        statement = (
            update(Link)
            .where(Link.id == link_id)
            .values(click_count=Link.click_count + 1, last_clicked_at=now)
        )
        await self.session.execute(statement)
        await self.session.commit()
        return now

    async def list_recent(self, link_id: int, limit: int = MAX_RECENT_CLICKS) -> List[ClickEvent]:
        """Most recent click events, newest first; limit is capped at 100."""
        limit = max(1, min(limit, MAX_RECENT_CLICKS))
        statement = (
            select(ClickEvent)
            .where(ClickEvent.link_id == link_id)
            .order_by(ClickEvent.created_at.desc(), ClickEvent.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def top_referrers(self, link_id: int, limit: int = 10) -> List[ReferrerCount]:
        """
        Referrer domains ranked by click count.

        Ties are broken alphabetically by domain; limit is capped at 20.
        """
        limit = max(1, min(limit, MAX_TOP_REFERRERS))
        clicks = func.count(ClickEvent.id).label("clicks")
        statement = (
            select(ClickEvent.referrer, clicks)
            .where(ClickEvent.link_id == link_id)
            .group_by(ClickEvent.referrer)
            .order_by(clicks.desc(), ClickEvent.referrer.asc())
            .limit(limit)
        )
        result = await self.session.execute(statement)
        return [ReferrerCount(domain=row[0], count=row[1]) for row in result.all()]

    async def reconcile(self, link_ids: Optional[Iterable[int]] = None) -> ReconcileReport:
        """
        Recompute click_count from the event log and backfill last_clicked_at.

        Args:
            link_ids: Restrict to these links; all links when None

        Returns:
            How many links were examined and how many were corrected
        """
        link_statement = select(Link.id, Link.click_count, Link.last_clicked_at)
        event_statement = (
            select(ClickEvent.link_id, func.count(ClickEvent.id), func.max(ClickEvent.created_at))
            .group_by(ClickEvent.link_id)
        )
        if link_ids is not None:
            ids = list(link_ids)
            link_statement = link_statement.where(Link.id.in_(ids))
            event_statement = event_statement.where(ClickEvent.link_id.in_(ids))

        links = (await self.session.execute(link_statement)).all()
        totals = {
            row[0]: (row[1], row[2])
            for row in (await self.session.execute(event_statement)).all()
        }

        updated = 0
        for link_id, click_count, last_clicked_at in links:
            event_count, latest_event = totals.get(link_id, (0, None))
            values = {}
            if click_count != event_count:
                values["click_count"] = event_count
            if latest_event is not None and (last_clicked_at is None or last_clicked_at < latest_event):
                values["last_clicked_at"] = latest_event
            if values:
                await self.session.execute(update(Link).where(Link.id == link_id).values(**values))
                updated += 1

        await self.session.commit()
        if updated:
            logger.info(f"Reconciled click counters: {updated} of {len(links)} links updated")
        return ReconcileReport(scanned=len(links), updated=updated)
