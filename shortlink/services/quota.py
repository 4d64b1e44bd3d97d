"""
Link Creation Quota

Caps how many links an account may create over a rolling window, independent
of per-key burst limits.

The check counts links created inside the window and compares them with the
account's effective limit (admin override or the default). It is a soft cap:
the count and the insert it gates are separate statements, so concurrent
requests can overshoot by at most the number in flight.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.exceptions import NotFoundError, QuotaExceededError
from shortlink.core.setting import settings
from shortlink.db.models import Account, Link

logger = logging.getLogger(__name__)


@dataclass
class QuotaStatus:
    used: int
    limit: int
    remaining: int
    resets_at: Optional[int]
    window_ms: int


class QuotaEnforcer:
    """Per-account rolling-window quota on link creation."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = now_ms,
        window_ms: int = None,
        default_limit: int = None,
    ):
        self.session = session
        self.clock = clock
        self.window_ms = window_ms if window_ms is not None else settings.QUOTA_WINDOW_MS
        self.default_limit = default_limit if default_limit is not None else settings.QUOTA_DEFAULT_LIMIT

    async def effective_limit(self, account_id: int) -> int:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account")
        if account.api_quota_limit is not None:
            return account.api_quota_limit
        return self.default_limit

    async def _window_usage(self, account_id: int, now: int) -> tuple[int, Optional[int]]:
        """Number of links created in the window and the oldest creation time among them."""
        statement = (
            select(func.count(Link.id), func.min(Link.created_at))
            .where(Link.owner_id == account_id)
            .where(Link.created_at > now - self.window_ms)
        )
        result = await self.session.execute(statement)
        count, oldest = result.one()
        return count or 0, oldest

    async def check_quota(self, account_id: int) -> None:
        """
        Raises:
            QuotaExceededError: If the account has no creations left in the window
        """
        now = self.clock()
        limit = await self.effective_limit(account_id)
        used, oldest = await self._window_usage(account_id, now)
        if used >= limit:
            resets_at = oldest + self.window_ms if oldest is not None else None
            logger.info(f"Quota exhausted for account {account_id}: {used}/{limit}")
            raise QuotaExceededError(limit, self.window_ms, resets_at)

    async def status(self, account_id: int) -> QuotaStatus:
        """
        Current usage for display.

        resets_at is when the oldest link in the window ages out, or None
        when nothing was created in the window.
        """
        now = self.clock()
        limit = await self.effective_limit(account_id)
        used, oldest = await self._window_usage(account_id, now)
        return QuotaStatus(
            used=used,
            limit=limit,
            remaining=max(0, limit - used),
            resets_at=oldest + self.window_ms if oldest is not None else None,
            window_ms=self.window_ms,
        )
