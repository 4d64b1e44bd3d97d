"""
Burst Rate Limiter

Caps how fast a single API key can call the creation API.

Algorithm: sliding-window counter stored in rate_limit_records. Each accepted
request adds one row; a request is refused when the key already has
``max_requests`` rows newer than ``now - window``. Refused requests are not
recorded, so hammering a blocked key does not extend the block. Rows older
than the window are pruned inline on every accepted request.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.setting import settings
from shortlink.db.models import RateLimitRecord

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int


class BurstRateLimiter:
    """Per-API-key request cap over a short window."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = now_ms,
        window_ms: int = None,
        max_requests: int = None,
    ):
        self.session = session
        self.clock = clock
        self.window_ms = window_ms if window_ms is not None else settings.BURST_WINDOW_MS
        self.max_requests = max_requests if max_requests is not None else settings.BURST_MAX_REQUESTS

    async def count_in_window(self, api_key_id: int, now: int) -> int:
        statement = (
            select(func.count(RateLimitRecord.id))
            .where(RateLimitRecord.api_key_id == api_key_id)
            .where(RateLimitRecord.timestamp > now - self.window_ms)
        )
        result = await self.session.execute(statement)
        return result.scalar() or 0

    async def check_and_record(self, api_key_id: int) -> RateLimitResult:
        """
        Admit or refuse one request for ``api_key_id``.

        Returns:
            RateLimitResult(allowed, remaining); remaining counts the requests
            still available in the current window after this one
        """
        now = self.clock()
        count = await self.count_in_window(api_key_id, now)

        if count >= self.max_requests:
            logger.info(f"Burst limit reached for api key {api_key_id}: {count}/{self.max_requests}")
            return RateLimitResult(allowed=False, remaining=0)

        self.session.add(RateLimitRecord(api_key_id=api_key_id, timestamp=now))
        await self.session.execute(
            delete(RateLimitRecord)
            .where(RateLimitRecord.api_key_id == api_key_id)
            .where(RateLimitRecord.timestamp <= now - self.window_ms)
        )
        await self.session.commit()

        return RateLimitResult(allowed=True, remaining=self.max_requests - count - 1)

    async def clear(self, api_key_id: int) -> None:
        """Drop every record of a key (used when the key is deleted)."""
        await self.session.execute(
            delete(RateLimitRecord).where(RateLimitRecord.api_key_id == api_key_id)
        )
