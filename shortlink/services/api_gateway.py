"""
API Key Gateway

Entry point of the keyed creation API. Checks run cheapest and broadest
first, so abusive traffic is turned away before it reaches validation or the
slug index:

    authenticate -> account suspended? -> burst limit -> quota -> create link
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.exceptions import (
    AccountSuspendedError,
    InvalidApiKeyError,
    RateLimitExceededError,
)
from shortlink.core.setting import settings
from shortlink.db.models import Account, ApiKey
from shortlink.services.api_keys import ApiKeyService
from shortlink.services.link_registry import LinkRegistry
from shortlink.services.quota import QuotaEnforcer
from shortlink.services.rate_limiter import BurstRateLimiter

logger = logging.getLogger(__name__)


def build_short_url(slug: str, base_url: str = None) -> str:
    return f"{(base_url or settings.BASE_URL).rstrip('/')}/{slug}"


@dataclass
class ApiCreateResult:
    id: int
    slug: str
    url: str
    short_url: str
    rate_limit_remaining: int


class ApiKeyGateway:
    """Authenticates API keys and orchestrates link creation through them."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = now_ms,
        rate_limiter: BurstRateLimiter = None,
        quota: QuotaEnforcer = None,
        registry: LinkRegistry = None,
    ):
        self.session = session
        self.clock = clock
        self.keys = ApiKeyService(session, clock=clock)
        self.rate_limiter = rate_limiter or BurstRateLimiter(session, clock=clock)
        self.quota = quota or QuotaEnforcer(session, clock=clock)
        self.registry = registry or LinkRegistry(session, clock=clock)

    async def authenticate(self, raw_key) -> ApiKey:
        """
        Raises:
            InvalidApiKeyError: For a missing, malformed, unknown or inactive key
        """
        api_key = await self.keys.find_active(raw_key)
        if api_key is None:
            raise InvalidApiKeyError()
        return api_key

    async def create_via_api(
        self,
        raw_key,
        url: str,
        slug: Optional[str] = None,
        expires_at=None,
        max_clicks=None,
    ) -> ApiCreateResult:
        """
        Create a link on behalf of the key's owner.

        Raises:
            InvalidApiKeyError, AccountSuspendedError, RateLimitExceededError,
            QuotaExceededError, and anything LinkRegistry.create_link raises
        """
        api_key = await self.authenticate(raw_key)
        key_id, owner_id = api_key.id, api_key.owner_id

        owner = await self.session.get(Account, owner_id)
        if owner is None or owner.banned:
            raise AccountSuspendedError()

        rate_limit = await self.rate_limiter.check_and_record(key_id)
        if not rate_limit.allowed:
            raise RateLimitExceededError(self.rate_limiter.max_requests, self.rate_limiter.window_ms)

        await self.quota.check_quota(owner_id)

        link = await self.registry.create_link(
            owner_id,
            url,
            slug=slug,
            expires_at=expires_at,
            max_clicks=max_clicks,
        )

        api_key.last_used_at = self.clock()
        await self.session.commit()

        logger.info(f"API key {key_id} created link {link.slug}")
        return ApiCreateResult(
            id=link.id,
            slug=link.slug,
            url=link.url,
            short_url=build_short_url(link.slug),
            rate_limit_remaining=rate_limit.remaining,
        )
