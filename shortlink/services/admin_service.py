"""
Admin Service

Moderation and maintenance operations reserved for admin accounts:
banning, quota overrides, account and link removal, counter reconciliation.

Banning keeps every link in place; the redirect resolver refuses them while
the ban lasts. Deleting an account removes its links (with click events),
its API keys (with rate-limit records) and finally the account itself.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.exceptions import (
    InvalidQuotaLimitError,
    NotFoundError,
    PermissionDeniedError,
)
from shortlink.core.setting import settings
from shortlink.db.models import Account, ApiKey, Link, RateLimitRecord
from shortlink.services.click_accounting import ClickAccountingService, ReconcileReport
from shortlink.services.link_registry import LinkRegistry

logger = logging.getLogger(__name__)

MAX_ADMIN_LINK_PAGE = 500


@dataclass
class UserSummary:
    id: int
    email: str
    role: str
    banned: bool
    banned_at: Optional[int]
    api_quota_limit: Optional[int]
    link_count: int
    created_at: int


@dataclass
class AdminLinkSummary:
    id: int
    slug: str
    url: str
    owner_id: int
    owner_email: str
    click_count: int
    created_at: int


class AdminService:

    def __init__(self, session: AsyncSession, admin: Account, clock: Clock = now_ms):
        """
        Args:
            session: Database session
            admin: The acting account; must have the admin role
        """
        if admin is None or not admin.is_admin:
            raise PermissionDeniedError()
        self.session = session
        self.admin = admin
        self.clock = clock
        self.registry = LinkRegistry(session, clock=clock)

    async def _get_target(self, account_id: int) -> Account:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("User")
        return account

    def _guard_target(self, target: Account, action: str) -> None:
        if target.id == self.admin.id:
            raise PermissionDeniedError(f"Cannot {action} yourself")
        if target.is_admin:
            raise PermissionDeniedError(f"Cannot {action} another admin")

    async def list_users(self) -> List[UserSummary]:
        link_counts = dict(
            (await self.session.execute(
                select(Link.owner_id, func.count(Link.id)).group_by(Link.owner_id)
            )).all()
        )
        accounts = (await self.session.execute(
            select(Account).order_by(Account.created_at.desc(), Account.id.desc())
        )).scalars().all()
        return [
            UserSummary(
                id=account.id,
                email=account.email,
                role=account.role,
                banned=account.banned,
                banned_at=account.banned_at,
                api_quota_limit=account.api_quota_limit,
                link_count=link_counts.get(account.id, 0),
                created_at=account.created_at,
            )
            for account in accounts
        ]

    async def list_all_links(self, limit: int = 100) -> List[AdminLinkSummary]:
        limit = min(max(limit, 1), MAX_ADMIN_LINK_PAGE)
        statement = (
            select(Link, Account.email)
            .outerjoin(Account, Account.id == Link.owner_id)
            .order_by(Link.created_at.desc(), Link.id.desc())
            .limit(limit)
        )
        rows = (await self.session.execute(statement)).all()
        return [
            AdminLinkSummary(
                id=link.id,
                slug=link.slug,
                url=link.url,
                owner_id=link.owner_id,
                owner_email=email or "unknown",
                click_count=link.click_count,
                created_at=link.created_at,
            )
            for link, email in rows
        ]

    async def ban_user(self, account_id: int) -> Account:
        target = await self._get_target(account_id)
        self._guard_target(target, "ban")
        target.banned = True
        target.banned_at = self.clock()
        await self.session.commit()
        logger.warning(f"Account {account_id} banned by admin {self.admin.id}")
        return target

    async def unban_user(self, account_id: int) -> Account:
        target = await self._get_target(account_id)
        target.banned = False
        target.banned_at = None
        await self.session.commit()
        logger.info(f"Account {account_id} unbanned by admin {self.admin.id}")
        return target

    async def set_quota_override(self, account_id: int, limit: Optional[int]) -> Account:
        """
        Set or clear an account's link creation quota.

        Args:
            limit: New per-window limit, or None to fall back to the default

        Raises:
            InvalidQuotaLimitError: If limit is outside the allowed bounds
        """
        if limit is not None:
            if (
                isinstance(limit, bool)
                or not isinstance(limit, int)
                or not settings.QUOTA_OVERRIDE_MIN <= limit <= settings.QUOTA_OVERRIDE_MAX
            ):
                raise InvalidQuotaLimitError(limit, settings.QUOTA_OVERRIDE_MIN, settings.QUOTA_OVERRIDE_MAX)

        target = await self._get_target(account_id)
        target.api_quota_limit = limit
        await self.session.commit()
        logger.info(f"Quota override for account {account_id} set to {limit}")
        return target

    async def delete_user(self, account_id: int) -> None:
        """
        Remove an account and everything it owns.

        Every step is a bulk delete keyed by owner, so re-running after a
        partial failure completes the cascade.
        """
        target = await self._get_target(account_id)
        self._guard_target(target, "delete")

        link_ids = list((await self.session.execute(
            select(Link.id).where(Link.owner_id == account_id)
        )).scalars().all())
        await self.registry.delete_cascade(link_ids)

        key_ids = list((await self.session.execute(
            select(ApiKey.id).where(ApiKey.owner_id == account_id)
        )).scalars().all())
        if key_ids:
            await self.session.execute(delete(RateLimitRecord).where(RateLimitRecord.api_key_id.in_(key_ids)))
            await self.session.execute(delete(ApiKey).where(ApiKey.id.in_(key_ids)))

        await self.session.delete(target)
        await self.session.commit()
        logger.warning(
            f"Account {account_id} deleted by admin {self.admin.id}: "
            f"{len(link_ids)} links, {len(key_ids)} api keys"
        )

    async def delete_link(self, link_id: int) -> None:
        await self.registry.delete_link(None, link_id, as_admin=True)

    async def reconcile_clicks(self, link_ids: Optional[List[int]] = None) -> ReconcileReport:
        return await ClickAccountingService(self.session, clock=self.clock).reconcile(link_ids)
