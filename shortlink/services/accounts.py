"""
Account Service

Accounts are created the first time an authenticated identity reaches the
service. Authentication itself happens upstream; this service only maps the
verified email to an account row.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.exceptions import InvalidInputError
from shortlink.core.setting import settings
from shortlink.db.models import Account

logger = logging.getLogger(__name__)


class AccountService:

    def __init__(self, session: AsyncSession, clock: Clock = now_ms, admin_emails: Iterable[str] = None):
        self.session = session
        self.clock = clock
        emails = admin_emails if admin_emails is not None else settings.ADMIN_EMAILS
        self.admin_emails = {email.strip().lower() for email in emails}

    async def get(self, account_id: int) -> Optional[Account]:
        return await self.session.get(Account, account_id)

    async def get_by_email(self, email: str) -> Optional[Account]:
        statement = select(Account).where(Account.email == email)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_or_create(self, email: str) -> Account:
        """
        Return the account for ``email``, creating it on first sight.

        Raises:
            InvalidInputError: If the email is blank
        """
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise InvalidInputError("email", "A valid email is required")

        account = await self.get_by_email(email)
        if account is not None:
            return account

        account = Account(
            email=email,
            role="admin" if email in self.admin_emails else "user",
            created_at=self.clock(),
        )
        try:
            self.session.add(account)
            await self.session.commit()
        except IntegrityError:
            # Another request created the same account first
            await self.session.rollback()
            return await self.get_by_email(email)

        logger.info(f"Created account id={account.id} role={account.role}")
        return account
