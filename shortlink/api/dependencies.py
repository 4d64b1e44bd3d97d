"""
Request dependencies shared by the session-authenticated routers.

Authentication happens in front of this service (reverse proxy / identity
provider). The verified email arrives in the X-Account-Email header; the
account is created the first time it is seen.
"""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.exceptions import InvalidInputError
from shortlink.db.models import Account
from shortlink.db.session import get_session
from shortlink.services.accounts import AccountService


async def get_current_account(
    x_account_email: str = Header(None),
    session: AsyncSession = Depends(get_session),
) -> Account:
    if not x_account_email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        account = await AccountService(session).get_or_create(x_account_email)
    except InvalidInputError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if account.banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account suspended")
    return account


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    if not account.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return account
