"""
Admin Endpoints

Moderation and maintenance routes. Every route requires an account with the
admin role.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.api.dependencies import require_admin
from shortlink.api.errors import to_http_exception
from shortlink.api.schemas import (
    AccountResponse,
    AdminLinkResponse,
    QuotaOverrideRequest,
    ReconcileRequest,
    ReconcileResponse,
    UserSummaryResponse,
)
from shortlink.core.exceptions import ShortLinkException
from shortlink.db.models import Account
from shortlink.db.session import get_session
from shortlink.services.admin_service import AdminService

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def account_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        email=account.email,
        role=account.role,
        banned=account.banned,
        api_quota_limit=account.api_quota_limit,
    )


@router.get("/users", response_model=List[UserSummaryResponse])
async def list_users(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> List[UserSummaryResponse]:
    users = await AdminService(session, admin).list_users()
    return [UserSummaryResponse(**vars(user)) for user in users]


@router.get("/links", response_model=List[AdminLinkResponse])
async def list_all_links(
    limit: int = Query(100),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> List[AdminLinkResponse]:
    links = await AdminService(session, admin).list_all_links(limit)
    return [AdminLinkResponse(**vars(link)) for link in links]


@router.post("/users/{account_id}/ban", response_model=AccountResponse)
async def ban_user(
    account_id: int,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> AccountResponse:
    try:
        account = await AdminService(session, admin).ban_user(account_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return account_response(account)


@router.post("/users/{account_id}/unban", response_model=AccountResponse)
async def unban_user(
    account_id: int,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> AccountResponse:
    try:
        account = await AdminService(session, admin).unban_user(account_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return account_response(account)


@router.put("/users/{account_id}/quota", response_model=AccountResponse)
async def set_quota_override(
    account_id: int,
    body: QuotaOverrideRequest,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> AccountResponse:
    try:
        account = await AdminService(session, admin).set_quota_override(account_id, body.limit)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return account_response(account)


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    account_id: int,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await AdminService(session, admin).delete_user(account_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: int,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await AdminService(session, admin).delete_link(link_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/maintenance/reconcile-clicks", response_model=ReconcileResponse)
async def reconcile_clicks(
    body: ReconcileRequest = None,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> ReconcileResponse:
    """Recount click_count from the event log and backfill last_clicked_at."""
    link_ids = body.link_ids if body is not None else None
    report = await AdminService(session, admin).reconcile_clicks(link_ids)
    return ReconcileResponse(scanned=report.scanned, updated=report.updated)
