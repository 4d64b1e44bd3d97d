"""
Dashboard Endpoints

Session-authenticated routes used by the web dashboard: the caller's links,
their analytics, API keys and quota. The caller is resolved by
get_current_account; every lookup is scoped to that account.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.api.dependencies import get_current_account
from shortlink.api.errors import to_http_exception
from shortlink.api.schemas import (
    AccountResponse,
    ApiKeyCreateRequest,
    ApiKeyCreateResponse,
    ApiKeyResponse,
    ApiKeyUpdateRequest,
    ClickEventResponse,
    LinkCreateRequest,
    LinkResponse,
    QuotaStatusResponse,
    ReferrerCountResponse,
)
from shortlink.core.exceptions import ShortLinkException
from shortlink.db.models import Account, ApiKey, Link
from shortlink.db.session import get_session
from shortlink.services.api_gateway import build_short_url
from shortlink.services.api_keys import ApiKeyService, key_identifier
from shortlink.services.click_accounting import ClickAccountingService
from shortlink.services.link_registry import LinkRegistry
from shortlink.services.quota import QuotaEnforcer

router = APIRouter(prefix="/api", tags=["Dashboard"])


def link_response(link: Link) -> LinkResponse:
    return LinkResponse(
        id=link.id,
        slug=link.slug,
        url=link.url,
        short_url=build_short_url(link.slug),
        created_at=link.created_at,
        click_count=link.click_count,
        last_clicked_at=link.last_clicked_at,
        expires_at=link.expires_at,
        max_clicks=link.max_clicks,
    )


def key_response(api_key: ApiKey) -> ApiKeyResponse:
    return ApiKeyResponse(
        id=api_key.id,
        name=api_key.name,
        identifier=key_identifier(api_key),
        is_active=api_key.is_active,
        created_at=api_key.created_at,
        last_used_at=api_key.last_used_at,
    )


@router.get("/me", response_model=AccountResponse)
async def get_me(account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        email=account.email,
        role=account.role,
        banned=account.banned,
        api_quota_limit=account.api_quota_limit,
    )


@router.get("/links", response_model=List[LinkResponse])
async def list_links(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> List[LinkResponse]:
    links = await LinkRegistry(session).list_for_owner(account.id)
    return [link_response(link) for link in links]


@router.post("/links", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
async def create_link(
    body: LinkCreateRequest,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> LinkResponse:
    """Create a link from the dashboard; subject to the same quota as the API."""
    try:
        await QuotaEnforcer(session).check_quota(account.id)
        link = await LinkRegistry(session).create_link(
            account.id,
            body.url,
            slug=body.slug,
            expires_at=body.expires_at,
            max_clicks=body.max_clicks,
        )
    except ShortLinkException as e:
        raise to_http_exception(e)
    return link_response(link)


@router.delete("/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: int,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await LinkRegistry(session).delete_link(account.id, link_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/links/{link_id}/clicks", response_model=List[ClickEventResponse])
async def list_clicks(
    link_id: int,
    limit: int = Query(100, ge=1),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> List[ClickEventResponse]:
    try:
        await LinkRegistry(session).get_owned(account.id, link_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    events = await ClickAccountingService(session).list_recent(link_id, limit)
    return [
        ClickEventResponse(
            id=event.id,
            created_at=event.created_at,
            referrer=event.referrer,
            user_agent=event.user_agent,
        )
        for event in events
    ]


@router.get("/links/{link_id}/referrers", response_model=List[ReferrerCountResponse])
async def top_referrers(
    link_id: int,
    limit: int = Query(10, ge=1),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> List[ReferrerCountResponse]:
    try:
        await LinkRegistry(session).get_owned(account.id, link_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    ranked = await ClickAccountingService(session).top_referrers(link_id, limit)
    return [ReferrerCountResponse(domain=row.domain, count=row.count) for row in ranked]


@router.get("/quota", response_model=QuotaStatusResponse)
async def quota_status(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> QuotaStatusResponse:
    quota = await QuotaEnforcer(session).status(account.id)
    return QuotaStatusResponse(
        used=quota.used,
        limit=quota.limit,
        remaining=quota.remaining,
        resets_at=quota.resets_at,
        window_ms=quota.window_ms,
    )


@router.get("/keys", response_model=List[ApiKeyResponse])
async def list_keys(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> List[ApiKeyResponse]:
    keys = await ApiKeyService(session).list_for_owner(account.id)
    return [key_response(api_key) for api_key in keys]


@router.post("/keys", response_model=ApiKeyCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_key(
    body: ApiKeyCreateRequest,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> ApiKeyCreateResponse:
    try:
        api_key, raw_key = await ApiKeyService(session).create(account.id, body.name)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return ApiKeyCreateResponse(
        id=api_key.id,
        key=raw_key,
        name=api_key.name,
        created_at=api_key.created_at,
    )


@router.patch("/keys/{key_id}", response_model=ApiKeyResponse)
async def update_key(
    key_id: int,
    body: ApiKeyUpdateRequest,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> ApiKeyResponse:
    try:
        api_key = await ApiKeyService(session).set_active(account.id, key_id, body.is_active)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return key_response(api_key)


@router.delete("/keys/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_key(
    key_id: int,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await ApiKeyService(session).delete(account.id, key_id)
    except ShortLinkException as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
