"""
Public Endpoints for the shortlink service

This module defines the unauthenticated surface:
- GET /unavailable      Explains why a link can no longer be followed
- POST /api/create      Keyed link creation (authenticated by API key)
- POST /api/validate-key
- GET /{slug}           The redirect hot path (registered last)

Endpoints only handle request parsing, edge rate limiting and translating
service results into HTTP responses; all decisions live in the services.
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.api.errors import limit_details, retry_after_header, status_for
from shortlink.api.schemas import (
    ApiCreateRequest,
    ApiCreateResponse,
    ApiKeyValidateRequest,
    ApiKeyValidateResponse,
    ErrorResponse,
)
from shortlink.core.clock import now_ms
from shortlink.core.exceptions import ShortLinkException
from shortlink.core.rate_limit import RATE_LIMITS, limiter
from shortlink.core.setting import settings
from shortlink.core.validators import sanitize_slug
from shortlink.db.session import get_session
from shortlink.services.api_gateway import ApiKeyGateway
from shortlink.services.api_keys import ApiKeyService
from shortlink.services.link_preview import LinkPreview, fetch_preview, render_preview_document
from shortlink.services.redirect_resolver import RedirectOutcome, RedirectResolver

logger = logging.getLogger(__name__)

router = APIRouter()

UNAVAILABLE_MESSAGES = {
    "suspended": "This link has been disabled because its owner's account is suspended.",
    "expired": "This link has expired.",
    "max-clicks": "This link has reached its maximum number of clicks.",
}


def get_preview_fetcher() -> Callable:
    """Dependency so tests can swap out the outbound fetch."""
    return fetch_preview


def error_response(exc: ShortLinkException) -> JSONResponse:
    status_code = status_for(exc)
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"API create failed: {exc}", exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=status_code)
    return JSONResponse(
        {"error": str(exc), **limit_details(exc)},
        status_code=status_code,
        headers=retry_after_header(exc, now_ms()),
    )


@router.get(
    "/unavailable",
    response_class=HTMLResponse,
    summary="Link unavailable page",
)
async def unavailable(reason: str = "") -> HTMLResponse:
    message = UNAVAILABLE_MESSAGES.get(reason, "This link is unavailable.")
    return HTMLResponse(
        "<!DOCTYPE html>\n<html lang=\"en\">\n<head><meta charset=\"UTF-8\">"
        "<title>Link unavailable</title></head>\n"
        f"<body><h1>Link unavailable</h1><p>{message}</p></body>\n</html>\n"
    )


@router.post(
    "/api/create",
    response_model=ApiCreateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse},
               409: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    summary="Create a short link with an API key",
)
@limiter.limit(RATE_LIMITS["api_create"])
async def api_create_link(
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """
    Body: {apiKey, slug?, url, expiresAt?, maxClicks?}

    Returns {id, slug, url, shortUrl, rateLimitRemaining}, or {error} with
    401 (key or suspension), 400 (validation), 409 (slug), 429 (burst or quota).
    """
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse({"error": "Request body must be JSON"}, status_code=status.HTTP_400_BAD_REQUEST)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "Request body must be a JSON object"}, status_code=status.HTTP_400_BAD_REQUEST)

    body = ApiCreateRequest.model_validate(payload)

    try:
        result = await ApiKeyGateway(session).create_via_api(
            body.api_key,
            body.url,
            slug=body.slug,
            expires_at=body.expires_at,
            max_clicks=body.max_clicks,
        )
    except ShortLinkException as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Unexpected error in API create: {str(e)}", exc_info=True)
        return JSONResponse({"error": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return ApiCreateResponse(
        id=result.id,
        slug=result.slug,
        url=result.url,
        short_url=result.short_url,
        rate_limit_remaining=result.rate_limit_remaining,
    )


@router.post(
    "/api/validate-key",
    response_model=ApiKeyValidateResponse,
    summary="Check whether an API key is usable",
)
@limiter.limit(RATE_LIMITS["api_create"])
async def api_validate_key(
    request: Request,
    body: ApiKeyValidateRequest,
    session: AsyncSession = Depends(get_session),
) -> ApiKeyValidateResponse:
    validation = await ApiKeyService(session).validate(body.api_key)
    return ApiKeyValidateResponse(valid=validation.valid, name=validation.name)


@router.get(
    "/{slug}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect to the destination URL",
    description="Resolves a slug; crawlers receive an HTML preview instead of a redirect",
)
@limiter.limit(RATE_LIMITS["redirect"])
async def redirect_to_url(
    slug: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    preview_fetcher: Callable = Depends(get_preview_fetcher),
):
    """
    Returns:
        302 to the destination, an HTML preview for crawlers, 404 for unknown
        slugs, or 302 to the unavailable page with ?reason=
    """
    sanitized = sanitize_slug(slug)
    if not sanitized:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    result = await RedirectResolver(session).resolve(
        sanitized,
        referrer=request.headers.get("Referer"),
        user_agent=request.headers.get("User-Agent"),
    )

    if result.outcome is RedirectOutcome.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    if not result.ok:
        return RedirectResponse(
            url=f"{settings.UNAVAILABLE_PATH}?reason={result.reason}",
            status_code=status.HTTP_302_FOUND,
        )

    if result.is_crawler:
        try:
            preview = await preview_fetcher(result.url)
        except Exception as e:
            logger.error(f"Preview fetch for {sanitized} failed: {str(e)}", exc_info=True)
            preview = LinkPreview()
        return HTMLResponse(render_preview_document(result.url, sanitized, preview))

    return RedirectResponse(url=result.url, status_code=status.HTTP_302_FOUND)
