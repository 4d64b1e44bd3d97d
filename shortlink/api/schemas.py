"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Design Principles:
- JSON uses camelCase (apiKey, expiresAt, shortUrl, ...); Python uses snake_case
- Request models accept either spelling
- Timestamps are epoch milliseconds
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiCreateRequest(CamelModel):
    """
    Body of POST /api/create.

    Fields are untyped at the schema level: the key is authenticated and
    rate limited before any value is validated, and bad values are answered
    with the service's own messages.
    """
    api_key: Any = None
    slug: Any = None
    url: Any = None
    expires_at: Any = None
    max_clicks: Any = None


class ApiCreateResponse(CamelModel):
    id: int
    slug: str
    url: str
    short_url: str
    rate_limit_remaining: int


class ErrorResponse(BaseModel):
    error: str


class LinkCreateRequest(CamelModel):
    """Body of the dashboard link creation endpoint."""
    url: str = Field(..., description="Destination URL (http or https)")
    slug: Optional[str] = Field(None, description="Custom slug; auto-generated when omitted")
    expires_at: Optional[float] = Field(None, description="Absolute expiry in epoch milliseconds")
    max_clicks: Optional[float] = Field(None, description="Maximum number of redirects served")


class LinkResponse(CamelModel):
    id: int
    slug: str
    url: str
    short_url: str
    created_at: int
    click_count: int
    last_clicked_at: Optional[int] = None
    expires_at: Optional[int] = None
    max_clicks: Optional[int] = None


class ClickEventResponse(CamelModel):
    id: int
    created_at: int
    referrer: str
    user_agent: Optional[str] = None


class ReferrerCountResponse(CamelModel):
    domain: str
    count: int


class QuotaStatusResponse(CamelModel):
    used: int
    limit: int
    remaining: int
    resets_at: Optional[int] = None
    window_ms: int


class ApiKeyCreateRequest(CamelModel):
    name: str


class ApiKeyCreateResponse(CamelModel):
    """The only response that ever contains the plaintext key."""
    id: int
    key: str
    name: str
    created_at: int


class ApiKeyResponse(CamelModel):
    id: int
    name: str
    identifier: str
    is_active: bool
    created_at: int
    last_used_at: Optional[int] = None


class ApiKeyUpdateRequest(CamelModel):
    is_active: bool


class ApiKeyValidateRequest(CamelModel):
    api_key: Optional[str] = None


class ApiKeyValidateResponse(CamelModel):
    valid: bool
    name: Optional[str] = None


class AccountResponse(CamelModel):
    id: int
    email: str
    role: str
    banned: bool
    api_quota_limit: Optional[int] = None


class UserSummaryResponse(CamelModel):
    id: int
    email: str
    role: str
    banned: bool
    banned_at: Optional[int] = None
    api_quota_limit: Optional[int] = None
    link_count: int
    created_at: int


class AdminLinkResponse(CamelModel):
    id: int
    slug: str
    url: str
    owner_id: int
    owner_email: str
    click_count: int
    created_at: int


class QuotaOverrideRequest(CamelModel):
    """limit=None removes the override."""
    limit: Optional[int] = None


class ReconcileRequest(CamelModel):
    link_ids: Optional[List[int]] = None


class ReconcileResponse(CamelModel):
    scanned: int
    updated: int
