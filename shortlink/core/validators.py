"""
Input Validators and Sanitizers

This module provides validation and normalization functions for user inputs.
These functions help prevent security issues and ensure data integrity.

Security Considerations:
- Only http/https destinations are accepted (no javascript:, data:, file:)
- Slugs are restricted to URL-safe characters and bounded length
- Length limits prevent DoS attacks
"""

import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from shortlink.core.clock import MINUTE_MS, YEAR_MS
from shortlink.core.exceptions import (
    InvalidClickLimitError,
    InvalidExpiryError,
    InvalidSlugError,
    InvalidURLError,
)

SLUG_RE = re.compile(r"^[A-Za-z0-9_-]+$")
SLUG_MIN_LENGTH = 2
SLUG_MAX_LENGTH = 64

# Paths served by the application itself
RESERVED_SLUGS = frozenset({"api", "health", "docs", "redoc", "unavailable"})

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = {"http", "https"}

MIN_EXPIRY_AHEAD_MS = MINUTE_MS
MAX_EXPIRY_AHEAD_MS = 5 * YEAR_MS

MIN_CLICK_LIMIT = 1
MAX_CLICK_LIMIT = 1_000_000

DIRECT_REFERRER = "direct/unknown"


def normalize_url(url: str) -> str:
    """
    Validate a destination URL and return its canonical serialization.

    The scheme and host are lower-cased and an empty path becomes ``/``;
    query and fragment are kept as submitted.

    Raises:
        InvalidURLError: If the URL is not an absolute http(s) URL
    """
    if not url or not isinstance(url, str):
        raise InvalidURLError(str(url), reason="Invalid URL")

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise InvalidURLError(url[:64] + "...", reason="URL is too long")

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        raise InvalidURLError(url, reason="Invalid URL")

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURLError(url, reason="URL must use http:// or https://")

    if not hostname:
        raise InvalidURLError(url, reason="Invalid URL")

    if hostname != "localhost" and "." not in hostname:
        raise InvalidURLError(url, reason="URL must have a valid domain")

    netloc = hostname
    if ":" in hostname:
        netloc = f"[{hostname}]"
    if port is not None:
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((
        parts.scheme.lower(),
        netloc,
        parts.path or "/",
        parts.query,
        parts.fragment,
    ))


def validate_slug(slug: str) -> str:
    """
    Validate an explicitly requested slug.

    Returns:
        The slug with surrounding whitespace removed

    Raises:
        InvalidSlugError: On bad characters, bad length or a reserved name
    """
    if not isinstance(slug, str):
        raise InvalidSlugError(str(slug), reason="Slug must be a string")

    slug = slug.strip()
    if not SLUG_RE.match(slug):
        raise InvalidSlugError(
            slug,
            reason="Slug can only contain letters, numbers, hyphens, and underscores"
        )
    if not SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH:
        raise InvalidSlugError(
            slug,
            reason=f"Slug must be between {SLUG_MIN_LENGTH} and {SLUG_MAX_LENGTH} characters"
        )
    if slug.lower() in RESERVED_SLUGS:
        raise InvalidSlugError(slug, reason=f"Slug '{slug}' is reserved")
    return slug


def sanitize_slug(slug: str) -> Optional[str]:
    """
    Lenient check used on the public redirect path.

    Returns the slug if it could ever have been stored, None otherwise, so
    malformed paths can be answered with 404 without touching the database.
    """
    if not slug or not isinstance(slug, str):
        return None
    if len(slug) > SLUG_MAX_LENGTH or not SLUG_RE.match(slug):
        return None
    return slug


def validate_expiry(expires_at, now: int) -> int:
    """
    Check that an absolute expiry lies between 1 minute and 5 years ahead.

    Raises:
        InvalidExpiryError: If the value is not a number or out of bounds
    """
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        raise InvalidExpiryError(expires_at, reason="Expiry must be a timestamp in milliseconds")
    if expires_at != expires_at:  # NaN
        raise InvalidExpiryError(expires_at, reason="Expiry must be a timestamp in milliseconds")
    if expires_at < now + MIN_EXPIRY_AHEAD_MS:
        raise InvalidExpiryError(expires_at, reason="Expiry must be at least 1 minute in the future")
    if expires_at > now + MAX_EXPIRY_AHEAD_MS:
        raise InvalidExpiryError(expires_at, reason="Expiry must be at most 5 years in the future")
    return int(expires_at)


def validate_click_limit(max_clicks) -> int:
    """
    Check that a click limit is a whole number in [1, 1_000_000].

    Raises:
        InvalidClickLimitError: Otherwise
    """
    if isinstance(max_clicks, bool) or not isinstance(max_clicks, (int, float)):
        raise InvalidClickLimitError(max_clicks)
    if isinstance(max_clicks, float) and not max_clicks.is_integer():
        raise InvalidClickLimitError(max_clicks)
    if not MIN_CLICK_LIMIT <= max_clicks <= MAX_CLICK_LIMIT:
        raise InvalidClickLimitError(max_clicks)
    return int(max_clicks)


def normalize_referrer(referrer: Optional[str]) -> str:
    """
    Reduce a Referer header to a bare lower-case host without ``www.``.

    Example:
        normalize_referrer("https://www.Example.com/path") -> "example.com"
        normalize_referrer(None) -> "direct/unknown"
    """
    if not referrer or not isinstance(referrer, str):
        return DIRECT_REFERRER
    try:
        host = urlsplit(referrer.strip()).hostname
    except ValueError:
        return DIRECT_REFERRER
    if not host:
        return DIRECT_REFERRER
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or DIRECT_REFERRER
