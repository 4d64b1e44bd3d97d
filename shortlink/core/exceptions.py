"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Families:
- Validation errors: bad URL, slug, expiry, click limit or input
- Conflict errors: slug taken, slug generation exhausted
- Authorization errors: invalid API key, suspended account, permission denied
- Limit errors: burst rate limit, creation quota
- Lookup and storage errors: not found, database failures
"""

from typing import Optional


class ShortLinkException(Exception):
    """Base exception for the shortlink service."""
    pass


class ValidationError(ShortLinkException):
    """Base class for input that can never succeed as submitted."""
    pass


class InvalidURLError(ValidationError):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class InvalidSlugError(ValidationError):
    """Raised when an explicit slug has the wrong shape or is reserved."""

    def __init__(self, slug: str, reason: str = "Invalid slug"):
        self.slug = slug
        self.reason = reason
        super().__init__(reason)


class InvalidExpiryError(ValidationError):
    """Raised when an expiry is too close or too far in the future."""

    def __init__(self, expires_at, reason: str = "Expiry must be between 1 minute and 5 years from now"):
        self.expires_at = expires_at
        super().__init__(reason)


class InvalidClickLimitError(ValidationError):
    """Raised when a click limit is not a whole number in range."""

    def __init__(self, max_clicks, reason: str = "Click limit must be a whole number between 1 and 1000000"):
        self.max_clicks = max_clicks
        super().__init__(reason)


class InvalidQuotaLimitError(ValidationError):
    """Raised when an admin quota override is out of bounds."""

    def __init__(self, limit, minimum: int, maximum: int):
        self.limit = limit
        super().__init__(f"Quota limit must be a whole number between {minimum} and {maximum}")


class InvalidInputError(ValidationError):
    """Raised for malformed fields without a dedicated error type."""

    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(f"{field}: {reason}")


class SlugTakenError(ShortLinkException):
    """Raised when a slug already belongs to another link."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__("Slug already exists")


class SlugGenerationExhaustedError(ShortLinkException):
    """Raised when every auto-slug length ran out of attempts."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique slug after {attempts} attempts. Please try again."
        )


class NotFoundError(ShortLinkException):
    """Raised when a resource is missing or not visible to the caller."""

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class InvalidApiKeyError(ShortLinkException):
    """Raised for any API key that cannot be used, without saying why."""

    def __init__(self):
        super().__init__("Invalid API key")


class AccountSuspendedError(ShortLinkException):
    """Raised when the acting account is banned."""

    def __init__(self):
        super().__init__("Account suspended")


class PermissionDeniedError(ShortLinkException):
    """Raised when an authenticated caller may not perform an action."""

    def __init__(self, reason: str = "Not authorized"):
        super().__init__(reason)


class RateLimitExceededError(ShortLinkException):
    """Raised when an API key exceeds its burst window."""

    def __init__(self, limit: int, window_ms: int):
        self.limit = limit
        self.window_ms = window_ms
        super().__init__(
            f"Rate limit exceeded. Maximum {limit} requests per {window_ms / 1000:g} seconds."
        )


class QuotaExceededError(ShortLinkException):
    """Raised when an account exhausts its link creation quota."""

    def __init__(self, limit: int, window_ms: int, resets_at: Optional[int] = None):
        self.limit = limit
        self.window_ms = window_ms
        self.resets_at = resets_at
        super().__init__(
            f"Quota exceeded. Maximum {limit} links per {window_ms / 3_600_000:g} hours."
        )


class DatabaseError(ShortLinkException):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
