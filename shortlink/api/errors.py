"""
Translation of service exceptions into HTTP status codes.
"""

from fastapi import HTTPException, status

from shortlink.core.exceptions import (
    AccountSuspendedError,
    InvalidApiKeyError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    RateLimitExceededError,
    ShortLinkException,
    SlugGenerationExhaustedError,
    SlugTakenError,
    ValidationError,
)

# Checked in order; the first matching class wins
STATUS_BY_EXCEPTION = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidApiKeyError, status.HTTP_401_UNAUTHORIZED),
    (AccountSuspendedError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (SlugTakenError, status.HTTP_409_CONFLICT),
    (SlugGenerationExhaustedError, status.HTTP_409_CONFLICT),
    (RateLimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (QuotaExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
)


def status_for(exc: ShortLinkException) -> int:
    for exc_class, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def limit_details(exc: ShortLinkException) -> dict:
    """Extra fields that let a client back off from a 429."""
    if isinstance(exc, RateLimitExceededError):
        return {"limit": exc.limit, "windowMs": exc.window_ms, "kind": "rate_limit"}
    if isinstance(exc, QuotaExceededError):
        return {"limit": exc.limit, "windowMs": exc.window_ms, "resetsAt": exc.resets_at, "kind": "quota"}
    return {}


def retry_after_header(exc: ShortLinkException, now: int) -> dict:
    if isinstance(exc, RateLimitExceededError):
        return {"Retry-After": str(max(1, -(-exc.window_ms // 1000)))}
    if isinstance(exc, QuotaExceededError) and exc.resets_at is not None:
        return {"Retry-After": str(max(1, -(-(exc.resets_at - now) // 1000)))}
    return {}


def to_http_exception(exc: ShortLinkException) -> HTTPException:
    status_code = status_for(exc)
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        return HTTPException(status_code=status_code, detail="Internal server error")
    return HTTPException(status_code=status_code, detail=str(exc))
