"""
Edge Rate Limiting Configuration

Per-IP throttling of public endpoints, applied before any database work.
This is independent of the per-API-key burst limiter and the per-account
creation quota, which live in the service layer and are stored in the database.

Design Decisions:
- Uses slowapi for rate limiting (lightweight, FastAPI-compatible)
- Different limits for different endpoints
- IP-based limiting; can be disabled through RATE_LIMIT_ENABLED
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from shortlink.core.setting import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
RATE_LIMITS = {
    "redirect": "300/minute",  # Public redirects per IP
    "api_create": "60/minute",  # Keyed API calls per IP, before key checks
}
