"""
API Key Service

Issues and manages the keys used by the programmatic creation API.

- A key is ``API_KEY_PREFIX`` followed by random alphanumerics
- Only its SHA-256 hex digest is stored; the plaintext is returned once
- Listings expose a short prefix of the digest as an identifier, which
  cannot be turned back into the key
"""

import hashlib
import logging
import secrets
import string
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.clock import Clock, now_ms
from shortlink.core.exceptions import InvalidInputError, NotFoundError
from shortlink.core.setting import settings
from shortlink.db.models import ApiKey
from shortlink.services.rate_limiter import BurstRateLimiter

logger = logging.getLogger(__name__)

KEY_ALPHABET = string.ascii_letters + string.digits
MAX_NAME_LENGTH = 100
IDENTIFIER_LENGTH = 12


def hash_api_key(raw_key: str) -> str:
    """One-way digest under which a key is stored and looked up."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    body = "".join(secrets.choice(KEY_ALPHABET) for _ in range(settings.API_KEY_LENGTH))
    return f"{settings.API_KEY_PREFIX}{body}"


def key_identifier(api_key: ApiKey) -> str:
    return f"{api_key.key_hash[:IDENTIFIER_LENGTH]}..."


@dataclass
class KeyValidation:
    valid: bool
    name: Optional[str] = None


class ApiKeyService:
    """Owner-facing lifecycle of API keys."""

    def __init__(self, session: AsyncSession, clock: Clock = now_ms):
        self.session = session
        self.clock = clock

    async def create(self, owner_id: int, name: str) -> Tuple[ApiKey, str]:
        """
        Create a key for ``owner_id``.

        Returns:
            (stored ApiKey, plaintext key); the plaintext is not recoverable later

        Raises:
            InvalidInputError: If the name is blank or too long
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("name", "API key name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise InvalidInputError("name", f"API key name must be at most {MAX_NAME_LENGTH} characters")

        raw_key = generate_api_key()
        api_key = ApiKey(
            owner_id=owner_id,
            key_hash=hash_api_key(raw_key),
            name=name,
            is_active=True,
            created_at=self.clock(),
        )
        self.session.add(api_key)
        await self.session.commit()

        logger.info(f"Created api key id={api_key.id} for account {owner_id}")
        return api_key, raw_key

    async def list_for_owner(self, owner_id: int) -> List[ApiKey]:
        statement = (
            select(ApiKey)
            .where(ApiKey.owner_id == owner_id)
            .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def _get_owned(self, owner_id: int, key_id: int) -> ApiKey:
        api_key = await self.session.get(ApiKey, key_id)
        if api_key is None or api_key.owner_id != owner_id:
            raise NotFoundError("API key")
        return api_key

    async def set_active(self, owner_id: int, key_id: int, is_active: bool) -> ApiKey:
        api_key = await self._get_owned(owner_id, key_id)
        api_key.is_active = is_active
        await self.session.commit()
        return api_key

    async def delete(self, owner_id: int, key_id: int) -> None:
        """Delete a key and its rate-limit records."""
        api_key = await self._get_owned(owner_id, key_id)
        await BurstRateLimiter(self.session, clock=self.clock).clear(api_key.id)
        await self.session.delete(api_key)
        await self.session.commit()
        logger.info(f"Deleted api key id={key_id} for account {owner_id}")

    async def find_active(self, raw_key) -> Optional[ApiKey]:
        """Look a plaintext key up by digest; None unless it exists and is active."""
        if not raw_key or not isinstance(raw_key, str):
            return None
        statement = select(ApiKey).where(ApiKey.key_hash == hash_api_key(raw_key))
        result = await self.session.execute(statement)
        api_key = result.scalar_one_or_none()
        if api_key is None or not api_key.is_active:
            return None
        return api_key

    async def validate(self, raw_key) -> KeyValidation:
        api_key = await self.find_active(raw_key)
        if api_key is None:
            return KeyValidation(valid=False)
        return KeyValidation(valid=True, name=api_key.name)
