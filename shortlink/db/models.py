"""
Database Models for the shortlink service

This module defines the SQLModel database schemas for:
- Account: Owner of links and API keys; carries ban state and quota override
- Link: Mapping from a unique slug to a destination URL, with lifecycle limits
- ClickEvent: One recorded visit to a link (append-only analytics log)
- ApiKey: Digest of a programmatic access key belonging to an account
- RateLimitRecord: One accepted API request inside the burst window

Design Decisions:
- All timestamps are epoch milliseconds (BigInteger), matching the wire format
- slug carries a unique index; the index, not application code, decides races
- click_count is denormalized on Link for fast reads and is reconcilable
  against click_events
- Relationships are resolved by explicit queries rather than ORM relationships,
  which keeps async sessions free of lazy loads
"""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Column, Index, Integer, String, Text
from sqlmodel import Field, SQLModel


class Account(SQLModel, table=True):
    """
    Authenticated user of the service.

    Fields:
    - role: "user" or "admin"
    - banned / banned_at: a banned account keeps its links but none redirect
    - api_quota_limit: per-account link creation quota; None means the default
    """
    __tablename__ = "accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(sa_column=Column(String(320), nullable=False, unique=True, index=True))
    role: str = Field(default="user", sa_column=Column(String(16), nullable=False, default="user"))
    banned: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    banned_at: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    api_quota_limit: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Link(SQLModel, table=True):
    """
    Main table storing slug to destination mappings.

    Indexes:
    - slug: Unique index for the redirect hot path and race-free creation
    - owner_id: Dashboard listing and cascading deletes
    - (owner_id, created_at): Rolling-window quota counts
    """
    __tablename__ = "links"
    __table_args__ = (
        Index("ix_links_owner_created", "owner_id", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(sa_column=Column(String(64), nullable=False, unique=True, index=True))
    url: str = Field(sa_column=Column(Text, nullable=False))
    owner_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))
    click_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_clicked_at: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    expires_at: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    max_clicks: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))


class ClickEvent(SQLModel, table=True):
    """
    Visit log table for analytics.

    Rows are never updated; they are removed only with their link.
    referrer holds the normalized host or "direct/unknown".
    """
    __tablename__ = "click_events"
    __table_args__ = (
        Index("ix_click_events_link_created", "link_id", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    link_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))
    referrer: str = Field(sa_column=Column(String(255), nullable=False))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))


class ApiKey(SQLModel, table=True):
    """
    Programmatic access key.

    Only the SHA-256 digest of the secret is stored; the secret itself is
    returned once at creation time.
    """
    __tablename__ = "api_keys"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    key_hash: str = Field(sa_column=Column(String(64), nullable=False, unique=True, index=True))
    name: str = Field(sa_column=Column(String(100), nullable=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))
    last_used_at: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))


class RateLimitRecord(SQLModel, table=True):
    """
    One accepted request in an API key's burst window.

    Purely transient: anything older than the window may be pruned.
    """
    __tablename__ = "rate_limit_records"
    __table_args__ = (
        Index("ix_rate_limit_records_key_time", "api_key_id", "timestamp"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    api_key_id: int = Field(sa_column=Column(Integer, nullable=False))
    timestamp: int = Field(sa_column=Column(BigInteger, nullable=False))
