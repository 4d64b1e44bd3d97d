"""
Database Abstraction Interface

This module defines the database abstraction layer that allows switching between
different database backends (SQLite, PostgreSQL, etc.) without changing the
rest of the codebase.

The services rely on exactly two store guarantees: a unique index that rejects
a duplicate insert, and an atomic single-row UPDATE. Every adapter must provide
both and must be able to recognise the unique-index rejection.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import Pool


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    To add a new database backend:
    1. Create a new class inheriting from DatabaseAdapter
    2. Implement all abstract methods
    3. Update the factory function to return the new adapter
    """

    @abstractmethod
    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create and configure the async database engine.

        Args:
            database_url: Connection string for the database
            **kwargs: Additional engine configuration options

        Returns:
            Configured AsyncEngine instance
        """
        pass

    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        """Pool class for this database type, or None to use the default."""
        pass

    @abstractmethod
    def get_connect_args(self) -> dict[str, Any]:
        """Connection arguments specific to this database type."""
        pass

    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        """Additional engine configuration specific to this database type."""
        pass

    @abstractmethod
    def is_unique_violation(self, error: IntegrityError, column: str) -> bool:
        """
        Tell whether an IntegrityError was raised by the unique index on ``column``.

        Args:
            error: The error raised by flush/commit
            column: Unqualified column name, e.g. "slug"
        """
        pass

    @abstractmethod
    def get_dialect_name(self) -> str:
        """SQLAlchemy dialect name (e.g. 'sqlite', 'postgresql')."""
        pass
