"""Base repository interfaces and abstract classes.

Provides the abstract base for the Repository pattern used by every
aggregate, plus the SQLite-backed base that shares one ProgressionDatabase.
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Generic, Iterator, Optional, TypeVar

from ..database import ProgressionDatabase

# Type variable for the entity type stored in the repository
T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """
    Abstract base class for repository implementations.

    Type Parameters:
        T: The type of entity stored in this repository
    """

    @abstractmethod
    def get(self, entity_id: str) -> Optional[T]:
        """
        Retrieve an entity by its ID.

        Args:
            entity_id: The unique identifier of the entity

        Returns:
            The entity if found, None otherwise
        """
        pass

    def exists(self, entity_id: str) -> bool:
        """Check if an entity exists by its ID."""
        return self.get(entity_id) is not None


class SQLiteRepository(Repository[T]):
    """Repository backed by the shared progression database."""

    def __init__(self, database: ProgressionDatabase):
        self.db = database

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        with self.db.connection() as conn:
            yield conn
