"""SQLite database manager for progression state."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import TransientStorageError
from ..utils.clock import ensure_utc
from .schema import SCHEMA

logger = logging.getLogger(__name__)


def get_default_db_path() -> Path:
    """Get the default database path."""
    env_path = os.environ.get("PROGRESSION_DB_PATH")
    if env_path:
        return Path(env_path)

    from ..config import get_settings
    return Path(get_settings().progression_db_path)


def to_db_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO string in UTC."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def from_db_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO timestamp; SQLite CURRENT_TIMESTAMP values are UTC."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def to_db_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_db_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value)


class ProgressionDatabase:
    """SQLite database manager shared by every repository.

    Each call to ``connection()`` opens a short-lived connection that commits
    on success and rolls back on error. Lock contention and I/O errors are
    raised as TransientStorageError so callers can retry the component.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize the database.

        Args:
            db_path: Path to SQLite database. Uses default if not provided.
            timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = Path(db_path) if db_path else get_default_db_path()
        self.timeout = timeout
        self._init_db()

    def _init_db(self) -> None:
        """Create tables and switch the file to WAL for concurrent readers."""
        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
        logger.debug(f"Progression database ready at {self.db_path}")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with context manager."""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        except sqlite3.OperationalError as e:
            raise TransientStorageError(str(e), operation="connect") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            raise TransientStorageError(str(e), operation="execute") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
