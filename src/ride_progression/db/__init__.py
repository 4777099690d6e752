"""Database module for progression state."""

from .database import ProgressionDatabase, get_default_db_path
from .schema import SCHEMA

__all__ = ["ProgressionDatabase", "get_default_db_path", "SCHEMA"]
