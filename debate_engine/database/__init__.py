"""Database management module."""

from .database import DatabaseManager, SessionSummary, get_database_path

__all__ = ["DatabaseManager", "SessionSummary", "get_database_path"]
