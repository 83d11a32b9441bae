"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for students, activity records and sync settings
"""

from cptracker.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
