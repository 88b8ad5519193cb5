"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions per table (glossary, certifications, reflections,
  reset logs, assignments, emotion logs, daily activity)
"""

from reflect.db.database import get_db, init_db, new_id

__all__ = ["get_db", "init_db", "new_id"]
