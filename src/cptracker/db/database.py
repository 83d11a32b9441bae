"""SQLite database connection and schema management.

Provides connection management and schema initialization for the tracker.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/cptracker.db")

# Current connection target (module-level for simplicity in CLI context)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/cptracker.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Path of the database currently in use."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Everything executed inside the block is one transaction: it is
    committed when the block exits normally and rolled back on error.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            cursor = conn.execute("SELECT * FROM students")
            rows = cursor.fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- students: one row per tracked judge handle
        CREATE TABLE IF NOT EXISTS students (
            student_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            phone_number TEXT,
            handle TEXT NOT NULL UNIQUE COLLATE NOCASE,
            current_rating INTEGER NOT NULL DEFAULT 0,
            max_rating INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            email_reminders_enabled INTEGER NOT NULL DEFAULT 1,
            last_data_sync TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- problems: reference data, first write wins
        CREATE TABLE IF NOT EXISTS problems (
            problem_key TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            rating INTEGER,
            tags TEXT NOT NULL DEFAULT '[]',
            contest_id INTEGER,
            problem_index TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        -- contests: replaced wholesale on every sync of the student
        CREATE TABLE IF NOT EXISTS contests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            contest_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            start_time TEXT NOT NULL,
            rank INTEGER NOT NULL,
            old_rating INTEGER NOT NULL,
            new_rating INTEGER NOT NULL,
            rating_change INTEGER NOT NULL,
            problems_solved INTEGER NOT NULL DEFAULT 0,
            problems_attempted INTEGER NOT NULL DEFAULT 0,
            UNIQUE (student_id, contest_id)
        );

        -- submissions: upserted by judge submission id
        CREATE TABLE IF NOT EXISTS submissions (
            submission_id INTEGER PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            problem_key TEXT NOT NULL REFERENCES problems(problem_key),
            contest_id INTEGER,
            verdict TEXT,
            language TEXT NOT NULL,
            submitted_at TEXT NOT NULL,
            execution_time_ms INTEGER NOT NULL DEFAULT 0,
            memory_kb REAL NOT NULL DEFAULT 0
        );

        -- reminders: append-only log
        CREATE TABLE IF NOT EXISTS reminders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            sent_at TEXT NOT NULL,
            email_content TEXT NOT NULL
        );

        -- sync_settings: singleton keyed by 'default'
        CREATE TABLE IF NOT EXISTS sync_settings (
            id TEXT PRIMARY KEY,
            cron_expression TEXT NOT NULL,
            is_enabled INTEGER NOT NULL DEFAULT 1,
            last_sync TEXT,
            next_sync TEXT,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_students_active ON students(is_active);
        CREATE INDEX IF NOT EXISTS idx_contests_student ON contests(student_id);
        CREATE INDEX IF NOT EXISTS idx_submissions_student ON submissions(student_id);
        CREATE INDEX IF NOT EXISTS idx_reminders_student ON reminders(student_id);
        """
    )
