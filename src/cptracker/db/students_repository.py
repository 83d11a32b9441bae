"""Repository functions for students table.

Provides CRUD operations for tracked students.
"""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from cptracker.db.database import get_db
from cptracker.utils.time_utils import parse_iso, to_iso, utc_now

logger = structlog.get_logger(__name__)

# Columns a profile edit may touch; rating and sync fields belong to the sync pipeline
EDITABLE_FIELDS = (
    "name",
    "email",
    "phone_number",
    "handle",
    "is_active",
    "email_reminders_enabled",
)


class DuplicateStudentError(Exception):
    """Raised when email or handle is already used by another student."""

    def __init__(self, email: str | None = None, handle: str | None = None):
        self.email = email
        self.handle = handle
        super().__init__("Student with this email or handle already exists")


@dataclass
class StudentRecord:
    """Student record from database."""

    student_id: str
    name: str
    email: str
    phone_number: str | None
    handle: str
    current_rating: int
    max_rating: int
    is_active: bool
    email_reminders_enabled: bool
    last_data_sync: datetime | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "name": self.name,
            "email": self.email,
            "phone_number": self.phone_number,
            "handle": self.handle,
            "current_rating": self.current_rating,
            "max_rating": self.max_rating,
            "is_active": self.is_active,
            "email_reminders_enabled": self.email_reminders_enabled,
            "last_data_sync": to_iso(self.last_data_sync),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def generate_student_id() -> str:
    """Generate a new opaque student id."""
    return f"stu_{uuid.uuid4().hex[:12]}"


def insert_student(
    name: str,
    email: str,
    handle: str,
    phone_number: str | None = None,
    student_id: str | None = None,
) -> StudentRecord:
    """Register a new student.

    Args:
        name: Display name
        email: Contact email (unique)
        handle: Judge handle (unique)
        phone_number: Optional phone number
        student_id: Explicit id, generated when omitted

    Returns:
        The stored StudentRecord

    Raises:
        DuplicateStudentError: If email or handle already exists
    """
    student_id = student_id or generate_student_id()
    now = to_iso(utc_now())

    try:
        with get_db() as conn:
            conn.execute(
                """
                INSERT INTO students (
                    student_id, name, email, phone_number, handle,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (student_id, name, email, phone_number, handle, now, now),
            )
    except sqlite3.IntegrityError as e:
        raise DuplicateStudentError(email=email, handle=handle) from e

    logger.debug("students.inserted", student_id=student_id, handle=handle)
    student = get_student_by_id(student_id)
    assert student is not None
    return student


def get_student_by_id(student_id: str) -> StudentRecord | None:
    """Get student by ID.

    Args:
        student_id: Student identifier

    Returns:
        StudentRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM students WHERE student_id = ?", (student_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_student_by_handle(handle: str) -> StudentRecord | None:
    """Get student by judge handle (case-insensitive)."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM students WHERE lower(handle) = lower(?)", (handle,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_students(active_only: bool = False) -> list[StudentRecord]:
    """Get students, newest first.

    Args:
        active_only: Only return students with is_active set

    Returns:
        List of StudentRecord instances
    """
    query = "SELECT * FROM students"
    if active_only:
        query += " WHERE is_active = 1"
    query += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(query).fetchall()

    return [_row_to_record(row) for row in rows]


def update_student(student_id: str, **fields: Any) -> StudentRecord | None:
    """Apply a partial profile edit.

    Only EDITABLE_FIELDS are accepted; None values are ignored except
    for phone_number, which may be cleared.

    Returns:
        Updated StudentRecord, or None if the student doesn't exist

    Raises:
        DuplicateStudentError: If the new email or handle belongs to another student
        ValueError: If an unknown field is passed
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot edit fields: {', '.join(sorted(unknown))}")

    changes = {
        k: v for k, v in fields.items() if v is not None or k == "phone_number"
    }
    if not changes:
        return get_student_by_id(student_id)

    assignments = ", ".join(f"{column} = ?" for column in changes)
    values = [int(v) if isinstance(v, bool) else v for v in changes.values()]

    try:
        with get_db() as conn:
            cursor = conn.execute(
                f"UPDATE students SET {assignments}, updated_at = ? WHERE student_id = ?",
                (*values, to_iso(utc_now()), student_id),
            )
    except sqlite3.IntegrityError as e:
        raise DuplicateStudentError(
            email=changes.get("email"), handle=changes.get("handle")
        ) from e

    if cursor.rowcount == 0:
        return None

    logger.debug("students.updated", student_id=student_id, fields=sorted(changes))
    return get_student_by_id(student_id)


def delete_student(student_id: str) -> bool:
    """Delete student by ID. Contests, submissions and reminders cascade.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM students WHERE student_id = ?", (student_id,)
        )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("students.deleted", student_id=student_id)

    return deleted


def _row_to_record(row) -> StudentRecord:
    """Convert database row to StudentRecord."""
    return StudentRecord(
        student_id=row["student_id"],
        name=row["name"],
        email=row["email"],
        phone_number=row["phone_number"],
        handle=row["handle"],
        current_rating=row["current_rating"],
        max_rating=row["max_rating"],
        is_active=bool(row["is_active"]),
        email_reminders_enabled=bool(row["email_reminders_enabled"]),
        last_data_sync=parse_iso(row["last_data_sync"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
