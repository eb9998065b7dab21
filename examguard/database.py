import logging
import sqlite3
import threading
from datetime import datetime

from examguard.errors import DuplicateIdentity, NotFound
from examguard.models import Session, SessionStatus, Student
from examguard.repository import (
    SESSION_CREATE_FIELDS,
    SESSION_UPDATABLE_FIELDS,
    check_session_fields,
    name_key,
    utcnow,
)

logger = logging.getLogger(__name__)

CREATE_STUDENTS = """
CREATE TABLE IF NOT EXISTS students (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    name_key TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL,
    voice_profile_ref TEXT NOT NULL,
    registered_at TEXT NOT NULL
)
"""

CREATE_SESSIONS = """
CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id TEXT NOT NULL,
    student_name TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    head_movement_count INTEGER NOT NULL DEFAULT 0,
    device_detection_count INTEGER NOT NULL DEFAULT 0,
    cheating_percentage INTEGER NOT NULL DEFAULT 0,
    trust_score INTEGER NOT NULL DEFAULT 100,
    status TEXT NOT NULL DEFAULT 'active',
    FOREIGN KEY (student_id) REFERENCES students(id)
)
"""

_DDL = [CREATE_STUDENTS, CREATE_SESSIONS]


def get_sync_conn(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def init_db(db_path: str) -> None:
    """Create all tables. Safe to call on an existing database."""
    conn = get_sync_conn(db_path)
    try:
        for stmt in _DDL:
            conn.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def _to_db(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, SessionStatus):
        return value.value
    return value


def _row_to_student(row: sqlite3.Row) -> Student:
    return Student(
        id=str(row["id"]),
        name=row["name"],
        email=row["email"],
        voice_profile_ref=row["voice_profile_ref"],
        registered_at=datetime.fromisoformat(row["registered_at"]),
    )


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=str(row["id"]),
        student_id=row["student_id"],
        student_name=row["student_name"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]) if row["end_time"] else None,
        head_movement_count=row["head_movement_count"],
        device_detection_count=row["device_detection_count"],
        cheating_percentage=row["cheating_percentage"],
        trust_score=row["trust_score"],
        status=SessionStatus(row["status"]),
    )


class SqliteRepository:
    """Repository backed by a SQLite file, for records that must outlive the process.

    One short-lived connection per operation, as in a worker thread. The lock
    keeps read-check-write sequences (duplicate names, unknown ids) atomic
    within the process; each statement group commits as one transaction.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        init_db(db_path)

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def create_student(self, name: str, email: str, voice_profile_ref: str) -> Student:
        name = name.strip()
        if not name:
            raise ValueError("Student name must not be empty")
        with self._lock:
            conn = get_sync_conn(self.db_path)
            try:
                cursor = conn.execute(
                    """INSERT INTO students
                       (name, name_key, email, voice_profile_ref, registered_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (name, name_key(name), email, voice_profile_ref, utcnow().isoformat()),
                )
                conn.commit()
                row = conn.execute(
                    "SELECT * FROM students WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise DuplicateIdentity(name) from e
                raise
            finally:
                conn.close()
        student = _row_to_student(row)
        logger.info(f"Registered student {student.id} ({student.name})")
        return student

    def find_student_by_name(self, name: str) -> Student | None:
        row = self._fetch_one(
            "SELECT * FROM students WHERE name_key = ? ORDER BY id LIMIT 1",
            (name_key(name),),
        )
        return _row_to_student(row) if row else None

    def get_student(self, student_id: str) -> Student:
        row = self._fetch_one("SELECT * FROM students WHERE id = ?", (student_id,))
        if not row:
            raise NotFound("Student", student_id)
        return _row_to_student(row)

    def list_students(self) -> list[Student]:
        return [_row_to_student(r) for r in self._fetch_all("SELECT * FROM students ORDER BY id")]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, **data) -> Session:
        check_session_fields(data, SESSION_CREATE_FIELDS)
        columns = list(data)
        placeholders = ", ".join("?" for _ in columns)
        with self._lock:
            conn = get_sync_conn(self.db_path)
            try:
                cursor = conn.execute(
                    f"INSERT INTO sessions ({', '.join(columns)}) VALUES ({placeholders})",
                    tuple(_to_db(data[c]) for c in columns),
                )
                conn.commit()
                row = conn.execute(
                    "SELECT * FROM sessions WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
            finally:
                conn.close()
        return _row_to_session(row)

    def update_session(self, session_id: str, **fields) -> None:
        check_session_fields(fields, SESSION_UPDATABLE_FIELDS)
        if not fields:
            self.get_session(session_id)
            return
        assignments = ", ".join(f"{c} = ?" for c in fields)
        with self._lock:
            conn = get_sync_conn(self.db_path)
            try:
                cursor = conn.execute(
                    f"UPDATE sessions SET {assignments} WHERE id = ?",
                    (*(_to_db(v) for v in fields.values()), session_id),
                )
                if cursor.rowcount == 0:
                    conn.rollback()
                    raise NotFound("Session", session_id)
                conn.commit()
            finally:
                conn.close()

    def get_session(self, session_id: str) -> Session:
        row = self._fetch_one("SELECT * FROM sessions WHERE id = ?", (session_id,))
        if not row:
            raise NotFound("Session", session_id)
        return _row_to_session(row)

    def list_sessions(self) -> list[Session]:
        return [_row_to_session(r) for r in self._fetch_all("SELECT * FROM sessions ORDER BY id")]

    def list_sessions_for_student(self, student_id: str) -> list[Session]:
        rows = self._fetch_all(
            "SELECT * FROM sessions WHERE student_id = ? ORDER BY id", (student_id,)
        )
        return [_row_to_session(r) for r in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            conn = get_sync_conn(self.db_path)
            try:
                return conn.execute(sql, params).fetchone()
            finally:
                conn.close()

    def _fetch_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            conn = get_sync_conn(self.db_path)
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()
