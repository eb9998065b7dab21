import dataclasses
import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Protocol

from examguard.errors import DuplicateIdentity, NotFound
from examguard.models import Session, Student

logger = logging.getLogger(__name__)

# Fields callers may set through update_session. ``id`` and ``student_id``
# are fixed once the session exists.
SESSION_UPDATABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(Session) if f.name not in ("id", "student_id")
)
SESSION_CREATE_FIELDS = frozenset(f.name for f in dataclasses.fields(Session) if f.name != "id")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def name_key(name: str) -> str:
    """Comparison key for student names (case-insensitive, surrounding space ignored)."""
    return name.strip().lower()


def check_session_fields(fields: dict, allowed: frozenset) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown session fields: {', '.join(sorted(unknown))}")


class Repository(Protocol):
    """Storage contract shared by the in-memory and SQLite repositories.

    Every operation is synchronous and atomic: callers never observe a
    half-applied write, and returned records are copies.
    """

    def create_student(self, name: str, email: str, voice_profile_ref: str) -> Student: ...

    def find_student_by_name(self, name: str) -> Student | None: ...

    def get_student(self, student_id: str) -> Student: ...

    def list_students(self) -> list[Student]: ...

    def create_session(self, **data) -> Session: ...

    def update_session(self, session_id: str, **fields) -> None: ...

    def get_session(self, session_id: str) -> Session: ...

    def list_sessions(self) -> list[Session]: ...

    def list_sessions_for_student(self, student_id: str) -> list[Session]: ...


class InMemoryRepository:
    """Process-local store of students and sessions.

    Nothing survives a restart. A single lock serialises every operation.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._students: dict[str, Student] = {}
        self._sessions: dict[str, Session] = {}
        self._student_ids = itertools.count(1)
        self._session_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def create_student(self, name: str, email: str, voice_profile_ref: str) -> Student:
        name = name.strip()
        if not name:
            raise ValueError("Student name must not be empty")
        with self._lock:
            key = name_key(name)
            if any(name_key(s.name) == key for s in self._students.values()):
                raise DuplicateIdentity(name)
            student = Student(
                id=str(next(self._student_ids)),
                name=name,
                email=email,
                voice_profile_ref=voice_profile_ref,
                registered_at=utcnow(),
            )
            self._students[student.id] = student
            logger.info(f"Registered student {student.id} ({student.name})")
            return dataclasses.replace(student)

    def find_student_by_name(self, name: str) -> Student | None:
        key = name_key(name)
        with self._lock:
            for student in self._students.values():
                if name_key(student.name) == key:
                    return dataclasses.replace(student)
        return None

    def get_student(self, student_id: str) -> Student:
        with self._lock:
            student = self._students.get(student_id)
            if student is None:
                raise NotFound("Student", student_id)
            return dataclasses.replace(student)

    def list_students(self) -> list[Student]:
        with self._lock:
            return [dataclasses.replace(s) for s in self._students.values()]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, **data) -> Session:
        check_session_fields(data, SESSION_CREATE_FIELDS)
        with self._lock:
            session = Session(id=str(next(self._session_ids)), **data)
            self._sessions[session.id] = session
            return dataclasses.replace(session)

    def update_session(self, session_id: str, **fields) -> None:
        check_session_fields(fields, SESSION_UPDATABLE_FIELDS)
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise NotFound("Session", session_id)
            # Swap in a new record so readers never see a partial update
            self._sessions[session_id] = dataclasses.replace(current, **fields)

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFound("Session", session_id)
            return dataclasses.replace(session)

    def list_sessions(self) -> list[Session]:
        with self._lock:
            return [dataclasses.replace(s) for s in self._sessions.values()]

    def list_sessions_for_student(self, student_id: str) -> list[Session]:
        with self._lock:
            return [
                dataclasses.replace(s)
                for s in self._sessions.values()
                if s.student_id == student_id
            ]

