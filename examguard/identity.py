import logging
import threading

from examguard.models import Student

logger = logging.getLogger(__name__)


class IdentityContext:
    """Who is signed in, and whether they currently own an active session.

    Bound by ``AuthChallenge`` on a granted challenge, claimed and released by
    ``SessionLifecycle``, cleared on logout. Passed explicitly to both.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._student: Student | None = None
        self._active_session_id: str | None = None

    @property
    def student(self) -> Student | None:
        return self._student

    @property
    def is_authenticated(self) -> bool:
        return self._student is not None

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    def bind(self, student: Student) -> None:
        with self._lock:
            self._student = student
            self._active_session_id = None
        logger.info(f"Identity bound: {student.name} ({student.id})")

    def claim_session(self, session_id: str) -> bool:
        """Record *session_id* as active. Returns False if another one already is."""
        with self._lock:
            if self._active_session_id is not None:
                return False
            self._active_session_id = session_id
            return True

    def release_session(self, session_id: str) -> None:
        with self._lock:
            if self._active_session_id == session_id:
                self._active_session_id = None

    def clear(self) -> None:
        with self._lock:
            student = self._student
            self._student = None
            self._active_session_id = None
        if student is not None:
            logger.info(f"Identity cleared: {student.name} ({student.id})")
