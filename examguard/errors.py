class ExamGuardError(Exception):
    """Base class for every error the proctoring core raises."""


class IdentityNotFound(ExamGuardError):
    def __init__(self, name: str) -> None:
        super().__init__(f"No student registered as '{name}'")
        self.name = name


class ChallengeMismatch(ExamGuardError):
    def __init__(self, student_name: str) -> None:
        super().__init__(f"Voice challenge did not match profile of '{student_name}'")
        self.student_name = student_name


class PermissionDenied(ExamGuardError):
    """Raised when a capture device (camera or microphone) cannot be opened."""


class ConflictError(ExamGuardError):
    """Raised when a session is started while another one is still active."""


class NotFound(ExamGuardError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class DuplicateIdentity(ExamGuardError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Student '{name}' already exists")
        self.name = name


class NotAuthenticated(ExamGuardError):
    """Raised when an operation needs a bound identity and none is present."""


class InvalidPhase(ExamGuardError):
    def __init__(self, operation: str, phase: str) -> None:
        super().__init__(f"Cannot {operation} while challenge is {phase}")
        self.operation = operation
        self.phase = phase
