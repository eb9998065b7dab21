from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FLAGGED = "flagged"


class DetectionKind(str, Enum):
    HEAD_MOVEMENT = "head_movement"
    DEVICE_DETECTION = "device_detection"


class AdvisoryKind(str, Enum):
    EXCESSIVE_MOVEMENT = "excessive_movement"
    PROHIBITED_DEVICE = "prohibited_device"
    CAMERA_UNAVAILABLE = "camera_unavailable"


class AuthPhase(str, Enum):
    AWAITING_IDENTITY = "awaiting_identity"
    AWAITING_CHALLENGE_RESPONSE = "awaiting_challenge_response"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class Student:
    id: str
    name: str
    email: str
    voice_profile_ref: str
    registered_at: datetime


@dataclass
class Session:
    id: str
    student_id: str
    student_name: str  # snapshot taken when the session starts
    start_time: datetime
    end_time: datetime | None = None
    head_movement_count: int = 0
    device_detection_count: int = 0
    cheating_percentage: int = 0
    trust_score: int = 100
    status: SessionStatus = SessionStatus.ACTIVE


@dataclass(frozen=True)
class DetectionEvent:
    kind: DetectionKind
    occurred_at: datetime


@dataclass(frozen=True)
class Advisory:
    kind: AdvisoryKind
    message: str
    raised_at: float  # monotonic seconds
    duration_seconds: float

    def is_active(self, now: float) -> bool:
        return now < self.raised_at + self.duration_seconds


@dataclass
class AuthChallengeState:
    phase: AuthPhase = AuthPhase.AWAITING_IDENTITY
    prompt_text: str | None = None
    attempts_failed: int = 0
    student_name: str | None = None
    error: str | None = None  # class name of the last denial


@dataclass
class SessionView:
    """Read-only snapshot of a lifecycle, as handed to the presentation layer."""

    session: Session | None
    is_active: bool
    elapsed_seconds: int
    elapsed_display: str
    camera_enabled: bool
    risk_tier: str
    advisories: list[Advisory] = field(default_factory=list)
