from collections.abc import Iterable
from dataclasses import dataclass, field

from examguard.models import Session, SessionStatus


@dataclass
class ReportSummary:
    total_sessions: int
    active_sessions: int
    completed_sessions: int
    flagged_sessions: int
    average_trust_score: int
    total_head_movements: int
    total_device_detections: int
    # excellent >= 90, good 70-89, fair 50-69, poor < 50
    trust_distribution: dict[str, int] = field(default_factory=dict)


def trust_band(trust_score: int) -> str:
    if trust_score >= 90:
        return "excellent"
    elif trust_score >= 70:
        return "good"
    elif trust_score >= 50:
        return "fair"
    else:
        return "poor"


def filter_sessions(
    sessions: Iterable[Session],
    student_id: str | None = None,
    status: SessionStatus | None = None,
    search: str | None = None,
) -> list[Session]:
    """Dashboard filters: exact student, exact status, case-insensitive name substring."""
    needle = search.strip().lower() if search else ""
    return [
        s
        for s in sessions
        if (student_id is None or s.student_id == student_id)
        and (status is None or s.status == status)
        and (not needle or needle in s.student_name.lower())
    ]


def summarize(sessions: Iterable[Session]) -> ReportSummary:
    """Aggregate statistics over *sessions* (typically already filtered)."""
    sessions = list(sessions)
    distribution = {"excellent": 0, "good": 0, "fair": 0, "poor": 0}
    for s in sessions:
        distribution[trust_band(s.trust_score)] += 1

    average = round(sum(s.trust_score for s in sessions) / len(sessions)) if sessions else 0
    return ReportSummary(
        total_sessions=len(sessions),
        active_sessions=sum(1 for s in sessions if s.status == SessionStatus.ACTIVE),
        completed_sessions=sum(1 for s in sessions if s.status == SessionStatus.COMPLETED),
        flagged_sessions=sum(1 for s in sessions if s.status == SessionStatus.FLAGGED),
        average_trust_score=average,
        total_head_movements=sum(s.head_movement_count for s in sessions),
        total_device_detections=sum(s.device_detection_count for s in sessions),
        trust_distribution=distribution,
    )
