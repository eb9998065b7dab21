"""
Risk Scorer - Maps accumulated detection counts to a cheating percentage and trust score

Formula:
    index = head_movements * 1 + device_detections * 3
    cheating_percentage = clamp(index * 5, 0, 100)
    trust_score = 100 - cheating_percentage

Device detections weigh three times as much as head movement because device
usage is policed more strictly. The display tier and the flagged verdict are
separate: tiers read the trust score, the verdict reads the cheating
percentage with a strict ``>`` against the flag threshold.
"""

from dataclasses import dataclass

from examguard.models import SessionStatus

HEAD_MOVEMENT_WEIGHT = 1
DEVICE_DETECTION_WEIGHT = 3
POINTS_PER_INDEX = 5

DEFAULT_FLAG_THRESHOLD = 50

LOW_RISK_MIN_TRUST = 80
MEDIUM_RISK_MIN_TRUST = 60


@dataclass(frozen=True)
class RiskAssessment:
    cheating_percentage: int
    trust_score: int
    tier: str  # low | medium | high


def suspicious_activity_index(head_movement_count: int, device_detection_count: int) -> int:
    if head_movement_count < 0 or device_detection_count < 0:
        raise ValueError(
            f"Detection counts must be non-negative, got "
            f"head={head_movement_count} device={device_detection_count}"
        )
    return (
        head_movement_count * HEAD_MOVEMENT_WEIGHT
        + device_detection_count * DEVICE_DETECTION_WEIGHT
    )


def risk_tier(trust_score: int) -> str:
    """Display tier for a trust score: ``low``, ``medium`` or ``high`` risk."""
    if trust_score >= LOW_RISK_MIN_TRUST:
        return "low"
    elif trust_score >= MEDIUM_RISK_MIN_TRUST:
        return "medium"
    else:
        return "high"


def score(head_movement_count: int, device_detection_count: int) -> RiskAssessment:
    """
    Compute the risk assessment for a pair of detection counts.

    Pure and deterministic, safe to call from any thread.

    Args:
        head_movement_count: Head movement detections so far (>= 0)
        device_detection_count: Prohibited device detections so far (>= 0)

    Returns:
        RiskAssessment whose cheating_percentage and trust_score sum to 100
    """
    index = suspicious_activity_index(head_movement_count, device_detection_count)
    cheating_percentage = max(0, min(100, index * POINTS_PER_INDEX))
    trust_score = 100 - cheating_percentage
    return RiskAssessment(
        cheating_percentage=cheating_percentage,
        trust_score=trust_score,
        tier=risk_tier(trust_score),
    )


def is_flagged(cheating_percentage: int, threshold: int = DEFAULT_FLAG_THRESHOLD) -> bool:
    return cheating_percentage > threshold


def final_status(cheating_percentage: int, threshold: int = DEFAULT_FLAG_THRESHOLD) -> SessionStatus:
    """Terminal status for a session finalized at *cheating_percentage*."""
    if is_flagged(cheating_percentage, threshold):
        return SessionStatus.FLAGGED
    return SessionStatus.COMPLETED
