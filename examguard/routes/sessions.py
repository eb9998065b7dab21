from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from examguard.errors import NotFound
from examguard.models import SessionStatus
from examguard.proctor import Proctor
from examguard.reports import filter_sessions, summarize
from examguard.routes.deps import get_proctor

router = APIRouter(prefix="/api", tags=["sessions"])


@router.get("/sessions")
async def list_sessions(
    student_id: str | None = None,
    status: SessionStatus | None = None,
    search: str | None = None,
    proctor: Proctor = Depends(get_proctor),
) -> list[dict]:
    sessions = filter_sessions(proctor.repository.list_sessions(), student_id, status, search)
    return [asdict(s) for s in sessions]


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, proctor: Proctor = Depends(get_proctor)) -> dict:
    try:
        return asdict(proctor.repository.get_session(session_id))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/reports/summary")
async def report_summary(
    student_id: str | None = None, proctor: Proctor = Depends(get_proctor)
) -> dict:
    """Aggregate statistics over finalized and active sessions."""
    sessions = filter_sessions(proctor.repository.list_sessions(), student_id=student_id)
    return asdict(summarize(sessions))
