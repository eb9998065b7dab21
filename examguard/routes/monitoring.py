from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from examguard.errors import ConflictError, NotAuthenticated
from examguard.models import DetectionKind
from examguard.proctor import Proctor
from examguard.routes.deps import get_proctor

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])


class DetectionBatch(BaseModel):
    events: list[DetectionKind]


@router.post("/start")
async def start_monitoring(proctor: Proctor = Depends(get_proctor)) -> dict:
    """Start a monitored session for the signed-in student."""
    try:
        session = proctor.lifecycle.start()
    except NotAuthenticated as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return asdict(session)


@router.post("/stop")
async def stop_monitoring(proctor: Proctor = Depends(get_proctor)) -> dict:
    """Finalize the active session. Stopping an idle monitor is not an error."""
    final = proctor.lifecycle.stop()
    if final is None:
        return {"status": "idle", "session": None}
    return {"status": final.status.value, "session": asdict(final)}


@router.post("/events")
async def record_events(body: DetectionBatch, proctor: Proctor = Depends(get_proctor)) -> dict:
    """Feed detections from an external detector into the active session."""
    try:
        return asdict(proctor.lifecycle.ingest(body.events))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/status")
async def monitoring_status(proctor: Proctor = Depends(get_proctor)) -> dict:
    return asdict(proctor.lifecycle.snapshot())
