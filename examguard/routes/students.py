import asyncio
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from examguard.errors import DuplicateIdentity, PermissionDenied
from examguard.proctor import Proctor
from examguard.routes.deps import get_proctor
from examguard.voice import REGISTRATION_PROMPTS

router = APIRouter(prefix="/api", tags=["students"])


class StudentCreate(BaseModel):
    name: str
    email: str


@router.post("/students", status_code=201)
async def register_student(body: StudentCreate, proctor: Proctor = Depends(get_proctor)) -> dict:
    """Register a student, enrolling a voice profile from the microphone if enabled."""
    if not body.name.strip() or not body.email.strip():
        raise HTTPException(status_code=422, detail="Name and email are required")
    try:
        student = await asyncio.to_thread(proctor.register, body.name, body.email)
    except DuplicateIdentity as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PermissionDenied as e:
        raise HTTPException(status_code=503, detail=str(e))
    return asdict(student)


@router.get("/students")
async def list_students(proctor: Proctor = Depends(get_proctor)) -> list[dict]:
    return [asdict(s) for s in proctor.repository.list_students()]


@router.get("/students/enrolment-prompts")
async def enrolment_prompts() -> list[str]:
    return list(REGISTRATION_PROMPTS)
