import asyncio
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from examguard.errors import (
    ChallengeMismatch,
    IdentityNotFound,
    InvalidPhase,
    PermissionDenied,
)
from examguard.proctor import Proctor
from examguard.routes.deps import get_proctor

router = APIRouter(prefix="/api/auth", tags=["auth"])


class IdentitySubmit(BaseModel):
    name: str


@router.get("/state")
async def auth_state(proctor: Proctor = Depends(get_proctor)) -> dict:
    return asdict(proctor.auth.state)


@router.post("/identity")
async def submit_identity(body: IdentitySubmit, proctor: Proctor = Depends(get_proctor)) -> dict:
    """Step 1: look the student up and receive a phrase to speak."""
    try:
        return asdict(proctor.auth.submit_identity(body.name))
    except IdentityNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidPhase as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/challenge")
async def answer_challenge(proctor: Proctor = Depends(get_proctor)) -> dict:
    """Step 2: verify the spoken phrase. Grants access on a match."""
    try:
        student = await asyncio.to_thread(proctor.answer_challenge)
    except ChallengeMismatch as e:
        raise HTTPException(status_code=401, detail=str(e))
    except InvalidPhase as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionDenied as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"student": asdict(student), "state": asdict(proctor.auth.state)}


@router.post("/challenge/prompt")
async def new_prompt(proctor: Proctor = Depends(get_proctor)) -> dict:
    try:
        return asdict(proctor.auth.new_prompt())
    except InvalidPhase as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/cancel")
async def cancel_challenge(proctor: Proctor = Depends(get_proctor)) -> dict:
    try:
        return asdict(proctor.auth.cancel())
    except InvalidPhase as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/logout")
async def logout(proctor: Proctor = Depends(get_proctor)) -> dict:
    """Sign out, finalizing the active session first if there is one."""
    final = proctor.logout()
    return {"status": "logged_out", "session": asdict(final) if final else None}
