from contextlib import asynccontextmanager

from fastapi import FastAPI

from examguard.config import settings
from examguard.logging_config import setup_logging
from examguard.proctor import Proctor
from examguard.routes import auth, monitoring, sessions, students


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the proctor on startup; stop any running session on shutdown."""
    setup_logging(settings.log_level)
    if not hasattr(app.state, "proctor"):
        app.state.proctor = Proctor.from_settings(settings)
    yield
    app.state.proctor.lifecycle.stop()


app = FastAPI(
    title="examguard",
    description="Voice-gated exam sessions with live risk scoring",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(students.router)
app.include_router(auth.router)
app.include_router(monitoring.router)
app.include_router(sessions.router)


def run() -> None:
    import uvicorn

    uvicorn.run("examguard.main:app", host=settings.host, port=settings.port)
