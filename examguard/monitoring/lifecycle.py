import dataclasses
import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import Any

from examguard import scoring
from examguard.detection import Batch, DetectionSource
from examguard.devices import CaptureConstraints, CaptureDevice
from examguard.errors import ConflictError, NotAuthenticated, PermissionDenied
from examguard.identity import IdentityContext
from examguard.logging_config import log_proctor_event
from examguard.models import (
    Advisory,
    AdvisoryKind,
    DetectionEvent,
    DetectionKind,
    Session,
    SessionStatus,
    SessionView,
)
from examguard.monitoring.timers import Ticker, TickerFactory, thread_ticker
from examguard.repository import Repository, utcnow

logger = logging.getLogger(__name__)

EXCESSIVE_MOVEMENT_MESSAGE = "Excessive head movement detected!"
PROHIBITED_DEVICE_MESSAGE = "Mobile phone detected! This is strictly monitored."
CAMERA_UNAVAILABLE_MESSAGE = "Camera access denied. Please enable camera permissions."


def format_elapsed(seconds: int) -> str:
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


class SessionLifecycle:
    """Owns the one monitored session of an identity context.

    States: idle -> active -> completed | flagged. A finished session stays
    visible through ``snapshot()`` until the next ``start()``.

    Concurrency model (two periodic tasks, one lock):

    1. **Detection tick** - pulls the next batch from the detection source,
       bumps the counters, re-scores, raises advisories.

    2. **Elapsed tick** - advances the display clock once a second. Not part
       of the risk model.

    Both ticks, ``ingest``, ``start`` and ``stop`` take ``_lock``. ``stop``
    clears ``_running`` under the lock before cancelling the tasks, so a tick
    that was already waiting for the lock sees the session as stopped and
    drops its batch. Counts and scores reach the repository only in
    ``stop()``; intermediate ticks live in memory.
    """

    def __init__(
        self,
        repository: Repository,
        context: IdentityContext,
        source: DetectionSource,
        camera: CaptureDevice,
        ticker_factory: TickerFactory = thread_ticker,
        detection_interval: float = 2.0,
        elapsed_interval: float = 1.0,
        excessive_movement_threshold: int = 5,
        movement_advisory_seconds: float = 3.0,
        device_advisory_seconds: float = 5.0,
        camera_advisory_seconds: float = 5.0,
        flag_threshold: int = scoring.DEFAULT_FLAG_THRESHOLD,
        constraints: CaptureConstraints = CaptureConstraints(),
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.context = context
        self.source = source
        self.camera = camera
        self.ticker_factory = ticker_factory
        self.detection_interval = detection_interval
        self.elapsed_interval = elapsed_interval
        self.excessive_movement_threshold = excessive_movement_threshold
        self.movement_advisory_seconds = movement_advisory_seconds
        self.device_advisory_seconds = device_advisory_seconds
        self.camera_advisory_seconds = camera_advisory_seconds
        self.flag_threshold = flag_threshold
        self.constraints = constraints
        self._clock = clock
        self._now = now

        self._lock = threading.Lock()
        self._running = False
        self._session: Session | None = None
        self._events: Iterator[Batch] | None = None
        self._tickers: list[Ticker] = []
        self._stream: Any = None
        self._camera_enabled = False
        self._elapsed_seconds = 0
        self._advisories: list[Advisory] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._running

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed_seconds

    @property
    def camera_enabled(self) -> bool:
        return self._camera_enabled

    def start(self) -> Session:
        """Open a new session for the identity bound in the context.

        Raises:
            NotAuthenticated: nobody is signed in.
            ConflictError: the identity already has an active session.
        """
        with self._lock:
            student = self.context.student
            if student is None:
                raise NotAuthenticated("Sign in before starting a monitored session")
            if self._running or self.context.active_session_id is not None:
                logger.warning(f"Rejected second session start for '{student.name}'")
                raise ConflictError(
                    f"Session {self.context.active_session_id} is already active for '{student.name}'"
                )

            stream, advisories = self._acquire_camera()
            tickers: list[Ticker] = []
            session: Session | None = None
            try:
                events = self.source.events()
                session = self.repository.create_session(
                    student_id=student.id,
                    student_name=student.name,
                    start_time=self._now(),
                    status=SessionStatus.ACTIVE,
                )
                self.context.claim_session(session.id)

                self._session = session
                self._events = events
                self._stream = stream
                self._camera_enabled = stream is not None
                self._elapsed_seconds = 0
                self._advisories = advisories
                self._running = True

                tickers = [
                    self.ticker_factory(
                        f"detection-{session.id}", self.detection_interval, self._on_detection_tick
                    ),
                    self.ticker_factory(
                        f"elapsed-{session.id}", self.elapsed_interval, self._on_elapsed_tick
                    ),
                ]
                for ticker in tickers:
                    ticker.start()
                self._tickers = tickers
            except Exception:
                logger.exception("Failed to start monitoring session")
                self._abort_start(session, tickers, stream)
                raise

        log_proctor_event(
            session.id,
            "session_start",
            {"student_id": student.id, "camera": self._camera_enabled},
        )
        return dataclasses.replace(session)

    def stop(self) -> Session | None:
        """Finalize the active session and persist it. No-op when idle.

        Returns:
            The finalized session, or None if nothing was active.
        """
        with self._lock:
            if not self._running:
                return None
            self._running = False
            tickers, self._tickers = self._tickers, []
            stream, self._stream = self._stream, None
            self._events = None
            session = self._session

        try:
            for ticker in tickers:
                ticker.cancel()
        finally:
            if stream is not None:
                self.camera.release(stream)

        assessment = scoring.score(session.head_movement_count, session.device_detection_count)
        final_fields = {
            "end_time": max(self._now(), session.start_time),
            "head_movement_count": session.head_movement_count,
            "device_detection_count": session.device_detection_count,
            "cheating_percentage": assessment.cheating_percentage,
            "trust_score": assessment.trust_score,
            "status": scoring.final_status(assessment.cheating_percentage, self.flag_threshold),
        }
        try:
            self.repository.update_session(session.id, **final_fields)
        except Exception:
            logger.error(
                f"Failed to persist final state of session {session.id}; "
                f"stored record is still {session.status.value}"
            )
            raise
        finally:
            with self._lock:
                final = dataclasses.replace(session, **final_fields)
                self._session = final
                self._camera_enabled = False
            self.context.release_session(session.id)

        log_proctor_event(
            final.id,
            "session_end",
            {
                "status": final.status.value,
                "trust_score": final.trust_score,
                "head_movements": final.head_movement_count,
                "device_detections": final.device_detection_count,
                "elapsed": self._elapsed_seconds,
            },
            level=logging.WARNING if final.status == SessionStatus.FLAGGED else logging.INFO,
        )
        return dataclasses.replace(final)

    def ingest(self, events: Iterable[DetectionEvent | DetectionKind]) -> Session:
        """Apply an explicit batch of detections to the active session.

        Raises:
            ConflictError: no session is active.
        """
        batch = [
            e if isinstance(e, DetectionEvent) else DetectionEvent(e, self._now())
            for e in events
        ]
        with self._lock:
            if not self._running:
                raise ConflictError("No active session to record detections for")
            self._apply(batch)
            return dataclasses.replace(self._session)

    def active_advisories(self) -> list[Advisory]:
        now = self._clock()
        with self._lock:
            self._advisories = [a for a in self._advisories if a.is_active(now)]
            return list(self._advisories)

    def snapshot(self) -> SessionView:
        advisories = self.active_advisories()
        with self._lock:
            session = dataclasses.replace(self._session) if self._session else None
            return SessionView(
                session=session,
                is_active=self._running,
                elapsed_seconds=self._elapsed_seconds,
                elapsed_display=format_elapsed(self._elapsed_seconds),
                camera_enabled=self._camera_enabled,
                risk_tier=scoring.risk_tier(session.trust_score) if session else "low",
                advisories=advisories,
            )

    # ------------------------------------------------------------------
    # Periodic tasks
    # ------------------------------------------------------------------

    def _on_detection_tick(self) -> None:
        with self._lock:
            if not self._running:
                return
            batch = next(self._events)
            if batch:
                self._apply(batch)

    def _on_elapsed_tick(self) -> None:
        with self._lock:
            if self._running:
                self._elapsed_seconds += 1

    # ------------------------------------------------------------------
    # Internals (callers hold _lock)
    # ------------------------------------------------------------------

    def _apply(self, batch: Batch) -> None:
        session = self._session
        heads = session.head_movement_count
        devices = session.device_detection_count

        for event in batch:
            if event.kind == DetectionKind.HEAD_MOVEMENT:
                heads += 1
                if heads > self.excessive_movement_threshold:
                    self._raise_advisory(
                        AdvisoryKind.EXCESSIVE_MOVEMENT,
                        EXCESSIVE_MOVEMENT_MESSAGE,
                        self.movement_advisory_seconds,
                        {"head_movements": heads},
                    )
            elif event.kind == DetectionKind.DEVICE_DETECTION:
                devices += 1
                self._raise_advisory(
                    AdvisoryKind.PROHIBITED_DEVICE,
                    PROHIBITED_DEVICE_MESSAGE,
                    self.device_advisory_seconds,
                    {"device_detections": devices},
                )

        assessment = scoring.score(heads, devices)
        self._session = dataclasses.replace(
            session,
            head_movement_count=heads,
            device_detection_count=devices,
            cheating_percentage=assessment.cheating_percentage,
            trust_score=assessment.trust_score,
        )
        logger.debug(
            f"Session {session.id}: heads={heads} devices={devices} "
            f"trust={assessment.trust_score}"
        )

    def _raise_advisory(
        self, kind: AdvisoryKind, message: str, duration: float, details: dict
    ) -> None:
        advisory = Advisory(kind, message, self._clock(), duration)
        # Only the newest advisory of a kind is shown
        self._advisories = [a for a in self._advisories if a.kind != kind] + [advisory]
        log_proctor_event(
            self._session.id, "advisory", {"kind": kind.value, **details}, level=logging.WARNING
        )

    def _acquire_camera(self) -> tuple[Any, list[Advisory]]:
        try:
            return self.camera.acquire(self.constraints), []
        except PermissionDenied as e:
            logger.warning(f"Camera unavailable, monitoring without video: {e}")
            advisory = Advisory(
                AdvisoryKind.CAMERA_UNAVAILABLE,
                CAMERA_UNAVAILABLE_MESSAGE,
                self._clock(),
                self.camera_advisory_seconds,
            )
            return None, [advisory]

    def _abort_start(self, session: Session | None, tickers: list[Ticker], stream: Any) -> None:
        self._running = False
        self._session = None
        self._tickers = []
        self._stream = None
        self._events = None
        self._camera_enabled = False
        try:
            for ticker in tickers:
                ticker.cancel()
        finally:
            if stream is not None:
                self.camera.release(stream)
            if session is not None:
                self.context.release_session(session.id)
                self.repository.update_session(
                    session.id,
                    end_time=max(self._now(), session.start_time),
                    status=SessionStatus.COMPLETED,
                )
