import logging
import random

import numpy as np

from examguard.auth import AuthChallenge
from examguard.config import Settings, settings
from examguard.database import SqliteRepository
from examguard.detection import DetectionSource, SimulatedDetectionSource
from examguard.devices import CaptureConstraints, CaptureDevice, NullCamera, OpenCVCamera
from examguard.errors import DuplicateIdentity
from examguard.identity import IdentityContext
from examguard.models import Session, Student
from examguard.monitoring import SessionLifecycle
from examguard.repository import InMemoryRepository, Repository
from examguard.voice import (
    SimulatedVoiceMatcher,
    VoiceMatcher,
    VoiceProfileStore,
    VoiceRecorder,
)

logger = logging.getLogger(__name__)


class Proctor:
    """One signed-in seat: repository, identity, login challenge and monitoring.

    The presentation layer talks to this object; it owns the lifecycle rules
    that span components (logout stops an active session before the
    identity is cleared).
    """

    def __init__(
        self,
        repository: Repository,
        auth: AuthChallenge,
        lifecycle: SessionLifecycle,
        profiles: VoiceProfileStore,
        recorder: VoiceRecorder | None = None,
        record_seconds: float = 3.0,
    ) -> None:
        self.repository = repository
        self.auth = auth
        self.lifecycle = lifecycle
        self.context: IdentityContext = auth.context
        self.profiles = profiles
        self.recorder = recorder
        self.record_seconds = record_seconds

    @classmethod
    def from_settings(
        cls,
        config: Settings = settings,
        repository: Repository | None = None,
        source: DetectionSource | None = None,
        camera: CaptureDevice | None = None,
        matcher: VoiceMatcher | None = None,
    ) -> "Proctor":
        if repository is None:
            repository = (
                SqliteRepository(config.database_path)
                if config.database_path
                else InMemoryRepository()
            )
        if source is None:
            source = SimulatedDetectionSource(
                head_movement_probability=config.head_movement_probability,
                device_detection_probability=config.device_detection_probability,
                seed=config.detection_seed,
            )
        if camera is None:
            camera = OpenCVCamera(config.camera_index) if config.camera_enabled else NullCamera()
        if matcher is None:
            matcher = SimulatedVoiceMatcher(config.challenge_success_rate, random.Random())

        context = IdentityContext()
        auth = AuthChallenge(
            repository,
            context,
            matcher,
            denial_display_seconds=config.denial_display_seconds,
        )
        lifecycle = SessionLifecycle(
            repository,
            context,
            source,
            camera,
            detection_interval=config.detection_interval_seconds,
            elapsed_interval=config.elapsed_interval_seconds,
            excessive_movement_threshold=config.excessive_movement_threshold,
            movement_advisory_seconds=config.movement_advisory_seconds,
            device_advisory_seconds=config.device_advisory_seconds,
            camera_advisory_seconds=config.camera_advisory_seconds,
            flag_threshold=config.flag_threshold,
            constraints=CaptureConstraints(config.camera_width, config.camera_height),
        )
        recorder = VoiceRecorder(config.voice_sample_rate) if config.voice_capture_enabled else None
        return cls(
            repository,
            auth,
            lifecycle,
            VoiceProfileStore(config.profiles_root, config.voice_sample_rate),
            recorder=recorder,
            record_seconds=config.voice_record_seconds,
        )

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, samples: np.ndarray | None = None) -> Student:
        """Enrol a voice profile and create the student record."""
        if self.repository.find_student_by_name(name) is not None:
            raise DuplicateIdentity(name)
        if samples is None:
            samples = self.capture_voice()
        profile_ref = self.profiles.enroll(samples)
        try:
            return self.repository.create_student(name, email, profile_ref)
        except DuplicateIdentity:
            # Lost a race with a concurrent registration of the same name
            self.profiles.discard(profile_ref)
            raise

    def answer_challenge(self, samples: np.ndarray | None = None) -> Student:
        if samples is None:
            samples = self.capture_voice()
        return self.auth.submit_challenge_response(samples)

    def capture_voice(self) -> np.ndarray | None:
        """Record from the microphone when capture is enabled, else None."""
        if self.recorder is None:
            return None
        return self.recorder.record(self.record_seconds)

    def logout(self) -> Session | None:
        """Stop any active session, then forget the signed-in identity.

        Returns:
            The session finalized by the logout, if one was active.
        """
        try:
            final = self.lifecycle.stop()
        finally:
            self.context.clear()
            self.auth.reset()
        if final is not None:
            logger.info(f"Session {final.id} stopped by logout")
        return final
