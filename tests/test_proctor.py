"""
End-to-end flow through the proctor facade: register, log in, monitor, log out.
"""
import numpy as np
import pytest

from examguard.errors import ChallengeMismatch, DuplicateIdentity
from examguard.models import AdvisoryKind, AuthPhase, DetectionKind, SessionStatus
from examguard.proctor import Proctor
from examguard.repository import InMemoryRepository
from examguard.voice import VoiceProfileStore


@pytest.fixture
def proctor(repository, auth, lifecycle, tmp_path):
    return Proctor(repository, auth, lifecycle, VoiceProfileStore(str(tmp_path / "profiles")))


class FakeRecorder:
    def __init__(self):
        self.calls = []

    def record(self, seconds):
        self.calls.append(seconds)
        return np.zeros(1600, dtype="float32")


class TestEndToEnd:
    def test_register_login_monitor_stop(self, proctor, repository, clock):
        student = proctor.register("Alice", "alice@x.com")

        state = proctor.auth.submit_identity("alice")
        assert state.phase == AuthPhase.AWAITING_CHALLENGE_RESPONSE
        assert proctor.answer_challenge().id == student.id
        assert proctor.auth.phase == AuthPhase.GRANTED

        session = proctor.lifecycle.start()
        assert session.status == SessionStatus.ACTIVE
        assert session.trust_score == 100

        for _ in range(6):
            current = proctor.lifecycle.ingest([DetectionKind.HEAD_MOVEMENT])
        assert current.trust_score <= 70
        kinds = [a.kind for a in proctor.lifecycle.active_advisories()]
        assert AdvisoryKind.EXCESSIVE_MOVEMENT in kinds

        final = proctor.lifecycle.stop()
        expected = (
            SessionStatus.FLAGGED if final.cheating_percentage > 50 else SessionStatus.COMPLETED
        )
        assert final.status == expected
        assert final.end_time is not None
        assert repository.get_session(session.id) == final

    def test_failed_challenge_blocks_session(self, proctor, matcher):
        proctor.register("Alice", "alice@x.com")
        matcher.result = False
        proctor.auth.submit_identity("Alice")
        with pytest.raises(ChallengeMismatch):
            proctor.answer_challenge()
        assert not proctor.context.is_authenticated


class TestRegistration:
    def test_duplicate_name_rejected(self, proctor):
        proctor.register("Alice", "alice@x.com")
        with pytest.raises(DuplicateIdentity):
            proctor.register("alice", "second@x.com")

    def test_register_records_voice_when_capture_enabled(self, proctor, tmp_path):
        recorder = FakeRecorder()
        proctor.recorder = recorder
        proctor.record_seconds = 0.1
        student = proctor.register("Bob", "bob@x.com")
        assert recorder.calls == [0.1]
        assert (tmp_path / "profiles" / f"{student.voice_profile_ref}.wav").exists()

    def test_lost_registration_race_removes_profile(self, auth, lifecycle, tmp_path):
        class RacingRepository(InMemoryRepository):
            # The name check passes before another registration commits
            def find_student_by_name(self, name):
                return None

        repository = RacingRepository()
        repository.create_student("Alice", "alice@x.com", "voice_first")
        profiles = VoiceProfileStore(str(tmp_path / "profiles"))
        proctor = Proctor(repository, auth, lifecycle, profiles)

        with pytest.raises(DuplicateIdentity):
            proctor.register("Alice", "other@x.com", np.zeros(1600, dtype="float32"))
        assert list((tmp_path / "profiles").glob("*.wav")) == []


class TestLogout:
    def test_logout_stops_active_session_first(self, proctor, repository, context, camera):
        proctor.register("Alice", "alice@x.com")
        proctor.auth.submit_identity("alice")
        proctor.answer_challenge()
        session = proctor.lifecycle.start()
        proctor.lifecycle.ingest([DetectionKind.DEVICE_DETECTION])

        final = proctor.logout()
        assert final.id == session.id
        stored = repository.get_session(session.id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.device_detection_count == 1
        assert stored.end_time is not None
        assert not context.is_authenticated
        assert proctor.auth.phase == AuthPhase.AWAITING_IDENTITY
        assert camera.released == ["stream-1"]

    def test_logout_without_session(self, proctor, context, alice):
        context.bind(alice)
        assert proctor.logout() is None
        assert not context.is_authenticated
