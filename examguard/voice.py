"""
Voice enrolment and challenge matching.

No speaker verification happens here: the matcher is a weighted coin. What is
real is the capture path (sounddevice) and the profile file written at
enrolment (soundfile), so a genuine matcher can be dropped in behind
``VoiceMatcher`` without touching the authentication flow.
"""

import logging
import os
import random
import uuid
from typing import Protocol

import numpy as np
import soundfile as sf

from examguard.errors import PermissionDenied

logger = logging.getLogger(__name__)

REGISTRATION_PROMPTS = (
    "The quick brown fox jumps over the lazy dog",
    "Machine learning is transforming education technology",
    "Voice recognition provides secure authentication methods",
    "Artificial intelligence enhances online learning experiences",
)

LOGIN_PROMPTS = (
    "Authentication requires voice verification for security",
    "Please speak clearly for voice pattern matching",
    "Secure login using biometric voice recognition",
    "Voice authentication ensures account protection",
)


def samples_to_wav(samples: np.ndarray, sample_rate: int, path: str) -> None:
    """Write float32 samples to a 16-bit PCM WAV file."""
    sf.write(path, samples, sample_rate, subtype="PCM_16")


class VoiceRecorder:
    """Blocking microphone capture for enrolment and challenge responses."""

    def __init__(self, sample_rate: int = 16000, device: int | None = None) -> None:
        self.sample_rate = sample_rate
        self.device = device

    def record(self, seconds: float) -> np.ndarray:
        """Record *seconds* of mono audio. Blocks until the recording is done."""
        # Loads PortAudio; deferred until a recording is requested
        import sounddevice as sd

        frames = int(self.sample_rate * seconds)
        try:
            data = sd.rec(
                frames,
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
            )
            sd.wait()
        except sd.PortAudioError as e:
            raise PermissionDenied(f"Microphone unavailable: {e}") from e
        return data.flatten()


class VoiceProfileStore:
    def __init__(self, root: str, sample_rate: int = 16000) -> None:
        self.root = root
        self.sample_rate = sample_rate

    def enroll(self, samples: np.ndarray | None = None) -> str:
        """Create a voice profile and return its opaque reference.

        When *samples* are given they are kept as ``<root>/<ref>.wav``.
        """
        ref = f"voice_{uuid.uuid4().hex[:12]}"
        if samples is not None and len(samples):
            os.makedirs(self.root, exist_ok=True)
            samples_to_wav(samples, self.sample_rate, self.path_for(ref))
            logger.info(f"Stored voice profile {ref} ({len(samples)} samples)")
        return ref

    def path_for(self, ref: str) -> str:
        return os.path.join(self.root, f"{ref}.wav")

    def discard(self, ref: str) -> None:
        """Delete the stored recording for *ref*, if there is one."""
        path = self.path_for(ref)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Removed voice profile {ref}")


class VoiceMatcher(Protocol):
    def verify(self, profile_ref: str, prompt: str, samples: np.ndarray | None) -> bool: ...


class SimulatedVoiceMatcher:
    """Accepts a response with probability *success_rate*, ignoring the audio."""

    def __init__(self, success_rate: float = 0.9, rng: random.Random | None = None) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"success_rate must be within [0, 1], got {success_rate}")
        self.success_rate = success_rate
        self._rng = rng if rng is not None else random.Random()

    def verify(self, profile_ref: str, prompt: str, samples: np.ndarray | None) -> bool:
        matched = self._rng.random() < self.success_rate
        logger.debug(f"Simulated match for {profile_ref}: {matched}")
        return matched
