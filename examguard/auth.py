"""
Two-step login: identity lookup, then a spoken-phrase challenge.

    awaiting_identity --name found--> awaiting_challenge_response --match--> granted
            ^                 |                   |
            |             not found            mismatch
            |                 v                   v
            +---(display duration)--------- denied

Denials clear themselves after ``denial_display_seconds``. The reset is
applied lazily against the injected clock whenever the state is read or an
operation is attempted, so no timer thread is involved.
"""

import dataclasses
import logging
import random
import threading
import time
from collections.abc import Callable, Sequence

import numpy as np

from examguard.errors import ChallengeMismatch, IdentityNotFound, InvalidPhase
from examguard.identity import IdentityContext
from examguard.models import AuthChallengeState, AuthPhase, Student
from examguard.repository import Repository
from examguard.voice import LOGIN_PROMPTS, VoiceMatcher

logger = logging.getLogger(__name__)


class AuthChallenge:
    def __init__(
        self,
        repository: Repository,
        context: IdentityContext,
        matcher: VoiceMatcher,
        prompts: Sequence[str] = LOGIN_PROMPTS,
        denial_display_seconds: float = 3.0,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not prompts:
            raise ValueError("Challenge prompt pool must not be empty")
        self.repository = repository
        self.context = context
        self.matcher = matcher
        self.prompts = tuple(prompts)
        self.denial_display_seconds = denial_display_seconds
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock

        self._state = AuthChallengeState()
        self._student: Student | None = None
        self._denied_at: float | None = None
        # Reentrant: public methods return self.state while holding it
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> AuthChallengeState:
        with self._lock:
            self._expire_denial()
            return dataclasses.replace(self._state)

    @property
    def phase(self) -> AuthPhase:
        return self.state.phase

    def submit_identity(self, name: str) -> AuthChallengeState:
        """Look *name* up case-insensitively and issue a challenge prompt.

        Raises:
            IdentityNotFound: no student matches; the challenge shows as denied
                until the display duration elapses.
            InvalidPhase: a challenge is already pending or was granted.
        """
        with self._lock:
            self._expire_denial()
            self._require_phase(
                "submit identity", AuthPhase.AWAITING_IDENTITY, AuthPhase.DENIED
            )

            student = self.repository.find_student_by_name(name)
            if student is None:
                self._deny(IdentityNotFound.__name__)
                logger.warning(f"Login attempt for unknown identity '{name}'")
                raise IdentityNotFound(name)

            self._student = student
            self._denied_at = None
            self._state = AuthChallengeState(
                phase=AuthPhase.AWAITING_CHALLENGE_RESPONSE,
                prompt_text=self._draw_prompt(),
                attempts_failed=self._state.attempts_failed,
                student_name=student.name,
            )
            logger.info(f"Identity '{student.name}' found, challenge issued")
            return self.state

    def submit_challenge_response(self, samples: np.ndarray | None = None) -> Student:
        """Check the spoken response against the identified student's profile.

        Returns:
            The authenticated student; the identity context is bound to it.

        Raises:
            ChallengeMismatch: the matcher rejected the response.
            InvalidPhase: no challenge is pending.
        """
        with self._lock:
            self._expire_denial()
            self._require_phase("answer challenge", AuthPhase.AWAITING_CHALLENGE_RESPONSE)
            student = self._student

            if not self.matcher.verify(
                student.voice_profile_ref, self._state.prompt_text, samples
            ):
                self._deny(ChallengeMismatch.__name__)
                logger.warning(
                    f"Challenge mismatch for '{student.name}' "
                    f"(failed attempts: {self._state.attempts_failed})"
                )
                raise ChallengeMismatch(student.name)

            self._state = AuthChallengeState(
                phase=AuthPhase.GRANTED,
                prompt_text=None,
                attempts_failed=self._state.attempts_failed,
                student_name=student.name,
            )
            self.context.bind(student)
            logger.info(f"Access granted to '{student.name}'")
            return student

    def new_prompt(self) -> AuthChallengeState:
        """Replace the pending prompt, keeping the identified student.

        Also allowed while a challenge mismatch is still on display, which
        returns straight to ``awaiting_challenge_response``.
        """
        with self._lock:
            self._expire_denial()
            if not (
                self._state.phase == AuthPhase.AWAITING_CHALLENGE_RESPONSE
                or (self._state.phase == AuthPhase.DENIED and self._student is not None)
            ):
                raise InvalidPhase("request a new prompt", self._state.phase.value)

            self._denied_at = None
            self._state = dataclasses.replace(
                self._state,
                phase=AuthPhase.AWAITING_CHALLENGE_RESPONSE,
                prompt_text=self._draw_prompt(),
                error=None,
            )
            return self.state

    def cancel(self) -> AuthChallengeState:
        """Abandon a pending challenge and go back to identity entry."""
        with self._lock:
            self._expire_denial()
            if self._state.phase == AuthPhase.GRANTED:
                raise InvalidPhase("cancel", self._state.phase.value)
            self._to_awaiting_identity()
            return self.state

    def reset(self) -> None:
        """Forget everything about the current attempt, including a grant."""
        with self._lock:
            self._student = None
            self._denied_at = None
            self._state = AuthChallengeState()

    # ------------------------------------------------------------------
    # Internals (callers hold _lock)
    # ------------------------------------------------------------------

    def _draw_prompt(self) -> str:
        return self._rng.choice(self.prompts)

    def _deny(self, error: str) -> None:
        self._denied_at = self._clock()
        attempts = self._state.attempts_failed + 1
        if error == IdentityNotFound.__name__:
            self._student = None
        self._state = AuthChallengeState(
            phase=AuthPhase.DENIED,
            prompt_text=None,
            attempts_failed=attempts,
            student_name=self._student.name if self._student else None,
            error=error,
        )

    def _expire_denial(self) -> None:
        if self._state.phase != AuthPhase.DENIED or self._denied_at is None:
            return
        if self._clock() - self._denied_at >= self.denial_display_seconds:
            self._to_awaiting_identity()

    def _to_awaiting_identity(self) -> None:
        attempts = self._state.attempts_failed
        self._student = None
        self._denied_at = None
        self._state = AuthChallengeState(attempts_failed=attempts)

    def _require_phase(self, operation: str, *phases: AuthPhase) -> None:
        if self._state.phase not in phases:
            raise InvalidPhase(operation, self._state.phase.value)
