"""
Tests for the identity + spoken-phrase login challenge.
"""
import random

import pytest

from examguard.auth import AuthChallenge
from examguard.errors import ChallengeMismatch, IdentityNotFound, InvalidPhase
from examguard.models import AuthPhase
from examguard.voice import LOGIN_PROMPTS


class TestSubmitIdentity:
    def test_known_name_issues_prompt(self, auth, alice):
        state = auth.submit_identity("alice")
        assert state.phase == AuthPhase.AWAITING_CHALLENGE_RESPONSE
        assert state.prompt_text in LOGIN_PROMPTS
        assert state.student_name == "Alice"

    def test_unknown_name_denied_then_resets(self, auth, clock):
        with pytest.raises(IdentityNotFound):
            auth.submit_identity("mallory")
        assert auth.phase == AuthPhase.DENIED
        assert auth.state.error == "IdentityNotFound"

        clock.advance(2.5)
        assert auth.phase == AuthPhase.DENIED
        clock.advance(0.5)
        assert auth.phase == AuthPhase.AWAITING_IDENTITY

    def test_repeated_failures_never_grant(self, auth, context, clock):
        for _ in range(5):
            with pytest.raises(IdentityNotFound):
                auth.submit_identity("mallory")
            assert auth.phase == AuthPhase.DENIED
            clock.advance(3.0)
            assert auth.phase == AuthPhase.AWAITING_IDENTITY
        assert not context.is_authenticated
        assert auth.state.attempts_failed == 5

    def test_resubmit_during_denial_display(self, auth, alice):
        with pytest.raises(IdentityNotFound):
            auth.submit_identity("alcie")
        state = auth.submit_identity("Alice")
        assert state.phase == AuthPhase.AWAITING_CHALLENGE_RESPONSE

    def test_cannot_switch_identity_mid_challenge(self, auth, alice):
        auth.submit_identity("alice")
        with pytest.raises(InvalidPhase):
            auth.submit_identity("alice")


class TestChallengeResponse:
    def test_match_grants_and_binds_identity(self, auth, alice, context):
        auth.submit_identity("ALICE")
        student = auth.submit_challenge_response()
        assert student.id == alice.id
        assert auth.phase == AuthPhase.GRANTED
        assert context.student.id == alice.id

    def test_matcher_sees_profile_and_prompt(self, auth, alice, matcher):
        prompt = auth.submit_identity("alice").prompt_text
        auth.submit_challenge_response(samples=None)
        assert matcher.calls == [("voice_alice", prompt, None)]

    def test_mismatch_denies_then_resets(self, auth, alice, matcher, context, clock):
        matcher.result = False
        auth.submit_identity("alice")
        with pytest.raises(ChallengeMismatch):
            auth.submit_challenge_response()
        state = auth.state
        assert state.phase == AuthPhase.DENIED
        assert state.error == "ChallengeMismatch"
        assert state.attempts_failed == 1
        assert not context.is_authenticated

        clock.advance(3.0)
        assert auth.phase == AuthPhase.AWAITING_IDENTITY
        assert auth.state.student_name is None

    def test_new_prompt_after_mismatch_keeps_identity(self, auth, alice, matcher):
        matcher.result = False
        auth.submit_identity("alice")
        with pytest.raises(ChallengeMismatch):
            auth.submit_challenge_response()

        matcher.result = True
        state = auth.new_prompt()
        assert state.phase == AuthPhase.AWAITING_CHALLENGE_RESPONSE
        assert state.student_name == "Alice"
        assert auth.submit_challenge_response().id == alice.id

    def test_response_without_challenge(self, auth):
        with pytest.raises(InvalidPhase):
            auth.submit_challenge_response()


class TestPromptsAndCancel:
    def test_new_prompt_stays_in_challenge(self, auth, alice):
        auth.submit_identity("alice")
        for _ in range(10):
            state = auth.new_prompt()
            assert state.phase == AuthPhase.AWAITING_CHALLENGE_RESPONSE
            assert state.prompt_text in LOGIN_PROMPTS

    def test_prompts_drawn_from_whole_pool(self, repository, context, matcher, clock, alice):
        challenge = AuthChallenge(repository, context, matcher, rng=random.Random(0), clock=clock)
        challenge.submit_identity("alice")
        seen = {challenge.new_prompt().prompt_text for _ in range(200)}
        assert seen == set(LOGIN_PROMPTS)

    def test_new_prompt_requires_identity(self, auth):
        with pytest.raises(InvalidPhase):
            auth.new_prompt()

    def test_cancel_discards_prompt(self, auth, alice, context):
        auth.submit_identity("alice")
        state = auth.cancel()
        assert state.phase == AuthPhase.AWAITING_IDENTITY
        assert state.prompt_text is None
        assert not context.is_authenticated

    def test_cannot_cancel_after_grant(self, auth, alice):
        auth.submit_identity("alice")
        auth.submit_challenge_response()
        with pytest.raises(InvalidPhase):
            auth.cancel()

    def test_reset_clears_grant(self, auth, alice):
        auth.submit_identity("alice")
        auth.submit_challenge_response()
        auth.reset()
        assert auth.phase == AuthPhase.AWAITING_IDENTITY

    def test_empty_prompt_pool_rejected(self, repository, context, matcher):
        with pytest.raises(ValueError):
            AuthChallenge(repository, context, matcher, prompts=())
