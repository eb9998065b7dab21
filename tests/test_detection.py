"""
Tests for detection sources.
"""
import itertools
import random

import pytest

from examguard.detection import ScriptedDetectionSource, SimulatedDetectionSource
from examguard.models import DetectionKind


def _take(iterator, n):
    return list(itertools.islice(iterator, n))


class TestSimulatedDetectionSource:
    def test_same_seed_same_sequence(self):
        a = SimulatedDetectionSource(seed=42)
        b = SimulatedDetectionSource(seed=42)
        kinds_a = [[e.kind for e in batch] for batch in _take(a.events(), 50)]
        kinds_b = [[e.kind for e in batch] for batch in _take(b.events(), 50)]
        assert kinds_a == kinds_b

    def test_certain_probabilities_emit_both_kinds(self):
        source = SimulatedDetectionSource(1.0, 1.0, rng=random.Random(1))
        batch = next(source.events())
        assert [e.kind for e in batch] == [
            DetectionKind.HEAD_MOVEMENT,
            DetectionKind.DEVICE_DETECTION,
        ]

    def test_zero_probabilities_emit_nothing(self):
        source = SimulatedDetectionSource(0.0, 0.0, seed=3)
        assert all(batch == [] for batch in _take(source.events(), 100))

    def test_rates_roughly_match_probabilities(self):
        source = SimulatedDetectionSource(0.3, 0.1, seed=1234)
        batches = _take(source.events(), 5000)
        heads = sum(1 for b in batches for e in b if e.kind == DetectionKind.HEAD_MOVEMENT)
        devices = sum(1 for b in batches for e in b if e.kind == DetectionKind.DEVICE_DETECTION)
        assert 0.25 < heads / 5000 < 0.35
        assert 0.07 < devices / 5000 < 0.13

    def test_each_session_gets_a_fresh_iterator(self):
        source = SimulatedDetectionSource(seed=5)
        first = source.events()
        second = source.events()
        assert first is not second

    def test_invalid_probability(self):
        with pytest.raises(ValueError):
            SimulatedDetectionSource(head_movement_probability=1.5)


class TestScriptedDetectionSource:
    def test_replays_then_goes_quiet(self):
        source = ScriptedDetectionSource(
            [[DetectionKind.HEAD_MOVEMENT], [], [DetectionKind.DEVICE_DETECTION]]
        )
        batches = _take(source.events(), 5)
        assert [[e.kind for e in b] for b in batches] == [
            [DetectionKind.HEAD_MOVEMENT],
            [],
            [DetectionKind.DEVICE_DETECTION],
            [],
            [],
        ]

    def test_restarts_for_a_new_session(self):
        source = ScriptedDetectionSource([[DetectionKind.HEAD_MOVEMENT]])
        assert len(next(source.events())) == 1
        assert len(next(source.events())) == 1
