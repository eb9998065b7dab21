"""
Detection sources - produce per-tick batches of behavioural detection events

A source hands out a fresh iterator for every monitoring session. Each
``next()`` on that iterator returns the events observed during one tick
(possibly none). Iterators are unbounded and are never rewound; a new
session calls ``events()`` again.
"""

import logging
import random
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timezone
from typing import Protocol

from examguard.models import DetectionEvent, DetectionKind

logger = logging.getLogger(__name__)

Batch = list[DetectionEvent]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DetectionSource(Protocol):
    def events(self) -> Iterator[Batch]:
        """Return a new, unbounded iterator of per-tick event batches."""
        ...


class SimulatedDetectionSource:
    """
    Random stand-in for a vision pipeline.

    Every tick draws independently for head movement and for a prohibited
    device, so a single tick can report both.
    """

    def __init__(
        self,
        head_movement_probability: float = 0.3,
        device_detection_probability: float = 0.1,
        rng: random.Random | None = None,
        seed: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        for label, p in (
            ("head_movement_probability", head_movement_probability),
            ("device_detection_probability", device_detection_probability),
        ):
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{label} must be within [0, 1], got {p}")
        self.head_movement_probability = head_movement_probability
        self.device_detection_probability = device_detection_probability
        self._rng = rng if rng is not None else random.Random(seed)
        self._clock = clock

    def events(self) -> Iterator[Batch]:
        return self._generate()

    def _generate(self) -> Iterator[Batch]:
        while True:
            now = self._clock()
            batch: Batch = []
            if self._rng.random() < self.head_movement_probability:
                batch.append(DetectionEvent(DetectionKind.HEAD_MOVEMENT, now))
            if self._rng.random() < self.device_detection_probability:
                batch.append(DetectionEvent(DetectionKind.DEVICE_DETECTION, now))
            yield batch


class ScriptedDetectionSource:
    """Replays predefined batches, then reports nothing forever.

    Batches may hold ``DetectionEvent`` objects or bare ``DetectionKind``
    values; kinds are stamped with the clock when they are emitted.
    """

    def __init__(
        self,
        batches: Iterable[Iterable[DetectionEvent | DetectionKind]] = (),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._batches = [list(b) for b in batches]
        self._clock = clock

    def events(self) -> Iterator[Batch]:
        return self._replay()

    def _replay(self) -> Iterator[Batch]:
        for batch in self._batches:
            yield [
                item if isinstance(item, DetectionEvent) else DetectionEvent(item, self._clock())
                for item in batch
            ]
        while True:
            yield []
