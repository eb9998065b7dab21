"""
Shared fixtures: hardware-free collaborators for the proctoring core.
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from examguard.auth import AuthChallenge
from examguard.detection import ScriptedDetectionSource
from examguard.errors import PermissionDenied
from examguard.identity import IdentityContext
from examguard.monitoring import SessionLifecycle
from examguard.repository import InMemoryRepository


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeWallClock:
    """Wall clock returning increasing UTC datetimes, one second apart."""

    def __init__(self):
        self.current = datetime(2024, 1, 20, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


class FakeCamera:
    def __init__(self, deny: bool = False):
        self.deny = deny
        self.acquired = 0
        self.released = []

    def acquire(self, constraints):
        if self.deny:
            raise PermissionDenied("camera blocked")
        self.acquired += 1
        return f"stream-{self.acquired}"

    def release(self, stream):
        self.released.append(stream)


class ManualTicker:
    def __init__(self, name, interval, fn):
        self.name = name
        self.interval = interval
        self.fn = fn
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self, times: int = 1):
        for _ in range(times):
            self.fn()


class ManualTickerFactory:
    """Collects tickers so tests can fire detection and elapsed ticks by hand."""

    def __init__(self):
        self.tickers = []

    def __call__(self, name, interval, fn):
        ticker = ManualTicker(name, interval, fn)
        self.tickers.append(ticker)
        return ticker

    def get(self, prefix: str) -> ManualTicker:
        return [t for t in self.tickers if t.name.startswith(prefix)][-1]


class FixedMatcher:
    """Voice matcher with a predetermined answer."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls = []

    def verify(self, profile_ref, prompt, samples):
        self.calls.append((profile_ref, prompt, samples))
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def context():
    return IdentityContext()


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def tickers():
    return ManualTickerFactory()


@pytest.fixture
def matcher():
    return FixedMatcher(True)


@pytest.fixture
def alice(repository):
    return repository.create_student("Alice", "alice@x.com", "voice_alice")


@pytest.fixture
def auth(repository, context, matcher, clock):
    return AuthChallenge(
        repository,
        context,
        matcher,
        denial_display_seconds=3.0,
        rng=random.Random(7),
        clock=clock,
    )


@pytest.fixture
def make_lifecycle(repository, context, camera, tickers, clock, wall_clock):
    """Build a lifecycle on the shared fakes, optionally with a specific source."""

    def _make(source=None, **kwargs):
        return SessionLifecycle(
            repository,
            context,
            source or ScriptedDetectionSource(),
            kwargs.pop("camera", camera),
            ticker_factory=tickers,
            clock=clock,
            now=wall_clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def lifecycle(make_lifecycle):
    return make_lifecycle()


@pytest.fixture
def signed_in(context, alice):
    context.bind(alice)
    return alice


@pytest.fixture
def denied_camera():
    return FakeCamera(deny=True)
