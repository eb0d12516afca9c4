from __future__ import annotations

import os
import threading
import time
from typing import Any, Callable

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_AUTOSTART"] = "false"
os.environ["PLACES_REQUEST_DELAY_SECONDS"] = "0"

import pytest

from courtguardian import models  # noqa: F401
from courtguardian.core.database import Base, build_engine, make_session_factory
from courtguardian.core.errors import NotFoundError, UpstreamError
from courtguardian.models.candidate import CandidateRecord, Coordinate
from courtguardian.services.court_store import CourtStore

# Meters per degree of latitude on the haversine sphere
METERS_PER_DEGREE = 111_194.93

RIVERSIDE = (33.749, -84.388)


def north_of(lat: float, meters: float) -> float:
    return lat + meters / METERS_PER_DEGREE


class FakePlaceProvider:
    """Returns canned candidates per sport and records every call."""

    def __init__(self, results: dict[str, list[CandidateRecord]] | None = None) -> None:
        self.results = results or {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self.started = threading.Event()
        self.release: threading.Event | None = None

    def search(self, latitude: float, longitude: float, radius_m: int, sport: str) -> list[CandidateRecord]:
        self.calls.append((latitude, longitude, radius_m, sport))
        self.started.set()
        if self.release is not None:
            self.release.wait(5)
        if sport in self.errors:
            raise self.errors[sport]
        return [c.model_copy(deep=True) for c in self.results.get(sport, [])]


class GatedCall:
    """Wraps a callable; the first call blocks until `release` is set."""

    def __init__(self, func: Callable) -> None:
        self.func = func
        self.entered = threading.Event()
        self.release = threading.Event()
        self._first = True
        self._lock = threading.Lock()

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            first, self._first = self._first, False
        if first:
            self.entered.set()
            self.release.wait(5)
        return self.func(*args, **kwargs)


def race(gate: GatedCall, first: Callable, second: Callable) -> list:
    """
    Run `first` until it is held inside `gate`, start `second`, then let both
    finish. Returns each call's result or the exception it raised, in order.
    """
    outcomes: list = [None, None]

    def run(index: int, call: Callable) -> None:
        try:
            outcomes[index] = call()
        except Exception as e:
            outcomes[index] = e

    threads = [threading.Thread(target=run, args=(0, first)), threading.Thread(target=run, args=(1, second))]
    threads[0].start()
    assert gate.entered.wait(5)
    threads[1].start()
    # Give the second call time to reach the contended section
    time.sleep(0.2)
    gate.release.set()
    for thread in threads:
        thread.join(10)
    return outcomes


class FakeGeocoder:
    def __init__(self, known: dict[str, tuple[float, float]] | None = None) -> None:
        self.known = known or {}
        self.fail = False

    def forward(self, address: str) -> Coordinate:
        if self.fail:
            raise UpstreamError("Geocoding timed out")
        if address not in self.known:
            raise NotFoundError(f"Could not geocode '{address}'")
        lat, lng = self.known[address]
        return Coordinate(latitude=lat, longitude=lng)

    def reverse(self, coordinate: Coordinate) -> str:
        for address, (lat, lng) in self.known.items():
            if (lat, lng) == (coordinate.latitude, coordinate.longitude):
                return address
        raise NotFoundError("No address found")


@pytest.fixture
def session_factory(tmp_path: Any):
    engine = build_engine(f"sqlite:///{tmp_path / 'courts.db'}")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory: Any) -> CourtStore:
    return CourtStore(session_factory, max_distance_m=100, min_similarity=0.85)


@pytest.fixture
def make_candidate() -> Callable[..., CandidateRecord]:
    def _make(name: str = "Riverside Tennis Courts", lat: float = RIVERSIDE[0], lng: float = RIVERSIDE[1], **kwargs: Any) -> CandidateRecord:
        kwargs.setdefault("sport_types", ["tennis"])
        return CandidateRecord(name=name, latitude=lat, longitude=lng, **kwargs)
    return _make


@pytest.fixture
def fake_provider() -> FakePlaceProvider:
    return FakePlaceProvider()


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder({
        "100 Riverside Dr, Atlanta, GA": RIVERSIDE,
        "1 Piedmont Park, Atlanta, GA": (33.7851, -84.3738),
    })
