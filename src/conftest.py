"""
Shared fixtures for the profile collector tests.
"""

import typing as t
import uuid
from unittest.mock import MagicMock

import pytest
from pytest import MonkeyPatch

from profile_collector.ambient import AmbientContext
from profile_collector.collector import ProfileCollector
from profile_collector.conf import CollectorSettings
from profile_collector.engines import ProfilerEngine, ProfilerFlags
from profile_collector.metadata import ProfileRecord
from profile_collector.sampler import Sampler
from profile_collector.sink import PersistenceSink


class StubEngine(ProfilerEngine):
    """An engine that records its calls and returns a fixed profile."""

    name = "stub"
    blob: t.ClassVar[dict[str, t.Any]] = {"cpu": 10}
    calls: t.ClassVar[list[str]] = []

    def enable(self, flags: ProfilerFlags, options: dict[str, t.Any]) -> None:
        type(self).calls.append("enable")

    def disable(self) -> dict[str, t.Any]:
        type(self).calls.append("disable")
        return dict(type(self).blob)


class UnavailableEngine(ProfilerEngine):
    """An engine whose library is never installed."""

    name = "missing"
    module = "profile_collector_missing_engine"


class FakeSink(PersistenceSink):
    """Stands in for the store, keeping records in memory."""

    def __init__(self, available: bool = True, error: Exception | None = None) -> None:
        super().__init__("default")
        self.available = available
        self.error = error
        self.records: list[ProfileRecord] = []

    def is_available(self) -> bool:
        return self.available

    def persist(self, record: ProfileRecord) -> uuid.UUID:
        if self.error is not None:
            raise self.error
        self.records.append(record)
        return uuid.uuid4()


class FixedSampler(Sampler):
    """A sampler with a predetermined answer that counts its draws."""

    def __init__(self, result: bool = True) -> None:
        super().__init__()
        self.result = result
        self.draws = 0

    def should_sample(self, ratio: int) -> bool:
        self.draws += 1
        return self.result


@pytest.fixture(autouse=True)
def reset_stub_engine() -> None:
    StubEngine.calls = []
    StubEngine.blob = {"cpu": 10}


@pytest.fixture
def collector_settings() -> CollectorSettings:
    """Enabled settings that profile every request."""
    return CollectorSettings(enabled=True, ratio=100)


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def collector(collector_settings: CollectorSettings, fake_sink: FakeSink) -> ProfileCollector:
    """A collector wired to the stub engine and the in-memory sink."""
    return ProfileCollector(collector_settings, engines=[StubEngine], sink=fake_sink)


@pytest.fixture
def ambient() -> AmbientContext:
    """Ambient context for a plain GET /foo?x=1 with mocked host primitives."""
    return AmbientContext(
        url="/foo?x=1",
        server_vars={"REQUEST_METHOD": "GET", "PATH_INFO": "/foo"},
        query_params={"x": "1"},
        env_vars={"HOME": "/root"},
        request_time=1709640000,
        request_time_float=1709640000.25,
        finish_response=MagicMock(),
        close_session=MagicMock(),
        ignore_abort=MagicMock(),
        register_hook=MagicMock(),
    )


@pytest.fixture
def site_collector(monkeypatch: MonkeyPatch) -> ProfileCollector:
    """Enable profiling for the profiling site and route it through the stub engine.

    The store is the real test database.
    """
    collector = ProfileCollector(CollectorSettings(enabled=True, ratio=100), engines=[StubEngine])
    monkeypatch.setattr("profile_collector.middleware.get_collector", lambda: collector)
    monkeypatch.setattr("profiling_site.views.get_collector", lambda: collector)
    return collector

