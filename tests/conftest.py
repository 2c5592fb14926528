"""
Shared pytest fixtures.
"""

from datetime import datetime, timezone

import pytest

from alerting import HeartbeatService, IncidentService
from core.clock import MockClock
from tests.fakes import FakeBackend, FakeSession


@pytest.fixture
def clock():
    """Clock pinned to 2024-03-01 12:00:00 UTC (a 10-minute boundary)."""
    return MockClock(datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def backend(clock):
    return FakeBackend(clock=clock)


@pytest.fixture
def heartbeats(backend):
    return HeartbeatService(backend, discriminator="x7k2")


@pytest.fixture
def incidents(backend, clock):
    return IncidentService(backend, discriminator="x7k2", clock=clock)
