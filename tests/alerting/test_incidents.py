"""
Incident Service Tests.

============================================================
PURPOSE
============================================================
Unit tests for IncidentService and the hysteresis policies.

TEST CATEGORIES:
- Policy tests: one policy per incident type
- Lifecycle tests: raise, supersede, resolve, at most one open
- Failure tests: failed lookups skip writes
- Maintenance tests: delete and retention cleanup

============================================================
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from alerting import (
    AlertCache,
    BackendReadError,
    ChainObservationPolicy,
    DiskUsagePolicy,
    IncidentService,
    IncidentType,
    JailPolicy,
    RestartPolicy,
    SlashPointsPolicy,
)
from alerting.incidents import format_bytes


SLASH = "Thornode Slash Points (x7k2)"


# ============================================================
# POLICY TESTS
# ============================================================

class TestPolicies:
    """Tests for the hysteresis policies."""

    def test_slash_points_must_double(self):
        policy = SlashPointsPolicy(threshold=5)

        assert policy.should_alert(10, 0)
        assert not policy.should_alert(11, 10)
        assert not policy.should_alert(20, 10)
        assert policy.should_alert(25, 10)
        assert not policy.should_alert(4, 0)

    def test_jail_needs_later_release(self):
        policy = JailPolicy()

        assert policy.should_alert(1000, 1100, 0)
        assert not policy.should_alert(1000, 1100, 1100)
        assert policy.should_alert(1200, 1500, 1100)

    def test_chain_observation_either_direction(self):
        policy = ChainObservationPolicy()

        assert policy.should_alert(-10, 0)
        assert not policy.should_alert(-15, -10)
        assert policy.should_alert(25, -10)

    def test_restart_window(self, clock):
        policy = RestartPolicy()
        now = clock.now()

        assert policy.should_alert(1, 0, now - timedelta(minutes=5), now)
        assert not policy.should_alert(1, 1, now - timedelta(minutes=5), now)
        assert not policy.should_alert(2, 1, now - timedelta(minutes=20), now)

    def test_disk_usage(self):
        policy = DiskUsagePolicy()

        assert policy.should_alert(0.95, 0)
        assert not policy.should_alert(0.96, 0.95)
        assert policy.should_alert(0.999, 0.95)
        assert not policy.should_alert(0.8, 0)

    def test_format_bytes(self):
        assert format_bytes(512) == "512.0B"
        assert format_bytes(1536) == "1.5KB"
        assert format_bytes(5 * 1024 ** 3) == "5.0GB"


# ============================================================
# LIFECYCLE TESTS
# ============================================================

class TestRaise:
    """Tests for incident creation."""

    @pytest.mark.asyncio
    async def test_hysteresis_sequence(self, incidents, backend):
        results = [
            await incidents.report_slash_points("Thornode", value, threshold=5)
            for value in (10, 11, 12, 25)
        ]

        assert results == [True, False, False, True]
        assert backend.count("create", "incidents") == 2
        assert len(backend.open_incidents(SLASH)) == 1
        assert incidents.cache.get(incidents.identity("Thornode", IncidentType.SLASH_POINTS)) == 25

    @pytest.mark.asyncio
    async def test_create_payload(self, incidents, backend):
        await incidents.report_slash_points("Thornode", 1234, threshold=800)

        payload = backend.calls[-1].detail
        assert payload["name"] == SLASH
        assert payload["summary"] == "Thornode entered the worst performing top 10 with 1,234 slash points!"
        assert payload["requester_email"] == "node-monitor@localhost.localdomain"

    @pytest.mark.asyncio
    async def test_incident_lookup_spans_all_time(self, incidents, backend):
        await incidents.report_slash_points("Thornode", 10, threshold=5)

        params = backend.calls[0].detail
        assert params == {"per_page": 50, "from": "1970-01-01", "to": "2024-03-01"}

    @pytest.mark.asyncio
    async def test_supersedes_open_incident(self, incidents, backend):
        stale = backend.add_incident(SLASH)

        await incidents.report_slash_points("Thornode", 10, threshold=5)

        assert stale["attributes"]["resolved_at"] is not None
        assert len(backend.open_incidents(SLASH)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_reports_create_once(self, incidents, backend):
        await asyncio.gather(*(
            incidents.report_slash_points("Thornode", 10, threshold=5) for _ in range(3)
        ))

        assert backend.count("create", "incidents") == 1
        assert len(backend.open_incidents(SLASH)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_reports_respect_hysteresis(self, incidents, backend):
        results = await asyncio.gather(
            incidents.report_chain_observation("BTC", -5),
            incidents.report_chain_observation("BTC", -6),
        )

        assert results == [True, False]
        assert backend.count("create", "incidents") == 1

    @pytest.mark.asyncio
    async def test_concurrent_restarts_remember_latest_count(self, incidents, backend, clock):
        await asyncio.gather(
            incidents.report_restart("Bitcoin", 2, clock.now()),
            incidents.report_restart("Bitcoin", 2, clock.now()),
        )

        assert backend.count("create", "incidents") == 1
        assert incidents.cache.get(incidents.identity("Bitcoin", IncidentType.RESTART)) == 2

    @pytest.mark.asyncio
    async def test_failed_lookup_skips_write(self, incidents, backend):
        backend.failing_reads.add("incidents")

        assert not await incidents.report_slash_points("Thornode", 10, threshold=5)

        assert backend.count("create") == 0
        assert incidents.cache.get(incidents.identity("Thornode", IncidentType.SLASH_POINTS)) == 0

    @pytest.mark.asyncio
    async def test_unreadable_create_reply_still_remembered(self, incidents, backend):
        backend.create = AsyncMock(side_effect=BackendReadError("reply is not JSON", resource="incidents"))

        assert await incidents.report_slash_points("Thornode", 10, threshold=5)
        assert not await incidents.report_slash_points("Thornode", 10, threshold=5)

        assert backend.create.await_count == 1

    @pytest.mark.asyncio
    async def test_chain_observation_messages(self, incidents, backend):
        await incidents.report_chain_observation("BTC", -3)
        await incidents.report_chain_observation("ETH", 7)

        summaries = [call.detail["summary"] for call in backend.calls if call.operation == "create"]
        assert summaries == [
            "BTC is 3 block(s) behind the majority observation of the network!",
            "ETH is 7 block(s) ahead the majority observation of the network!",
        ]

    @pytest.mark.asyncio
    async def test_restart_always_remembers_count(self, incidents, backend, clock):
        long_ago = clock.now() - timedelta(hours=1)

        assert not await incidents.report_restart("Bitcoin", 3, long_ago, reason="OOMKilled")
        assert await incidents.report_restart("Bitcoin", 4, clock.now(), reason="OOMKilled")

        assert backend.calls[-1].detail["summary"] == "Bitcoin pod restarted! (reason: OOMKilled, count: 4)"
        assert not await incidents.report_restart("Bitcoin", 4, clock.now())

    @pytest.mark.asyncio
    async def test_disk_usage(self, incidents, backend):
        assert await incidents.report_disk_usage("Ethereum", 95 * 1024 ** 3, 100 * 1024 ** 3)

        assert backend.calls[-1].detail["summary"] == (
            "Ethereum pod has high disk usage: 95.0GB / 100.0GB (95%)"
        )
        assert not await incidents.report_disk_usage("Ethereum", 96 * 1024 ** 3, 100 * 1024 ** 3)

    @pytest.mark.asyncio
    async def test_suppressed_when_not_live(self, backend, clock):
        service = IncidentService(backend, cache=AlertCache(), discriminator="x7k2", live=False, clock=clock)

        assert await service.report_slash_points("Thornode", 10, threshold=5)
        assert not await service.report_slash_points("Thornode", 11, threshold=5)

        assert backend.calls == []


class TestResolve:
    """Tests for resolve."""

    @pytest.mark.asyncio
    async def test_resolve_is_idempotent(self, incidents, backend):
        backend.add_incident(SLASH)

        assert await incidents.resolve("Thornode", IncidentType.SLASH_POINTS) == 1
        assert await incidents.resolve("Thornode", IncidentType.SLASH_POINTS) == 0

        assert backend.count("resolve") == 1
        assert backend.open_incidents(SLASH) == []

    @pytest.mark.asyncio
    async def test_resolve_without_open_incident(self, incidents, backend):
        assert await incidents.resolve("Thornode", IncidentType.JAIL) == 0
        assert backend.count("resolve") == 0

    @pytest.mark.asyncio
    async def test_resolve_clears_hysteresis(self, incidents, backend):
        await incidents.report_slash_points("Thornode", 10, threshold=5)
        await incidents.resolve("Thornode", IncidentType.SLASH_POINTS)

        assert await incidents.report_slash_points("Thornode", 10, threshold=5)
        assert backend.count("create", "incidents") == 2

    @pytest.mark.asyncio
    async def test_new_incident_is_resolved_again(self, incidents, backend):
        await incidents.resolve("Thornode", IncidentType.SLASH_POINTS)
        await incidents.report_slash_points("Thornode", 10, threshold=5)

        assert await incidents.resolve("Thornode", IncidentType.SLASH_POINTS) == 1

    @pytest.mark.asyncio
    async def test_failed_lookup_retried_next_tick(self, incidents, backend):
        backend.add_incident(SLASH)
        backend.failing_reads.add("incidents")

        assert await incidents.resolve("Thornode", IncidentType.SLASH_POINTS) == 0

        backend.failing_reads.clear()
        assert await incidents.resolve("Thornode", IncidentType.SLASH_POINTS) == 1


# ============================================================
# MAINTENANCE TESTS
# ============================================================

class TestMaintenance:
    """Tests for delete, delete_all and cleanup."""

    @pytest.mark.asyncio
    async def test_delete_series(self, incidents, backend):
        backend.add_incident(SLASH, resolved_at="2024-01-02T00:00:00Z")
        backend.add_incident(SLASH)
        backend.add_incident("Thornode Jail (x7k2)")

        assert await incidents.delete("Thornode", IncidentType.SLASH_POINTS) == 2
        assert backend.names("incidents") == ["Thornode Jail (x7k2)"]

    @pytest.mark.asyncio
    async def test_delete_all(self, incidents, backend):
        backend.add_incident(SLASH)
        backend.add_incident("BTC Chain Observation (abcd)")

        assert await incidents.delete_all() == 2
        assert backend.names("incidents") == []

    @pytest.mark.asyncio
    async def test_cleanup_keeps_newest_and_open(self, incidents, backend):
        backend.add_incident(SLASH, "2024-02-01T00:00:00Z", "2024-02-01T01:00:00Z")
        backend.add_incident(SLASH, "2024-02-10T00:00:00Z", "2024-02-10T01:00:00Z")
        backend.add_incident(SLASH, "2024-02-20T00:00:00Z", "2024-02-20T01:00:00Z")
        backend.add_incident("Thornode Jail (x7k2)", "2024-01-01T00:00:00Z")
        backend.add_incident("Thornode Jail (abcd)", "2023-01-01T00:00:00Z", "2023-01-01T01:00:00Z")

        deleted = await incidents.cleanup(keep=1)

        assert deleted == 2
        started = sorted(
            item["attributes"]["started_at"] for item in backend.resources["incidents"]
        )
        assert started == ["2023-01-01T00:00:00Z", "2024-01-01T00:00:00Z", "2024-02-20T00:00:00Z"]

    @pytest.mark.asyncio
    async def test_cleanup_max_age(self, incidents, backend):
        backend.add_incident(SLASH, "2023-12-01T00:00:00Z", "2023-12-01T01:00:00Z")
        backend.add_incident(SLASH, "2024-02-25T00:00:00Z", "2024-02-25T01:00:00Z")

        deleted = await incidents.cleanup(keep=50, max_age=timedelta(days=30))

        assert deleted == 1
        assert backend.resources["incidents"][0]["attributes"]["started_at"] == "2024-02-25T00:00:00Z"

    @pytest.mark.asyncio
    async def test_cleanup_skipped_when_listing_fails(self, incidents, backend):
        backend.add_incident(SLASH, "2023-12-01T00:00:00Z", "2023-12-01T01:00:00Z")
        backend.failing_reads.add("incidents")

        assert await incidents.cleanup(keep=0) == 0
        assert len(backend.resources["incidents"]) == 1
