"""
THORNode Monitor Tests.

============================================================
PURPOSE
============================================================
Validator level checks: version, bond, slash points, jail and chain
observations, against an in-memory alerting backend.

============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chain_adapters import FailureKind, HeightReport, QueryResult, ValidatorRecord
from node_health import CheckStatus, ThornodeMonitor


ADDRESS = "thor1operatorx7k2"


def validator(address, version="1.121.0", status="Active", bond=0.0, slash_points=0,
              observed=None, release_height=None) -> ValidatorRecord:
    return ValidatorRecord(
        address=address,
        status=status,
        version=version,
        bond=bond,
        slash_points=slash_points,
        observed_chains=observed or {},
        jail_release_height=release_height,
    )


def make_adapter(records=None, height=1000, listing_fails=False) -> MagicMock:
    records = records or []
    adapter = MagicMock()
    if listing_fails:
        adapter.fetch_nodes = AsyncMock(return_value=QueryResult.fail(FailureKind.UNAVAILABLE))
    else:
        adapter.fetch_nodes = AsyncMock(return_value=QueryResult.success(records))
    mine = next((record for record in records if record.address == ADDRESS), None)
    adapter.fetch_node = AsyncMock(return_value=QueryResult.success(mine))
    adapter.query_height = AsyncMock(return_value=QueryResult.success(HeightReport(height)))
    return adapter


@pytest.fixture
def monitor_for(incidents, clock):
    def build(records=None, **kwargs):
        return ThornodeMonitor(make_adapter(records, **kwargs), incidents, ADDRESS, clock=clock)
    return build


# ============================================================
# VERSION
# ============================================================

class TestMonitorVersion:
    """Tests for monitor_version."""

    @pytest.mark.asyncio
    async def test_up_to_date(self, monitor_for):
        monitor = monitor_for([validator(ADDRESS, "1.121.0"), validator("thor1b", "1.121.0")])

        outcome = await monitor.monitor_version()

        assert outcome.passed
        assert outcome.reference_versions == ("1.121.0",)

    @pytest.mark.asyncio
    async def test_outdated_ignores_inactive_validators(self, monitor_for):
        monitor = monitor_for([
            validator(ADDRESS, "1.120.0"),
            validator("thor1b", "1.121.0"),
            validator("thor1c", "9.0.0", status="Standby"),
        ])

        outcome = await monitor.monitor_version()

        assert outcome.status == CheckStatus.FAIL
        assert outcome.reference_versions == ("1.121.0",)

    @pytest.mark.asyncio
    async def test_not_bonded(self, monitor_for):
        monitor = monitor_for([validator("thor1b")])

        outcome = await monitor.monitor_version()

        assert outcome.status == CheckStatus.NOT_APPLICABLE

    @pytest.mark.asyncio
    async def test_listing_unavailable(self, monitor_for):
        monitor = monitor_for(listing_fails=True)

        outcome = await monitor.monitor_version()

        assert outcome.status == CheckStatus.FAIL


# ============================================================
# BOND
# ============================================================

class TestMonitorBond:
    """Tests for monitor_bond."""

    @pytest.mark.asyncio
    async def test_max_efficient_bond(self, monitor_for):
        records = [validator(f"thor1{i}", bond=float(i)) for i in range(1, 7)]
        records.append(validator(ADDRESS, bond=3.5))
        monitor = monitor_for(records)

        summary = await monitor.monitor_bond()

        # 7 active validators, bottom two thirds are the 4 lowest bonds
        assert summary["max_efficient_bond"] == 3.5
        assert summary["bond"] == 3.5

    @pytest.mark.asyncio
    async def test_not_bonded(self, monitor_for):
        monitor = monitor_for([validator("thor1b")])

        assert await monitor.monitor_bond() is None


# ============================================================
# SLASH POINTS
# ============================================================

class TestMonitorSlashPoints:
    """Tests for monitor_slash_points."""

    @pytest.mark.asyncio
    async def test_worst_top_ten_raises_incident(self, monitor_for, backend):
        records = [validator(f"thor1{i}", slash_points=100 + i) for i in range(8)]
        records.append(validator("thor1worst", slash_points=800))
        records.append(validator(ADDRESS, slash_points=900))
        monitor = monitor_for(records)

        await monitor.monitor_slash_points()

        open_incidents = backend.open_incidents("Thornode Slash Points (x7k2)")
        assert len(open_incidents) == 1
        assert open_incidents[0]["attributes"]["summary"] == (
            "Thornode entered the worst performing top 10 with 900 slash points!"
        )

    @pytest.mark.asyncio
    async def test_below_floor_resolves(self, monitor_for, backend):
        backend.add_incident("Thornode Slash Points (x7k2)")
        records = [validator(f"thor1{i}", slash_points=10) for i in range(9)]
        records.append(validator(ADDRESS, slash_points=400))
        monitor = monitor_for(records)

        await monitor.monitor_slash_points()

        assert backend.open_incidents("Thornode Slash Points (x7k2)") == []
        assert backend.count("create", "incidents") == 0

    @pytest.mark.asyncio
    async def test_inactive_node_skipped(self, monitor_for, backend):
        monitor = monitor_for([validator(ADDRESS, status="Standby", slash_points=5000), validator("thor1b")])

        await monitor.monitor_slash_points()

        assert backend.calls == []


# ============================================================
# JAIL
# ============================================================

class TestMonitorJailing:
    """Tests for monitor_jailing."""

    @pytest.mark.asyncio
    async def test_jailed(self, monitor_for, backend):
        monitor = monitor_for([validator(ADDRESS, release_height=1100)], height=1000)

        await monitor.monitor_jailing()

        incident = backend.open_incidents("Thornode Jail (x7k2)")[0]
        assert incident["attributes"]["summary"] == "Thornode has been jailed until #1,100 (100 blocks)!"

    @pytest.mark.asyncio
    async def test_released_resolves(self, monitor_for, backend):
        backend.add_incident("Thornode Jail (x7k2)")
        monitor = monitor_for([validator(ADDRESS, release_height=900)], height=1000)

        await monitor.monitor_jailing()

        assert backend.open_incidents("Thornode Jail (x7k2)") == []

    @pytest.mark.asyncio
    async def test_height_unavailable_skips(self, monitor_for, backend):
        monitor = monitor_for([validator(ADDRESS, release_height=1100)])
        monitor.adapter.query_height = AsyncMock(return_value=QueryResult.fail(FailureKind.UNAVAILABLE))

        await monitor.monitor_jailing()

        assert backend.calls == []


# ============================================================
# CHAIN OBSERVATIONS
# ============================================================

class TestMonitorChainObservations:
    """Tests for monitor_chain_observations."""

    def _records(self, own_btc: int) -> list:
        return [
            validator(ADDRESS, observed={"BTC": own_btc, "ETH": 500}),
            validator("thor1b", observed={"BTC": 110, "ETH": 500}),
            validator("thor1c", observed={"BTC": 110, "ETH": 500}),
        ]

    @pytest.mark.asyncio
    async def test_behind_on_alert_minute(self, monitor_for, backend):
        monitor = monitor_for(self._records(own_btc=100))

        await monitor.monitor_chain_observations()

        incident = backend.open_incidents("BTC Chain Observation (x7k2)")[0]
        assert incident["attributes"]["summary"] == (
            "BTC is 10 block(s) behind the majority observation of the network!"
        )

    @pytest.mark.asyncio
    async def test_behind_off_alert_minute(self, monitor_for, backend, clock):
        clock.advance(minutes=3)
        monitor = monitor_for(self._records(own_btc=100))

        await monitor.monitor_chain_observations()

        assert backend.count("create", "incidents") == 0

    @pytest.mark.asyncio
    async def test_caught_up_resolves(self, monitor_for, backend):
        backend.add_incident("BTC Chain Observation (x7k2)")
        monitor = monitor_for(self._records(own_btc=110))

        await monitor.monitor_chain_observations()

        assert backend.open_incidents("BTC Chain Observation (x7k2)") == []

    @pytest.mark.asyncio
    async def test_chain_unknown_to_network(self, monitor_for, backend):
        records = [
            validator(ADDRESS, observed={"GAIA": 10}),
            validator("thor1b"),
            validator("thor1c"),
        ]
        monitor = monitor_for(records)

        await monitor.monitor_chain_observations()

        assert backend.count("create", "incidents") == 0


class TestRun:
    """Tests for run."""

    @pytest.mark.asyncio
    async def test_returns_version_outcome(self, monitor_for):
        monitor = monitor_for([validator(ADDRESS), validator("thor1b")])

        outcome = await monitor.run()

        assert outcome.passed
        assert monitor.adapter.fetch_nodes.await_count == 4
