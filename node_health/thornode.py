"""
THORNode Operator Monitor - Validator specific health.

Beyond Up / Synced, a THORChain validator operator cares about:
- running the newest version among active validators
- bond efficiency (log only)
- slash points relative to the rest of the active set
- being jailed
- lagging the network on observed external chains

Degradations become incidents through the IncidentService.
"""

import asyncio
import logging
import statistics
from collections import Counter
from typing import Any, Optional

from alerting.incidents import IncidentService
from alerting.models import IncidentType
from chain_adapters import InvalidVersionError, ThornodeAdapter, ValidatorRecord
from core.clock import ClockProtocol, SystemClock
from node_health.checks import parse_version_number, top_version
from node_health.models import CheckOutcome, CheckStatus, HealthMetric


logger = logging.getLogger(__name__)


# Slash points below this never alert, whatever the network looks like
SLASH_POINTS_FLOOR = 500

# Chain observation lag only alerts on minutes divisible by this
OBSERVATION_ALERT_EVERY_MINUTES = 10

MISSING_OBSERVATION = -1


class ThornodeMonitor:
    """
    Validator-level checks for one operator address.

    Usage:
        monitor = ThornodeMonitor(adapter, incidents, address="thor1...")
        await monitor.monitor_slash_points()
    """

    def __init__(
        self,
        adapter: ThornodeAdapter,
        incidents: IncidentService,
        address: str,
        clock: Optional[ClockProtocol] = None,
        subject: str = "Thornode",
        slash_points_floor: int = SLASH_POINTS_FLOOR,
    ) -> None:
        self.adapter = adapter
        self.incidents = incidents
        self.address = address
        self.clock = clock or SystemClock()
        self.subject = subject
        self.slash_points_floor = slash_points_floor

    def _find(self, records: list[ValidatorRecord]) -> Optional[ValidatorRecord]:
        return next((record for record in records if record.address == self.address), None)

    async def _active_validators(self, operation: str) -> Optional[list[ValidatorRecord]]:
        result = await self.adapter.fetch_nodes()
        if not result.ok:
            logger.error(f"[{self.subject}] {operation}: validator listing unavailable: {result.failure}")
            return None
        return [record for record in result.value if record.is_active]

    # ─────────────────────────────────────────────────────────────
    # Version
    # ─────────────────────────────────────────────────────────────

    async def monitor_version(self) -> CheckOutcome:
        """The operator's validator version against the newest active version."""
        result = await self.adapter.fetch_nodes()
        if not result.ok:
            logger.error(f"[{self.subject}] version: validator listing unavailable: {result.failure}")
            return CheckOutcome.failing(HealthMetric.VERSION_CURRENT, "validator listing unavailable")

        node = self._find(result.value)
        if node is None:
            logger.info(f"[{self.subject}] Node '{self.address}' not bonded!")
            return CheckOutcome(
                HealthMetric.VERSION_CURRENT, CheckStatus.NOT_APPLICABLE, reason="not bonded"
            )

        try:
            highest = top_version(record.version for record in result.value if record.is_active)
            if highest is None:
                return CheckOutcome(
                    HealthMetric.VERSION_CURRENT, CheckStatus.INCONCLUSIVE, reason="no active validators"
                )
            current = parse_version_number(node.version) >= parse_version_number(highest)
        except InvalidVersionError as e:
            logger.error(f"[{self.subject}] {e}")
            return CheckOutcome(HealthMetric.VERSION_CURRENT, CheckStatus.INCONCLUSIVE, reason=e.message)

        logger.debug(f"[{self.subject}] topVersion = {highest}")
        if not current:
            logger.warning(f"[{self.subject}] nodeVersion < topVersion: '{node.version}' < '{highest}'")
            return CheckOutcome.failing(
                HealthMetric.VERSION_CURRENT,
                "outdated version",
                node_version=node.version,
                reference_versions=(highest,),
            )

        logger.info(f"[{self.subject}] Node version is up-to-date!")
        return CheckOutcome.passing(
            HealthMetric.VERSION_CURRENT,
            node_version=node.version,
            reference_versions=(highest,),
        )

    # ─────────────────────────────────────────────────────────────
    # Bond
    # ─────────────────────────────────────────────────────────────

    async def monitor_bond(self) -> Optional[dict[str, Any]]:
        """
        Log bond, reward and the maximum efficient bond.

        The maximum efficient bond is the highest bond within the bottom
        two thirds of active validators; bonding beyond it earns nothing.
        """
        result = await self.adapter.fetch_nodes()
        if not result.ok:
            logger.error(f"[{self.subject}] bond: validator listing unavailable: {result.failure}")
            return None

        node = self._find(result.value)
        if node is None:
            logger.warning(f"[{self.subject}] Node '{self.address}' not bonded!")
            return None

        active = sorted((r for r in result.value if r.is_active), key=lambda r: r.bond)
        bottom_two_thirds = active[: len(active) * 2 // 3]
        max_efficient_bond = bottom_two_thirds[-1].bond if bottom_two_thirds else None

        summary = {
            "bond": node.bond,
            "reward": node.reward,
            "max_efficient_bond": max_efficient_bond,
        }
        logger.info(
            f"[{self.subject}] Bond: bond = {round(node.bond):,}; reward = {round(node.reward):,}; "
            f"maxEfficientBond = {round(max_efficient_bond or 0):,}"
        )
        return summary

    # ─────────────────────────────────────────────────────────────
    # Slash points
    # ─────────────────────────────────────────────────────────────

    async def monitor_slash_points(self) -> None:
        active = await self._active_validators("slash points")
        if active is None:
            return

        node = self._find(active)
        if node is None:
            logger.warning(f"[{self.subject}] Node is not active. Skipping slash points monitoring ...")
            return

        points = sorted((record.slash_points for record in active), reverse=True)
        worst_top10_threshold = points[len(points) // 10]

        logger.info(
            f"[{self.subject}] SlashPoints: node = {node.slash_points}; network = "
            f"{points[-1]} (min), {round(statistics.median(points))} (median), "
            f"{round(statistics.mean(points))} (average), "
            f"{worst_top10_threshold} (worstTop10Threshold), {points[0]} (max)"
        )

        if node.slash_points > worst_top10_threshold and node.slash_points > self.slash_points_floor:
            await self.incidents.report_slash_points(
                self.subject, node.slash_points, worst_top10_threshold
            )
        else:
            await self.incidents.resolve(self.subject, IncidentType.SLASH_POINTS)

    # ─────────────────────────────────────────────────────────────
    # Jail
    # ─────────────────────────────────────────────────────────────

    async def monitor_jailing(self) -> None:
        # Validator record and chain height must describe the same moment
        record_result, height_result = await asyncio.gather(
            self.adapter.fetch_node(self.address),
            self.adapter.query_height(),
        )
        if not record_result.ok:
            logger.error(f"[{self.subject}] jail: validator record unavailable: {record_result.failure}")
            return
        if not height_result.ok:
            logger.error(f"[{self.subject}] jail: chain height unavailable: {height_result.failure}")
            return

        node = record_result.value
        if not node.is_active:
            logger.warning(f"[{self.subject}] Node is not active. Skipping jail monitoring ...")
            return

        release_height = node.jail_release_height or 0
        current_height = height_result.value.height

        if release_height > current_height:
            logger.info(
                f"[{self.subject}] Jail: Node is jailed for {release_height - current_height:,} blocks! "
                f"(until = {release_height:,}, reason = '{node.jail_reason or 'unknown'}')"
            )
            await self.incidents.report_jail(self.subject, current_height, release_height)
        else:
            await self.incidents.resolve(self.subject, IncidentType.JAIL)

    # ─────────────────────────────────────────────────────────────
    # Chain observations
    # ─────────────────────────────────────────────────────────────

    async def monitor_chain_observations(self) -> None:
        active = await self._active_validators("chain observations")
        if active is None:
            return

        node = self._find(active)
        if node is None:
            logger.warning(f"[{self.subject}] Node is not active. Skipping chain observation monitoring ...")
            return

        alert_minute = self.clock.is_minute_multiple(OBSERVATION_ALERT_EVERY_MINUTES)
        tasks = []
        for chain, observed_height in node.observed_chains.items():
            # Newer validators may never have observed retired chains
            heights = Counter(
                record.observed_chains.get(chain, MISSING_OBSERVATION) for record in active
            )
            consensus = heights.most_common(1)[0][0]

            if observed_height < consensus:
                if alert_minute:
                    logger.info(
                        f"[{self.subject}] ChainObservation: {chain} is {consensus - observed_height:,} "
                        f"blocks behind the majority observation of the network! "
                        f"(observedHeight = {observed_height:,}, consensus = {consensus:,})"
                    )
                    tasks.append(self.incidents.report_chain_observation(chain, observed_height - consensus))
            else:
                tasks.append(self.incidents.resolve(chain, IncidentType.CHAIN_OBSERVATION))

        await asyncio.gather(*tasks)

    # ─────────────────────────────────────────────────────────────
    # All
    # ─────────────────────────────────────────────────────────────

    async def run(self) -> CheckOutcome:
        """Run every validator check concurrently. Returns the version outcome."""
        version, *_ = await asyncio.gather(
            self.monitor_version(),
            self.monitor_bond(),
            self.monitor_slash_points(),
            self.monitor_jailing(),
            self.monitor_chain_observations(),
        )
        return version
