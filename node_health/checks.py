"""
Node Health Checks - Up / Synced / VersionCurrent decisions.

============================================================
RESPONSIBILITY
============================================================
Decides, for any chain family, whether a node is up, caught up with
the network, and running a current version.

- Verdicts depend only on what the adapter and references returned
  during the tick; no state is carried between ticks
- Alerting is NOT done here; callers turn outcomes into heartbeats

============================================================
DESIGN PRINCIPLES
============================================================
- Time sensitive requests are dispatched together, then awaited
- A failing reference never fails the node
- A refused version query is "not applicable", not "outdated"

============================================================
"""

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from typing import Optional

from chain_adapters import (
    ChainAdapter,
    ChainFamily,
    InvalidVersionError,
    Node,
    QueryResult,
    ReferenceSource,
)
from node_health.models import (
    ALL_METRICS,
    CheckOutcome,
    CheckStatus,
    HealthMetric,
    VersionPolicy,
)


logger = logging.getLogger(__name__)


# Missing reference height; any non-negative node height is within tolerance of it
UNKNOWN_REFERENCE_HEIGHT = -1

# Each dotted component occupies three decimal digits: "1.2.3" -> 1_002_003
VERSION_COMPONENT_BASE = 1000

_VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)\.(\d+)")


# ============================================================
# PURE HELPERS
# ============================================================

def is_within_tolerance(node_height: int, reference_height: int, tolerance: int) -> bool:
    """
    One-sided sync comparison.

    A node ahead of the reference is always synced.
    """
    return node_height >= reference_height - tolerance


def parse_version_number(version: str) -> int:
    """
    Turn the first `major.minor.patch` found in a version string into an
    orderable integer.

    Raises:
        InvalidVersionError: If no dotted triple is present
    """
    match = _VERSION_PATTERN.search(version or "")
    if match is None:
        raise InvalidVersionError(version)
    major, minor, patch = (int(part) for part in match.groups())
    return (major * VERSION_COMPONENT_BASE + minor) * VERSION_COMPONENT_BASE + patch


def most_common_versions(counts: dict[str, int], n: int = 1) -> list[str]:
    """Top `n` versions by count. Ties keep their listing order."""
    return sorted(counts, key=lambda version: counts[version], reverse=True)[:n]


def top_version(versions: Iterable[str]) -> Optional[str]:
    """Highest version by numeric order, None for an empty population."""
    versions = list(versions)
    if not versions:
        return None
    return max(versions, key=parse_version_number)


def default_version_policy(family: ChainFamily) -> tuple[VersionPolicy, int]:
    """(policy, top_n) for a chain family."""
    if family == ChainFamily.UTXO:
        return VersionPolicy.MOST_COMMON, 3
    if family == ChainFamily.COSMOS:
        return VersionPolicy.MOST_COMMON, 1
    if family == ChainFamily.THORNODE:
        return VersionPolicy.NUMERIC, 1
    return VersionPolicy.REPORTED, 1


# ============================================================
# NODE HEALTH CHECK
# ============================================================

class NodeHealthCheck:
    """
    Health policy for one node.

    Usage:
        check = NodeHealthCheck(node, adapter, height_references=[blockchair])
        outcomes = await check.run()
        if outcomes[HealthMetric.SYNCED].passed:
            ...
    """

    def __init__(
        self,
        node: Node,
        adapter: ChainAdapter,
        height_references: Sequence[ReferenceSource] = (),
        version_reference: Optional[ReferenceSource] = None,
        version_policy: Optional[VersionPolicy] = None,
        version_top_n: Optional[int] = None,
        strict: bool = False,
    ) -> None:
        """
        Args:
            node: Node being checked
            adapter: Adapter speaking the node's protocol
            height_references: Independent height sources, maximum wins
            version_reference: Source of the version population
            version_policy: Comparison rule, defaults per chain family
            version_top_n: Population size for MOST_COMMON
            strict: Re-raise unparsable versions instead of reporting INCONCLUSIVE
        """
        default_policy, default_top_n = default_version_policy(node.family)

        self.node = node
        self.adapter = adapter
        self.height_references = list(height_references)
        self.version_reference = version_reference
        self.version_policy = version_policy or default_policy
        self.version_top_n = version_top_n or default_top_n
        self.strict = strict

        if version_reference is None and self.version_policy != VersionPolicy.REPORTED:
            logger.warning(
                f"[{self.name}] No version reference, only checking that a version is reported"
            )
            self.version_policy = VersionPolicy.REPORTED

    @property
    def name(self) -> str:
        return self.node.display_name

    # ─────────────────────────────────────────────────────────────
    # Up
    # ─────────────────────────────────────────────────────────────

    async def check_up(self) -> CheckOutcome:
        logger.debug(f"[{self.name}] Checking if the node is up ...")

        result = await self.adapter.ping()
        if not result.ok:
            logger.error(f"[{self.name}] Node does not respond: {result.failure}")
            return CheckOutcome.failing(HealthMetric.UP, f"unavailable: {result.failure}")

        logger.info(f"[{self.name}] Node is up!")
        return CheckOutcome.passing(HealthMetric.UP)

    # ─────────────────────────────────────────────────────────────
    # Synced
    # ─────────────────────────────────────────────────────────────

    async def check_synced(self) -> CheckOutcome:
        logger.debug(f"[{self.name}] Checking if the node is synced ...")

        # gather schedules every query before the first one is awaited
        node_result, *reference_results = await asyncio.gather(
            self.adapter.query_height(),
            *(reference.query_height() for reference in self.height_references),
        )

        if not node_result.ok:
            logger.error(f"[{self.name}] Node height unavailable: {node_result.failure}")
            return CheckOutcome.failing(HealthMetric.SYNCED, f"unavailable: {node_result.failure}")

        report = node_result.value
        if report.mid_sync:
            logger.warning(
                f"[{self.name}] Node is still syncing! "
                f"(height = {report.height:,}, headers = {report.header_height})"
            )
            return CheckOutcome.failing(
                HealthMetric.SYNCED,
                "node is still syncing",
                node_height=report.height,
            )

        reference_height = self._reference_height(reference_results)
        tolerance = self.node.tolerance
        logger.debug(
            f"[{self.name}] node height = {report.height:,} | "
            f"reference height = {reference_height:,} | tolerance = {tolerance}"
        )

        if not is_within_tolerance(report.height, reference_height, tolerance):
            logger.warning(
                f"[{self.name}] Node is behind: {report.height:,} < {reference_height:,} - {tolerance}"
            )
            return CheckOutcome.failing(
                HealthMetric.SYNCED,
                f"{reference_height - report.height} blocks behind",
                node_height=report.height,
                reference_height=reference_height,
            )

        logger.info(f"[{self.name}] Node is synced!")
        return CheckOutcome.passing(
            HealthMetric.SYNCED,
            node_height=report.height,
            reference_height=reference_height,
        )

    def _reference_height(self, results: Sequence[QueryResult[int]]) -> int:
        heights = [result.value for result in results if result.ok]
        if not heights:
            if self.height_references:
                logger.warning(
                    f"[{self.name}] No reference height available, "
                    f"comparing against {UNKNOWN_REFERENCE_HEIGHT}"
                )
            return UNKNOWN_REFERENCE_HEIGHT
        return max(heights)

    # ─────────────────────────────────────────────────────────────
    # Version
    # ─────────────────────────────────────────────────────────────

    async def check_version(self) -> CheckOutcome:
        logger.debug(f"[{self.name}] Checking if node version is up-to-date ...")

        if self.version_policy == VersionPolicy.REPORTED:
            node_result = await self.adapter.query_version()
            population_result = None
        else:
            node_result, population_result = await asyncio.gather(
                self.adapter.query_version(),
                self.version_reference.query_versions(),
            )

        if node_result.is_forbidden:
            return CheckOutcome(
                HealthMetric.VERSION_CURRENT,
                CheckStatus.NOT_APPLICABLE,
                reason="version query refused by node",
            )
        if not node_result.ok:
            logger.error(f"[{self.name}] Node version unavailable: {node_result.failure}")
            return CheckOutcome.failing(
                HealthMetric.VERSION_CURRENT, f"unavailable: {node_result.failure}"
            )

        node_version = node_result.value
        if population_result is None:
            logger.info(f"[{self.name}] Node reports version '{node_version}'")
            return CheckOutcome.passing(HealthMetric.VERSION_CURRENT, node_version=node_version)

        if not population_result.ok or not population_result.value:
            logger.warning(f"[{self.name}] No reference versions available")
            return CheckOutcome(
                HealthMetric.VERSION_CURRENT,
                CheckStatus.INCONCLUSIVE,
                node_version=node_version,
                reason="reference versions unavailable",
            )

        try:
            return self._compare_version(node_version, population_result.value)
        except InvalidVersionError as e:
            if self.strict:
                raise
            logger.error(f"[{self.name}] {e}")
            return CheckOutcome(
                HealthMetric.VERSION_CURRENT,
                CheckStatus.INCONCLUSIVE,
                node_version=node_version,
                reason=e.message,
            )

    def _compare_version(self, node_version: str, counts: dict[str, int]) -> CheckOutcome:
        if self.version_policy == VersionPolicy.NUMERIC:
            highest = top_version(counts)
            expected = (highest,)
            current = parse_version_number(node_version) >= parse_version_number(highest)
        else:
            expected = tuple(most_common_versions(counts, self.version_top_n))
            current = node_version in expected

        logger.debug(f"[{self.name}] node version = '{node_version}' | expected = {list(expected)}")

        if not current:
            logger.warning(f"[{self.name}] Node version '{node_version}' not in {list(expected)}")
            return CheckOutcome.failing(
                HealthMetric.VERSION_CURRENT,
                "outdated version",
                node_version=node_version,
                reference_versions=expected,
            )

        logger.info(f"[{self.name}] Node version is up-to-date!")
        return CheckOutcome.passing(
            HealthMetric.VERSION_CURRENT,
            node_version=node_version,
            reference_versions=expected,
        )

    # ─────────────────────────────────────────────────────────────
    # All metrics
    # ─────────────────────────────────────────────────────────────

    async def check(self, metric: HealthMetric) -> CheckOutcome:
        if metric == HealthMetric.UP:
            return await self.check_up()
        if metric == HealthMetric.SYNCED:
            return await self.check_synced()
        return await self.check_version()

    async def run(
        self,
        metrics: Sequence[HealthMetric] = ALL_METRICS,
    ) -> dict[HealthMetric, CheckOutcome]:
        """Run the requested checks concurrently."""
        outcomes = await asyncio.gather(*(self.check(metric) for metric in metrics))
        return dict(zip(metrics, outcomes))

    async def close(self) -> None:
        await self.adapter.close()
        references = list(self.height_references)
        if self.version_reference is not None and self.version_reference not in references:
            references.append(self.version_reference)
        for reference in references:
            await reference.close()

    def __repr__(self) -> str:
        return f"<NodeHealthCheck({self.node}, policy={self.version_policy.value})>"
