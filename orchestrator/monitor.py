"""
Orchestrator - Node Monitor.

============================================================
RESPONSIBILITY
============================================================
The single entry point the scheduler calls every tick.

- Fans out over every configured node, each node's checks concurrent
- Sends a heartbeat for every passing metric
- Runs the THORNode validator checks
- Runs incident retention

All collaborators are constructed explicitly and passed in; nothing
is global.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import aiohttp

from alerting import (
    AlertBackendClient,
    HeartbeatService,
    IncidentService,
    RetryPolicy,
)
from chain_adapters import ThornodeAdapter, create_adapter, default_references
from core.clock import ClockProtocol, SystemClock
from node_health import CheckOutcome, HealthMetric, NodeHealthCheck, ThornodeMonitor
from orchestrator.catalog import MonitoredNode, default_nodes, load_nodes_file
from orchestrator.config import MonitorSettings


logger = logging.getLogger(__name__)


@dataclass
class NodeTarget:
    """One node's health check and the metrics it reports."""
    check: NodeHealthCheck
    metrics: tuple[HealthMetric, ...]

    @property
    def subject(self) -> str:
        return self.check.name


class NodeMonitor:
    """
    Runs every health check and turns outcomes into heartbeats.

    Usage:
        monitor = await create_monitor(settings)
        await monitor.initialize()
        outcomes = await monitor.run_all_checks()
    """

    def __init__(
        self,
        targets: list[NodeTarget],
        heartbeats: HeartbeatService,
        incidents: Optional[IncidentService] = None,
        thornode_monitor: Optional[ThornodeMonitor] = None,
        strict: bool = False,
        incident_retention: int = 50,
        incident_max_age: Optional[timedelta] = None,
    ) -> None:
        self.targets = targets
        self.heartbeats = heartbeats
        self.incidents = incidents
        self.thornode_monitor = thornode_monitor
        self.strict = strict
        self.incident_retention = incident_retention
        self.incident_max_age = incident_max_age
        self._closeables: list = []

    # ─────────────────────────────────────────────────────────────
    # Startup
    # ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Create every heartbeat, in catalog order, before polling starts."""
        logger.info("Initializing heartbeats ...")
        for target in self.targets:
            await self.heartbeats.init_heartbeats(
                target.subject, [metric.value for metric in target.metrics]
            )
        if self.thornode_monitor is not None:
            await self.heartbeats.init_heartbeats(
                self.thornode_monitor.subject, [HealthMetric.VERSION_CURRENT.value]
            )

    # ─────────────────────────────────────────────────────────────
    # Health checks
    # ─────────────────────────────────────────────────────────────

    async def check_target(self, target: NodeTarget) -> dict[HealthMetric, CheckOutcome]:
        outcomes = await target.check.run(target.metrics)
        await asyncio.gather(*(
            self.heartbeats.send(target.subject, metric.value)
            for metric, outcome in outcomes.items()
            if outcome.passed
        ))
        return outcomes

    async def run_all_checks(self) -> dict[str, dict[HealthMetric, CheckOutcome]]:
        """
        Check every node concurrently.

        One node's failure never blocks another; in strict mode the first
        error is re-raised once every node has finished.
        """
        results = await asyncio.gather(
            *(self.check_target(target) for target in self.targets),
            return_exceptions=True,
        )

        outcomes: dict[str, dict[HealthMetric, CheckOutcome]] = {}
        errors: list[BaseException] = []
        for target, result in zip(self.targets, results):
            if isinstance(result, BaseException):
                logger.error(f"[{target.subject}] Health check crashed: {result}", exc_info=result)
                errors.append(result)
                continue
            outcomes[target.subject] = result

        passed = sum(outcome.passed for node in outcomes.values() for outcome in node.values())
        total = sum(len(node) for node in outcomes.values())
        logger.info(f"Health checks finished: {passed}/{total} passed across {len(outcomes)} nodes")

        if errors and self.strict:
            raise errors[0]
        return outcomes

    async def run_thornode_checks(self) -> Optional[CheckOutcome]:
        """Validator checks; sends the THORNode version heartbeat when current."""
        if self.thornode_monitor is None:
            return None

        version = await self.thornode_monitor.run()
        if version.passed:
            await self.heartbeats.send(self.thornode_monitor.subject, HealthMetric.VERSION_CURRENT.value)
        return version

    async def run_cleanup(self) -> int:
        if self.incidents is None:
            return 0
        return await self.incidents.cleanup(self.incident_retention, self.incident_max_age)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def own(self, resource) -> None:
        """Close `resource` together with the monitor."""
        self._closeables.append(resource)

    async def close(self) -> None:
        for target in self.targets:
            await target.check.close()
        for resource in self._closeables:
            await resource.close()


def build_targets(
    nodes: list[MonitoredNode],
    session: aiohttp.ClientSession,
    timeout: float,
    strict: bool,
) -> list[NodeTarget]:
    targets = []
    for entry in nodes:
        adapter = create_adapter(entry.node, session=session, timeout=timeout)
        height_references, version_reference = default_references(entry.node, session, timeout)
        check = NodeHealthCheck(
            entry.node,
            adapter,
            height_references=height_references,
            version_reference=version_reference,
            strict=strict,
        )
        targets.append(NodeTarget(check, entry.metrics))
    return targets


async def create_monitor(
    settings: MonitorSettings,
    nodes: Optional[list[MonitoredNode]] = None,
    clock: Optional[ClockProtocol] = None,
) -> NodeMonitor:
    """Wire adapters, references and alerting services from settings."""
    clock = clock or SystemClock()
    if nodes is None:
        if settings.nodes_file is not None:
            nodes = load_nodes_file(settings.nodes_file)
        else:
            nodes = default_nodes(settings.environment)

    session = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.http_timeout_seconds),
        headers={"Accept": "application/json"},
    )
    client = AlertBackendClient(
        settings.betterstack_api_key,
        retry_policy=RetryPolicy(),
        timeout=settings.http_timeout_seconds,
    )

    heartbeats = HeartbeatService(
        client, discriminator=settings.discriminator, live=settings.alerting_live
    )
    incidents = IncidentService(
        client,
        discriminator=settings.discriminator,
        live=settings.alerting_live,
        clock=clock,
        requester_email=settings.incident_requester_email,
    )

    targets = build_targets(nodes, session, settings.http_timeout_seconds, settings.strict_checks)

    thornode_monitor = None
    thornode_adapter = next(
        (t.check.adapter for t in targets if isinstance(t.check.adapter, ThornodeAdapter)), None
    )
    if thornode_adapter is not None and settings.thornode_address:
        thornode_monitor = ThornodeMonitor(
            thornode_adapter,
            incidents,
            settings.thornode_address,
            clock=clock,
            subject=thornode_adapter.name,
        )
    elif thornode_adapter is not None:
        logger.warning("THORNODE_ADDRESS not set, validator monitoring disabled")

    monitor = NodeMonitor(
        targets,
        heartbeats,
        incidents=incidents,
        thornode_monitor=thornode_monitor,
        strict=settings.strict_checks,
        incident_retention=settings.incident_retention,
        incident_max_age=settings.incident_max_age,
    )
    monitor.own(session)
    monitor.own(client)
    logger.info(
        f"Monitoring {len(targets)} nodes "
        f"(environment = {settings.environment.value}, alerting live = {settings.alerting_live})"
    )
    return monitor
