"""
Incident Service - Exactly one actionable incident per degradation.

============================================================
RESPONSIBILITY
============================================================
Turns degraded observations into incidents on the alerting backend and
resolves them once the condition clears.

Lifecycle per IncidentIdentity:
    no incident --[degraded beyond hysteresis]--> open
    open --[still degraded, below hysteresis]--> open (no-op)
    open --[materially worse]--> open (superseded by a new incident)
    open --[condition clears]--> resolved
    resolved --[retention]--> deleted

============================================================
DESIGN PRINCIPLES
============================================================
- Hysteresis check, search and create run under one per-identity lock
- Never two open incidents for one identity
- A failed lookup skips the write until the next tick
- Each incident type keeps its own hysteresis policy

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from alerting.cache import AlertCache
from alerting.client import AlertBackendClient
from alerting.exceptions import BackendReadError
from alerting.models import Incident, IncidentIdentity, IncidentType
from core.clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


INCIDENT_PAGE_SIZE = 50
DEFAULT_REQUESTER_EMAIL = "node-monitor@localhost.localdomain"


# ============================================================
# HYSTERESIS POLICIES
# ============================================================

@dataclass(frozen=True)
class SlashPointsPolicy:
    """Above the threshold and more than double the last alerted count."""
    threshold: float = 0
    growth_factor: float = 2.0

    def should_alert(
        self,
        slash_points: float,
        previous: float,
        threshold: Optional[float] = None,
    ) -> bool:
        limit = self.threshold if threshold is None else threshold
        return slash_points > limit and slash_points > self.growth_factor * previous


@dataclass(frozen=True)
class JailPolicy:
    """A jail with a later release height than the one already alerted."""

    def should_alert(
        self,
        current_height: int,
        release_height: int,
        previous_release_height: int,
    ) -> bool:
        return (
            current_height > previous_release_height
            and release_height > previous_release_height
        )


@dataclass(frozen=True)
class ChainObservationPolicy:
    """Lag more than double the last alerted lag, in either direction."""
    growth_factor: float = 2.0

    def should_alert(self, blocks_diff: int, previous: int) -> bool:
        return abs(blocks_diff) > abs(self.growth_factor * previous)


@dataclass(frozen=True)
class RestartPolicy:
    """More restarts than last seen, the latest one inside the window."""
    window: timedelta = timedelta(minutes=10)

    def should_alert(
        self,
        restarts: int,
        previous: int,
        last_restart_at: datetime,
        now: datetime,
    ) -> bool:
        return restarts > previous and now - last_restart_at < self.window


@dataclass(frozen=True)
class DiskUsagePolicy:
    """Usage ratio above the threshold and 5% above the last alerted ratio."""
    threshold: float = 0.9
    growth_factor: float = 1.05

    def should_alert(self, usage: float, previous: float) -> bool:
        return usage > self.threshold and usage > self.growth_factor * previous


def format_bytes(value: float) -> str:
    """Human readable binary size, e.g. 1.5GB."""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(value) < 1024 or unit == "TB":
            return f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}TB"


# ============================================================
# INCIDENT SERVICE
# ============================================================

class IncidentService:
    """
    Creates, resolves and prunes incidents on the alerting backend.

    Usage:
        incidents = IncidentService(client, discriminator="x7k2")
        await incidents.report_slash_points("Thornode", 1234, threshold=800)
        await incidents.resolve("Thornode", IncidentType.SLASH_POINTS)
    """

    def __init__(
        self,
        client: AlertBackendClient,
        cache: Optional[AlertCache] = None,
        discriminator: str = "",
        live: bool = True,
        clock: Optional[ClockProtocol] = None,
        requester_email: str = DEFAULT_REQUESTER_EMAIL,
        slash_points_policy: Optional[SlashPointsPolicy] = None,
        jail_policy: Optional[JailPolicy] = None,
        chain_observation_policy: Optional[ChainObservationPolicy] = None,
        restart_policy: Optional[RestartPolicy] = None,
        disk_usage_policy: Optional[DiskUsagePolicy] = None,
    ) -> None:
        self._client = client
        self.cache = cache if cache is not None else AlertCache()
        self.discriminator = discriminator
        self.live = live
        self.clock = clock or SystemClock()
        self.requester_email = requester_email

        self.slash_points_policy = slash_points_policy or SlashPointsPolicy()
        self.jail_policy = jail_policy or JailPolicy()
        self.chain_observation_policy = chain_observation_policy or ChainObservationPolicy()
        self.restart_policy = restart_policy or RestartPolicy()
        self.disk_usage_policy = disk_usage_policy or DiskUsagePolicy()

        self._locks: dict[IncidentIdentity, asyncio.Lock] = {}
        # Identities confirmed to have no open incident since the last raise
        self._known_clear: set[IncidentIdentity] = set()

    def identity(self, subject: str, incident_type: IncidentType) -> IncidentIdentity:
        return IncidentIdentity(subject, incident_type, self.discriminator)

    def _lock_for(self, identity: IncidentIdentity) -> asyncio.Lock:
        return self._locks.setdefault(identity, asyncio.Lock())

    # ─────────────────────────────────────────────────────────────
    # Reports
    # ─────────────────────────────────────────────────────────────

    async def report_slash_points(self, subject: str, slash_points: int, threshold: float) -> bool:
        identity = self.identity(subject, IncidentType.SLASH_POINTS)

        async with self._lock_for(identity):
            previous = self.cache.get(identity)
            if not self.slash_points_policy.should_alert(slash_points, previous, threshold):
                logger.debug(f"[Incidents] {identity.name}: {slash_points} within hysteresis of {previous}")
                return False

            summary = f"{subject} entered the worst performing top 10 with {slash_points:,} slash points!"
            return await self._open(identity, summary, slash_points)

    async def report_jail(self, subject: str, current_height: int, release_height: int) -> bool:
        identity = self.identity(subject, IncidentType.JAIL)

        async with self._lock_for(identity):
            previous = self.cache.get(identity)
            if not self.jail_policy.should_alert(current_height, release_height, previous):
                return False

            blocks = release_height - current_height
            summary = f"{subject} has been jailed until #{release_height:,} ({blocks:,} blocks)!"
            return await self._open(identity, summary, release_height)

    async def report_chain_observation(self, chain: str, blocks_diff: int) -> bool:
        """
        Args:
            chain: Observed chain, e.g. "BTC"
            blocks_diff: Own observation minus network consensus (negative when behind)
        """
        identity = self.identity(chain, IncidentType.CHAIN_OBSERVATION)

        async with self._lock_for(identity):
            previous = self.cache.get(identity)
            if not self.chain_observation_policy.should_alert(blocks_diff, previous):
                return False

            direction = "behind" if blocks_diff < 0 else "ahead"
            summary = (
                f"{chain} is {abs(blocks_diff):,} block(s) {direction} "
                f"the majority observation of the network!"
            )
            return await self._open(identity, summary, blocks_diff)

    async def report_restart(
        self,
        subject: str,
        restarts: int,
        last_restart_at: datetime,
        reason: str = "unknown",
    ) -> bool:
        identity = self.identity(subject, IncidentType.RESTART)
        raised = False

        async with self._lock_for(identity):
            previous = self.cache.get(identity)
            if self.restart_policy.should_alert(restarts, previous, last_restart_at, self.clock.now()):
                summary = f"{subject} pod restarted! (reason: {reason}, count: {restarts:,})"
                raised = await self._open(identity, summary, restarts)

            # Restart counts only grow; remember every observation
            self.cache.set(identity, restarts)
        return raised

    async def report_disk_usage(self, subject: str, used_bytes: int, total_bytes: int) -> bool:
        identity = self.identity(subject, IncidentType.DISK_USAGE)
        usage = used_bytes / total_bytes if total_bytes else 0.0

        async with self._lock_for(identity):
            previous = self.cache.get(identity)
            if not self.disk_usage_policy.should_alert(usage, previous):
                return False

            summary = (
                f"{subject} pod has high disk usage: "
                f"{format_bytes(used_bytes)} / {format_bytes(total_bytes)} ({usage:.0%})"
            )
            return await self._open(identity, summary, usage)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def _incident_query(self) -> dict[str, Any]:
        return {
            "per_page": INCIDENT_PAGE_SIZE,
            "from": "1970-01-01",
            "to": self.clock.now().date().isoformat(),
        }

    async def _find_open(self, identity: IncidentIdentity) -> Optional[list[Incident]]:
        items = await self._client.list_resources(
            "incidents",
            params=self._incident_query(),
            match=lambda item: (
                item["attributes"].get("name") == identity.name
                and item["attributes"].get("resolved_at") is None
            ),
            return_early=True,
        )
        if items is None:
            return None
        try:
            return [Incident.from_api(item) for item in items]
        except BackendReadError as e:
            logger.error(f"[Incidents] Lookup of '{identity.name}' returned {e}")
            return None

    async def _open(self, identity: IncidentIdentity, summary: str, value: float) -> bool:
        """
        Open an incident for identity, superseding any open one.

        The caller holds the identity's lock, so the hysteresis check,
        the lookup, the create and the cache update form one step.
        """
        if not self.live:
            logger.warning(f"[Incidents] (suppressed) {identity.name}: {summary}")
            self.cache.set(identity, value)
            return True

        open_incidents = await self._find_open(identity)
        if open_incidents is None:
            logger.warning(f"[Incidents] Lookup of '{identity.name}' failed, retrying next tick")
            return False

        for incident in open_incidents:
            logger.info(f"[Incidents] Superseding incident {incident.id} '{incident.name}'")
            await self._client.resolve_incident(incident.id)

        try:
            await self._client.create("incidents", {
                "requester_email": self.requester_email,
                "name": identity.name,
                "summary": summary,
                "email": False,
                "push": True,
            })
        except BackendReadError as e:
            # Created (HTTP 201); the reply body is not needed
            logger.warning(f"[Incidents] Created incident '{identity.name}' with unreadable reply: {e}")
        else:
            logger.warning(f"[Incidents] Created incident '{identity.name}': {summary}")

        self._known_clear.discard(identity)
        self.cache.set(identity, value)
        return True

    async def resolve(self, subject: str, incident_type: IncidentType) -> int:
        """
        Resolve the open incident of (subject, type). No-op when none is open.

        Returns:
            Number of incidents resolved
        """
        identity = self.identity(subject, incident_type)
        if not self.live:
            self.cache.clear(identity)
            return 0
        if identity in self._known_clear:
            return 0

        async with self._lock_for(identity):
            open_incidents = await self._find_open(identity)
            if open_incidents is None:
                logger.warning(f"[Incidents] Lookup of '{identity.name}' failed, resolve retried next tick")
                return 0

            for incident in open_incidents:
                logger.info(f"[Incidents] Resolving incident {incident.id} '{incident.name}'")
                await self._client.resolve_incident(incident.id)

            self.cache.clear(identity)
            self._known_clear.add(identity)
            return len(open_incidents)

    # ─────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────

    async def delete(self, subject: str, incident_type: IncidentType) -> int:
        """Delete every incident, open or resolved, of (subject, type)."""
        identity = self.identity(subject, incident_type)
        items = await self._client.list_resources(
            "incidents",
            params=self._incident_query(),
            match=lambda item: item["attributes"].get("name") == identity.name,
        )
        if items is None:
            logger.error(f"[Incidents] Could not list incidents of '{identity.name}'")
            return 0

        async with self._lock_for(identity):
            for item in items:
                await self._delete(Incident.from_api(item))
            self.cache.clear(identity)
            self._known_clear.discard(identity)
        return len(items)

    async def delete_all(self) -> int:
        items = await self._client.list_resources("incidents", params=self._incident_query())
        if items is None:
            logger.error("[Incidents] Could not list incidents, nothing deleted")
            return 0

        for item in items:
            await self._delete(Incident.from_api(item))
        self.cache.reset()
        self._known_clear.clear()
        return len(items)

    async def cleanup(self, keep: int = 50, max_age: Optional[timedelta] = None) -> int:
        """
        Retention pass over this operator's incidents.

        Deletes resolved incidents beyond the newest `keep` or older than
        `max_age`. Open incidents are never deleted.

        Returns:
            Number of incidents deleted
        """
        suffix = f"({self.discriminator})" if self.discriminator else ""
        items = await self._client.list_resources(
            "incidents",
            params=self._incident_query(),
            match=lambda item: (item["attributes"].get("name") or "").endswith(suffix),
        )
        if items is None:
            logger.error("[Incidents] Could not list incidents, cleanup skipped")
            return 0

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        incidents = sorted(
            (Incident.from_api(item) for item in items),
            key=lambda incident: incident.started_at or oldest,
            reverse=True,
        )

        now = self.clock.now()
        expired = []
        for index, incident in enumerate(incidents):
            if incident.is_open:
                continue
            beyond_keep = index >= keep
            too_old = (
                max_age is not None
                and incident.started_at is not None
                and now - incident.started_at > max_age
            )
            if beyond_keep or too_old:
                expired.append(incident)

        for incident in expired:
            await self._delete(incident)

        if expired:
            logger.info(f"[Incidents] Cleaned up {len(expired)} incidents!")
        return len(expired)

    async def _delete(self, incident: Incident) -> None:
        logger.debug(f"[Incidents] Deleting incident {incident.id} '{incident.name}'")
        await self._client.delete("incidents", incident.id)
