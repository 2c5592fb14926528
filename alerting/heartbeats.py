"""
Heartbeat Service - One liveness ping per healthy (subject, metric).

============================================================
RESPONSIBILITY
============================================================
- Make sure every heartbeat (and its group) exists before it is pinged
- Ping the heartbeat URL whenever a check passes

A missing ping is the outage signal: the backend raises it once the
grace window elapses. Sends are therefore never retried and never raise;
the next tick pings again.

============================================================
DESIGN PRINCIPLES
============================================================
- Look-up-then-create runs under a per-identity lock
- Resolved heartbeats are memoised for the process lifetime
- Nothing reaches the backend unless the service is live

============================================================
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Optional

from alerting.client import AlertBackendClient
from alerting.exceptions import AlertingError
from alerting.models import Heartbeat, HeartbeatGroup, HeartbeatIdentity, record_name


logger = logging.getLogger(__name__)


HEARTBEAT_PERIOD_SECONDS = 60
HEARTBEAT_GRACE_SECONDS = 300


class HeartbeatService:
    """
    Creates and pings heartbeats on the alerting backend.

    Usage:
        heartbeats = HeartbeatService(client, discriminator="x7k2")
        await heartbeats.init_heartbeats("Bitcoin", ["Health", "Sync Status"])
        await heartbeats.send("Bitcoin", "Health")
    """

    def __init__(
        self,
        client: AlertBackendClient,
        discriminator: str = "",
        live: bool = True,
        period_seconds: int = HEARTBEAT_PERIOD_SECONDS,
        grace_seconds: int = HEARTBEAT_GRACE_SECONDS,
    ) -> None:
        self._client = client
        self.discriminator = discriminator
        self.live = live
        self.period_seconds = period_seconds
        self.grace_seconds = grace_seconds

        self._heartbeats: dict[HeartbeatIdentity, Heartbeat] = {}
        self._groups: dict[str, HeartbeatGroup] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def identity(self, subject: str, metric: str) -> HeartbeatIdentity:
        return HeartbeatIdentity(subject, metric, self.discriminator)

    def _lock_for(self, name: str) -> asyncio.Lock:
        return self._locks.setdefault(name, asyncio.Lock())

    # ─────────────────────────────────────────────────────────────
    # Creation
    # ─────────────────────────────────────────────────────────────

    async def init_heartbeats(self, subject: str, metrics: Sequence[str]) -> None:
        """Ensure every heartbeat of a subject exists, in order, from one listing."""
        if not self.live:
            return

        listing = await self._client.list_resources("heartbeats")
        if listing is None:
            logger.warning(f"[Heartbeats] Could not list heartbeats, skipping init of '{subject}'")
            return

        for metric in metrics:
            await self.ensure_exists(subject, metric, listing=listing)

    async def ensure_exists(
        self,
        subject: str,
        metric: str,
        listing: Optional[list[dict[str, Any]]] = None,
    ) -> Optional[Heartbeat]:
        """
        Return the heartbeat for (subject, metric), creating it if absent.

        Args:
            subject: Monitored subject, e.g. "Bitcoin"
            metric: Heartbeat metric, e.g. "Sync Status"
            listing: Pre-fetched heartbeat listing to search instead of the backend

        Returns:
            The heartbeat, or None if the backend could not be read this tick
        """
        identity = self.identity(subject, metric)
        if identity in self._heartbeats:
            return self._heartbeats[identity]

        async with self._lock_for(identity.name):
            if identity in self._heartbeats:
                return self._heartbeats[identity]

            if listing is None:
                listing = await self._client.list_resources(
                    "heartbeats",
                    match=lambda item: record_name(item) == identity.name,
                    return_early=True,
                )
                if listing is None:
                    logger.warning(f"[Heartbeats] Lookup of '{identity.name}' failed, retrying next tick")
                    return None

            existing = next(
                (item for item in listing if record_name(item) == identity.name),
                None,
            )
            if existing is not None:
                logger.debug(f"[Heartbeats] Heartbeat already created: '{identity.name}'")
                heartbeat = Heartbeat.from_api(existing)
            else:
                group = await self._ensure_group(identity)
                if group is None:
                    return None

                logger.info(f"[Heartbeats] Creating new heartbeat: '{identity.name}'")
                heartbeat = Heartbeat.from_api(await self._client.create("heartbeats", {
                    "name": identity.name,
                    "period": self.period_seconds,
                    "grace": self.grace_seconds,
                    "heartbeat_group_id": group.id,
                    "email": False,
                    "push": True,
                }))

            self._heartbeats[identity] = heartbeat
            return heartbeat

    async def _ensure_group(self, identity: HeartbeatIdentity) -> Optional[HeartbeatGroup]:
        name = identity.group_name
        if name in self._groups:
            return self._groups[name]

        async with self._lock_for(f"group:{name}"):
            if name in self._groups:
                return self._groups[name]

            listing = await self._client.list_resources(
                "heartbeat-groups",
                match=lambda item: record_name(item) == name,
                return_early=True,
            )
            if listing is None:
                logger.warning(f"[Heartbeats] Lookup of group '{name}' failed, retrying next tick")
                return None

            if listing:
                group = HeartbeatGroup.from_api(listing[0])
            else:
                logger.info(f"[Heartbeats] Creating new heartbeat group: '{name}'")
                group = HeartbeatGroup.from_api(
                    await self._client.create("heartbeat-groups", {"name": name})
                )

            self._groups[name] = group
            return group

    # ─────────────────────────────────────────────────────────────
    # Ping
    # ─────────────────────────────────────────────────────────────

    async def send(self, subject: str, metric: str) -> bool:
        """
        Ping the heartbeat of (subject, metric). Never raises.

        Returns:
            True if the backend acknowledged the ping
        """
        if not self.live:
            return False

        try:
            heartbeat = await self.ensure_exists(subject, metric)
        except AlertingError as e:
            logger.error(f"[Heartbeats] Could not resolve heartbeat '{subject} {metric}': {e}")
            return False
        if heartbeat is None:
            return False

        status = await self._client.ping(heartbeat.url)
        if status != 200:
            logger.error(f"[Heartbeats] {heartbeat.name}: HTTP status code: {status}")
            return False

        logger.info(f"[Heartbeats] {heartbeat.name} ❤️")
        return True

    # ─────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────

    async def delete_all(self) -> int:
        """Delete every heartbeat, then every heartbeat group. Returns the count deleted."""
        deleted = 0

        heartbeats = await self._client.list_resources("heartbeats")
        if heartbeats is None:
            logger.error("[Heartbeats] Could not list heartbeats, nothing deleted")
            return deleted
        for item in heartbeats:
            logger.info(f"[Heartbeats] Deleting heartbeat: '{record_name(item)}'")
            await self._client.delete("heartbeats", str(item["id"]))
            deleted += 1

        groups = await self._client.list_resources("heartbeat-groups")
        if groups is None:
            logger.error("[Heartbeats] Could not list heartbeat groups")
            groups = []
        for item in groups:
            logger.info(f"[Heartbeats] Deleting heartbeat group: '{record_name(item)}'")
            await self._client.delete("heartbeat-groups", str(item["id"]))
            deleted += 1

        self._heartbeats.clear()
        self._groups.clear()
        return deleted
