"""
Alerting Package.

Heartbeats and incidents on the Better Stack Uptime backend, with
hysteresis so a continuously degraded node raises one incident instead
of one per tick.

Components:
- client: paginated REST client, fail-soft reads, retried writes
- retry: fixed backoff retry policy
- cache: last value actioned per identity
- heartbeats: create-if-absent and ping
- incidents: raise / resolve / prune incidents
"""

from alerting.cache import AlertCache
from alerting.client import BETTERSTACK_API_URL, AlertBackendClient
from alerting.exceptions import (
    AlertingError,
    BackendReadError,
    DeliveryError,
    UnexpectedStatusError,
)
from alerting.heartbeats import HeartbeatService
from alerting.incidents import (
    ChainObservationPolicy,
    DiskUsagePolicy,
    IncidentService,
    JailPolicy,
    RestartPolicy,
    SlashPointsPolicy,
)
from alerting.models import (
    Heartbeat,
    HeartbeatGroup,
    HeartbeatIdentity,
    Incident,
    IncidentIdentity,
    IncidentType,
)
from alerting.retry import RetryPolicy


__all__ = [
    "AlertCache",
    "AlertBackendClient",
    "BETTERSTACK_API_URL",
    "AlertingError",
    "BackendReadError",
    "DeliveryError",
    "UnexpectedStatusError",
    "HeartbeatService",
    "ChainObservationPolicy",
    "DiskUsagePolicy",
    "IncidentService",
    "JailPolicy",
    "RestartPolicy",
    "SlashPointsPolicy",
    "Heartbeat",
    "HeartbeatGroup",
    "HeartbeatIdentity",
    "Incident",
    "IncidentIdentity",
    "IncidentType",
    "RetryPolicy",
]
