"""
Node Health Package.

Protocol agnostic Up / Synced / VersionCurrent checks over any
ChainAdapter, plus THORNode validator monitoring.
"""

from node_health.models import (
    ALL_METRICS,
    CheckOutcome,
    CheckStatus,
    HealthMetric,
    VersionPolicy,
)
from node_health.checks import (
    NodeHealthCheck,
    default_version_policy,
    is_within_tolerance,
    most_common_versions,
    parse_version_number,
    top_version,
)
from node_health.thornode import ThornodeMonitor


__all__ = [
    "ALL_METRICS",
    "CheckOutcome",
    "CheckStatus",
    "HealthMetric",
    "VersionPolicy",
    "NodeHealthCheck",
    "default_version_policy",
    "is_within_tolerance",
    "most_common_versions",
    "parse_version_number",
    "top_version",
    "ThornodeMonitor",
]
