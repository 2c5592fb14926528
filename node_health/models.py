"""
Node Health Models - Metrics and per-tick check outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class HealthMetric(Enum):
    """
    Health dimension of a node.

    Values double as the heartbeat names on the alerting backend.
    """
    UP = "Health"
    SYNCED = "Sync Status"
    VERSION_CURRENT = "Version"


ALL_METRICS: tuple[HealthMetric, ...] = (
    HealthMetric.UP,
    HealthMetric.SYNCED,
    HealthMetric.VERSION_CURRENT,
)


class CheckStatus(Enum):
    """Verdict of one check."""
    PASS = "pass"
    FAIL = "fail"
    NOT_APPLICABLE = "not_applicable"  # node refuses the query (403)
    INCONCLUSIVE = "inconclusive"      # data could not be interpreted


class VersionPolicy(Enum):
    """How a node version is compared to the reference population."""
    MOST_COMMON = "most_common"  # exact match against the top-N most common versions
    NUMERIC = "numeric"          # dotted integers, node >= highest version
    REPORTED = "reported"        # no population, current when the node reports one


@dataclass(frozen=True)
class CheckOutcome:
    """
    Result of one HealthMetric evaluation for one node at one tick.

    Ephemeral. Built only from the data the adapter and references
    returned during the tick.
    """
    metric: HealthMetric
    status: CheckStatus
    node_height: Optional[int] = None
    reference_height: Optional[int] = None
    node_version: Optional[str] = None
    reference_versions: tuple[str, ...] = ()
    reason: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASS

    @classmethod
    def passing(cls, metric: HealthMetric, **diagnostics: Any) -> "CheckOutcome":
        return cls(metric, CheckStatus.PASS, **diagnostics)

    @classmethod
    def failing(cls, metric: HealthMetric, reason: str, **diagnostics: Any) -> "CheckOutcome":
        return cls(metric, CheckStatus.FAIL, reason=reason, **diagnostics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric.value,
            "status": self.status.value,
            "passed": self.passed,
            "node_height": self.node_height,
            "reference_height": self.reference_height,
            "node_version": self.node_version,
            "reference_versions": list(self.reference_versions),
            "reason": self.reason,
            "checked_at": self.checked_at.isoformat(),
        }
