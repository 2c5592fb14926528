"""
Alerting Models - Identities and remote records on the alerting backend.

Remote resources come back in JSON:API shape:
    {"id": "123", "type": "incident", "attributes": {...}}
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from alerting.exceptions import BackendReadError
from core.clock import from_iso8601


class IncidentType(Enum):
    """Kinds of incidents the monitor raises."""
    RESTART = "Restart"
    SLASH_POINTS = "Slash Points"
    JAIL = "Jail"
    CHAIN_OBSERVATION = "Chain Observation"
    DISK_USAGE = "Disk Usage"


def _suffix(discriminator: str) -> str:
    return f" ({discriminator})" if discriminator else ""


# ============================================================
# IDENTITIES
# ============================================================

@dataclass(frozen=True)
class HeartbeatIdentity:
    """(subject, metric) key of one remote heartbeat."""
    subject: str
    metric: str
    discriminator: str = ""

    @property
    def name(self) -> str:
        return f"{self.subject} {self.metric}{_suffix(self.discriminator)}"

    @property
    def group_name(self) -> str:
        return f"{self.subject}{_suffix(self.discriminator)}"


@dataclass(frozen=True)
class IncidentIdentity:
    """(subject, type) key of one incident series."""
    subject: str
    incident_type: IncidentType
    discriminator: str = ""

    @property
    def name(self) -> str:
        return f"{self.subject} {self.incident_type.value}{_suffix(self.discriminator)}"


# ============================================================
# REMOTE RECORDS
# ============================================================

def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return from_iso8601(value) if value else None


def record_name(resource: Any) -> Optional[str]:
    """`attributes.name` of a JSON:API record, None when absent."""
    if not isinstance(resource, dict):
        return None
    attributes = resource.get("attributes")
    return attributes.get("name") if isinstance(attributes, dict) else None


def _malformed(kind: str, error: Exception) -> BackendReadError:
    return BackendReadError(f"malformed {kind} record: {error!r}", resource=kind, original_error=error)


@dataclass(frozen=True)
class HeartbeatGroup:
    id: str
    name: str

    @classmethod
    def from_api(cls, resource: dict[str, Any]) -> "HeartbeatGroup":
        try:
            return cls(id=str(resource["id"]), name=resource["attributes"]["name"])
        except (KeyError, TypeError) as e:
            raise _malformed("heartbeat-group", e) from e


@dataclass(frozen=True)
class Heartbeat:
    """A pingable heartbeat endpoint."""
    id: str
    name: str
    url: str
    group_id: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_api(cls, resource: dict[str, Any]) -> "Heartbeat":
        try:
            attributes = resource["attributes"]
            group_id = attributes.get("heartbeat_group_id")
            return cls(
                id=str(resource["id"]),
                name=attributes["name"],
                url=attributes["url"],
                group_id=str(group_id) if group_id is not None else None,
                status=attributes.get("status"),
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise _malformed("heartbeat", e) from e


@dataclass(frozen=True)
class Incident:
    """
    An alert record with an open/resolved lifecycle.

    Open while `resolved_at` is unset.
    """
    id: str
    name: str
    started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    cause: str = ""

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None

    @classmethod
    def from_api(cls, resource: dict[str, Any]) -> "Incident":
        try:
            attributes = resource["attributes"]
            return cls(
                id=str(resource["id"]),
                name=attributes.get("name") or "",
                started_at=_parse_time(attributes.get("started_at")),
                resolved_at=_parse_time(attributes.get("resolved_at")),
                cause=attributes.get("cause") or "",
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise _malformed("incident", e) from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "cause": self.cause,
        }
