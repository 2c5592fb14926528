"""
Test Doubles.

============================================================
PURPOSE
============================================================
In-memory stand-ins for the two remote sides of the monitor:

- FakeSession: an aiohttp.ClientSession look-alike with scripted routes
- FakeBackend: the alerting backend behind AlertBackendClient

============================================================
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from core.clock import ClockProtocol


# ============================================================
# FAKE HTTP SESSION
# ============================================================

class FakeResponse:
    """Scripted HTTP response."""

    def __init__(self, status: int = 200, body: Any = None, invalid_json: bool = False) -> None:
        self.status = status
        self._body = body
        self._invalid_json = invalid_json

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._body


@dataclass
class RecordedRequest:
    method: str
    url: str
    json: Optional[dict[str, Any]] = None
    params: Optional[dict[str, Any]] = None
    headers: Optional[dict[str, str]] = None
    auth: Any = None

    @property
    def rpc_method(self) -> Optional[str]:
        if isinstance(self.json, dict):
            return self.json.get("method")
        return None


Scripted = Union[FakeResponse, BaseException]


class _RequestContext:
    def __init__(self, outcome: Scripted, gate: Optional[asyncio.Event]) -> None:
        self._outcome = outcome
        self._gate = gate

    async def __aenter__(self) -> FakeResponse:
        if self._gate is not None:
            await self._gate.wait()
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


class FakeSession:
    """
    Routes requests by (method, url) and, for JSON-RPC bodies, by RPC method.

    A route holds one response (repeated) or a list consumed in order whose
    last entry repeats. Exceptions in a route are raised on entry.
    Unrouted requests answer 404.
    """

    def __init__(self) -> None:
        self.closed = False
        self.requests: list[RecordedRequest] = []
        self._routes: dict[tuple, list[Scripted]] = {}
        self.gate: Optional[asyncio.Event] = None

    def route(
        self,
        method: str,
        url: str,
        *outcomes: Scripted,
        rpc_method: Optional[str] = None,
    ) -> "FakeSession":
        self._routes[(method, url, rpc_method)] = list(outcomes)
        return self

    def get_json(self, url: str, body: Any, status: int = 200) -> "FakeSession":
        return self.route("GET", url, FakeResponse(status, body))

    def rpc(self, url: str, rpc_method: str, result: Any, status: int = 200) -> "FakeSession":
        return self.route(
            "POST", url, FakeResponse(status, {"result": result, "error": None, "id": 1}),
            rpc_method=rpc_method,
        )

    def _next(self, key: tuple) -> Optional[Scripted]:
        outcomes = self._routes.get(key)
        if not outcomes:
            return None
        if len(outcomes) > 1:
            return outcomes.pop(0)
        return outcomes[0]

    def request(self, method: str, url: str, json=None, params=None, headers=None, auth=None, **kwargs):
        recorded = RecordedRequest(method, url, json, params, headers, auth)
        self.requests.append(recorded)

        outcome = None
        if recorded.rpc_method is not None:
            outcome = self._next((method, url, recorded.rpc_method))
        if outcome is None:
            outcome = self._next((method, url, None))
        if outcome is None:
            outcome = FakeResponse(404, {"errors": "not found"})
        return _RequestContext(outcome, self.gate)

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def requests_to(self, url: str) -> list[RecordedRequest]:
        return [request for request in self.requests if request.url == url]

    async def close(self) -> None:
        self.closed = True


# ============================================================
# FAKE ALERTING BACKEND
# ============================================================

@dataclass
class BackendCall:
    operation: str
    resource: str
    detail: Any = None


@dataclass
class FakeBackend:
    """
    In-memory alerting backend with the AlertBackendClient surface.

    Resources are JSON:API dicts. Listings yield to the event loop once
    so concurrent callers interleave as they would over the network.
    """
    clock: Optional[ClockProtocol] = None
    ping_status: int = 200
    failing_reads: set = field(default_factory=set)
    resources: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    calls: list[BackendCall] = field(default_factory=list)
    pings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._ids = itertools.count(1)

    def _now(self) -> str:
        if self.clock is None:
            return "2024-01-01T00:00:00Z"
        return self.clock.now().isoformat()

    # ─────────────────────────────────────────────────────────────
    # Seeding / inspection
    # ─────────────────────────────────────────────────────────────

    def add(self, resource: str, **attributes: Any) -> dict[str, Any]:
        item = {
            "id": str(next(self._ids)),
            "type": resource.rstrip("s"),
            "attributes": dict(attributes),
        }
        self.resources.setdefault(resource, []).append(item)
        return item

    def add_incident(
        self,
        name: str,
        started_at: str = "2024-01-01T00:00:00Z",
        resolved_at: Optional[str] = None,
    ) -> dict[str, Any]:
        return self.add("incidents", name=name, started_at=started_at, resolved_at=resolved_at, cause="")

    def names(self, resource: str) -> list[str]:
        return [item["attributes"]["name"] for item in self.resources.get(resource, [])]

    def open_incidents(self, name: str) -> list[dict[str, Any]]:
        return [
            item for item in self.resources.get("incidents", [])
            if item["attributes"]["name"] == name and item["attributes"].get("resolved_at") is None
        ]

    def count(self, operation: str, resource: Optional[str] = None) -> int:
        return sum(
            1 for call in self.calls
            if call.operation == operation and (resource is None or call.resource == resource)
        )

    # ─────────────────────────────────────────────────────────────
    # AlertBackendClient surface
    # ─────────────────────────────────────────────────────────────

    async def list_resources(self, resource, params=None, match=None, return_early=False):
        self.calls.append(BackendCall("list", resource, params))
        await asyncio.sleep(0)
        if resource in self.failing_reads:
            return None
        items = [item for item in self.resources.get(resource, []) if match is None or match(item)]
        return items[:1] if return_early else items

    async def create(self, resource, payload):
        self.calls.append(BackendCall("create", resource, payload))
        attributes = dict(payload)
        if resource == "heartbeats":
            attributes["url"] = f"https://uptime.betterstack.com/api/v1/heartbeat/{payload['name']}"
        if resource == "incidents":
            attributes.setdefault("started_at", self._now())
            attributes.setdefault("resolved_at", None)
        return self.add(resource, **attributes)

    async def delete(self, resource, resource_id):
        self.calls.append(BackendCall("delete", resource, resource_id))
        self.resources[resource] = [
            item for item in self.resources.get(resource, []) if item["id"] != resource_id
        ]

    async def resolve_incident(self, incident_id):
        self.calls.append(BackendCall("resolve", "incidents", incident_id))
        for item in self.resources.get("incidents", []):
            if item["id"] == incident_id:
                item["attributes"]["resolved_at"] = self._now()

    async def ping(self, url):
        self.pings.append(url)
        return self.ping_status

    async def close(self):
        pass
