"""
Alerting Backend Client - Better Stack Uptime REST API (v2).

Resources: `heartbeats`, `heartbeat-groups`, `incidents`.

- Listings follow the `pagination.next` cursor and fail soft (None)
- Writes go through the RetryPolicy and check the expected status:
  create 201, delete 204, resolve 200
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import aiohttp

from alerting.exceptions import AlertingError, BackendReadError, UnexpectedStatusError
from alerting.retry import RetryPolicy


logger = logging.getLogger(__name__)


BETTERSTACK_API_URL = "https://uptime.betterstack.com/api/v2"

ResourceMatcher = Callable[[dict[str, Any]], bool]


class AlertBackendClient:
    """
    Thin async client over the alerting backend.

    Usage:
        async with AlertBackendClient(api_key) as client:
            heartbeats = await client.list_resources("heartbeats")
    """

    def __init__(
        self,
        api_key: str,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[RetryPolicy] = None,
        base_url: str = BETTERSTACK_API_URL,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.base_url = base_url.rstrip("/")

    # ─────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
            self._owns_session = True
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        url: str,
        expected_status: int,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        One authenticated call. Returns the decoded body, None when empty.

        Raises:
            UnexpectedStatusError: If the status differs from expected_status
            BackendReadError: If the body is not JSON
        """
        session = await self._get_session()
        headers = {"Authorization": f"Bearer {self._api_key}"}

        async with session.request(
            method, url, json=payload, params=params, headers=headers
        ) as response:
            if response.status != expected_status:
                logger.error(f"[AlertBackend] {method} {url}: HTTP status code: {response.status}")
                raise UnexpectedStatusError(
                    f"{method} expected HTTP {expected_status}",
                    resource=url,
                    status_code=response.status,
                )
            if response.status == 204:
                return None
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise BackendReadError(
                    f"{method} returned a body that is not JSON",
                    resource=url,
                    status_code=response.status,
                    original_error=e,
                ) from e

    async def _write(
        self,
        method: str,
        path: str,
        expected_status: int,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        url = self._url(path)
        return await self.retry_policy.run(
            lambda: self._request(method, url, expected_status, payload),
            description=f"{method} {path}",
        )

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────

    async def list_resources(
        self,
        resource: str,
        params: Optional[dict[str, Any]] = None,
        match: Optional[ResourceMatcher] = None,
        return_early: bool = False,
    ) -> Optional[list[dict[str, Any]]]:
        """
        List every resource (optionally filtered by `match`) across all pages.

        Args:
            resource: Resource path, e.g. "incidents"
            params: Query parameters of the first page
            match: Keep only resources for which this returns True
            return_early: Stop at the first page holding a match

        Returns:
            Matching resources, or None if any page could not be read
        """
        url: Optional[str] = self._url(resource)
        matches: list[dict[str, Any]] = []

        try:
            while url:
                body = await self._request("GET", url, 200, params=params)
                params = None  # the cursor URL already carries the query

                if not isinstance(body, dict) or not isinstance(body.get("data"), list):
                    raise BackendReadError("listing without a data array", resource=resource)

                try:
                    matches.extend(item for item in body["data"] if match is None or match(item))
                except (AttributeError, KeyError, TypeError) as e:
                    raise BackendReadError(
                        "listing holds a malformed record", resource=resource, original_error=e
                    ) from e
                if return_early and matches:
                    break

                url = (body.get("pagination") or {}).get("next")
        except (AlertingError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[AlertBackend] Could not list '{resource}': {e}")
            return None

        return matches

    async def ping(self, url: str) -> Optional[int]:
        """Single unauthenticated GET. Returns the status, None on transport error."""
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[AlertBackend] GET {url}: {e.__class__.__name__}: {e}")
            return None

    # ─────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────

    async def create(self, resource: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create a resource and return its JSON:API record.

        Raises:
            DeliveryError: If a bounded retry policy gives up
            BackendReadError: If the reply carries no record
        """
        body = await self._write("POST", resource, 201, payload)
        record = body.get("data") if isinstance(body, dict) else None
        if not isinstance(record, dict) or "id" not in record or not isinstance(record.get("attributes"), dict):
            raise BackendReadError(f"created {resource} without a record", resource=resource)
        return record

    async def delete(self, resource: str, resource_id: str) -> None:
        await self._write("DELETE", f"{resource}/{resource_id}", 204)

    async def resolve_incident(self, incident_id: str) -> None:
        await self._write("POST", f"incidents/{incident_id}/resolve", 200)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
