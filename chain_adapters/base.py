"""
Base Chain Adapter - Uniform interface over every chain family.

All adapters MUST:
- Expose ping / height / version in the shapes of chain_adapters.models
- Turn transport errors and non-200 responses into QueryResult failures
- Never raise to the caller
- Impose no alerting policy
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from chain_adapters.models import (
    Credentials,
    FailureKind,
    HeightReport,
    Node,
    QueryResult,
    RpcRequest,
)


logger = logging.getLogger(__name__)


class HttpQuerier:
    """
    Shared HTTP plumbing for adapters and reference sources.

    Owns an aiohttp session unless one is injected.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self.__class__.__name__

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _request_json(
        self,
        method: str,
        url: str,
        payload: Optional[dict[str, Any]] = None,
        credentials: Optional[Credentials] = None,
    ) -> QueryResult[Any]:
        """Issue one request and decode the JSON body. Never raises."""
        session = await self._get_session()
        auth = None
        if credentials is not None:
            auth = aiohttp.BasicAuth(credentials.username, credentials.password)

        try:
            async with session.request(method, url, json=payload, auth=auth) as response:
                if response.status == 403:
                    logger.warning(f"[{self.name}] {method} {url}: HTTP 403 (forbidden)")
                    return QueryResult.fail(FailureKind.FORBIDDEN, 403)

                if response.status != 200:
                    logger.error(f"[{self.name}] {method} {url}: HTTP status code {response.status}")
                    return QueryResult.fail(FailureKind.BAD_STATUS, response.status)

                try:
                    return QueryResult.success(await response.json(content_type=None))
                except ValueError as e:
                    logger.error(f"[{self.name}] {method} {url}: invalid JSON body: {e}")
                    return QueryResult.fail(FailureKind.MALFORMED, 200, str(e))

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.name}] {method} {url}: {e.__class__.__name__}: {e}")
            return QueryResult.fail(FailureKind.UNAVAILABLE, message=str(e))

    async def _get_json(
        self,
        url: str,
        credentials: Optional[Credentials] = None,
    ) -> QueryResult[Any]:
        return await self._request_json("GET", url, credentials=credentials)

    async def _call_rpc(
        self,
        url: str,
        request: RpcRequest,
        credentials: Optional[Credentials] = None,
    ) -> QueryResult[Any]:
        """POST a JSON-RPC request and unwrap its `result` member."""
        response = await self._request_json("POST", url, request.to_dict(), credentials)
        if not response.ok:
            return response

        body = response.value
        if not isinstance(body, dict) or "result" not in body:
            return QueryResult.fail(FailureKind.MALFORMED, 200, f"no result for {request.method}")
        if body.get("error"):
            logger.error(f"[{self.name}] {request.method}: RPC error {body['error']}")
            return QueryResult.fail(FailureKind.MALFORMED, 200, str(body["error"]))
        return QueryResult.success(body["result"])

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


class ChainAdapter(HttpQuerier, ABC):
    """
    Capability interface every chain family implements.

    Each adapter must implement:
    1. ping() - lightweight liveness call
    2. query_height() - node height, header height and syncing flag
    3. query_version() - node software version string
    """

    def __init__(
        self,
        node: Node,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(session, timeout)
        self.node = node

    @property
    def name(self) -> str:
        return self.node.display_name

    @abstractmethod
    async def ping(self) -> QueryResult[bool]:
        """Lightweight status call. ok ⇔ transport succeeded with HTTP 200."""
        pass

    @abstractmethod
    async def query_height(self) -> QueryResult[HeightReport]:
        """Height answer of the node itself."""
        pass

    @abstractmethod
    async def query_version(self) -> QueryResult[str]:
        """
        Version string of the node.

        A FORBIDDEN failure means the node refuses the query and must be
        treated as "not applicable", not as "outdated".
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(node={self.node})>"


def parse_int(value: Any) -> int:
    """Parse decimal or 0x-prefixed hex heights."""
    if isinstance(value, bool):
        raise ValueError(f"not a height: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


def malformed(adapter: str, what: str, error: Exception) -> QueryResult[Any]:
    """Log and build a MALFORMED failure for an unexpected payload."""
    logger.error(f"[{adapter}] unexpected {what} payload: {error.__class__.__name__}: {error}")
    return QueryResult.fail(FailureKind.MALFORMED, 200, f"{what}: {error}")
