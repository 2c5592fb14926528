"""
THORNode Adapter - THORChain consensus node.

A THORNode exposes two endpoints:
- the THORChain API (`node.url`, port 1317): /thorchain/ping,
  /thorchain/version, /thorchain/nodes, /thorchain/node/{address}
- the Tendermint RPC (`node.rpc_url`, port 27147): /health, /status

Up requires both: the API answers `{"ping": "pong"}` and the RPC is healthy.
"""

import logging
from typing import Optional

import aiohttp

from chain_adapters.base import ChainAdapter, HttpQuerier, malformed
from chain_adapters.exceptions import ConfigurationError
from chain_adapters.models import (
    FailureKind,
    HeightReport,
    Node,
    QueryResult,
    ValidatorRecord,
)
from chain_adapters.providers.cosmos import TendermintStatusMixin


logger = logging.getLogger(__name__)


class ThornodeAdapter(TendermintStatusMixin, ChainAdapter):
    """THORChain API + Tendermint RPC adapter."""

    def __init__(
        self,
        node: Node,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        if not node.rpc_url:
            raise ConfigurationError(
                "THORNode requires a Tendermint RPC url",
                config_key="rpc_url",
                chain=node.chain.value,
            )
        super().__init__(node, session, timeout)
        self.rpc_url = node.rpc_url.rstrip("/")

    async def ping(self) -> QueryResult[bool]:
        response = await self._get_json(f"{self.node.endpoint}/thorchain/ping")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        pong = response.value.get("ping") if isinstance(response.value, dict) else None
        logger.debug(f"[{self.name}] ping -> {pong}")
        if pong != "pong":
            logger.error(f"[{self.name}] Node does not respond to 'ping' with 'pong'")
            return QueryResult.fail(FailureKind.MALFORMED, 200, "no pong")

        health = await self._get_json(f"{self.rpc_url}/health")
        if not health.ok:
            return QueryResult.from_failure(health.failure)
        return QueryResult.success(True)

    async def query_height(self) -> QueryResult[HeightReport]:
        return await self._query_status_height(self.rpc_url)

    async def query_version(self) -> QueryResult[str]:
        response = await self._get_json(f"{self.node.endpoint}/thorchain/version")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            version = str(response.value["current"])
        except (KeyError, TypeError) as e:
            return malformed(self.name, "version", e)

        logger.debug(f"[{self.name}] current version = '{version}'")
        return QueryResult.success(version)

    # ─────────────────────────────────────────────────────────────
    # Validator set
    # ─────────────────────────────────────────────────────────────

    async def fetch_nodes(self) -> QueryResult[list[ValidatorRecord]]:
        """All validators known to the network, any status."""
        response = await self._get_json(f"{self.node.endpoint}/thorchain/nodes")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            records = [ValidatorRecord.from_dict(item) for item in response.value]
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "nodes", e)
        return QueryResult.success(records)

    async def fetch_node(self, address: str) -> QueryResult[ValidatorRecord]:
        response = await self._get_json(f"{self.node.endpoint}/thorchain/node/{address}")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            return QueryResult.success(ValidatorRecord.from_dict(response.value))
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "node", e)
