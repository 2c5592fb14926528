"""
Cosmos Chain Adapter - Tendermint RPC over REST.

Covers Gaia (Cosmos Hub) and Binance Chain nodes.

Endpoints used:
- GET /health: liveness
- GET /status: `sync_info.latest_block_height`, `sync_info.catching_up`
  and `node_info.version`
- GET /net_info: peer versions (see chain_adapters.references)
"""

import logging
from typing import Any

from chain_adapters.base import ChainAdapter, malformed, parse_int
from chain_adapters.models import HeightReport, QueryResult


logger = logging.getLogger(__name__)


def parse_status_height(payload: Any) -> HeightReport:
    """Read a Tendermint `/status` body into a HeightReport."""
    sync_info = payload["result"]["sync_info"]
    return HeightReport(
        height=parse_int(sync_info["latest_block_height"]),
        is_syncing=bool(sync_info.get("catching_up", False)),
    )


class TendermintStatusMixin:
    """Height and version parsing shared by every Tendermint based adapter."""

    async def _query_status_height(self, rpc_url: str) -> QueryResult[HeightReport]:
        response = await self._get_json(f"{rpc_url}/status")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            report = parse_status_height(response.value)
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "status", e)

        logger.debug(
            f"[{self.name}] latest_block_height = {report.height:,} | catching_up = {report.is_syncing}"
        )
        return QueryResult.success(report)


class CosmosAdapter(TendermintStatusMixin, ChainAdapter):
    """Tendermint RPC adapter for Cosmos-SDK chains."""

    async def ping(self) -> QueryResult[bool]:
        response = await self._get_json(f"{self.node.endpoint}/health")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        return QueryResult.success(True)

    async def query_height(self) -> QueryResult[HeightReport]:
        return await self._query_status_height(self.node.endpoint)

    async def query_version(self) -> QueryResult[str]:
        response = await self._get_json(f"{self.node.endpoint}/status")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            version = str(response.value["result"]["node_info"]["version"])
        except (KeyError, TypeError) as e:
            return malformed(self.name, "status", e)

        logger.debug(f"[{self.name}] node version = '{version}'")
        return QueryResult.success(version)
