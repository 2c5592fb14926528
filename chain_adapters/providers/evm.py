"""
EVM Chain Adapter - Ethereum-style JSON-RPC nodes.

Covers Ethereum, Avalanche C-Chain and BNB Smart Chain.

RPC methods used:
- eth_syncing: liveness and syncing flag (false, or a progress object)
- eth_blockNumber: hex encoded head height
- web3_clientVersion: client version; some providers refuse it with 403
"""

import asyncio
import logging

from chain_adapters.base import ChainAdapter, malformed, parse_int
from chain_adapters.models import HeightReport, QueryResult, RpcRequest


logger = logging.getLogger(__name__)


class EvmAdapter(ChainAdapter):
    """Ethereum JSON-RPC adapter."""

    async def _rpc(self, method: str) -> QueryResult:
        return await self._call_rpc(
            self.node.endpoint,
            RpcRequest(method),
            self.node.credentials,
        )

    async def ping(self) -> QueryResult[bool]:
        response = await self._rpc("eth_syncing")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        return QueryResult.success(True)

    async def query_height(self) -> QueryResult[HeightReport]:
        # Both calls go out together so head and syncing state describe the same moment
        syncing, block_number = await asyncio.gather(
            self._rpc("eth_syncing"),
            self._rpc("eth_blockNumber"),
        )
        if not syncing.ok:
            return QueryResult.from_failure(syncing.failure)
        if not block_number.ok:
            return QueryResult.from_failure(block_number.failure)

        try:
            height = parse_int(block_number.value)
            header_height = None
            progress = syncing.value
            if isinstance(progress, dict) and "highestBlock" in progress:
                header_height = parse_int(progress["highestBlock"])
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "eth_blockNumber", e)

        report = HeightReport(
            height=height,
            header_height=header_height,
            is_syncing=bool(progress),
        )
        logger.debug(f"[{self.name}] height = {report.height:,} | syncing = {report.is_syncing}")
        return QueryResult.success(report)

    async def query_version(self) -> QueryResult[str]:
        response = await self._rpc("web3_clientVersion")
        if response.is_forbidden:
            logger.warning(f"[{self.name}] Node does not allow to query 'web3_clientVersion'")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        logger.debug(f"[{self.name}] client version = '{response.value}'")
        return QueryResult.success(str(response.value))
