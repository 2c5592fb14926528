"""
UTXO Chain Adapter - Bitcoin-style JSON-RPC daemons.

Covers bitcoind and its forks (Litecoin, Bitcoin Cash, Dogecoin).

RPC methods used:
- getblockchaininfo: liveness, `blocks` and `headers`
- getnetworkinfo: `subversion` (e.g. "/Satoshi:25.0.0/")

Credentials are usually embedded in the endpoint URL.
"""

import logging

from chain_adapters.base import ChainAdapter, malformed, parse_int
from chain_adapters.models import HeightReport, QueryResult, RpcRequest


logger = logging.getLogger(__name__)


class UtxoAdapter(ChainAdapter):
    """bitcoind-compatible JSON-RPC adapter."""

    JSONRPC_VERSION = "1.0"

    async def _rpc(self, method: str) -> QueryResult:
        return await self._call_rpc(
            self.node.endpoint,
            RpcRequest(method, jsonrpc=self.JSONRPC_VERSION),
            self.node.credentials,
        )

    async def ping(self) -> QueryResult[bool]:
        response = await self._rpc("getblockchaininfo")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        return QueryResult.success(True)

    async def query_height(self) -> QueryResult[HeightReport]:
        response = await self._rpc("getblockchaininfo")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            report = HeightReport(
                height=parse_int(response.value["blocks"]),
                header_height=parse_int(response.value["headers"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "getblockchaininfo", e)

        logger.debug(
            f"[{self.name}] blocks = {report.height:,} | headers = {report.header_height:,}"
        )
        return QueryResult.success(report)

    async def query_version(self) -> QueryResult[str]:
        response = await self._rpc("getnetworkinfo")
        if not response.ok:
            return QueryResult.from_failure(response.failure)

        try:
            version = str(response.value["subversion"])
        except (KeyError, TypeError) as e:
            return malformed(self.name, "getnetworkinfo", e)

        logger.debug(f"[{self.name}] subversion = '{version}'")
        return QueryResult.success(version)
