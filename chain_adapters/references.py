"""
Reference Sources - Where "the network" heights and versions come from.

A node is compared to one or more independent references:
- Blockchair explorer stats / node census (UTXO chains, Ethereum)
- A public Tendermint RPC (Cosmos, Binance, THORChain)
- A public EVM JSON-RPC (Avalanche, BNB Smart Chain)
- The BNB Beacon Chain explorer as a backup height for Binance
- The node's own peers (`/net_info`) for Tendermint versions
- The active THORChain validator set for THORNode versions

Like adapters, references return QueryResult and never raise.
"""

import logging
from collections import Counter
from typing import Optional

import aiohttp

from chain_adapters.base import HttpQuerier, malformed, parse_int
from chain_adapters.models import Chain, FailureKind, Node, QueryResult, RpcRequest, ValidatorRecord
from chain_adapters.providers.cosmos import parse_status_height


logger = logging.getLogger(__name__)


BLOCKCHAIR_API_URL = "https://api.blockchair.com"

TENDERMINT_REFERENCE_URLS = {
    Chain.COSMOS: "https://gaia.ninerealms.com",
    Chain.BINANCE: "https://binance.ninerealms.com",
    Chain.THORCHAIN: "https://rpc.ninerealms.com",
}

BNB_EXPLORER_API_URL = "https://explorer.bnbchain.org/api/v1"

EVM_REFERENCE_URLS = {
    Chain.AVALANCHE: "https://api.avax.network/ext/bc/C/rpc",
    Chain.BINANCE_SMART: "https://bsc-dataseed.binance.org",
}


class ReferenceSource(HttpQuerier):
    """
    Independent source of network height and/or version population.

    Subclasses override whichever of the two queries they can answer.
    """

    def __init__(
        self,
        label: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(session, timeout)
        self.label = label

    @property
    def name(self) -> str:
        return self.label

    async def query_height(self) -> QueryResult[int]:
        logger.warning(f"[{self.label}] used as a height reference but reports no heights")
        return QueryResult.fail(FailureKind.UNAVAILABLE, message=f"{self.label} does not report heights")

    async def query_versions(self) -> QueryResult[dict[str, int]]:
        """Version string → number of nodes running it."""
        logger.warning(f"[{self.label}] used as a version reference but reports no versions")
        return QueryResult.fail(FailureKind.UNAVAILABLE, message=f"{self.label} does not report versions")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.label})>"


class BlockchairReference(ReferenceSource):
    """Blockchair explorer: `/{chain}/stats` and `/{chain}/nodes`."""

    def __init__(
        self,
        chain_slug: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
        base_url: str = BLOCKCHAIR_API_URL,
    ) -> None:
        super().__init__(f"Blockchair:{chain_slug}", session, timeout)
        self.chain_slug = chain_slug
        self.base_url = base_url.rstrip("/")

    async def query_height(self) -> QueryResult[int]:
        response = await self._get_json(f"{self.base_url}/{self.chain_slug}/stats")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            return QueryResult.success(parse_int(response.value["data"]["best_block_height"]))
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "stats", e)

    async def query_versions(self) -> QueryResult[dict[str, int]]:
        response = await self._get_json(f"{self.base_url}/{self.chain_slug}/nodes")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            versions = response.value["data"]["versions"]
            return QueryResult.success({str(k): int(v) for k, v in versions.items()})
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "nodes", e)


class TendermintReference(ReferenceSource):
    """Public Tendermint RPC `/status`."""

    def __init__(
        self,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(url, session, timeout)
        self.url = url.rstrip("/")

    async def query_height(self) -> QueryResult[int]:
        response = await self._get_json(f"{self.url}/status")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            return QueryResult.success(parse_status_height(response.value).height)
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "status", e)


class EvmRpcReference(ReferenceSource):
    """Public EVM JSON-RPC `eth_blockNumber`."""

    def __init__(
        self,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(url, session, timeout)
        self.url = url

    async def query_height(self) -> QueryResult[int]:
        response = await self._call_rpc(self.url, RpcRequest("eth_blockNumber"))
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            return QueryResult.success(parse_int(response.value))
        except (TypeError, ValueError) as e:
            return malformed(self.name, "eth_blockNumber", e)


class BnbExplorerReference(ReferenceSource):
    """BNB Beacon Chain explorer, latest block of `/blocks`."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
        base_url: str = BNB_EXPLORER_API_URL,
    ) -> None:
        super().__init__("BNB Explorer", session, timeout)
        self.base_url = base_url.rstrip("/")

    async def query_height(self) -> QueryResult[int]:
        response = await self._get_json(f"{self.base_url}/blocks?page=1&rows=1")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            return QueryResult.success(parse_int(response.value["blockArray"][0]["blockHeight"]))
        except (IndexError, KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "blocks", e)


class PeerVersionsReference(ReferenceSource):
    """Versions advertised by the node's own peers (`/net_info`)."""

    def __init__(
        self,
        node_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(f"{node_url} peers", session, timeout)
        self.node_url = node_url.rstrip("/")

    async def query_versions(self) -> QueryResult[dict[str, int]]:
        response = await self._get_json(f"{self.node_url}/net_info")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            peers = response.value["result"]["peers"]
            counts = Counter(str(peer["node_info"]["version"]) for peer in peers)
        except (KeyError, TypeError) as e:
            return malformed(self.name, "net_info", e)
        return QueryResult.success(dict(counts))


class ThornodeVersionsReference(ReferenceSource):
    """Versions run by the active THORChain validators."""

    def __init__(
        self,
        api_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(f"{api_url} validators", session, timeout)
        self.api_url = api_url.rstrip("/")

    async def query_versions(self) -> QueryResult[dict[str, int]]:
        response = await self._get_json(f"{self.api_url}/thorchain/nodes")
        if not response.ok:
            return QueryResult.from_failure(response.failure)
        try:
            records = [ValidatorRecord.from_dict(item) for item in response.value]
        except (KeyError, TypeError, ValueError) as e:
            return malformed(self.name, "nodes", e)
        counts = Counter(record.version for record in records if record.is_active)
        return QueryResult.success(dict(counts))


def default_references(
    node: Node,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
) -> tuple[list[ReferenceSource], Optional[ReferenceSource]]:
    """
    Default (height references, version reference) for a node.

    The version reference is None where the version is only checked for
    being reported at all (EVM clients).
    """
    chain = node.chain

    if chain in (Chain.BITCOIN, Chain.LITECOIN, Chain.BITCOIN_CASH, Chain.DOGECOIN):
        blockchair = BlockchairReference(chain.value, session, timeout)
        return [blockchair], blockchair

    if chain == Chain.ETHEREUM:
        return [BlockchairReference(chain.value, session, timeout)], None

    if chain in EVM_REFERENCE_URLS:
        return [EvmRpcReference(EVM_REFERENCE_URLS[chain], session, timeout)], None

    if chain == Chain.BINANCE:
        return (
            [
                TendermintReference(TENDERMINT_REFERENCE_URLS[chain], session, timeout),
                BnbExplorerReference(session, timeout),
            ],
            PeerVersionsReference(node.endpoint, session, timeout),
        )

    if chain == Chain.COSMOS:
        return (
            [TendermintReference(TENDERMINT_REFERENCE_URLS[chain], session, timeout)],
            PeerVersionsReference(node.endpoint, session, timeout),
        )

    if chain == Chain.THORCHAIN:
        return (
            [TendermintReference(TENDERMINT_REFERENCE_URLS[chain], session, timeout)],
            ThornodeVersionsReference(node.endpoint, session, timeout),
        )

    logger.warning(f"[{node.display_name}] No reference sources for chain '{chain.value}'")
    return [], None
