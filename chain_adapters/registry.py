"""
Chain Adapter Registry - Selects the adapter class for a node.

Behavior is chosen by the node's ChainFamily, never by subclassing per
chain: Bitcoin, Litecoin, Bitcoin Cash and Dogecoin all share UtxoAdapter.
"""

import logging
from typing import Optional

import aiohttp

from chain_adapters.base import ChainAdapter, HttpQuerier
from chain_adapters.exceptions import ConfigurationError
from chain_adapters.models import ChainFamily, Node
from chain_adapters.providers import CosmosAdapter, EvmAdapter, ThornodeAdapter, UtxoAdapter


logger = logging.getLogger(__name__)


ADAPTERS_BY_FAMILY: dict[ChainFamily, type[ChainAdapter]] = {
    ChainFamily.UTXO: UtxoAdapter,
    ChainFamily.EVM: EvmAdapter,
    ChainFamily.COSMOS: CosmosAdapter,
    ChainFamily.THORNODE: ThornodeAdapter,
}


def create_adapter(
    node: Node,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: float = HttpQuerier.DEFAULT_TIMEOUT,
) -> ChainAdapter:
    """
    Build the adapter for a node.

    Raises:
        ConfigurationError: If no adapter handles the node's family
    """
    adapter_class = ADAPTERS_BY_FAMILY.get(node.family)
    if adapter_class is None:
        raise ConfigurationError(
            f"No adapter for chain family '{node.family.value}'",
            config_key="chain",
            chain=node.chain.value,
        )

    adapter = adapter_class(node, session=session, timeout=timeout)
    logger.debug(f"Created {adapter_class.__name__} for {node}")
    return adapter
