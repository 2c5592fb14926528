"""
Providers package - Chain adapter implementations, one per chain family.
"""

from chain_adapters.providers.cosmos import CosmosAdapter
from chain_adapters.providers.evm import EvmAdapter
from chain_adapters.providers.thornode import ThornodeAdapter
from chain_adapters.providers.utxo import UtxoAdapter


__all__ = [
    "CosmosAdapter",
    "EvmAdapter",
    "ThornodeAdapter",
    "UtxoAdapter",
]
