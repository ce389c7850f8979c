"""
Module: blockchain/manager.py
Description: Registre multi-blockchain (Ethereum, Solana, ...) construit une seule fois au démarrage.

The registry maps a chain identifier to its adapter. It is built from the
ordered ``chains`` list of the configuration before the server accepts any
request and is read-only afterwards, so request tasks can read it without
locking.

Failure policy is fail-fast: if any adapter factory raises,
``RegistryBuildError`` aborts startup. Factories only create pooled clients,
no connection is open yet when the build is abandoned.
"""
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from loguru import logger

from wallet_gateway.blockchain.adapter import ChainAdapter
from wallet_gateway.blockchain.errors import RegistryBuildError
from wallet_gateway.blockchain.ethereum_adapter import new_ethereum_adapter
from wallet_gateway.blockchain.solana_adapter import new_solana_adapter
from wallet_gateway.config.settings import Settings

AdapterFactory = Callable[[Settings], ChainAdapter]


class SupportedChain(str, Enum):
    ETHEREUM = "ethereum"
    SOLANA = "solana"


ADAPTER_FACTORIES: Dict[str, AdapterFactory] = {
    SupportedChain.ETHEREUM.value: new_ethereum_adapter,
    SupportedChain.SOLANA.value: new_solana_adapter,
}


class AdapterRegistry:
    """Vue en lecture seule chaîne -> adapter."""

    def __init__(self, adapters: Mapping[str, ChainAdapter]):
        self._adapters = MappingProxyType(dict(adapters))

    @property
    def adapters(self) -> Mapping[str, ChainAdapter]:
        return self._adapters

    def get(self, chain: str) -> Optional[ChainAdapter]:
        return self._adapters.get(chain)

    def chains(self) -> List[str]:
        return list(self._adapters)

    def __contains__(self, chain: object) -> bool:
        return chain in self._adapters

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    async def aclose(self):
        for chain, adapter in self._adapters.items():
            try:
                await adapter.aclose()
            except Exception as e:
                logger.error(f"Failed to close adapter for chain {chain}: {e}")


def build_registry(settings: Settings, factories: Mapping[str, AdapterFactory] = None) -> AdapterRegistry:
    factories = ADAPTER_FACTORIES if factories is None else factories
    adapters: Dict[str, ChainAdapter] = {}

    for chain in settings.chains:
        if chain in adapters:
            logger.warning(f"Chain '{chain}' configured more than once, ignoring duplicate.")
            continue
        factory = factories.get(chain)
        if factory is None:
            logger.error(f"unsupported chain configured: '{chain}' (supported chains: {sorted(factories)})")
            continue
        try:
            adapters[chain] = factory(settings)
        except Exception as e:
            logger.critical(f"failed to setup chain '{chain}': {e}")
            raise RegistryBuildError(chain, e) from e
        logger.info(f"Chain adapter registered: {chain}")

    if not adapters:
        logger.warning("No chain adapter registered, every request will be rejected.")
    return AdapterRegistry(adapters)

